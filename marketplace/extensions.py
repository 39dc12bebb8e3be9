"""
marketplace/extensions.py

Extension singletons, bound to the app in create_app().

- db: ORM session used by every service (lifecycle, quotes, leads)
- migrate: `flask db` schema migrations
- login_manager: session auth for the JSON API
- csrf: token checked on mutating calls (X-CSRFToken header)
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
