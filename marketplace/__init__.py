"""
marketplace/__init__.py

Flask application factory for the Procurement Marketplace backend.

Requirements:
- JSON API only; UI is a separate collaborator.
- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev and tests.
- API input is never trusted; server-side access control on every route.
- Domain errors (marketplace.errors) become JSON error responses here.
"""

from __future__ import annotations

import logging

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .errors import MarketplaceError
from .extensions import csrf, db, login_manager, migrate
from .logging_config import setup_logging
from .models import User
from .security import viewer_readonly_guard

log = logging.getLogger(__name__)


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    setup_logging(app.config.get("LOG_LEVEL", "INFO"), app.config.get("LOG_JSON", False))

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Authentication required"}), 401

    # ----------------------------------------------------------------------
    # GLOBAL SECURITY NET: viewer read-only guard (server-side).
    # ----------------------------------------------------------------------
    @app.before_request
    def _viewer_guard_hook():
        """
        Viewer read-only enforcement (POST/PUT/PATCH/DELETE blocked).

        This is a safety net. Each route still enforces its own permissions.
        """
        return viewer_readonly_guard()

    # ----------------------------------------------------------------------
    # Error handlers
    # ----------------------------------------------------------------------
    @app.errorhandler(MarketplaceError)
    def _marketplace_error(exc: MarketplaceError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return jsonify({"error": exc.description or exc.name}), exc.code

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth.routes import auth_bp
    from .blueprints.catalog.routes import catalog_bp
    from .blueprints.clients.routes import clients_bp
    from .blueprints.leads.routes import leads_bp
    from .blueprints.requests.routes import requests_bp
    from .blueprints.settings.routes import settings_bp
    from .blueprints.users.routes import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(requests_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(users_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("seed-admin")
    @click.option("--email", default="admin@example.com", show_default=True)
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    def seed_admin_command(email: str, password: str):
        """Create the first admin user (no-op if it exists)."""
        from .seed import seed_admin

        created = seed_admin(email=email, password=password)
        click.echo("Admin user created." if created else "Admin user already exists.")

    @app.cli.command("seed-settings")
    def seed_settings_command():
        """Create the default markup settings row."""
        from .seed import seed_default_settings

        seed_default_settings()
        click.echo("Default markup settings seeded.")

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok", "app": app.config.get("APP_NAME")})

    log.debug("application created with %s", config_object)
    return app
