"""
marketplace/blueprints/auth/__init__.py

Blueprint package export. Must expose auth_bp for app factory registration.
"""

from .routes import auth_bp  # noqa: F401
