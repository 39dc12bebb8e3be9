"""
marketplace/blueprints/catalog/__init__.py

Blueprint package export. Must expose catalog_bp for app factory registration.
"""

from .routes import catalog_bp  # noqa: F401
