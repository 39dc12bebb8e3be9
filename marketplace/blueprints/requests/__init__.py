"""
marketplace/blueprints/requests/__init__.py

Blueprint package export. Must expose requests_bp for app factory registration.
"""

from .routes import requests_bp  # noqa: F401
