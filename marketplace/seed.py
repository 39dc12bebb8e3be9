"""
marketplace/seed.py

Seed bootstrap data.

Rules:
- Safe to run multiple times (idempotent).
- Seeds the first admin user and the default markup settings row.

NOTE:
- Clients, suppliers and materials are not seeded here; they are real data.
"""

from __future__ import annotations

from .extensions import db
from .models import MarkupSettings, User


def seed_admin(email: str, password: str, name: str = "Admin User") -> bool:
    """
    Create the admin user if no user with that email exists.

    Returns True when a user was created.
    """
    if User.query.filter_by(email=email).first():
        return False

    user = User(name=name, email=email, role="admin", is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return True


def seed_default_settings() -> MarkupSettings:
    """
    Ensure exactly one MarkupSettings row exists.

    Existing values are never overwritten; missing ones get the defaults.
    """
    settings = MarkupSettings.query.order_by(MarkupSettings.id.asc()).first()
    if settings is None:
        settings = MarkupSettings()
        db.session.add(settings)

    if settings.default_markup is None:
        settings.default_markup = MarkupSettings.DEFAULT_MARKUP
    if not settings.markup_type:
        settings.markup_type = MarkupSettings.DEFAULT_MARKUP_TYPE
    if settings.tax_rate is None:
        settings.tax_rate = MarkupSettings.DEFAULT_TAX_RATE

    db.session.commit()
    return settings
