"""Sales pipeline blueprint."""

from .routes import leads_bp  # noqa: F401
