"""
marketplace/errors.py

Domain exceptions raised by the quoting engine services.

Services raise, the app factory translates to JSON responses:
- ValidationError -> 400 (nothing was written)
- NotFoundError   -> 404
- ConflictError   -> 409 (request number could not be allocated)
"""

from __future__ import annotations


class MarketplaceError(Exception):
    """Base class for errors reported to API callers."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(MarketplaceError):
    status_code = 400


class NotFoundError(MarketplaceError):
    status_code = 404

    @classmethod
    def for_entity(cls, entity: str, entity_id) -> "NotFoundError":
        return cls(f"{entity} {entity_id} not found")


class ConflictError(MarketplaceError):
    status_code = 409
