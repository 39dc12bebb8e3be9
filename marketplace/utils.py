"""
Utility functions shared across the app. This includes:
- transaction: one commit (or one rollback) around a multi-row write.
- parse_optional_int / parse_amount / parse_quantity: strict parsing of API input.
- get_json_body: the JSON object of the current request.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation

from flask import request
from sqlalchemy.exc import SQLAlchemyError

from .errors import ValidationError
from .extensions import db

log = logging.getLogger(__name__)

# Largest value a Numeric(10, 2) money column holds.
MAX_AMOUNT = Decimal("99999999.99")
MAX_QUANTITY = 1_000_000


@contextmanager
def transaction(operation: str):
    """
    Commit everything added to the session inside the block, or nothing.

    Any exception (validation raised late, integrity error, driver error)
    rolls the whole session back and propagates to the caller.
    """
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        log.exception("%s failed; transaction rolled back", operation)
        raise
    except Exception:
        db.session.rollback()
        raise


def parse_optional_int(value) -> int | None:
    """Parse optional int from JSON/query input. Empty -> None, garbage -> ValidationError."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Expected an integer, got {value!r}")
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Expected an integer, got {value!r}") from None


def parse_amount(value, field: str, *, allow_negative: bool = False) -> Decimal | None:
    """Parse a money amount (accepts comma or dot). Empty -> None."""
    if value is None or isinstance(value, bool):
        return None
    raw = str(value).strip().replace(",", ".")
    if raw == "":
        return None
    try:
        amount = Decimal(raw)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number") from None
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large")
    return amount


def parse_quantity(value) -> int:
    """Line quantities are positive integers."""
    quantity = parse_optional_int(value)
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"Quantity cannot exceed {MAX_QUANTITY}")
    return quantity


def clean_str(value) -> str | None:
    """Strip strings; empty becomes None."""
    if value is None:
        return None
    return str(value).strip() or None


def get_json_body() -> dict:
    """JSON object body of the current request ({} when absent)."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
