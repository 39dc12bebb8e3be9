"""
marketplace/audit.py

AuditLog rows for every mutation of marketplace data.

Each row records the actor (id + email snapshot, kept even if the user is
later renamed or deleted), the entity type/id, the action and column
snapshots before and after the change.

The row is only added to the session: it is committed or rolled back with
the change it describes, inside the caller's transaction. Outside a request
(CLI seeding, tests calling services) the actor and IP are left empty.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import AuditLog

Snapshot = Dict[str, Optional[str]]


def serialize_model(instance: Any) -> Snapshot:
    """
    Column values of a model instance as strings.

    Relationships are not followed; Decimal/datetime become their str() form,
    None stays None.
    """
    snapshot: Snapshot = {}
    for column in instance.__table__.columns:
        value = getattr(instance, column.key)
        snapshot[column.name] = None if value is None else str(value)
    return snapshot


def _actor() -> tuple[Optional[int], Optional[str], Optional[str]]:
    """(user id, email, ip) of the caller, all None outside a request."""
    if not has_request_context():
        return None, None, None
    if current_user and current_user.is_authenticated:
        return current_user.id, current_user.email, request.remote_addr
    return None, None, request.remote_addr


def _dump(snapshot: Optional[Dict[str, Any]]) -> Optional[str]:
    return json.dumps(snapshot, ensure_ascii=False) if snapshot else None


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog row for `entity` to the current session.

    New rows must be flushed first so they carry an id.
    Actions used: CREATE, UPDATE, DELETE, DEACTIVATE, QUOTE, REFRESH_PRICES.
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError(f"cannot audit {entity.__class__.__name__} without an id; flush first")

    user_id, email, ip_address = _actor()
    entry = AuditLog(
        user_id=user_id,
        username_snapshot=email,
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        action=action,
        before_data=_dump(before),
        after_data=_dump(after),
        ip_address=ip_address,
    )
    db.session.add(entry)
    return entry
