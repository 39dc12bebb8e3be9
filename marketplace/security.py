"""
marketplace/security.py

Role checks for the JSON API. Every check is server-side; the UI only hides
buttons.

Roles:
- admin: everything, including users, markup settings and deletes.
- assistant / sales / procurement / logistics (staff): create and quote
  requests, work the sales pipeline.
- procurement (and admin): edit the material/supplier catalog.
- viewer: read-only.

viewer_readonly_guard() runs before every request (see create_app) and
rejects POST/PUT/PATCH/DELETE from viewers, so a route that forgets its
decorator still cannot be used to write.

Decorated views keep their name via functools.wraps; Flask derives
endpoint names from it.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Optional, Tuple

from flask import jsonify, request
from flask_login import current_user

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
STAFF_ROLES = ("assistant", "sales", "procurement", "logistics")
VIEWER_WRITABLE_ENDPOINTS = frozenset({"auth.login", "auth.logout"})

View = Callable[..., Any]


def _forbidden():
    return jsonify({"error": "Insufficient permissions"}), 403


def _unauthorized():
    return jsonify({"error": "Authentication required"}), 401


def is_admin() -> bool:
    return bool(current_user.is_authenticated and current_user.is_admin)


def is_viewer() -> bool:
    return bool(current_user.is_authenticated and current_user.role == "viewer")


def viewer_readonly_guard() -> Optional[Tuple[Any, int]]:
    """403 for any write by a viewer, except logging in and out."""
    if request.method not in WRITE_METHODS or not is_viewer():
        return None
    if request.endpoint in VIEWER_WRITABLE_ENDPOINTS:
        return None
    return _forbidden()


def admin_required(view_func: View) -> View:
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            return _unauthorized()
        if not is_admin():
            return _forbidden()
        return view_func(*args, **kwargs)

    return wrapper


def roles_required(*roles: str) -> Callable[[View], View]:
    """
    Allow admin plus the listed roles.

        @roles_required("procurement")
        def update_material(material_id): ...
    """

    def decorator(view_func: View) -> View:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            if not current_user.is_authenticated:
                return _unauthorized()
            if not current_user.has_role(*roles):
                return _forbidden()
            return view_func(*args, **kwargs)

        return wrapper

    return decorator


staff_required = roles_required(*STAFF_ROLES)
