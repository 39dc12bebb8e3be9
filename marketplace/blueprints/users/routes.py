"""
User Management (Admin Only).

Rules enforced:
- Email is the login id and must be unique.
- Role must be one of USER_ROLES.
- API input never trusted: we validate server-side.

Audit:
- CREATE / UPDATE / DELETE logged
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from ...audit import log_action, serialize_model
from ...errors import NotFoundError, ValidationError
from ...extensions import db
from ...models import USER_ROLES, User
from ...security import admin_required
from ...utils import clean_str, get_json_body

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError.for_entity("User", user_id)
    return user


def _validated_role(value) -> str:
    role = (clean_str(value) or "").lower()
    if role not in USER_ROLES:
        raise ValidationError("Invalid role. Allowed roles: " + ", ".join(USER_ROLES))
    return role


def _ensure_unique_email(email: str, exclude_user_id: int | None = None) -> None:
    existing = User.query.filter_by(email=email).first()
    if existing and existing.id != exclude_user_id:
        raise ValidationError("A user with this email already exists")


# ---------------------------------------------------------------------
# LIST USERS
# ---------------------------------------------------------------------

@users_bp.route("", methods=["GET"])
@login_required
@admin_required
def list_users():
    users = User.query.order_by(User.created_at.desc()).all()
    return jsonify([u.to_dict() for u in users])


# ---------------------------------------------------------------------
# CREATE USER
# ---------------------------------------------------------------------

@users_bp.route("", methods=["POST"])
@login_required
@admin_required
def create_user():
    """
    Create a new system user.

    Required: name, email, password, role
    """
    data = get_json_body()
    name = clean_str(data.get("name"))
    email = (clean_str(data.get("email")) or "").lower()
    password = data.get("password") or ""

    if not name or not email or not password:
        raise ValidationError("Name, email and password are required")

    role = _validated_role(data.get("role") or "viewer")
    _ensure_unique_email(email)

    user = User(name=name, email=email, role=role, is_active=True)
    user.set_password(password)

    db.session.add(user)
    db.session.flush()
    log_action(user, "CREATE", before=None, after=serialize_model(user))
    db.session.commit()

    return jsonify(user.to_dict()), 201


# ---------------------------------------------------------------------
# EDIT USER
# ---------------------------------------------------------------------

@users_bp.route("/<int:user_id>", methods=["PATCH"])
@login_required
@admin_required
def update_user(user_id: int):
    """
    Admin can change name, email, role, active flag and reset the password.
    """
    user = _get_user(user_id)
    data = get_json_body()
    before_snapshot = serialize_model(user)

    if "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            raise ValidationError("Name cannot be empty")
        user.name = name

    if "email" in data:
        email = (clean_str(data.get("email")) or "").lower()
        if not email:
            raise ValidationError("Email cannot be empty")
        _ensure_unique_email(email, exclude_user_id=user.id)
        user.email = email

    if "role" in data:
        user.role = _validated_role(data.get("role"))

    if "isActive" in data:
        user.is_active = bool(data.get("isActive"))

    new_password = data.get("password") or ""
    if new_password:
        user.set_password(new_password)

    log_action(user, "UPDATE", before=before_snapshot, after=serialize_model(user))
    db.session.commit()

    return jsonify(user.to_dict())


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@login_required
@admin_required
def delete_user(user_id: int):
    user = _get_user(user_id)
    if user.id == current_user.id:
        raise ValidationError("You cannot delete your own account")

    before_snapshot = serialize_model(user)
    log_action(user, "DELETE", before=before_snapshot, after=None)
    db.session.delete(user)
    db.session.commit()

    return jsonify({"success": True})
