"""
Authentication Routes

Provides:
- POST /api/auth/login
- POST /api/auth/logout
- GET  /api/auth/me   (current user + CSRF token for mutating calls)

Rules:
- Only active users may log in
- Credentials validated via password hash
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...errors import ValidationError
from ...extensions import csrf
from ...models import User
from ...utils import get_json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["POST"])
@csrf.exempt
def login():
    """Authenticate a user and open a session."""
    data = get_json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        raise ValidationError("Email and password are required")

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        return jsonify({"error": "Invalid email or password"}), 401

    if not user.is_active:
        return jsonify({"error": "Account is disabled"}), 403

    login_user(user)
    return jsonify({"user": user.to_dict(), "csrfToken": generate_csrf()})


# ============================================================
# LOGOUT
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})


# ============================================================
# CURRENT USER
# ============================================================

@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict(), "csrfToken": generate_csrf()})
