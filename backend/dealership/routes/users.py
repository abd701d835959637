# Overview: Flask API routes for user administration; parses input and returns JSON responses.

# backend/dealership/routes/users.py
"""
User management routes.

Self-registration does not exist: accounts are created by an admin here
or with `flask users create`.

SECURITY: All routes require the admin role.
"""
from flask import Blueprint, request

from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import auth_service
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_role

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    return {"items": [u.to_dict() for u in auth_service.list_users()]}, 200


@users_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    """
    Create a user.

    Body:
    - username: str (required)
    - password: str (required, strength rules apply)
    - full_name: str (optional)
    - role: admin | manager (optional, default manager)
    """
    payload = request.get_json(silent=True) or {}

    username = payload.get("username")
    password = payload.get("password")
    if not username or not password:
        return {"error": "username and password required"}, 400

    try:
        user = auth_service.create_user(
            str(username),
            str(password),
            role=payload.get("role") or ROLE_MANAGER,
            full_name=payload.get("full_name"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409

    return user.to_dict(), 201
