# Overview: Service-layer operations for user accounts and password checks.

"""
Authentication Service

WHY: Every expense must be attributable to a user, and the profit/loss
report is restricted to admins. Uses bcrypt for password hashing and
validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import ROLES, ROLE_ADMIN, ROLE_MANAGER
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError
from .concurrency import atomic


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


class DuplicateUsernameError(ConflictError):
    """Raised when a username is already taken."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt. Password is validated for strength first."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    password: str,
    *,
    role: str = ROLE_MANAGER,
    full_name: str | None = None,
) -> User:
    """
    Create a user account.

    Raises ValidationError for a blank username / unknown role,
    PasswordValidationError for a weak password and
    DuplicateUsernameError when the username is taken.
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64")
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    password_hash = hash_password(password or "")

    def _duplicate():
        return DuplicateUsernameError(f"username {username} already exists", details={"username": username})

    def _op():
        existing = db.session.query(User.id).filter(User.username == username).first()
        if existing is not None:
            raise _duplicate()
        user = User(
            username=username,
            password_hash=password_hash,
            role=role,
            full_name=(full_name or "").strip() or None,
        )
        db.session.add(user)
        db.session.flush()
        return user

    user = atomic(_op, unique_errors={"username": _duplicate})
    current_app.logger.info("User %s created with role %s", user.username, user.role)
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.username == (username or "").strip(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password or "", user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.id.asc()).all()


def ensure_default_users(password: str) -> list[User]:
    """Seed the admin and manager accounts if they do not exist yet. Returns the users created."""
    created = []
    for username, role, full_name in (
        ("admin", ROLE_ADMIN, "Administrator"),
        ("manager", ROLE_MANAGER, "Manager"),
    ):
        if db.session.query(User.id).filter_by(username=username).first() is None:
            created.append(create_user(username, password, role=role, full_name=full_name))
    return created
