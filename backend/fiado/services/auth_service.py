# Overview: Service-layer operations for operator authentication.

"""
Authentication collaborator.

Passwords are hashed with bcrypt. Authentication is scoped to an
organization code because usernames are only unique inside a tenant.
"""

import bcrypt

from ..errors import ConflictError
from ..extensions import db
from ..models import User, Organization
from ..time_utils import utcnow


MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not any(c.isalpha() for c in password) or not any(c.isdigit() for c in password):
        raise PasswordValidationError("Password must contain letters and digits")


def hash_password(password: str) -> str:
    """Hash password using bcrypt (cost factor 12)."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def create_user(org_id: int, username: str, email: str, password: str) -> User:
    validate_password_strength(password)

    existing = db.session.query(User).filter(
        User.org_id == org_id,
        (User.username == username) | (User.email == email),
    ).first()
    if existing:
        raise ConflictError("Username or email already exists in this organization")

    user = User(
        org_id=org_id,
        username=username,
        email=email,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(org_code: str, username: str, password: str) -> User | None:
    """
    Return the active user for these credentials, or None.

    Inactive users and inactive organizations cannot authenticate.
    """
    org = db.session.query(Organization).filter_by(code=(org_code or "").strip().upper()).first()
    if not org or not org.is_active:
        return None

    user = db.session.query(User).filter_by(org_id=org.id, username=username).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
