# Overview: Service-layer operations for auth; password hashing, user creation and roles.

"""
Authentication service.

Passwords are hashed with bcrypt (cost from BCRYPT_ROUNDS) and must pass a
strength check. Roles are a flat set: Owner, Admin, Proprietor, User.
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import User, Role, UserRole, DEFAULT_ROLES, ROLE_USER
from ..time_utils import utcnow


ROLE_DESCRIPTIONS = {
    "Owner": "Owns the central inventory, shops and reports",
    "Admin": "Manages shops and transfers",
    "Proprietor": "Operates a single shop and its POS",
    "User": "Online and walk-in customer",
}


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter, one lowercase letter and one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
    if not password or len(password) < 8:
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
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def find_user_by_login(identifier: str) -> User | None:
    """Look a user up by email or username (case-insensitive on email)."""
    identifier = (identifier or "").strip()
    if not identifier:
        return None
    return db.session.query(User).filter(
        db.or_(User.email == identifier.lower(), User.username == identifier)
    ).first()


def create_user(
    email: str,
    password: str,
    username: str | None = None,
    role_name: str | None = ROLE_USER,
    is_guest: bool = False,
) -> User:
    """
    Create a user with a bcrypt-hashed password and an initial role.

    Flushes but does not commit; callers own the transaction.

    Raises:
        ValidationError: malformed email or weak password
        ConflictError: email or username already taken
    """
    email = normalize_email(email)
    if not email or "@" not in email:
        raise ValidationError("A valid email address is required")
    username = (username or email).strip()

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists", {"email": email})

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        is_guest=is_guest,
    )
    db.session.add(user)
    db.session.flush()

    if role_name:
        assign_role(user, role_name)
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Returns User if credentials valid, None otherwise.
    Updates last_login_at on success.
    """
    user = find_user_by_login(identifier)
    if not user or not user.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def create_default_roles() -> list[Role]:
    """Create the standard roles if they don't exist. Idempotent."""
    roles = []
    for name in DEFAULT_ROLES:
        role = db.session.query(Role).filter_by(name=name).first()
        if not role:
            role = Role(name=name, description=ROLE_DESCRIPTIONS.get(name))
            db.session.add(role)
        roles.append(role)
    db.session.flush()
    return roles


def get_role(role_name: str) -> Role:
    role = db.session.query(Role).filter(db.func.lower(Role.name) == role_name.lower()).first()
    if not role:
        if role_name.lower() in {r.lower() for r in DEFAULT_ROLES}:
            create_default_roles()
            return get_role(role_name)
        raise NotFoundError(f"Role {role_name} not found")
    return role


def assign_role(user: User, role_name: str) -> UserRole:
    """Grant a role. Returns the existing link when already granted."""
    role = get_role(role_name)

    existing = db.session.query(UserRole).filter_by(user_id=user.id, role_id=role.id).first()
    if existing:
        return existing

    user_role = UserRole(user=user, role=role)
    db.session.add(user_role)
    db.session.flush()
    return user_role
