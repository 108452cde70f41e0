# Overview: Service-layer operations for auth; registration, password hashing and credential checks.

"""
Authentication Service

MULTI-TENANT: registering a user creates a business. The new user's id is
the business id that scopes everything the account later creates.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, 12 by default)
- Minimum 8 characters required
- Email and username stored lower-cased; uniqueness is case-insensitive
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import bcrypt
from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User
from ..validation import ConflictError, ValidationError, normalize_email
from ..time_utils import utcnow


MIN_PASSWORD_LENGTH = 8


class RegistrationError(ValidationError):
    """All registration problems at once, so the client can show every field."""

    def __init__(self, errors: list[dict]):
        self.errors = errors
        super().__init__(None, "Validation failed")


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def validate_registration(payload: dict) -> tuple[dict, list[dict]]:
    """
    Check a registration payload field by field.

    Returns (cleaned, errors). errors is a list of {"field", "message"} and is
    empty when the payload is acceptable.
    """
    if not isinstance(payload, dict):
        return {}, [{"field": None, "message": "Invalid JSON payload"}]

    errors = []
    cleaned = {
        "name": _text(payload, "name"),
        "username": _text(payload, "username").lower(),
        "business_name": _text(payload, "business_name") or _text(payload, "businessName"),
    }

    if len(cleaned["name"]) < 2:
        errors.append({"field": "name", "message": "Name must be at least 2 characters long"})

    try:
        cleaned["email"] = normalize_email("email", payload.get("email"))
    except ValidationError:
        errors.append({"field": "email", "message": "Please provide a valid email"})

    if len(cleaned["username"]) < 3:
        errors.append({"field": "username", "message": "Username must be at least 3 characters long"})

    password = payload.get("password")
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        errors.append({
            "field": "password",
            "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        })
    cleaned["password"] = password

    if len(cleaned["business_name"]) < 2:
        errors.append({"field": "business_name", "message": "Business name must be at least 2 characters long"})

    return cleaned, errors


def hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    A malformed stored hash makes bcrypt raise ValueError; that counts as a
    mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _identity_taken(email: str, username: str) -> bool:
    return db.session.query(User.id).filter(
        or_(User.email == email, User.username == username)
    ).first() is not None


def register_business(payload: dict) -> User:
    """
    Create a business user from a registration payload.

    Raises RegistrationError listing every invalid field, or ConflictError
    if the email or username is already registered.
    """
    cleaned, errors = validate_registration(payload)
    if errors:
        raise RegistrationError(errors)

    return create_user(
        name=cleaned["name"],
        email=cleaned["email"],
        username=cleaned["username"],
        password=cleaned["password"],
        business_name=cleaned["business_name"],
    )


def create_user(*, name: str, email: str, username: str, password: str, business_name: str) -> User:
    """
    Insert a user. Inputs are assumed valid; email/username are lower-cased here.

    The pre-check gives a clean error in the common case; the unique
    constraints catch the race between two registrations.
    """
    email = email.strip().lower()
    username = username.strip().lower()
    if _identity_taken(email, username):
        raise ConflictError("Email or username already exists")

    user = User(
        name=name,
        email=email,
        username=username,
        business_name=business_name,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Email or username already exists") from exc
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Resolve email-or-username plus password to an active user.

    Returns None on any mismatch; callers answer with one generic message so
    the response does not reveal which part was wrong.
    """
    if not identifier or not password:
        return None

    identifier = identifier.strip().lower()
    user = db.session.query(User).filter(
        or_(User.email == identifier, User.username == identifier)
    ).first()

    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
