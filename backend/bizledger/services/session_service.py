# Overview: Service-layer operations for session tokens; creation, validation, revocation, cleanup.

"""
Session Token Management Service

Tokens are cryptographically secure, hashed in the database, and time-limited.

MULTI-TENANT: a session belongs to one user and the user is the business,
so the business id for every authenticated request comes from the session
record and never from client input.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute lifetime of SESSION_LIFETIME_DAYS (7 by default)
- Revocable on logout
- Tracks client IP and user agent
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow
from .concurrency import run_with_retry


class UnauthorizedError(Exception):
    """Missing, malformed, expired or revoked credentials."""


@dataclass
class SessionContext:
    """Identity resolved from a valid bearer token."""
    user: User
    session: SessionToken
    business_id: int


def generate_token() -> str:
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """SHA-256 is enough here: tokens are high-entropy, unlike passwords."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def bearer_token(auth_header: str | None) -> str:
    """Pull the token out of an `Authorization: Bearer <token>` header."""
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedError("No token, authorization denied")
    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise UnauthorizedError("No token, authorization denied")
    return token


def _lifetime() -> timedelta:
    return timedelta(days=current_app.config.get("SESSION_LIFETIME_DAYS", 7))


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session for an active user.

    Returns (session_record, plaintext_token). The client receives the
    plaintext token; the database stores only its hash.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _lifetime(),
        user_agent=user_agent[:512] if user_agent else None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Return the SessionContext for a live token, or None.

    None if the token is unknown, revoked or expired, or if the user was
    deactivated (the session is revoked on the way out in that case).
    Updates last_used_at on success. That write is retried under lock
    contention like any other and raises PersistenceFailure once exhausted.
    """
    token_hash = hash_token(token)

    def _op():
        now = utcnow()
        session = db.session.query(SessionToken).filter_by(
            token_hash=token_hash,
            is_revoked=False,
        ).first()

        if not session:
            return None
        if session.expires_at < now:
            return None

        user = session.user
        if not user or not user.is_active:
            session.is_revoked = True
            session.revoked_at = now
            session.revoked_reason = "User account deactivated"
            db.session.commit()
            return None

        session.last_used_at = now
        db.session.commit()

        return SessionContext(user=user, session=session, business_id=user.id)

    return run_with_retry(_op)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Returns True if a live session was revoked, False if none matched."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()
    return True


def cleanup_expired_sessions(older_than_days: int = 30) -> int:
    """
    Delete sessions that are expired or revoked and older than `older_than_days`.

    Returns count of sessions deleted.
    """
    now = utcnow()
    cutoff = now - timedelta(days=older_than_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < cutoff,
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
