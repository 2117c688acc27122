# Overview: Service-layer operations for session; opaque bearer tokens stored as hashes.

"""
Session Token Management

- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout of SESSION_TTL_HOURS
- Revocable on logout, password change, or account removal
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Account, SessionToken
from ..time_utils import utcnow


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens are high-entropy, so a fast hash is enough
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(account_id: int) -> tuple[SessionToken, str]:
    """
    Returns (session_record, plaintext_token).

    Client receives plaintext_token, database stores only the hash.
    """
    plaintext_token = generate_token()
    now = utcnow()
    ttl = timedelta(hours=int(current_app.config.get("SESSION_TTL_HOURS", 24)))

    session = SessionToken(
        account_id=account_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + ttl,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> Account | None:
    """
    Return the Account behind a live token, or None.

    A token whose account has been removed is revoked on sight.
    """
    if not token:
        return None
    session = (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )
    if not session:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None

    account = session.account
    if not account or not account.is_active:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = "Account removed"
        db.session.commit()
        return None
    return account


def revoke_session(token: str, reason: str = "Logout") -> bool:
    session = (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )
    if not session:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()
    return True


def revoke_all_sessions(account_id: int, reason: str, *, commit: bool = True) -> int:
    """Revoke every live session of an account. Returns how many were revoked."""
    count = (
        db.session.query(SessionToken)
        .filter_by(account_id=account_id, is_revoked=False)
        .update(
            {"is_revoked": True, "revoked_at": utcnow(), "revoked_reason": reason},
            synchronize_session=False,
        )
    )
    if commit:
        db.session.commit()
    return count
