# Overview: Service-layer operations for auth; password hashing, login and forced password change.

"""
Authentication Service

Stands in for the identity provider: it turns a username/password pair into
an authenticated account id plus the requires_password_change flag. The
purchase and approval services trust that id as-is.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters for passwords chosen by the user
- Admin-issued passwords (provisioning, reset) skip the strength check but
  always set requires_password_change
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import logging

import bcrypt
from flask import current_app

from ..errors import InvalidInputError, NotFoundError
from ..extensions import db
from ..models import Account
from ..time_utils import utcnow

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 72  # bcrypt ignores everything past 72 bytes


class PasswordValidationError(InvalidInputError):
    """Raised when a password doesn't meet strength requirements."""
    code = "WEAK_PASSWORD"


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(password.encode("utf-8")) > MAX_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password cannot exceed {MAX_PASSWORD_LENGTH} bytes")


def hash_password(password: str, *, validate: bool = True) -> str:
    """Hash with bcrypt. validate=False is for admin-issued temporary passwords."""
    if validate:
        validate_password_strength(password)
    elif not password:
        raise InvalidInputError("password cannot be blank")
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def authenticate(username: str, password: str) -> Account | None:
    """
    Return the active Account for valid credentials, None otherwise.

    Updates last_login_at on success.
    """
    if not username or not password:
        return None
    account = (
        db.session.query(Account)
        .filter(Account.username == username.strip(), Account.is_active.is_(True))
        .first()
    )
    if not account or not verify_password(password, account.password_hash):
        logger.info("Failed login for username %r", username)
        return None

    account.last_login_at = utcnow()
    db.session.commit()
    return account


def change_password(account_id: int, current_password: str | None, new_password: str) -> Account:
    """
    Set a new password chosen by the account holder and clear the
    requires_password_change flag.

    current_password is required unless the account is in forced-change state.
    """
    account = db.session.query(Account).filter_by(id=account_id, is_active=True).first()
    if not account:
        raise NotFoundError("Account not found", details={"account_id": account_id})

    if not account.requires_password_change and not verify_password(current_password or "", account.password_hash):
        raise InvalidInputError("Current password is incorrect")
    if verify_password(new_password or "", account.password_hash):
        raise PasswordValidationError("New password must differ from the current password")

    account.password_hash = hash_password(new_password)
    account.requires_password_change = False
    db.session.commit()
    logger.info("Password changed for account %s", account_id)
    return account
