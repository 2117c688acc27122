# Overview: Service-layer operations for accounts; provisioning, profile edits, resets and balance grants.

"""
Account administration.

Balance writes here are limited to admin grants (add_points) and admin
edits (update_profile). Debits for purchases only ever happen in
purchase_service.
"""

from __future__ import annotations

import logging

from flask import current_app

from ..errors import ConflictError, InvalidInputError, NotFoundError
from ..extensions import db
from ..models import Account
from ..models.accounts import ROLE_ADMIN, ROLE_EMPLOYEE, VALID_ROLES
from ..validation import MAX_POINTS, parse_int, parse_text
from . import auth_service, session_service
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

USERNAME_MAX = 64
DISPLAY_NAME_MAX = 255


def get_account(account_id: int, *, include_inactive: bool = False) -> Account:
    account = db.session.query(Account).filter_by(id=account_id).first()
    if not account or (not account.is_active and not include_inactive):
        raise NotFoundError("Account not found", details={"account_id": account_id})
    return account


def get_by_username(username: str) -> Account | None:
    if not username:
        return None
    return db.session.query(Account).filter_by(username=str(username).strip()).first()


def list_accounts(*, role: str | None = None, include_inactive: bool = False) -> list[Account]:
    query = db.session.query(Account)
    if role is not None:
        query = query.filter(Account.role == role)
    if not include_inactive:
        query = query.filter(Account.is_active.is_(True))
    return query.order_by(Account.display_name.asc(), Account.id.asc()).all()


def _parse_role(value) -> str:
    role = (parse_text(value, "role", required=False) or ROLE_EMPLOYEE).lower()
    if role not in VALID_ROLES:
        raise InvalidInputError(f"role must be one of {', '.join(sorted(VALID_ROLES))}")
    return role


def provision_account(
    *,
    username,
    display_name,
    password=None,
    role=ROLE_EMPLOYEE,
    points_balance=0,
    requires_password_change: bool = True,
    commit: bool = True,
) -> Account:
    """
    Create an account.

    Without a password the account gets DEFAULT_RESET_PASSWORD. Passwords
    handed out by an admin are temporary: requires_password_change stays set
    unless the caller explicitly clears it (bootstrap admin, demo seed).
    """
    username = parse_text(username, "username", max_length=USERNAME_MAX)
    display_name = parse_text(display_name, "display_name", max_length=DISPLAY_NAME_MAX)
    role = _parse_role(role)
    balance = parse_int(points_balance, "points_balance", minimum=0, maximum=MAX_POINTS)

    if get_by_username(username):
        raise ConflictError("Username already exists", details={"username": username})

    raw_password = password or current_app.config["DEFAULT_RESET_PASSWORD"]
    account = Account(
        username=username,
        display_name=display_name,
        password_hash=auth_service.hash_password(raw_password, validate=False),
        requires_password_change=requires_password_change,
        role=role,
        points_balance=balance,
        is_active=True,
    )
    db.session.add(account)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    logger.info("Provisioned %s account %r", role, username)
    return account


def parse_profile(data: dict) -> dict:
    """
    Validate an admin profile patch. Keys: display_name (or name),
    points_balance (or points), role, password. Blank passwords are ignored.
    """
    patch = {}
    if "display_name" in data or "name" in data:
        patch["display_name"] = parse_text(data.get("display_name", data.get("name")), "display_name", max_length=DISPLAY_NAME_MAX)
    if "points_balance" in data or "points" in data:
        patch["points_balance"] = parse_int(
            data.get("points_balance", data.get("points")), "points_balance", minimum=0, maximum=MAX_POINTS
        )
    if "role" in data:
        patch["role"] = _parse_role(data["role"])
    new_password = data.get("password")
    if new_password is not None and str(new_password).strip():
        patch["password_hash"] = auth_service.hash_password(str(new_password), validate=False)
    return patch


def apply_profile(account: Account, patch: dict) -> Account:
    """Apply a parsed patch to a locked account. Caller owns the commit."""
    if patch.get("role") == ROLE_EMPLOYEE and account.role == ROLE_ADMIN:
        _ensure_other_admin(account.id)
    for key, value in patch.items():
        setattr(account, key, value)
    if "password_hash" in patch:
        # Admin-set passwords are temporary
        account.requires_password_change = True
    return account


def update_profile(account_id: int, data: dict, *, expected_version: int | None = None) -> Account:
    """
    Admin edit of display_name, points_balance, role and password.

    points_balance is an absolute value. A password set here is a temporary
    one, so requires_password_change is raised again.
    """
    patch = parse_profile(data)

    def _op():
        account = lock_for_update(db.session.query(Account).filter_by(id=account_id, is_active=True)).first()
        if not account:
            raise NotFoundError("Account not found", details={"account_id": account_id})
        if expected_version is not None and account.version_id != expected_version:
            raise ConflictError(
                "Account was changed by someone else",
                details={"expected_version": expected_version, "version_id": account.version_id},
            )
        apply_profile(account, patch)
        db.session.commit()
        return account

    return run_with_retry(_op)


def add_points(account_id: int, amount, *, commit: bool = True) -> Account:
    """
    Plain balance increment (bulk "add points"). A negative amount is a
    correction and may not take the balance below zero.
    """
    amount = parse_int(amount, "points_to_add", minimum=-MAX_POINTS, maximum=MAX_POINTS)

    def _apply():
        account = lock_for_update(db.session.query(Account).filter_by(id=account_id, is_active=True)).first()
        if not account:
            raise NotFoundError("Account not found", details={"account_id": account_id})
        new_balance = account.points_balance + amount
        if new_balance < 0:
            raise InvalidInputError(
                "Balance cannot go below zero",
                details={"points_balance": account.points_balance, "points_to_add": amount},
            )
        if new_balance > MAX_POINTS:
            raise InvalidInputError(f"Balance cannot exceed {MAX_POINTS}")
        account.points_balance = new_balance
        return account

    if not commit:
        account = _apply()
        db.session.flush()
        return account

    def _op():
        account = _apply()
        db.session.commit()
        return account

    return run_with_retry(_op)


def reset_password(account_id: int) -> Account:
    """Set DEFAULT_RESET_PASSWORD, force a change on next login, and end live sessions."""
    account = get_account(account_id)
    account.password_hash = auth_service.hash_password(
        current_app.config["DEFAULT_RESET_PASSWORD"], validate=False
    )
    account.requires_password_change = True
    session_service.revoke_all_sessions(account.id, "Password reset", commit=False)
    db.session.commit()
    logger.info("Password reset for account %s", account_id)
    return account


def _ensure_other_admin(account_id: int) -> None:
    others = (
        db.session.query(Account)
        .filter(Account.role == ROLE_ADMIN, Account.is_active.is_(True), Account.id != account_id)
        .count()
    )
    if not others:
        raise ConflictError("Cannot remove the last admin account")


def remove_account(account_id: int, *, actor_account_id: int | None = None) -> Account:
    """
    Soft delete. History and pending requests keep the account row; pending
    requests from a removed account auto-deny on approval.
    """
    if actor_account_id is not None and actor_account_id == account_id:
        raise ConflictError("You cannot remove your own account")
    account = get_account(account_id)
    if account.is_admin:
        _ensure_other_admin(account.id)
    account.is_active = False
    session_service.revoke_all_sessions(account.id, "Account removed", commit=False)
    db.session.commit()
    logger.info("Account %s removed by %s", account_id, actor_account_id)
    return account
