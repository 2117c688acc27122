# Overview: Notification Mailbox; per-account bounded list of status messages.

from __future__ import annotations

from flask import current_app

from ..errors import InvalidInputError, NotFoundError
from ..extensions import db
from ..models import Account, Notification
from ..models.notifications import VALID_KINDS
"""
Mailbox invariants

- Newest first (id DESC).
- At most MAILBOX_LIMIT (20) entries per account; the oldest are evicted
  silently on post. There is no other delete path.
- post() can join the caller's transaction (commit=False) so that a purchase
  and its notification land together.
"""


def _mailbox_limit() -> int:
    return int(current_app.config.get("MAILBOX_LIMIT", 20))


def _require_account(account_id: int) -> Account:
    account = db.session.query(Account).filter_by(id=account_id).first()
    if not account:
        raise NotFoundError("Account not found", details={"account_id": account_id})
    return account


def post(account_id: int, message: str, kind: str = "info", *, commit: bool = True) -> Notification:
    """Prepend a notification to the account's mailbox and trim it to the cap."""
    if kind not in VALID_KINDS:
        raise InvalidInputError(f"kind must be one of {', '.join(sorted(VALID_KINDS))}")
    if not message or not str(message).strip():
        raise InvalidInputError("message cannot be blank")
    _require_account(account_id)

    note = Notification(account_id=account_id, message=str(message).strip(), kind=kind, is_read=False)
    db.session.add(note)
    db.session.flush()

    _trim(account_id)

    if commit:
        db.session.commit()
    return note


def _trim(account_id: int) -> int:
    stale_ids = [
        row[0]
        for row in (
            db.session.query(Notification.id)
            .filter(Notification.account_id == account_id)
            .order_by(Notification.id.desc())
            .offset(_mailbox_limit())
            .all()
        )
    ]
    if not stale_ids:
        return 0
    db.session.query(Notification).filter(Notification.id.in_(stale_ids)).delete(synchronize_session=False)
    return len(stale_ids)


def list_notifications(account_id: int) -> list[Notification]:
    _require_account(account_id)
    return (
        db.session.query(Notification)
        .filter_by(account_id=account_id)
        .order_by(Notification.id.desc())
        .all()
    )


def unread_count(account_id: int) -> int:
    return db.session.query(Notification).filter_by(account_id=account_id, is_read=False).count()


def mark_all_read(account_id: int) -> int:
    """Mark every entry read. Idempotent; returns how many flipped."""
    _require_account(account_id)
    updated = (
        db.session.query(Notification)
        .filter_by(account_id=account_id, is_read=False)
        .update({"is_read": True}, synchronize_session=False)
    )
    db.session.commit()
    return updated
