from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


KIND_SUCCESS = "success"
KIND_ERROR = "error"
KIND_WARNING = "warning"
KIND_INFO = "info"
VALID_KINDS = {KIND_SUCCESS, KIND_ERROR, KIND_WARNING, KIND_INFO}


class Notification(db.Model):
    """
    Mailbox entry for one account.

    Display order is newest first (id DESC). mailbox_service trims each
    mailbox to MAILBOX_LIMIT rows on every post.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_account_read", "account_id", "is_read"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    message = db.Column(db.Text, nullable=False)
    kind = db.Column(db.String(16), nullable=False, default=KIND_INFO)
    is_read = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "message": self.message,
            "kind": self.kind,
            "is_read": self.is_read,
            "created_at": to_utc_z(self.created_at),
        }
