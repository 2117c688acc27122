from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


REQUEST_STATUS_PENDING = "PENDING"

SOURCE_CHECKOUT = "CHECKOUT"
SOURCE_APPROVAL = "APPROVAL"


class PurchaseRequest(db.Model):
    """
    An employee's cart waiting for an admin decision.

    Lifecycle: PENDING -> deleted. Approve and deny both end by deleting the
    row; there is no stored terminal status. The versioned delete is what
    makes resolution happen exactly once.

    Lines are snapshots (name, unit price at submission). They are shown to
    the admin but never used to charge; approval re-prices from the catalog.
    """
    __tablename__ = "purchase_requests"
    __table_args__ = (
        db.Index("ix_purchase_requests_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    # Denormalized so the queue stays readable if the account is renamed or removed
    account_name = db.Column(db.String(255), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=REQUEST_STATUS_PENDING)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "PurchaseRequestLine",
        order_by="PurchaseRequestLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def snapshot_total(self) -> int:
        return sum(line.unit_price * line.quantity for line in self.lines)

    def describe_items(self) -> str:
        return ", ".join(f"{line.item_name} (x{line.quantity})" for line in self.lines)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "account_name": self.account_name,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "snapshot_total": self.snapshot_total,
            "lines": [line.to_dict() for line in self.lines],
            "version_id": self.version_id,
        }


class PurchaseRequestLine(db.Model):
    """Cart line snapshot captured at submission time."""
    __tablename__ = "purchase_request_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey("purchase_requests.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    # Plain id, not a foreign key: the snapshot outlives catalog edits
    item_id = db.Column(db.Integer, nullable=False)
    item_name = db.Column(db.String(255), nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "line_total": self.unit_price * self.quantity,
        }


class PurchaseHistoryRecord(db.Model):
    """
    Append-only audit entry for a completed purchase.

    Written only by purchase_service, in the same transaction as the balance
    debit and stock decrements. Only the most recent HISTORY_RETENTION_LIMIT
    records are kept.
    """
    __tablename__ = "purchase_history"
    __table_args__ = (
        db.Index("ix_purchase_history_account_created", "account_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, nullable=False, index=True)
    account_name = db.Column(db.String(255), nullable=False)

    total_cost = db.Column(db.Integer, nullable=False)
    source = db.Column(db.String(16), nullable=False)  # CHECKOUT, APPROVAL
    actor_account_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship(
        "PurchaseHistoryLine",
        order_by="PurchaseHistoryLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "account_name": self.account_name,
            "total_cost": self.total_cost,
            "source": self.source,
            "actor_account_id": self.actor_account_id,
            "created_at": to_utc_z(self.created_at),
            "lines": [line.to_dict() for line in self.lines],
        }


class PurchaseHistoryLine(db.Model):
    __tablename__ = "purchase_history_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey("purchase_history.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    item_id = db.Column(db.Integer, nullable=False)
    item_name = db.Column(db.String(255), nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "line_total": self.line_total,
        }
