# Overview: Purchase Engine; the only path that debits points and decrements stock.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from flask import current_app

from ..errors import (
    BUSINESS_FAILURES,
    InsufficientPointsError,
    InsufficientStockError,
    InvalidInputError,
    NotFoundError,
)
from ..extensions import db
from ..models import Account, CatalogItem, Notification, PurchaseHistoryRecord, PurchaseHistoryLine
from ..models.notifications import KIND_SUCCESS
from ..models.purchases import SOURCE_APPROVAL, SOURCE_CHECKOUT
from ..validation import parse_int
from . import mailbox_service
from .concurrency import begin_serializable, lock_for_update, run_with_retry
"""
Purchase invariants (authoritative)

- Affordability and stock are checked against the state read inside the
  purchase transaction, never against the cart the client built.
- Every check runs before the first write. A failed check therefore leaves
  the session clean and the caller may keep using the transaction (the
  approval path does).
- Success applies, in one transaction: balance debit, every stock decrement,
  one history append (plus retention trim), and for approvals one success
  notification.
- The account row and every touched item row are locked (FOR UPDATE /
  BEGIN IMMEDIATE) and versioned (version_id_col). A lost race raises
  StaleDataError, which run_with_retry rolls back and replays from a fresh read.
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    item_id: int
    quantity: int


@dataclass
class PurchaseResult:
    """Outcome of execute_purchase. Business failures are values, not exceptions."""
    success: bool
    new_balance: int | None = None
    total_cost: int | None = None
    history_id: int | None = None
    failure: str | None = None
    message: str | None = None
    details: dict = field(default_factory=dict)

    @classmethod
    def failed(cls, exc) -> "PurchaseResult":
        return cls(success=False, failure=exc.code, message=str(exc), details=exc.details)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "new_balance": self.new_balance,
            "total_cost": self.total_cost,
            "history_id": self.history_id,
            "failure": self.failure,
            "message": self.message,
            "details": self.details,
        }


def normalize_cart(cart_lines: Iterable[Any] | None) -> list[CartLine]:
    """
    Validate client cart input into CartLines.

    Accepts CartLine instances or dicts with item_id (or id) and quantity.
    Any client-supplied price is ignored.
    """
    if cart_lines is None or isinstance(cart_lines, (str, bytes, dict)):
        raise InvalidInputError("cart must be a list of lines")
    lines: list[CartLine] = []
    for index, raw in enumerate(cart_lines):
        if isinstance(raw, CartLine):
            item_id, quantity = raw.item_id, raw.quantity
        elif isinstance(raw, dict):
            item_id = raw.get("item_id", raw.get("id"))
            quantity = raw.get("quantity")
        else:
            raise InvalidInputError(f"cart line {index + 1} must be an object")
        lines.append(CartLine(
            item_id=parse_int(item_id, f"cart[{index}].item_id", minimum=1),
            quantity=parse_int(quantity, f"cart[{index}].quantity", minimum=1),
        ))
    if not lines:
        raise InvalidInputError("cart cannot be empty")
    return lines


def quantities_by_item(lines: list[CartLine]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for line in lines:
        totals[line.item_id] = totals.get(line.item_id, 0) + line.quantity
    return totals


def load_items_locked(item_ids: Iterable[int], *, lock: bool = True) -> dict[int, CatalogItem]:
    """Return active catalog items by id; NotFound if any id is missing or deleted."""
    wanted = sorted(set(item_ids))
    # Sorted ids give every transaction the same lock order
    query = (
        db.session.query(CatalogItem)
        .filter(CatalogItem.id.in_(wanted), CatalogItem.is_active.is_(True))
        .order_by(CatalogItem.id)
    )
    if lock:
        query = lock_for_update(query)
    rows = query.all()
    items = {item.id: item for item in rows}
    missing = [item_id for item_id in wanted if item_id not in items]
    if missing:
        raise NotFoundError("Catalog item not found", details={"item_ids": missing})
    return items


def load_account_locked(account_id: int) -> Account:
    account = lock_for_update(db.session.query(Account).filter_by(id=account_id)).first()
    if not account or not account.is_active:
        raise NotFoundError("Account not found", details={"account_id": account_id})
    return account


def price_cart(lines: list[CartLine], items: dict[int, CatalogItem]) -> int:
    return sum(items[line.item_id].current_price * line.quantity for line in lines)


def describe_lines(lines: list[CartLine], items: dict[int, CatalogItem]) -> str:
    return ", ".join(f"{items[line.item_id].name} (x{line.quantity})" for line in lines)


def _check_purchase(account: Account, lines: list[CartLine], items: dict[int, CatalogItem]) -> int:
    short = []
    for item_id, qty in quantities_by_item(lines).items():
        item = items[item_id]
        if item.stock < qty:
            short.append({
                "item_id": item_id,
                "item_name": item.name,
                "requested_quantity": qty,
                "stock": item.stock,
            })
    if short:
        raise InsufficientStockError("Insufficient stock", details={"items": short})

    total = price_cart(lines, items)
    if account.points_balance < total:
        raise InsufficientPointsError(
            "Insufficient points",
            details={
                "account_id": account.id,
                "points_balance": account.points_balance,
                "total_cost": total,
            },
        )
    return total


def _enforce_history_retention() -> int:
    limit = int(current_app.config.get("HISTORY_RETENTION_LIMIT", 500))
    stale = (
        db.session.query(PurchaseHistoryRecord)
        .order_by(PurchaseHistoryRecord.id.desc())
        .offset(limit)
        .all()
    )
    for record in stale:
        db.session.delete(record)
    return len(stale)


def approval_message(description: str, total: int, *, price_changed: bool = False) -> str:
    message = f"Your purchase request for {description} has been approved."
    if price_changed:
        message += f" Prices changed since your request; {total} points were charged."
    return message


def apply_purchase_locked(
    account: Account,
    lines: list[CartLine],
    items: dict[int, CatalogItem],
    *,
    source: str,
    actor_account_id: int | None = None,
    notify_message: str | None = None,
) -> tuple[PurchaseHistoryRecord, Notification | None]:
    """
    Check, then mutate. Caller holds the locks and owns the commit.

    Returns the history record and the success notification, if one was posted.

    Raises InsufficientStockError / InsufficientPointsError before any write.
    """
    total = _check_purchase(account, lines, items)

    account.points_balance -= total
    for item_id, qty in quantities_by_item(lines).items():
        items[item_id].stock -= qty

    record = PurchaseHistoryRecord(
        account_id=account.id,
        account_name=account.display_name,
        total_cost=total,
        source=source,
        actor_account_id=actor_account_id,
    )
    for position, line in enumerate(lines, start=1):
        item = items[line.item_id]
        record.lines.append(PurchaseHistoryLine(
            position=position,
            item_id=item.id,
            item_name=item.name,
            unit_price=item.current_price,
            quantity=line.quantity,
            line_total=item.current_price * line.quantity,
        ))
    db.session.add(record)
    db.session.flush()

    _enforce_history_retention()

    note = None
    if notify_message:
        note = mailbox_service.post(account.id, notify_message, KIND_SUCCESS, commit=False)

    return record, note


def execute_purchase(
    account_id: int,
    cart_lines,
    is_approval: bool = False,
    *,
    actor_account_id: int | None = None,
) -> PurchaseResult:
    """
    Charge an account for a cart at current prices.

    Used directly for admin checkout, and with is_approval=True when an
    approval is executed outside the queue. Raises InvalidInputError /
    NotFoundError / PersistenceFailure; returns a failed PurchaseResult for
    insufficient points or stock.
    """
    account_id = parse_int(account_id, "account_id", minimum=1)
    lines = normalize_cart(cart_lines)

    def _op():
        begin_serializable()
        account = load_account_locked(account_id)
        items = load_items_locked(line.item_id for line in lines)

        notify_message = None
        if is_approval:
            notify_message = approval_message(describe_lines(lines, items), price_cart(lines, items))

        record, _ = apply_purchase_locked(
            account,
            lines,
            items,
            source=SOURCE_APPROVAL if is_approval else SOURCE_CHECKOUT,
            actor_account_id=actor_account_id,
            notify_message=notify_message,
        )
        result = PurchaseResult(
            success=True,
            new_balance=account.points_balance,
            total_cost=record.total_cost,
            history_id=record.id,
        )
        db.session.commit()
        return result

    try:
        result = run_with_retry(_op)
    except BUSINESS_FAILURES as exc:
        logger.info("Purchase declined for account %s: %s %s", account_id, exc.code, exc.details)
        return PurchaseResult.failed(exc)

    logger.info(
        "Purchase %s for account %s: %d points, balance now %d",
        result.history_id, account_id, result.total_cost, result.new_balance,
    )
    return result


def list_history(account_id: int | None = None, limit: int = 100) -> list[PurchaseHistoryRecord]:
    query = db.session.query(PurchaseHistoryRecord)
    if account_id is not None:
        query = query.filter_by(account_id=account_id)
    return (
        query.order_by(PurchaseHistoryRecord.id.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )
