# Overview: Approval Workflow; queue of employee purchase requests resolved by admins.

"""
Purchase Request Lifecycle

STATE MACHINE:
    PENDING -> (deleted, approved)
    PENDING -> (deleted, denied)

Resolution is a versioned delete executed in the same transaction as the
purchase it triggers. Whoever deletes the row first wins; everyone else
reads "no such request" and gets ALREADY_RESOLVED with no side effects.
That is the whole double-approval guard.

RULES:
1. Submission snapshots names and prices for display only. No balance or
   stock changes.
2. Approval re-runs the Purchase Engine against current prices and stock.
   If the employee can no longer afford it, or stock ran out, the request
   is deleted anyway and the employee gets an error notification. There is
   no retry state.
3. When any current price differs from the snapshot, the approval still
   charges the current price; the result lists the changes and the
   employee's notification states the final cost.
4. Exactly one notification per resolution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..errors import (
    InsufficientPointsError,
    InsufficientStockError,
    NotFoundError,
    PersistenceConflict,
)
from ..extensions import db
from ..models import Account, CatalogItem, PurchaseRequest, PurchaseRequestLine
from ..models.notifications import KIND_ERROR
from ..models.purchases import SOURCE_APPROVAL
from ..validation import parse_int
from . import mailbox_service
from .concurrency import begin_serializable, lock_for_update, run_with_retry
from .purchase_service import (
    CartLine,
    PurchaseResult,
    apply_purchase_locked,
    approval_message,
    describe_lines,
    load_account_locked,
    load_items_locked,
    normalize_cart,
    price_cart,
    quantities_by_item,
)

logger = logging.getLogger(__name__)

OUTCOME_APPROVED = "APPROVED"
OUTCOME_AUTO_DENIED = "AUTO_DENIED"
OUTCOME_DENIED = "DENIED"
OUTCOME_ALREADY_RESOLVED = "ALREADY_RESOLVED"


@dataclass
class ResolutionResult:
    request_id: int
    outcome: str
    purchase: PurchaseResult | None = None
    price_changes: list[dict] = field(default_factory=list)
    notification_id: int | None = None

    @property
    def resolved(self) -> bool:
        return self.outcome != OUTCOME_ALREADY_RESOLVED

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "outcome": self.outcome,
            "purchase": self.purchase.to_dict() if self.purchase else None,
            "price_changes": self.price_changes,
            "notification_id": self.notification_id,
        }


def submit_request(account_id: int, cart_lines) -> PurchaseRequest:
    """
    Queue a cart for admin approval.

    Validates the cart and current stock, then snapshots item names and
    current prices. Raises InvalidInputError, NotFoundError or
    InsufficientStockError.
    """
    account_id = parse_int(account_id, "account_id", minimum=1)
    lines = normalize_cart(cart_lines)

    def _op():
        account = db.session.query(Account).filter_by(id=account_id).first()
        if not account or not account.is_active:
            raise NotFoundError("Account not found", details={"account_id": account_id})

        items = load_items_locked((line.item_id for line in lines), lock=False)
        short = [
            {"item_id": item_id, "item_name": items[item_id].name, "requested_quantity": qty, "stock": items[item_id].stock}
            for item_id, qty in quantities_by_item(lines).items()
            if items[item_id].stock < qty
        ]
        if short:
            raise InsufficientStockError("Insufficient stock", details={"items": short})

        request = PurchaseRequest(account_id=account.id, account_name=account.display_name)
        for position, line in enumerate(lines, start=1):
            item = items[line.item_id]
            request.lines.append(PurchaseRequestLine(
                position=position,
                item_id=item.id,
                item_name=item.name,
                unit_price=item.current_price,
                quantity=line.quantity,
            ))
        db.session.add(request)
        db.session.commit()
        return request

    request = run_with_retry(_op)
    logger.info("Purchase request %s submitted by account %s", request.id, account_id)
    return request


def _load_request_locked(request_id: int) -> PurchaseRequest | None:
    return lock_for_update(db.session.query(PurchaseRequest).filter_by(id=request_id)).first()


def _delete_resolved(request: PurchaseRequest) -> None:
    """
    Conditional delete of a request at the version this transaction read.

    Zero rows means another resolver got there first; the caller's
    transaction is rolled back and replayed by run_with_retry, and the
    replay sees ALREADY_RESOLVED.
    """
    db.session.query(PurchaseRequestLine).filter_by(request_id=request.id).delete(synchronize_session=False)
    deleted = (
        db.session.query(PurchaseRequest)
        .filter_by(id=request.id, version_id=request.version_id)
        .delete(synchronize_session=False)
    )
    if deleted != 1:
        raise PersistenceConflict(
            "Purchase request was resolved concurrently",
            details={"request_id": request.id, "version_id": request.version_id},
        )
    db.session.expunge(request)


def _price_changes(request: PurchaseRequest, items: dict[int, CatalogItem]) -> list[dict]:
    changes = []
    for line in request.lines:
        item = items.get(line.item_id)
        if item is not None and item.current_price != line.unit_price:
            changes.append({
                "item_id": line.item_id,
                "item_name": line.item_name,
                "snapshot_price": line.unit_price,
                "current_price": item.current_price,
            })
    return changes


def _denial_reason(exc: Exception, request: PurchaseRequest) -> str:
    described = request.describe_items()
    if isinstance(exc, InsufficientPointsError):
        return (
            f"Your purchase request for {described} was denied due to insufficient points "
            f"(needs {exc.details.get('total_cost')}, balance {exc.details.get('points_balance')})."
        )
    if isinstance(exc, InsufficientStockError):
        names = ", ".join(row["item_name"] for row in exc.details.get("items", []))
        return f"Your purchase request for {described} was denied because {names} is out of stock."
    return f"Your purchase request for {described} was denied because an item is no longer available."


def approve(request_id: int, *, actor_account_id: int | None = None) -> ResolutionResult:
    """
    Resolve a pending request by executing it at current prices.

    A failed purchase (points, stock, vanished item) is an automatic denial:
    the request is deleted and the requester notified.
    """
    def _op():
        begin_serializable()
        request = _load_request_locked(request_id)
        if request is None:
            db.session.rollback()
            return ResolutionResult(request_id=request_id, outcome=OUTCOME_ALREADY_RESOLVED)

        lines = [CartLine(item_id=line.item_id, quantity=line.quantity) for line in request.lines]
        price_changes: list[dict] = []
        try:
            account = load_account_locked(request.account_id)
            items = load_items_locked(line.item_id for line in lines)
            price_changes = _price_changes(request, items)
            total = price_cart(lines, items)
            record, note = apply_purchase_locked(
                account,
                lines,
                items,
                source=SOURCE_APPROVAL,
                actor_account_id=actor_account_id,
                notify_message=approval_message(
                    describe_lines(lines, items), total, price_changed=bool(price_changes)
                ),
            )
            purchase = PurchaseResult(
                success=True,
                new_balance=account.points_balance,
                total_cost=record.total_cost,
                history_id=record.id,
            )
            outcome = OUTCOME_APPROVED
            notification_id = note.id if note else None
        except (InsufficientPointsError, InsufficientStockError, NotFoundError) as exc:
            # Checks run before any write, so nothing needs undoing here
            purchase = PurchaseResult.failed(exc)
            outcome = OUTCOME_AUTO_DENIED
            notification_id = _notify_requester(request, _denial_reason(exc, request))

        _delete_resolved(request)
        result = ResolutionResult(
            request_id=request_id,
            outcome=outcome,
            purchase=purchase,
            price_changes=price_changes,
            notification_id=notification_id,
        )
        db.session.commit()
        return result

    result = run_with_retry(_op)
    logger.info("Purchase request %s resolved: %s", request_id, result.outcome)
    return result


def deny(request_id: int, *, actor_account_id: int | None = None, reason: str | None = None) -> ResolutionResult:
    """Delete a pending request and tell the requester. No balance or stock change."""
    def _op():
        begin_serializable()
        request = _load_request_locked(request_id)
        if request is None:
            db.session.rollback()
            return ResolutionResult(request_id=request_id, outcome=OUTCOME_ALREADY_RESOLVED)

        message = f"Your purchase request for {request.describe_items()} has been denied by the admin."
        if reason and reason.strip():
            message += f" Reason: {reason.strip()}"
        notification_id = _notify_requester(request, message)

        _delete_resolved(request)
        result = ResolutionResult(
            request_id=request_id,
            outcome=OUTCOME_DENIED,
            notification_id=notification_id,
        )
        db.session.commit()
        return result

    result = run_with_retry(_op)
    logger.info("Purchase request %s denied by account %s: %s", request_id, actor_account_id, result.outcome)
    return result


def _notify_requester(request: PurchaseRequest, message: str) -> int | None:
    # Accounts are soft-deleted, so the row is normally still there
    if not db.session.query(Account.id).filter_by(id=request.account_id).first():
        return None
    return mailbox_service.post(request.account_id, message, KIND_ERROR, commit=False).id


def get_request(request_id: int) -> PurchaseRequest:
    request = db.session.query(PurchaseRequest).filter_by(id=request_id).first()
    if not request:
        raise NotFoundError("Purchase request not found", details={"request_id": request_id})
    return request


def list_pending(account_id: int | None = None) -> list[dict]:
    """
    Pending requests, oldest first, annotated with live pricing.

    current_total is None when an item in the request is gone from the
    catalog; such a request will auto-deny on approval.
    """
    query = db.session.query(PurchaseRequest)
    if account_id is not None:
        query = query.filter_by(account_id=account_id)
    requests = query.order_by(PurchaseRequest.id.asc()).all()

    item_ids = {line.item_id for req in requests for line in req.lines}
    items = {
        item.id: item
        for item in db.session.query(CatalogItem)
        .filter(CatalogItem.id.in_(item_ids), CatalogItem.is_active.is_(True))
        .all()
    } if item_ids else {}
    account_ids = {req.account_id for req in requests}
    balances = dict(
        db.session.query(Account.id, Account.points_balance).filter(Account.id.in_(account_ids)).all()
    ) if account_ids else {}

    result = []
    for req in requests:
        payload = req.to_dict()
        if all(line.item_id in items for line in req.lines):
            current_total = sum(items[line.item_id].current_price * line.quantity for line in req.lines)
        else:
            current_total = None
        balance = balances.get(req.account_id)
        payload["current_total"] = current_total
        payload["points_balance"] = balance
        payload["can_afford"] = current_total is not None and balance is not None and balance >= current_total
        payload["price_changes"] = _price_changes(req, items)
        result.append(payload)
    return result
