import pytest
from sqlalchemy import text

from rewards.errors import (
    InsufficientStockError,
    InvalidInputError,
    NotFoundError,
    PersistenceConflict,
    PersistenceFailure,
)
from rewards.models import Account, CatalogItem, Notification, PurchaseHistoryRecord, PurchaseRequest
from rewards.services import accounts_service, approval_service, catalog_service, settings_service
from rewards.services.approval_service import (
    OUTCOME_ALREADY_RESOLVED,
    OUTCOME_APPROVED,
    OUTCOME_AUTO_DENIED,
    OUTCOME_DENIED,
)
from rewards.services.concurrency import run_with_retry


def _notes(db_session, account_id):
    return (
        db_session.query(Notification)
        .filter_by(account_id=account_id)
        .order_by(Notification.id.desc())
        .all()
    )


def test_submit_snapshots_without_side_effects(db_session, make_account, make_item):
    account = make_account(points=1000, display_name="Bea Santos")
    item = make_item(name="Company Tumbler", base_price=500, stock=10)

    req = approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 2}])

    assert req.account_name == "Bea Santos"
    assert req.lines[0].item_name == "Company Tumbler"
    assert req.lines[0].unit_price == 500
    assert req.snapshot_total == 1000
    assert db_session.get(Account, account.id).points_balance == 1000
    assert db_session.get(CatalogItem, item.id).stock == 10


def test_submit_rejects_short_stock_and_bad_input(db_session, make_account, make_item):
    account = make_account(points=1000)
    item = make_item(name="X", base_price=10, stock=1)

    with pytest.raises(InsufficientStockError):
        approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 2}])
    with pytest.raises(InvalidInputError):
        approval_service.submit_request(account.id, [])
    with pytest.raises(NotFoundError):
        approval_service.submit_request(account.id, [{"item_id": 999_999, "quantity": 1}])

    assert db_session.query(PurchaseRequest).count() == 0


def test_submit_does_not_check_affordability(db_session, make_account, make_item):
    account = make_account(points=10)
    item = make_item(name="X", base_price=600, stock=5)

    req = approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 1}])
    assert req.id is not None


def test_approve_executes_purchase_and_notifies(db_session, make_account, make_item, admin):
    account = make_account(points=1000)
    item = make_item(name="Company Tumbler", base_price=500, stock=10)
    req = approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 1}])

    result = approval_service.approve(req.id, actor_account_id=admin.id)

    assert result.outcome == OUTCOME_APPROVED
    assert result.purchase.success
    assert result.purchase.new_balance == 500
    assert result.price_changes == []
    assert db_session.get(CatalogItem, item.id).stock == 9
    assert db_session.query(PurchaseRequest).count() == 0

    record = db_session.get(PurchaseHistoryRecord, result.purchase.history_id)
    assert record.source == "APPROVAL"
    assert record.actor_account_id == admin.id

    notes = _notes(db_session, account.id)
    assert len(notes) == 1
    assert notes[0].id == result.notification_id
    assert notes[0].kind == "success"
    assert notes[0].message == "Your purchase request for Company Tumbler (x1) has been approved."


def test_approve_uses_current_price_after_inflation(db_session, make_account, make_item):
    account = make_account(points=650)
    item = make_item(name="X", base_price=600, stock=5)
    req = approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 1}])

    # 600 -> 700
    settings_service.update_settings(inflation_percent="16.6667")
    assert db_session.get(CatalogItem, item.id).current_price == 700

    result = approval_service.approve(req.id)

    assert result.outcome == OUTCOME_AUTO_DENIED
    assert result.purchase.failure == "INSUFFICIENT_POINTS"
    assert result.purchase.details["total_cost"] == 700
    assert db_session.get(Account, account.id).points_balance == 650
    assert db_session.get(CatalogItem, item.id).stock == 5
    assert db_session.query(PurchaseRequest).count() == 0

    notes = _notes(db_session, account.id)
    assert len(notes) == 1
    assert notes[0].kind == "error"
    assert "insufficient points" in notes[0].message


def test_approve_reports_price_changes_and_final_cost(db_session, make_account, make_item):
    account = make_account(points=1000)
    item = make_item(name="X", base_price=600, stock=5)
    req = approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 1}])
    settings_service.update_settings(inflation_percent="16.6667")

    result = approval_service.approve(req.id)

    assert result.outcome == OUTCOME_APPROVED
    assert result.purchase.total_cost == 700
    assert result.price_changes == [{
        "item_id": item.id,
        "item_name": "X",
        "snapshot_price": 600,
        "current_price": 700,
    }]
    assert db_session.get(Account, account.id).points_balance == 300
    message = _notes(db_session, account.id)[0].message
    assert message.endswith("Prices changed since your request; 700 points were charged.")


def test_approve_auto_denies_when_stock_ran_out(db_session, make_account, make_item):
    first = make_account(points=1000)
    second = make_account(points=1000)
    item = make_item(name="Branded Hoodie", base_price=100, stock=1)
    req_a = approval_service.submit_request(first.id, [{"item_id": item.id, "quantity": 1}])
    req_b = approval_service.submit_request(second.id, [{"item_id": item.id, "quantity": 1}])

    assert approval_service.approve(req_a.id).outcome == OUTCOME_APPROVED
    result = approval_service.approve(req_b.id)

    assert result.outcome == OUTCOME_AUTO_DENIED
    assert result.purchase.failure == "INSUFFICIENT_STOCK"
    assert db_session.get(Account, second.id).points_balance == 1000
    assert "out of stock" in _notes(db_session, second.id)[0].message


def test_approve_auto_denies_when_item_deleted(db_session, make_account, make_item):
    account = make_account(points=1000)
    item = make_item(name="X", base_price=100, stock=5)
    req = approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 1}])
    catalog_service.delete_item(item.id)

    result = approval_service.approve(req.id)

    assert result.outcome == OUTCOME_AUTO_DENIED
    assert result.purchase.failure == "NOT_FOUND"
    assert "no longer available" in _notes(db_session, account.id)[0].message
    assert db_session.query(PurchaseRequest).count() == 0


def test_approve_auto_denies_for_removed_account(db_session, make_account, make_item, admin):
    account = make_account(points=1000)
    item = make_item(name="X", base_price=100, stock=5)
    req = approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 1}])
    accounts_service.remove_account(account.id, actor_account_id=admin.id)

    result = approval_service.approve(req.id)

    assert result.outcome == OUTCOME_AUTO_DENIED
    assert db_session.get(CatalogItem, item.id).stock == 5


def test_deny_notifies_without_side_effects(db_session, make_account, make_item):
    account = make_account(points=1000)
    item = make_item(name="Wireless Mouse", base_price=800, stock=15)
    req = approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 1}])

    result = approval_service.deny(req.id, reason="Budget freeze")

    assert result.outcome == OUTCOME_DENIED
    assert result.purchase is None
    assert db_session.get(Account, account.id).points_balance == 1000
    assert db_session.get(CatalogItem, item.id).stock == 15
    assert db_session.query(PurchaseRequest).count() == 0
    notes = _notes(db_session, account.id)
    assert len(notes) == 1
    assert notes[0].kind == "error"
    assert notes[0].message == (
        "Your purchase request for Wireless Mouse (x1) has been denied by the admin. Reason: Budget freeze"
    )


def test_second_resolution_is_already_resolved(db_session, make_account, make_item):
    account = make_account(points=1000)
    item = make_item(name="X", base_price=100, stock=5)
    req = approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 1}])
    request_id = req.id

    assert approval_service.approve(request_id).outcome == OUTCOME_APPROVED
    again = approval_service.approve(request_id)
    denied = approval_service.deny(request_id)

    assert again.outcome == OUTCOME_ALREADY_RESOLVED
    assert not again.resolved
    assert denied.outcome == OUTCOME_ALREADY_RESOLVED
    assert db_session.get(Account, account.id).points_balance == 900
    assert db_session.get(CatalogItem, item.id).stock == 4
    assert len(_notes(db_session, account.id)) == 1


def test_unknown_request_is_already_resolved(db_session):
    assert approval_service.approve(123456).outcome == OUTCOME_ALREADY_RESOLVED
    assert approval_service.deny(123456).outcome == OUTCOME_ALREADY_RESOLVED


def test_list_pending_is_oldest_first_with_live_totals(db_session, make_account, make_item):
    rich = make_account(points=5000)
    poor = make_account(points=100)
    item = make_item(name="X", base_price=200, stock=10)
    first = approval_service.submit_request(rich.id, [{"item_id": item.id, "quantity": 1}])
    second = approval_service.submit_request(poor.id, [{"item_id": item.id, "quantity": 1}])
    settings_service.update_settings(inflation_percent=50)

    pending = approval_service.list_pending()

    assert [p["id"] for p in pending] == [first.id, second.id]
    assert pending[0]["snapshot_total"] == 200
    assert pending[0]["current_total"] == 300
    assert pending[0]["can_afford"] is True
    assert pending[1]["can_afford"] is False
    assert pending[1]["price_changes"][0]["current_price"] == 300
    assert [p["id"] for p in approval_service.list_pending(poor.id)] == [second.id]


def test_list_pending_flags_vanished_items(db_session, make_account, make_item):
    account = make_account(points=5000)
    item = make_item(name="X", base_price=200, stock=10)
    approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 1}])
    catalog_service.delete_item(item.id)

    pending = approval_service.list_pending()
    assert pending[0]["current_total"] is None
    assert pending[0]["can_afford"] is False


def test_resolution_delete_that_misses_rolls_back_and_retries(app, db_session, make_account, make_item, monkeypatch):
    account = make_account(points=1000)
    item = make_item(name="Mug", base_price=100, stock=3)
    request_id = approval_service.submit_request(account.id, [{"item_id": item.id, "quantity": 1}]).id
    real_load = approval_service._load_request_locked
    loads = []

    def load_then_bump_version(rid):
        request = real_load(rid)
        loads.append(rid)
        # Another resolver touched the row after we read it
        db_session.execute(
            text("UPDATE purchase_requests SET version_id = version_id + 1 WHERE id = :id"),
            {"id": rid},
        )
        return request

    monkeypatch.setattr(approval_service, "_load_request_locked", load_then_bump_version)

    with pytest.raises(PersistenceFailure):
        approval_service.deny(request_id)

    assert len(loads) == app.config.get("PURCHASE_RETRY_ATTEMPTS", 3)
    monkeypatch.undo()
    request = approval_service.get_request(request_id)
    assert len(request.lines) == 1
    assert _notes(db_session, account.id) == []

    assert approval_service.deny(request_id).outcome == OUTCOME_DENIED


def test_persistence_conflict_is_retried(app, db_session):
    calls = []

    def conflicted_once():
        calls.append(1)
        if len(calls) == 1:
            raise PersistenceConflict("lost the race")
        return "done"

    assert run_with_retry(conflicted_once) == "done"
    assert len(calls) == 2


def test_submit_coerces_account_id(db_session, make_account, make_item):
    account = make_account(points=1000)
    item = make_item(name="Mug", base_price=100, stock=3)

    request = approval_service.submit_request(str(account.id), [{"item_id": item.id, "quantity": 1}])

    assert request.account_id == account.id
    with pytest.raises(InvalidInputError):
        approval_service.submit_request("abc", [{"item_id": item.id, "quantity": 1}])
    with pytest.raises(InvalidInputError):
        approval_service.submit_request(0, [{"item_id": item.id, "quantity": 1}])
