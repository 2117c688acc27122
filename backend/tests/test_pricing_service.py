import pytest

from rewards.errors import InvalidInputError
from rewards.models import CatalogItem
from rewards.services import pricing_service, settings_service
from rewards.services.pricing_service import compute_current_price, percent_to_bps


@pytest.mark.parametrize(
    "base_price, bps, expected",
    [
        (100, 1500, 115),      # 100 * 1.15
        (5, 1000, 6),          # 5.5 rounds half-up
        (100, 50, 101),        # 100.5 rounds half-up
        (333, 1250, 375),      # 374.625
        (600, 0, 600),
        (0, 2500, 0),
        (1200, -2500, 900),
        (801, -10000, 0),      # -100% bottoms out at zero
    ],
)
def test_compute_current_price(base_price, bps, expected):
    assert compute_current_price(base_price, bps) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (15, 1500),
        ("15", 1500),
        (12.5, 1250),
        ("-20", -2000),
        ("0.005", 1),
        (0, 0),
        (-100, -10000),
    ],
)
def test_percent_to_bps(value, expected):
    assert percent_to_bps(value) == expected


@pytest.mark.parametrize("value", ["abc", "", None, True, "NaN", "Infinity", -100.01, 10001])
def test_percent_to_bps_rejects_bad_input(value):
    with pytest.raises(InvalidInputError):
        percent_to_bps(value)


def test_inflation_reprices_catalog(db_session, make_item):
    item = make_item(name="Widget", base_price=100, stock=3)
    assert item.current_price == 100

    result = settings_service.update_settings(inflation_percent=15)

    assert result["repriced"] == 1
    assert db_session.get(CatalogItem, item.id).current_price == 115
    assert settings_service.current_inflation_bps() == 1500


def test_repricing_is_idempotent(db_session, make_item):
    items = [make_item(name=f"Item {n}", base_price=base) for n, base in enumerate([5, 99, 333, 1200])]
    settings_service.update_settings(inflation_percent="12.5")
    first = {i.id: db_session.get(CatalogItem, i.id).current_price for i in items}

    settings_service.update_settings(inflation_percent="12.5")
    assert settings_service.reprice_catalog() == 0
    assert pricing_service.recompute_prices(1250) == 0

    second = {i.id: db_session.get(CatalogItem, i.id).current_price for i in items}
    assert first == second


def test_repricing_starts_from_base_price(db_session, make_item):
    item = make_item(name="Widget", base_price=100)
    settings_service.update_settings(inflation_percent=10)
    settings_service.update_settings(inflation_percent=10.5)
    settings_service.update_settings(inflation_percent=10)

    # Compounding would give 110 -> 122 -> 134; deriving from base never drifts
    assert db_session.get(CatalogItem, item.id).current_price == 110


def test_repricing_leaves_stock_and_balances_alone(db_session, make_item, employee):
    item = make_item(name="Widget", base_price=100, stock=7)
    settings_service.update_settings(inflation_percent=50)

    refreshed = db_session.get(CatalogItem, item.id)
    assert refreshed.stock == 7
    assert refreshed.base_price == 100
    assert employee.points_balance == 1500


def test_new_items_use_current_inflation(db_session, make_item):
    settings_service.update_settings(inflation_percent=15)
    item = make_item(name="Late Arrival", base_price=100)
    assert item.current_price == 115
