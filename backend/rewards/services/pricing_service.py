# Overview: Pricing Engine; derives catalog prices from base price and the global inflation rate.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from ..errors import InvalidInputError
from ..extensions import db
from ..models import CatalogItem
from ..validation import parse_decimal
"""
Pricing invariants (authoritative)

- current_price = round_half_up(base_price * (1 + inflation_percent / 100))
- Inflation is held in basis points of a percent (15% -> 1500) so the
  formula runs on exact integers; no float ever touches a charged price.
- Rounding is half-up: 5 * 1.10 = 5.5 -> 6, 100 * 1.005 = 100.5 -> 101.
- Inflation may not go below -100% (a price can reach zero, never negative).
- recompute_prices() is idempotent: same inflation, same prices, no drift,
  because it always starts from base_price.
"""

BPS_SCALE = 10_000  # 100% expressed in bps
MIN_INFLATION_BPS = -BPS_SCALE
# Upper guard against typos like 15000 meaning 150.00
MAX_INFLATION_BPS = 100 * BPS_SCALE


def percent_to_bps(value) -> int:
    """
    Convert a user-entered percentage (12.5, "15", -20) to basis points.

    Sub-basis-point precision is rounded half-up.
    """
    percent = parse_decimal(value, "inflation_percent")
    bps = int((percent * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    validate_inflation_bps(bps)
    return bps


def validate_inflation_bps(bps: int) -> None:
    if bps < MIN_INFLATION_BPS:
        raise InvalidInputError(
            "inflation_percent cannot be below -100",
            details={"inflation_bps": bps},
        )
    if bps > MAX_INFLATION_BPS:
        raise InvalidInputError(
            "inflation_percent cannot exceed 10000",
            details={"inflation_bps": bps},
        )


def compute_current_price(base_price: int, inflation_bps: int) -> int:
    """Integer price after inflation, rounded half-up."""
    numerator = base_price * (BPS_SCALE + inflation_bps)
    # numerator >= 0 because inflation_bps >= -10000, so floor division is half-up here
    return (numerator + BPS_SCALE // 2) // BPS_SCALE


def recompute_prices(inflation_bps: int) -> int:
    """
    Set current_price on every catalog item from its base price.

    Runs inside the caller's transaction and does not commit. Touches only
    current_price; stock and balances are never read or written here.
    Returns the number of items whose price changed.
    """
    validate_inflation_bps(inflation_bps)
    changed = 0
    for item in db.session.query(CatalogItem).order_by(CatalogItem.id).all():
        new_price = compute_current_price(item.base_price, inflation_bps)
        if item.current_price != new_price:
            item.current_price = new_price
            changed += 1
    db.session.flush()
    return changed
