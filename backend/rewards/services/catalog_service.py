# Overview: Service-layer operations for the catalog; admin create/edit/delete of reward items.

from __future__ import annotations

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import CatalogItem
from ..validation import MAX_POINTS, parse_int, parse_text
from . import pricing_service, settings_service
from .concurrency import begin_serializable, lock_for_update, run_with_retry


ITEM_NAME_MAX = 255


def list_items(*, include_inactive: bool = False, in_stock_only: bool = False) -> list[CatalogItem]:
    query = db.session.query(CatalogItem)
    if not include_inactive:
        query = query.filter(CatalogItem.is_active.is_(True))
    if in_stock_only:
        query = query.filter(CatalogItem.stock > 0)
    return query.order_by(CatalogItem.name.asc(), CatalogItem.id.asc()).all()


def get_item(item_id: int, *, include_inactive: bool = False) -> CatalogItem:
    item = db.session.query(CatalogItem).filter_by(id=item_id).first()
    if not item or (not item.is_active and not include_inactive):
        raise NotFoundError("Catalog item not found", details={"item_id": item_id})
    return item


def create_item(
    *,
    name,
    base_price,
    stock,
    image_ref=None,
    commit: bool = True,
) -> CatalogItem:
    """
    Single creation path for catalog items (manual entry and bulk import).

    current_price is derived from the inflation rate read under the settings
    lock. With commit=False the caller owns the transaction and must have
    started it with begin_serializable().
    """
    fields = dict(
        name=parse_text(name, "name", max_length=ITEM_NAME_MAX),
        base_price=parse_int(base_price, "base_price", minimum=0, maximum=MAX_POINTS),
        stock=parse_int(stock, "stock", minimum=0, maximum=MAX_POINTS),
        image_ref=parse_text(image_ref, "image_ref", required=False),
    )

    def _insert() -> CatalogItem:
        item = CatalogItem(is_active=True, **fields)
        item.current_price = pricing_service.compute_current_price(
            item.base_price, settings_service.locked_inflation_bps()
        )
        db.session.add(item)
        db.session.flush()
        return item

    if not commit:
        return _insert()

    def _op():
        begin_serializable()
        item = _insert()
        db.session.commit()
        return item

    return run_with_retry(_op)


def update_item(item_id: int, data: dict, *, expected_version: int | None = None) -> CatalogItem:
    """
    Admin edit. Accepts name, base_price, stock, image_ref.

    A base_price change re-derives current_price; stock set here is an
    absolute restock count, not a delta.
    """
    patch = {}
    if "name" in data:
        patch["name"] = parse_text(data["name"], "name", max_length=ITEM_NAME_MAX)
    if "base_price" in data:
        patch["base_price"] = parse_int(data["base_price"], "base_price", minimum=0, maximum=MAX_POINTS)
    if "stock" in data:
        patch["stock"] = parse_int(data["stock"], "stock", minimum=0, maximum=MAX_POINTS)
    if "image_ref" in data:
        patch["image_ref"] = parse_text(data["image_ref"], "image_ref", required=False)

    def _op():
        begin_serializable()
        item = lock_for_update(db.session.query(CatalogItem).filter_by(id=item_id, is_active=True)).first()
        if not item:
            raise NotFoundError("Catalog item not found", details={"item_id": item_id})
        if expected_version is not None and item.version_id != expected_version:
            raise ConflictError(
                "Item was changed by someone else",
                details={"expected_version": expected_version, "version_id": item.version_id},
            )
        for key, value in patch.items():
            setattr(item, key, value)
        if "base_price" in patch:
            item.current_price = pricing_service.compute_current_price(
                item.base_price, settings_service.locked_inflation_bps()
            )
        db.session.commit()
        return item

    return run_with_retry(_op)


def delete_item(item_id: int) -> CatalogItem:
    """Soft delete. Pending requests that reference the item will auto-deny on approval."""
    def _op():
        item = lock_for_update(db.session.query(CatalogItem).filter_by(id=item_id, is_active=True)).first()
        if not item:
            raise NotFoundError("Catalog item not found", details={"item_id": item_id})
        item.is_active = False
        db.session.commit()
        return item

    return run_with_retry(_op)
