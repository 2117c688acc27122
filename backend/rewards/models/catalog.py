from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CatalogItem(db.Model):
    """
    Catalog Store: a reward item employees can spend points on.

    PRICING:
    - base_price is what the admin enters.
    - current_price is derived: round_half_up(base_price * (1 + inflation/100)).
      Only pricing_service writes it.

    STOCK:
    - Decremented only by purchase_service; admins may restock through
      catalog_service.update_item.

    Deletes are soft (is_active=False) so that carts and pending requests
    that still reference the id fail cleanly with NotFound.
    """
    __tablename__ = "catalog_items"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_catalog_items_stock_non_negative"),
        db.CheckConstraint("base_price >= 0", name="ck_catalog_items_base_price_non_negative"),
        db.CheckConstraint("current_price >= 0", name="ck_catalog_items_current_price_non_negative"),
        db.Index("ix_catalog_items_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Prices are whole points
    base_price = db.Column(db.Integer, nullable=False)
    current_price = db.Column(db.Integer, nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)

    # URL or data URI; the store never dereferences it
    image_ref = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<CatalogItem id={self.id} name={self.name!r} price={self.current_price} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "base_price": self.base_price,
            "current_price": self.current_price,
            "stock": self.stock,
            "image_ref": self.image_ref,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
