from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import utcnow, to_utc_z

DEFAULT_LOW_STOCK_THRESHOLD = 10

STOCK_ACTION_ORDERED = "ordered"
STOCK_ACTION_RESTOCKED = "restocked"
STOCK_ACTION_ADJUSTED = "adjusted"
STOCK_ACTIONS = (STOCK_ACTION_ORDERED, STOCK_ACTION_RESTOCKED, STOCK_ACTION_ADJUSTED)


class Product(db.Model):
    """
    A seller's catalog item together with its quantity on hand.

    quantity_on_hand, is_available and the stock_history_entries rows form the
    product's ledger. They are only written by services.stock_ledger_service;
    catalog edits never touch them directly.

    version_id is the optimistic-lock column: every UPDATE is issued as
    "... WHERE id = ? AND version_id = ?", so two writers racing on the same
    row cannot both succeed (the loser gets StaleDataError and is retried).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity_on_hand >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint("low_stock_threshold >= 0", name="ck_products_threshold_non_negative"),
        db.CheckConstraint("price_cents > 0", name="ck_products_price_positive"),
        db.Index("ix_products_seller_available", "seller_id", "is_available"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    # Stock the product was created with; history deltas are relative to it
    initial_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=DEFAULT_LOW_STOCK_THRESHOLD)
    is_available = db.Column(db.Boolean, nullable=False, default=False)

    # Soft lifecycle: products are never physically deleted
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    seller = db.relationship("User", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Product id={self.id} name={self.name!r} seller_id={self.seller_id} "
            f"on_hand={self.quantity_on_hand}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "seller_name": self.seller.name if self.seller else None,
            "seller_location": self.seller.location if self.seller else None,
            "name": self.name,
            "unit": self.unit,
            "price_cents": self.price_cents,
            "quantity_on_hand": self.quantity_on_hand,
            "low_stock_threshold": self.low_stock_threshold,
            "is_available": self.is_available,
            "is_low_stock": self.quantity_on_hand <= self.low_stock_threshold,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockHistoryEntry(db.Model):
    """
    One quantity change on a product's ledger.

    Append-only: rows are inserted by the stock ledger in the same transaction
    as the quantity update they describe and are never updated or deleted
    through the ORM (see the listeners below).
    """
    __tablename__ = "stock_history_entries"
    __table_args__ = (
        db.CheckConstraint(
            "new_quantity = previous_quantity + quantity_delta",
            name="ck_stock_history_delta_consistent",
        ),
        db.CheckConstraint("new_quantity >= 0", name="ck_stock_history_new_non_negative"),
        db.Index("ix_stock_history_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    action = db.Column(db.String(16), nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "action": self.action,
            "quantity_delta": self.quantity_delta,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "order_id": self.order_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }


@event.listens_for(StockHistoryEntry, "before_update")
def _reject_history_update(mapper, connection, target):
    raise ValueError(f"stock history entry {target.id} is append-only and cannot be modified")


@event.listens_for(StockHistoryEntry, "before_delete")
def _reject_history_delete(mapper, connection, target):
    raise ValueError(f"stock history entry {target.id} is append-only and cannot be deleted")
