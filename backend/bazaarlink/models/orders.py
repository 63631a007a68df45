from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import utcnow, to_utc_z

ORDER_KIND_INDIVIDUAL = "individual"
ORDER_KIND_GROUP = "group"
ORDER_KINDS = (ORDER_KIND_INDIVIDUAL, ORDER_KIND_GROUP)

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_CONFIRMED = "confirmed"
ORDER_STATUS_DELIVERED = "delivered"
# Forward-only: an order's status index never decreases
ORDER_STATUSES = (ORDER_STATUS_PENDING, ORDER_STATUS_CONFIRMED, ORDER_STATUS_DELIVERED)


class Order(db.Model):
    """
    A buyer's order against a single seller.

    Created only by services.order_service.place_order, together with the
    stock decrements for each line item (same DB transaction).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_seller_status", "seller_id", "status"),
        db.Index("ix_orders_buyer_ordered", "buyer_id", "ordered_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False, default=ORDER_KIND_INDIVIDUAL)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)

    ordered_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    buyer = db.relationship("User", foreign_keys=[buyer_id])
    seller = db.relationship("User", foreign_keys=[seller_id])
    line_items = db.relationship(
        "OrderLineItem",
        back_populates="order",
        order_by="OrderLineItem.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def total_cents(self) -> int:
        return sum(item.quantity * item.unit_price_cents for item in self.line_items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
            "kind": self.kind,
            "status": self.status,
            "ordered_at": to_utc_z(self.ordered_at),
            "confirmed_at": to_utc_z(self.confirmed_at) if self.confirmed_at else None,
            "delivered_at": to_utc_z(self.delivered_at) if self.delivered_at else None,
            "total_cents": self.total_cents,
            "items": [item.to_dict() for item in self.line_items],
        }


class OrderLineItem(db.Model):
    """One (product, quantity) pair on an order. Immutable after insert."""
    __tablename__ = "order_line_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_line_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    # Price at the time of ordering; later catalog price edits do not rewrite orders
    unit_price_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", back_populates="line_items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.quantity * self.unit_price_cents,
        }


@event.listens_for(OrderLineItem, "before_update")
def _reject_line_item_update(mapper, connection, target):
    raise ValueError(f"order line item {target.id} is immutable once the order is created")
