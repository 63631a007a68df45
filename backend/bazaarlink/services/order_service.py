"""
Order Service - cart to order, all-or-nothing

An order and the stock decrements for its line items must exist
together or not at all. Placement is two-phase:

1. Validate every line item (existence, seller, availability, stock) without
   writing anything. Quantities for a product listed twice are summed.
2. Create the order and decrement each line through the stock ledger with
   commit=False, then commit once.

Phase 2 can still fail if another request takes the stock between the two
phases. The product version check raises StaleDataError, run_with_retry
rolls back the order row together with every decrement made so far and
re-runs both phases against fresh stock.
"""

from __future__ import annotations

from collections import OrderedDict

from flask import current_app

from ..extensions import db
from ..models import Order, OrderLineItem, Product
from ..models.orders import (
    ORDER_KINDS,
    ORDER_KIND_INDIVIDUAL,
    ORDER_STATUSES,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_CONFIRMED,
    ORDER_STATUS_DELIVERED,
)
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .stock_ledger_service import (
    StockError,
    ProductNotFoundError,
    InsufficientStockError,
    ProductUnavailableError,
    decrement_stock,
)


class OrderValidationError(StockError):
    """Malformed cart or order request."""


class OrderNotFoundError(StockError):
    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found", details={"order_id": order_id})


class OrderStatusError(StockError):
    """Illegal status transition (statuses only move forward)."""


def _normalize_items(items) -> list[tuple[int, int]]:
    if not items or not isinstance(items, (list, tuple)):
        raise OrderValidationError("Items array is required")

    normalized = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise OrderValidationError("Each item must have product_id and quantity", details={"index": index})
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if product_id is None or quantity is None:
            raise OrderValidationError("Each item must have product_id and quantity", details={"index": index})
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise OrderValidationError(
                "quantity must be a positive integer",
                details={"index": index, "product_id": product_id, "quantity": quantity},
            )
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise OrderValidationError("product_id must be an integer", details={"index": index})
        normalized.append((product_id, quantity))
    return normalized


def _validate_lines(seller_id: int, lines: list[tuple[int, int]]) -> dict[int, Product]:
    """
    Read-only validation pass over every line.

    Existence is checked for all lines before any stock check, so a missing
    product is reported even when an earlier line is short on stock.
    """
    products: dict[int, Product] = {}
    for product_id, _ in lines:
        if product_id in products:
            continue
        product = db.session.query(Product).filter_by(id=product_id).populate_existing().first()
        if product is None:
            raise ProductNotFoundError(product_id)
        products[product_id] = product

    for product in products.values():
        if product.seller_id != seller_id:
            raise OrderValidationError(
                f"Product {product.name} is not sold by supplier {seller_id}",
                details={"product_id": product.id, "seller_id": seller_id},
            )

    requested_totals: "OrderedDict[int, int]" = OrderedDict()
    for product_id, quantity in lines:
        requested_totals[product_id] = requested_totals.get(product_id, 0) + quantity

    for product_id, requested in requested_totals.items():
        product = products[product_id]
        if not product.is_active or not product.is_available:
            raise ProductUnavailableError(
                product_id=product.id,
                product_name=product.name,
                requested=requested,
            )
        if product.quantity_on_hand < requested:
            raise InsufficientStockError(
                product_id=product.id,
                product_name=product.name,
                available=product.quantity_on_hand,
                requested=requested,
            )

    return products


def place_order(
    *,
    buyer_id: int,
    seller_id: int,
    items,
    kind: str = ORDER_KIND_INDIVIDUAL,
) -> Order:
    """
    Validate a single-seller cart and turn it into a pending order.

    items: [{"product_id": int, "quantity": int}, ...]
    kind: "individual" or "group", decided by the caller.

    Raises ProductNotFoundError, InsufficientStockError (or its subclass
    ProductUnavailableError) or OrderValidationError; in every case nothing
    has been written.
    """
    if kind not in ORDER_KINDS:
        raise OrderValidationError(f"kind must be one of: {', '.join(ORDER_KINDS)}")
    lines = _normalize_items(items)

    def _op():
        products = _validate_lines(seller_id, lines)

        order = Order(buyer_id=buyer_id, seller_id=seller_id, kind=kind)
        db.session.add(order)
        db.session.flush()  # order.id for the ledger entries

        for product_id, quantity in lines:
            db.session.add(OrderLineItem(
                order_id=order.id,
                product_id=product_id,
                quantity=quantity,
                unit_price_cents=products[product_id].price_cents,
            ))
            decrement_stock(product_id, quantity, order_id=order.id, commit=False)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Order placed order_id=%s buyer_id=%s seller_id=%s kind=%s lines=%d",
        order.id, buyer_id, seller_id, kind, len(lines),
    )
    return order


def split_cart_by_seller(items) -> "OrderedDict[int, list[dict]]":
    """
    Group a multi-seller cart into one item list per seller.

    Sellers keep the order in which they first appear in the cart. Each
    group is meant for its own place_order call.
    """
    lines = _normalize_items(items)
    groups: "OrderedDict[int, list[dict]]" = OrderedDict()
    for product_id, quantity in lines:
        product = db.session.query(Product).filter_by(id=product_id).first()
        if product is None:
            raise ProductNotFoundError(product_id)
        groups.setdefault(product.seller_id, []).append(
            {"product_id": product_id, "quantity": quantity}
        )
    return groups


def get_order(order_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id).first()
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def list_buyer_orders(buyer_id: int) -> list[Order]:
    return (
        db.session.query(Order)
        .filter_by(buyer_id=buyer_id)
        .order_by(Order.ordered_at.desc(), Order.id.desc())
        .all()
    )


def list_seller_orders(seller_id: int, status: str | None = None) -> list[Order]:
    q = db.session.query(Order).filter_by(seller_id=seller_id)
    if status is not None:
        if status not in ORDER_STATUSES:
            raise OrderValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
        q = q.filter_by(status=status)
    return q.order_by(Order.ordered_at.desc(), Order.id.desc()).all()


def _advance_status(order_id: int, seller_id: int, target: str, allowed_from: tuple[str, ...]) -> Order:
    def _op():
        order = lock_for_update(
            db.session.query(Order).filter_by(id=order_id, seller_id=seller_id)
        ).first()
        if order is None:
            raise OrderNotFoundError(order_id)

        if order.status not in allowed_from:
            raise OrderStatusError(
                f"Cannot move order from {order.status} to {target}",
                details={"order_id": order.id, "status": order.status, "target": target},
            )

        order.status = target
        if target == ORDER_STATUS_CONFIRMED:
            order.confirmed_at = utcnow()
        elif target == ORDER_STATUS_DELIVERED:
            order.delivered_at = utcnow()

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s moved to %s by seller %s", order_id, target, seller_id)
    return order


def confirm_order(order_id: int, seller_id: int) -> Order:
    """pending -> confirmed."""
    return _advance_status(order_id, seller_id, ORDER_STATUS_CONFIRMED, (ORDER_STATUS_PENDING,))


def fulfill_order(order_id: int, seller_id: int) -> Order:
    """pending | confirmed -> delivered. The only way an order is delivered."""
    return _advance_status(order_id, seller_id, ORDER_STATUS_DELIVERED, (ORDER_STATUS_PENDING, ORDER_STATUS_CONFIRMED))
