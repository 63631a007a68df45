# Overview: Service-layer operations for the per-product stock ledger; the only writer of quantity on hand.

# backend/bazaarlink/services/stock_ledger_service.py

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Product, StockHistoryEntry
from ..models.catalog import (
    STOCK_ACTION_ORDERED,
    STOCK_ACTION_RESTOCKED,
    STOCK_ACTION_ADJUSTED,
)
from .concurrency import lock_for_update, run_with_retry
"""
BazaarLink Stock Ledger Invariants (authoritative)

Ledger model:
- A product's ledger is quantity_on_hand + is_available + its append-only
  stock_history_entries rows.
- decrement_stock / increment_stock / adjust_stock are the only legal writers.
  Catalog code must route stock edits through adjust_stock.

Invariants (hold after every committed call):
- quantity_on_hand >= 0. A decrement that would go negative is rejected
  before anything is written.
- is_available == (quantity_on_hand > 0).
- Every history entry satisfies new_quantity == previous_quantity + quantity_delta.
- initial_quantity + SUM(quantity_delta) == quantity_on_hand.

Atomicity:
- The quantity UPDATE and the history INSERT are flushed in the same DB
  transaction; a failure in either rolls back both.

Concurrency:
- Product.version_id makes each UPDATE a compare-and-swap. A losing writer
  gets StaleDataError, run_with_retry rolls back and re-runs the whole
  operation, which re-reads stock and re-validates. Two decrements of 3
  against 5 therefore end with one success and one InsufficientStockError.
"""


class StockError(Exception):
    """Base class for expected, user-facing stock outcomes."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ProductNotFoundError(StockError):
    def __init__(self, product_id):
        super().__init__(f"Product {product_id} not found", details={"product_id": product_id})
        self.product_id = product_id


class InvalidQuantityError(StockError):
    def __init__(self, message: str, *, field: str = "quantity", value=None):
        super().__init__(message, details={"field": field, "value": value})


class InsufficientStockError(StockError):
    def __init__(self, *, product_id: int, product_name: str, available: int, requested: int, message: str | None = None):
        super().__init__(
            message or (
                f"Insufficient stock for {product_name}. "
                f"Available: {available}, Requested: {requested}"
            ),
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested


class ProductUnavailableError(InsufficientStockError):
    """Product exists but is flagged unavailable (nothing on hand)."""

    def __init__(self, *, product_id: int, product_name: str, requested: int):
        super().__init__(
            product_id=product_id,
            product_name=product_name,
            available=0,
            requested=requested,
            message=f"Product {product_name} is currently unavailable",
        )


def _require_int(value, *, field: str, minimum: int) -> int:
    # bool is an int subclass; True must not count as 1 unit
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(f"{field} must be an integer", field=field, value=value)
    if value < minimum:
        comparison = "> 0" if minimum == 1 else f">= {minimum}"
        raise InvalidQuantityError(f"{field} must be {comparison}", field=field, value=value)
    return value


def get_product(product_id: int, *, seller_id: int | None = None, lock: bool = False) -> Product:
    """
    Load a product with fresh column values.

    populate_existing() discards whatever the identity map holds, so the
    caller always validates against the row as it is now. When seller_id is
    given, products of other sellers are reported as not found.
    """
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.populate_existing().first()
    if product is None:
        raise ProductNotFoundError(product_id)
    if seller_id is not None and product.seller_id != seller_id:
        raise ProductNotFoundError(product_id)
    return product


def is_low_stock(product: Product) -> bool:
    return product.quantity_on_hand <= product.low_stock_threshold


def _append_history(
    product: Product,
    *,
    action: str,
    previous_quantity: int,
    order_id: int | None = None,
) -> StockHistoryEntry:
    entry = StockHistoryEntry(
        product_id=product.id,
        action=action,
        quantity_delta=product.quantity_on_hand - previous_quantity,
        previous_quantity=previous_quantity,
        new_quantity=product.quantity_on_hand,
        order_id=order_id,
    )
    db.session.add(entry)
    return entry


def _decrement_stock_inner(product: Product, quantity: int, order_id: int | None) -> StockHistoryEntry:
    """Check-and-decrement on an already loaded product. Flushes, never commits."""
    if product.quantity_on_hand < quantity:
        raise InsufficientStockError(
            product_id=product.id,
            product_name=product.name,
            available=product.quantity_on_hand,
            requested=quantity,
        )

    previous = product.quantity_on_hand
    product.quantity_on_hand = previous - quantity
    product.is_available = product.quantity_on_hand > 0

    entry = _append_history(
        product,
        action=STOCK_ACTION_ORDERED,
        previous_quantity=previous,
        order_id=order_id,
    )
    # Versioned UPDATE + history INSERT; raises StaleDataError if we lost a race
    db.session.flush()
    return entry


def decrement_stock(
    product_id: int,
    quantity: int,
    order_id: int | None = None,
    *,
    commit: bool = True,
) -> Product:
    """
    Remove stock for an order.

    commit=False runs inside the caller's transaction (order placement) and
    leaves retries to the caller's run_with_retry; the caller commits.
    """
    quantity = _require_int(quantity, field="quantity", minimum=1)

    def _op():
        product = get_product(product_id, lock=True)
        _decrement_stock_inner(product, quantity, order_id)
        if commit:
            db.session.commit()
        current_app.logger.info(
            "Stock decremented product_id=%s quantity=%s order_id=%s on_hand=%s",
            product_id, quantity, order_id, product.quantity_on_hand,
        )
        return product

    if not commit:
        return _op()
    return run_with_retry(_op)


def increment_stock(product_id: int, quantity: int, *, seller_id: int | None = None, commit: bool = True) -> Product:
    """Restock: add quantity and mark the product available."""
    quantity = _require_int(quantity, field="quantity", minimum=1)

    def _op():
        product = get_product(product_id, seller_id=seller_id, lock=True)

        previous = product.quantity_on_hand
        product.quantity_on_hand = previous + quantity
        product.is_available = product.quantity_on_hand > 0

        _append_history(product, action=STOCK_ACTION_RESTOCKED, previous_quantity=previous)
        db.session.flush()

        if commit:
            db.session.commit()
        current_app.logger.info(
            "Stock restocked product_id=%s quantity=%s on_hand=%s",
            product_id, quantity, product.quantity_on_hand,
        )
        return product

    if not commit:
        return _op()
    return run_with_retry(_op)


def adjust_stock(
    product_id: int,
    new_quantity: int,
    new_threshold: int | None = None,
    *,
    seller_id: int | None = None,
    commit: bool = True,
) -> Product:
    """
    Administrative correction: set quantity on hand to an absolute value.

    An "adjusted" history entry is written only when the quantity actually
    changes. A threshold-only change is persisted without history.
    """
    new_quantity = _require_int(new_quantity, field="quantity", minimum=0)
    if new_threshold is not None:
        new_threshold = _require_int(new_threshold, field="low_stock_threshold", minimum=0)

    def _op():
        product = get_product(product_id, seller_id=seller_id, lock=True)

        previous = product.quantity_on_hand
        product.quantity_on_hand = new_quantity
        product.is_available = new_quantity > 0
        if new_threshold is not None:
            product.low_stock_threshold = new_threshold

        if new_quantity != previous:
            _append_history(product, action=STOCK_ACTION_ADJUSTED, previous_quantity=previous)
        db.session.flush()

        if commit:
            db.session.commit()
        current_app.logger.info(
            "Stock adjusted product_id=%s delta=%s on_hand=%s threshold=%s",
            product_id, new_quantity - previous, new_quantity, product.low_stock_threshold,
        )
        return product

    if not commit:
        return _op()
    return run_with_retry(_op)


def set_low_stock_threshold(
    product_id: int,
    threshold: int,
    *,
    seller_id: int | None = None,
    commit: bool = True,
) -> Product:
    """Change only the threshold. Quantity and history are left alone."""
    threshold = _require_int(threshold, field="low_stock_threshold", minimum=0)

    def _op():
        product = get_product(product_id, seller_id=seller_id, lock=True)
        product.low_stock_threshold = threshold
        db.session.flush()
        if commit:
            db.session.commit()
        return product

    if not commit:
        return _op()
    return run_with_retry(_op)


def get_stock_history(
    product_id: int,
    *,
    seller_id: int | None = None,
    since: datetime | None = None,
) -> tuple[StockHistoryEntry, ...]:
    """
    Chronological (append-order) history for a product.

    Returned as a tuple: callers get a read-only view of the ledger.
    since is inclusive: occurred_at >= since.
    """
    get_product(product_id, seller_id=seller_id)

    q = db.session.query(StockHistoryEntry).filter_by(product_id=product_id)
    if since is not None:
        q = q.filter(StockHistoryEntry.occurred_at >= since)
    return tuple(q.order_by(StockHistoryEntry.id.asc()).all())


def get_low_stock_products(seller_id: int) -> list[Product]:
    """
    Seller's active products at or below their threshold.

    The comparison is field-to-field, so it is evaluated here rather than
    pushed into the query.
    """
    products = (
        db.session.query(Product)
        .filter(Product.seller_id == seller_id, Product.is_active.is_(True))
        .order_by(Product.id.asc())
        .all()
    )
    return [p for p in products if is_low_stock(p)]


def verify_ledger(product_id: int) -> dict:
    """
    Audit a product's ledger against its invariants.

    Returns {"product_id", "consistent", "problems"}; never raises for a
    broken ledger, so it can be run over the whole catalog.
    """
    product = get_product(product_id)
    entries = get_stock_history(product_id)
    problems: list[str] = []

    running = product.initial_quantity
    for entry in entries:
        if entry.previous_quantity != running:
            problems.append(
                f"entry {entry.id}: previous_quantity {entry.previous_quantity} != expected {running}"
            )
        if entry.new_quantity != entry.previous_quantity + entry.quantity_delta:
            problems.append(f"entry {entry.id}: new_quantity does not equal previous + delta")
        if entry.new_quantity < 0:
            problems.append(f"entry {entry.id}: negative new_quantity")
        running = entry.new_quantity

    if running != product.quantity_on_hand:
        problems.append(f"ledger ends at {running} but quantity_on_hand is {product.quantity_on_hand}")
    if product.is_available != (product.quantity_on_hand > 0):
        problems.append("is_available does not match quantity_on_hand")

    return {"product_id": product.id, "consistent": not problems, "problems": problems}
