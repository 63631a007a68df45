# backend/bazaarlink/services/catalog_service.py
"""
Catalog Service

Product CRUD for suppliers and availability-filtered listing for vendors.

Stock is not a catalog field: initial stock is recorded on create, and
every later change goes through stock_ledger_service so it lands in the
product's history.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, User
from ..models.accounts import ROLE_SUPPLIER
from ..validation import ValidationError
from .concurrency import run_with_retry
from .stock_ledger_service import adjust_stock, get_product, set_low_stock_threshold

PRODUCT_MUTABLE_FIELDS = {"name", "unit", "price_cents"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def create_product(*, seller_id: int, patch: dict) -> Product:
    """
    Create a product owned by seller_id from a validated patch.

    patch keys: name, unit, price_cents, quantity_on_hand (optional, default 0),
    low_stock_threshold (optional, default from config).
    """
    seller = db.session.query(User).filter_by(id=seller_id).first()
    if seller is None or seller.role != ROLE_SUPPLIER:
        raise ValidationError("Only suppliers can own products")

    quantity = patch.get("quantity_on_hand") or 0
    threshold = patch.get("low_stock_threshold")
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_DEFAULT_THRESHOLD", 10)

    product = Product(
        seller_id=seller_id,
        name=patch["name"],
        unit=patch["unit"],
        price_cents=patch["price_cents"],
        quantity_on_hand=quantity,
        initial_quantity=quantity,
        low_stock_threshold=threshold,
        is_available=quantity > 0,
        is_active=True,
    )
    db.session.add(product)
    db.session.commit()

    current_app.logger.info(
        "Product created product_id=%s seller_id=%s on_hand=%s", product.id, seller_id, quantity
    )
    return product


def update_product(*, product_id: int, seller_id: int, patch: dict) -> Product:
    """
    Apply catalog edits and any stock/threshold edit as one transaction.

    Stock edits still go through the ledger (commit=False), so a failed
    adjust rolls back the name/unit/price change with it.
    """
    catalog_patch = {k: v for k, v in patch.items() if k in PRODUCT_MUTABLE_FIELDS}
    new_quantity = patch.get("quantity_on_hand")
    new_threshold = patch.get("low_stock_threshold")

    def _op():
        product = get_product(product_id, seller_id=seller_id, lock=True)
        if catalog_patch:
            apply_product_patch(product, catalog_patch)
            # The ledger re-reads the row; it must see these edits
            db.session.flush()

        if new_quantity is not None:
            product = adjust_stock(product_id, new_quantity, new_threshold, seller_id=seller_id, commit=False)
        elif new_threshold is not None:
            product = set_low_stock_threshold(product_id, new_threshold, seller_id=seller_id, commit=False)

        db.session.commit()
        return product

    return run_with_retry(_op)


def deactivate_product(*, product_id: int, seller_id: int) -> Product:
    """Soft delete: hides the product from listings and ordering."""
    def _op():
        product = get_product(product_id, seller_id=seller_id, lock=True)
        product.is_active = False
        db.session.commit()
        return product

    return run_with_retry(_op)


def list_available_products(seller_id: int | None = None) -> list[Product]:
    q = db.session.query(Product).filter(
        Product.is_available.is_(True),
        Product.is_active.is_(True),
    )
    if seller_id is not None:
        q = q.filter(Product.seller_id == seller_id)
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def list_seller_products(seller_id: int, include_inactive: bool = False) -> list[Product]:
    q = db.session.query(Product).filter(Product.seller_id == seller_id)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.id.asc()).all()
