# Overview: Restock suggestions for a supplier from cumulative order demand.

"""
Restock prediction

Heuristic, not a forecast: demand is the total quantity ever ordered per
product across all of the seller's orders (any status), with no time decay.
A product at or below its low-stock threshold gets

    suggested_restock = max(ordered_quantity - current_stock, minimum_suggestion)

so slow movers still receive a useful restock quantity.
"""

from __future__ import annotations

from collections import OrderedDict

from sqlalchemy import func

from ..extensions import db
from ..models import Order, OrderLineItem, Product
from .stock_ledger_service import is_low_stock

MIN_RESTOCK_SUGGESTION = 10
NO_RESTOCK_NEEDED_MESSAGE = "No restock needed currently."


def _ordered_quantities(seller_id: int, product_ids) -> dict[int, int]:
    if not product_ids:
        return {}
    rows = (
        db.session.query(
            OrderLineItem.product_id,
            func.coalesce(func.sum(OrderLineItem.quantity), 0),
        )
        .join(Order, Order.id == OrderLineItem.order_id)
        .filter(
            Order.seller_id == seller_id,
            OrderLineItem.product_id.in_(product_ids),
        )
        .group_by(OrderLineItem.product_id)
        .all()
    )
    return {product_id: int(total) for product_id, total in rows}


def predict_restock(seller_id: int, minimum_suggestion: int = MIN_RESTOCK_SUGGESTION) -> dict:
    """
    Returns {"suggestions": [...]} in the seller's product order, or
    {"message": NO_RESTOCK_NEEDED_MESSAGE} when nothing is at/below threshold.
    """
    products = (
        db.session.query(Product)
        .filter(Product.seller_id == seller_id, Product.is_active.is_(True))
        .order_by(Product.id.asc())
        .all()
    )

    demand: "OrderedDict[int, dict]" = OrderedDict()
    for product in products:
        demand[product.id] = {"product": product, "ordered_quantity": 0}

    for product_id, total in _ordered_quantities(seller_id, list(demand.keys())).items():
        demand[product_id]["ordered_quantity"] += total

    suggestions = []
    for product_id, row in demand.items():
        product = row["product"]
        if not is_low_stock(product):
            continue
        ordered = row["ordered_quantity"]
        suggestions.append({
            "product_id": product_id,
            "name": product.name,
            "unit": product.unit,
            "current_stock": product.quantity_on_hand,
            "low_stock_threshold": product.low_stock_threshold,
            "ordered_quantity": ordered,
            "suggested_restock": max(ordered - product.quantity_on_hand, minimum_suggestion),
        })

    if not suggestions:
        return {"message": NO_RESTOCK_NEEDED_MESSAGE}
    return {"suggestions": suggestions}
