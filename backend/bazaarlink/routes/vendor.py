# Overview: Flask API routes for vendors; placing orders, order history, supplier directory and reviews.

# backend/bazaarlink/routes/vendor.py
"""Vendor (buyer) API routes."""

from flask import Blueprint, request, jsonify, g

from ..models.accounts import ROLE_VENDOR
from ..models.orders import ORDER_KIND_GROUP, ORDER_KIND_INDIVIDUAL
from ..services import auth_service
from ..services import order_service
from ..services import review_service
from ..services.order_service import OrderValidationError
from ..decorators import require_auth, require_role, json_errors


vendor_bp = Blueprint("vendor", __name__, url_prefix="/api/vendor")


def _resolve_seller(data: dict) -> int:
    """
    seller_id from the body, or derived from the cart when every item comes
    from one supplier. A mixed cart must be submitted once per supplier.
    """
    seller_id = data.get("seller_id")
    if seller_id is not None:
        if isinstance(seller_id, bool) or not isinstance(seller_id, int):
            raise OrderValidationError("seller_id must be an integer")
        return seller_id

    groups = order_service.split_cart_by_seller(data.get("items"))
    if len(groups) > 1:
        raise OrderValidationError(
            "Cart contains products from more than one supplier; place one order per supplier",
            details={"sellers": {str(k): v for k, v in groups.items()}},
        )
    return next(iter(groups))


def _place(kind: str):
    data = request.get_json(silent=True) or {}
    items = data.get("items")

    order = order_service.place_order(
        buyer_id=g.current_user.id,
        seller_id=_resolve_seller(data),
        items=items,
        kind=kind,
    )
    return jsonify({"message": "Order placed", "order": order.to_dict()}), 201


@vendor_bp.post("/orders")
@require_auth
@require_role(ROLE_VENDOR)
@json_errors
def place_order_route():
    """
    Place an order with one supplier.

    Body: {"seller_id"?: int, "kind"?: "individual"|"group",
           "items": [{"product_id": int, "quantity": int}, ...]}
    """
    data = request.get_json(silent=True) or {}
    return _place(data.get("kind") or ORDER_KIND_INDIVIDUAL)


@vendor_bp.post("/group-orders")
@require_auth
@require_role(ROLE_VENDOR)
@json_errors
def place_group_order_route():
    return _place(ORDER_KIND_GROUP)


@vendor_bp.get("/orders")
@require_auth
@require_role(ROLE_VENDOR)
@json_errors
def list_orders_route():
    orders = order_service.list_buyer_orders(g.current_user.id)
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@vendor_bp.get("/suppliers")
@require_auth
@require_role(ROLE_VENDOR)
@json_errors
def list_suppliers_route():
    suppliers = auth_service.list_suppliers()
    ratings = review_service.average_ratings([s.id for s in suppliers])
    return jsonify({
        "suppliers": [
            {
                "id": s.id,
                "name": s.name,
                "phone": s.phone,
                "location": s.location,
                "average_rating": ratings.get(s.id),
            }
            for s in suppliers
        ]
    }), 200


@vendor_bp.post("/suppliers/<int:seller_id>/reviews")
@require_auth
@require_role(ROLE_VENDOR)
@json_errors
def leave_review_route(seller_id: int):
    data = request.get_json(silent=True) or {}
    review = review_service.leave_review(
        buyer_id=g.current_user.id,
        seller_id=seller_id,
        rating=data.get("rating"),
        comment=data.get("comment"),
    )
    return jsonify({"review": review.to_dict()}), 201
