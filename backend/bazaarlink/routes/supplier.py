# Overview: Flask API routes for suppliers; products, stock ledger, restock prediction and order handling.

# backend/bazaarlink/routes/supplier.py
"""
Supplier API routes

Every route acts on the authenticated supplier's own products and orders;
another supplier's product or order is reported as not found.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import Product
from ..models.accounts import ROLE_SUPPLIER
from ..services import catalog_service
from ..services import order_service
from ..services import restock_service
from ..services import stock_ledger_service
from ..decorators import require_auth, require_role, json_errors
from ..time_utils import parse_iso_datetime
from ..validation import ModelValidationPolicy, ValidationError, enforce_rules_product


supplier_bp = Blueprint("supplier", __name__, url_prefix="/api/supplier")

PRODUCT_POLICY = ModelValidationPolicy(
    model=Product,
    writable_fields=frozenset({"name", "unit", "price_cents", "quantity_on_hand", "low_stock_threshold"}),
    required_on_create=frozenset({"name", "unit", "price_cents"}),
)


@supplier_bp.post("/products")
@require_auth
@require_role(ROLE_SUPPLIER)
@json_errors
def create_product_route():
    patch = PRODUCT_POLICY.clean(request.get_json(silent=True), partial=False)
    enforce_rules_product(patch)

    product = catalog_service.create_product(seller_id=g.current_user.id, patch=patch)
    return jsonify({"product": product.to_dict()}), 201


@supplier_bp.get("/products")
@require_auth
@require_role(ROLE_SUPPLIER)
@json_errors
def list_products_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    products = catalog_service.list_seller_products(g.current_user.id, include_inactive=include_inactive)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@supplier_bp.patch("/products/<int:product_id>")
@require_auth
@require_role(ROLE_SUPPLIER)
@json_errors
def update_product_route(product_id: int):
    """
    Edit name / unit / price, or set an absolute quantity_on_hand.

    A quantity change is recorded as an "adjusted" ledger entry.
    """
    patch = PRODUCT_POLICY.clean(request.get_json(silent=True), partial=True)
    if not patch:
        return jsonify({"error": "No fields to update"}), 400
    enforce_rules_product(patch)

    product = catalog_service.update_product(
        product_id=product_id,
        seller_id=g.current_user.id,
        patch=patch,
    )
    return jsonify({"product": product.to_dict()}), 200


@supplier_bp.delete("/products/<int:product_id>")
@require_auth
@require_role(ROLE_SUPPLIER)
@json_errors
def deactivate_product_route(product_id: int):
    product = catalog_service.deactivate_product(product_id=product_id, seller_id=g.current_user.id)
    return jsonify({"product": product.to_dict()}), 200


@supplier_bp.post("/products/<int:product_id>/restock")
@require_auth
@require_role(ROLE_SUPPLIER)
@json_errors
def restock_route(product_id: int):
    data = request.get_json(silent=True) or {}
    if "quantity" not in data:
        return jsonify({"error": "quantity required"}), 400

    product = stock_ledger_service.increment_stock(
        product_id,
        data["quantity"],
        seller_id=g.current_user.id,
    )
    return jsonify({"message": "Product restocked", "product": product.to_dict()}), 200


@supplier_bp.get("/products/<int:product_id>/history")
@require_auth
@require_role(ROLE_SUPPLIER)
@json_errors
def stock_history_route(product_id: int):
    """
    Chronological stock history.

    Query params:
    - since: ISO-8601 timestamp, inclusive
    """
    try:
        since = parse_iso_datetime(request.args.get("since"))
    except ValueError:
        raise ValidationError("since must be an ISO-8601 timestamp")

    entries = stock_ledger_service.get_stock_history(
        product_id,
        seller_id=g.current_user.id,
        since=since,
    )
    return jsonify({
        "product_id": product_id,
        "history": [e.to_dict() for e in entries],
    }), 200


@supplier_bp.get("/products/low-stock")
@require_auth
@require_role(ROLE_SUPPLIER)
@json_errors
def low_stock_route():
    products = stock_ledger_service.get_low_stock_products(g.current_user.id)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@supplier_bp.get("/restock-prediction")
@require_auth
@require_role(ROLE_SUPPLIER)
@json_errors
def restock_prediction_route():
    minimum = current_app.config.get(
        "RESTOCK_MINIMUM_SUGGESTION", restock_service.MIN_RESTOCK_SUGGESTION
    )
    result = restock_service.predict_restock(g.current_user.id, minimum_suggestion=minimum)
    return jsonify(result), 200


@supplier_bp.get("/orders")
@require_auth
@require_role(ROLE_SUPPLIER)
@json_errors
def list_orders_route():
    """
    Orders placed with this supplier, newest first.

    Query params:
    - status: pending | confirmed | delivered
    """
    orders = order_service.list_seller_orders(g.current_user.id, status=request.args.get("status"))
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@supplier_bp.post("/orders/<int:order_id>/confirm")
@require_auth
@require_role(ROLE_SUPPLIER)
@json_errors
def confirm_order_route(order_id: int):
    order = order_service.confirm_order(order_id, g.current_user.id)
    return jsonify({"order": order.to_dict()}), 200


@supplier_bp.post("/orders/<int:order_id>/fulfill")
@require_auth
@require_role(ROLE_SUPPLIER)
@json_errors
def fulfill_order_route(order_id: int):
    order = order_service.fulfill_order(order_id, g.current_user.id)
    return jsonify({"message": "Order fulfilled", "order": order.to_dict()}), 200
