# Overview: Flask API routes for browsing the catalog and supplier reviews.

# backend/bazaarlink/routes/catalog.py
"""Read-only catalog routes available to any logged-in account."""

from flask import Blueprint, request, jsonify

from ..services import catalog_service
from ..services import review_service
from ..services.stock_ledger_service import get_product
from ..decorators import require_auth, json_errors


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.get("/products")
@require_auth
@json_errors
def list_products_route():
    """
    Products a vendor can order right now (active and in stock).

    Query params:
    - seller_id: only this supplier's products
    """
    seller_id = request.args.get("seller_id", type=int)
    products = catalog_service.list_available_products(seller_id=seller_id)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@catalog_bp.get("/products/<int:product_id>")
@require_auth
@json_errors
def get_product_route(product_id: int):
    product = get_product(product_id)
    if not product.is_active:
        return jsonify({"error": f"Product {product_id} not found"}), 404
    return jsonify({"product": product.to_dict()}), 200


@catalog_bp.get("/suppliers/<int:seller_id>/reviews")
@require_auth
@json_errors
def supplier_reviews_route(seller_id: int):
    reviews = review_service.list_reviews(seller_id)
    average = review_service.average_ratings([seller_id]).get(seller_id)
    return jsonify({
        "seller_id": seller_id,
        "average_rating": average,
        "reviews": [r.to_dict() for r in reviews],
    }), 200
