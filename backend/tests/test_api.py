"""
HTTP API tests.

Verifies:
- registration, login and logout
- unauthenticated requests return 401, wrong role returns 403
- business errors map to 400 / 404 / 409 with structured details
"""

import pytest

from bazaarlink.services import catalog_service
from bazaarlink.services import stock_ledger_service as ledger
from bazaarlink.services.concurrency import StockConflictError

from conftest import auth_headers, get_auth_token, make_product


# =============================================================================
# AUTH
# =============================================================================


class TestAuth:

    def test_register_then_login(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "name": "Fresh Greens",
            "phone": "9876543210",
            "location": "Nashik",
            "password": "Sup3r$ecret",
            "role": "supplier",
            "gstin": "27AAAPL1234C1ZV",
        })
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "supplier"
        assert resp.json["user"]["kyc"]["gstin"] == "27AAAPL1234C1ZV"
        assert "password_hash" not in resp.json["user"]
        assert resp.json["token"]

        token = get_auth_token(client, "9876543210", "Sup3r$ecret")
        assert token
        me = client.get("/api/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json["user"]["phone"] == "9876543210"

    def test_duplicate_phone(self, client, vendor):
        resp = client.post("/api/auth/register", json={
            "name": "Copy",
            "phone": vendor.phone,
            "location": "Pune",
            "password": "Password123!",
            "role": "vendor",
        })
        assert resp.status_code == 400
        assert resp.json["error"] == "User already exists"

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "X", "phone": "1", "location": "Y", "password": "Password123!"},
            {"name": "X", "phone": "1", "location": "Y", "password": "Password123!", "role": "admin"},
            {"name": "X", "phone": "1", "location": "Y", "password": "weak", "role": "vendor"},
        ],
    )
    def test_register_rejects_bad_input(self, client, db_session, payload):
        resp = client.post("/api/auth/register", json=payload)
        assert resp.status_code == 400

    def test_numeric_phone_is_accepted_as_text(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "name": "Dosa Point",
            "phone": 9123456789,
            "location": "Mumbai",
            "password": "Password123!",
            "role": "vendor",
        })
        assert resp.status_code == 201
        assert resp.json["user"]["phone"] == "9123456789"

        resp = client.post("/api/auth/login", json={"phone": 9123456789, "password": "Password123!"})
        assert resp.status_code == 200

    @pytest.mark.parametrize("password", [12345678, ["Password123!"], {"p": "Password123!"}])
    def test_register_rejects_non_string_password(self, client, db_session, password):
        resp = client.post("/api/auth/register", json={
            "name": "Dosa Point",
            "phone": "9123456789",
            "location": "Mumbai",
            "password": password,
            "role": "vendor",
        })
        assert resp.status_code == 400

    def test_register_rejects_non_string_name(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "name": ["Dosa", "Point"],
            "phone": "9123456789",
            "location": "Mumbai",
            "password": "Password123!",
            "role": "vendor",
        })
        assert resp.status_code == 400

    @pytest.mark.parametrize("password", [12345678, ["Password123!"]])
    def test_login_with_non_string_password(self, client, vendor, password):
        resp = client.post("/api/auth/login", json={"phone": vendor.phone, "password": password})
        assert resp.status_code == 401

    def test_wrong_password(self, client, vendor):
        resp = client.post("/api/auth/login", json={"phone": vendor.phone, "password": "Nope123!x"})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, vendor):
        token = get_auth_token(client, vendor.phone)
        headers = auth_headers(token)

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401


# =============================================================================
# ACCESS CONTROL
# =============================================================================


class TestAccessControl:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/products"),
            ("POST", "/api/supplier/products"),
            ("POST", "/api/supplier/products/1/restock"),
            ("GET", "/api/supplier/products/low-stock"),
            ("GET", "/api/supplier/restock-prediction"),
            ("POST", "/api/vendor/orders"),
            ("GET", "/api/vendor/suppliers"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/auth/me", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401

    def test_vendor_cannot_restock(self, client, vendor_headers, product):
        resp = client.post(
            f"/api/supplier/products/{product.id}/restock",
            json={"quantity": 10},
            headers=vendor_headers,
        )
        assert resp.status_code == 403
        assert ledger.get_product(product.id).quantity_on_hand == 5

    def test_supplier_cannot_place_orders(self, client, supplier_headers, product):
        resp = client.post(
            "/api/vendor/orders",
            json={"items": [{"product_id": product.id, "quantity": 1}]},
            headers=supplier_headers,
        )
        assert resp.status_code == 403


# =============================================================================
# SUPPLIER
# =============================================================================


class TestSupplierProducts:

    def test_create_and_patch_product(self, client, supplier_headers):
        resp = client.post("/api/supplier/products", json={
            "name": "Basmati Rice",
            "unit": "kg",
            "price_cents": 9000,
            "quantity_on_hand": 25,
        }, headers=supplier_headers)
        assert resp.status_code == 201
        product = resp.json["product"]
        assert product["is_available"] is True
        assert product["low_stock_threshold"] == 10

        resp = client.patch(
            f"/api/supplier/products/{product['id']}",
            json={"price_cents": 9500, "quantity_on_hand": 20},
            headers=supplier_headers,
        )
        assert resp.status_code == 200
        assert resp.json["product"]["price_cents"] == 9500
        assert resp.json["product"]["quantity_on_hand"] == 20

        history = client.get(
            f"/api/supplier/products/{product['id']}/history",
            headers=supplier_headers,
        ).json["history"]
        assert [(h["action"], h["quantity_delta"]) for h in history] == [("adjusted", -5)]

    def test_failed_stock_edit_rolls_back_catalog_edit(self, client, supplier_headers, product, monkeypatch):
        def conflict(*args, **kwargs):
            raise StockConflictError("Stock changed concurrently, please retry")

        monkeypatch.setattr(catalog_service, "adjust_stock", conflict)

        resp = client.patch(
            f"/api/supplier/products/{product.id}",
            json={"name": "Red Onions", "price_cents": 4500, "quantity_on_hand": 20},
            headers=supplier_headers,
        )
        assert resp.status_code == 409

        stored = client.get(f"/api/products/{product.id}", headers=supplier_headers).json["product"]
        assert stored["name"] == "Onions"
        assert stored["price_cents"] == 3000
        assert stored["quantity_on_hand"] == 5

    @pytest.mark.parametrize(
        "payload",
        [
            {"unit": "kg", "price_cents": 100},
            {"name": "X", "unit": "kg", "price_cents": 0},
            {"name": "X", "unit": "kg", "price_cents": 100, "quantity_on_hand": -1},
            {"name": "X", "unit": "kg", "price_cents": "12.50"},
            {"name": "X", "unit": "kg", "price_cents": 100, "seller_id": 99},
        ],
    )
    def test_create_rejects_bad_payload(self, client, supplier_headers, payload):
        resp = client.post("/api/supplier/products", json=payload, headers=supplier_headers)
        assert resp.status_code == 400

    def test_restock(self, client, supplier_headers, product):
        resp = client.post(
            f"/api/supplier/products/{product.id}/restock",
            json={"quantity": 20},
            headers=supplier_headers,
        )
        assert resp.status_code == 200
        assert resp.json["product"]["quantity_on_hand"] == 25

    @pytest.mark.parametrize("quantity", [0, -3, "ten", 2.5])
    def test_restock_invalid_quantity(self, client, supplier_headers, product, quantity):
        resp = client.post(
            f"/api/supplier/products/{product.id}/restock",
            json={"quantity": quantity},
            headers=supplier_headers,
        )
        assert resp.status_code == 400
        assert resp.json["details"]["field"] == "quantity"
        assert ledger.get_product(product.id).quantity_on_hand == 5

    def test_restock_someone_elses_product(self, client, db_session, supplier_headers, other_supplier):
        foreign = make_product(db_session, other_supplier)
        resp = client.post(
            f"/api/supplier/products/{foreign.id}/restock",
            json={"quantity": 5},
            headers=supplier_headers,
        )
        assert resp.status_code == 404

    def test_history_since_must_be_iso(self, client, supplier_headers, product):
        resp = client.get(
            f"/api/supplier/products/{product.id}/history?since=yesterday",
            headers=supplier_headers,
        )
        assert resp.status_code == 400

    def test_low_stock_and_prediction(self, client, supplier_headers, product):
        low = client.get("/api/supplier/products/low-stock", headers=supplier_headers)
        assert low.status_code == 200
        assert [p["id"] for p in low.json["products"]] == [product.id]

        prediction = client.get("/api/supplier/restock-prediction", headers=supplier_headers)
        assert prediction.status_code == 200
        (suggestion,) = prediction.json["suggestions"]
        assert suggestion["product_id"] == product.id
        assert suggestion["suggested_restock"] == 10

    def test_prediction_nothing_to_do(self, client, db_session, supplier, supplier_headers):
        make_product(db_session, supplier, quantity=50)
        resp = client.get("/api/supplier/restock-prediction", headers=supplier_headers)
        assert resp.json == {"message": "No restock needed currently."}


# =============================================================================
# ORDERS
# =============================================================================


class TestOrders:

    def test_place_and_fulfill(self, client, supplier, vendor_headers, supplier_headers, product):
        resp = client.post("/api/vendor/orders", json={
            "seller_id": supplier.id,
            "items": [{"product_id": product.id, "quantity": 2}],
        }, headers=vendor_headers)
        assert resp.status_code == 201
        order = resp.json["order"]
        assert order["status"] == "pending"
        assert order["kind"] == "individual"
        assert order["items"][0]["product_name"] == "Onions"

        pending = client.get("/api/supplier/orders?status=pending", headers=supplier_headers)
        assert [o["id"] for o in pending.json["orders"]] == [order["id"]]

        resp = client.post(f"/api/supplier/orders/{order['id']}/fulfill", headers=supplier_headers)
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "delivered"

        resp = client.post(f"/api/supplier/orders/{order['id']}/confirm", headers=supplier_headers)
        assert resp.status_code == 409

        mine = client.get("/api/vendor/orders", headers=vendor_headers)
        assert [o["status"] for o in mine.json["orders"]] == ["delivered"]

    def test_seller_derived_from_single_supplier_cart(self, client, vendor_headers, product):
        resp = client.post("/api/vendor/group-orders", json={
            "items": [{"product_id": product.id, "quantity": 1}],
        }, headers=vendor_headers)
        assert resp.status_code == 201
        assert resp.json["order"]["kind"] == "group"

    def test_mixed_supplier_cart_is_rejected(self, client, db_session, vendor_headers, product, other_supplier):
        foreign = make_product(db_session, other_supplier)
        resp = client.post("/api/vendor/orders", json={
            "items": [
                {"product_id": product.id, "quantity": 1},
                {"product_id": foreign.id, "quantity": 1},
            ],
        }, headers=vendor_headers)
        assert resp.status_code == 400
        assert set(resp.json["details"]["sellers"]) == {str(product.seller_id), str(other_supplier.id)}

    def test_insufficient_stock_is_409_with_details(self, client, supplier, vendor_headers, product):
        resp = client.post("/api/vendor/orders", json={
            "seller_id": supplier.id,
            "items": [{"product_id": product.id, "quantity": 6}],
        }, headers=vendor_headers)
        assert resp.status_code == 409
        assert resp.json["error"] == "Insufficient stock for Onions. Available: 5, Requested: 6"
        assert resp.json["details"] == {
            "product_id": product.id,
            "product_name": "Onions",
            "available": 5,
            "requested": 6,
        }

    def test_unknown_product_is_404(self, client, supplier, vendor_headers):
        resp = client.post("/api/vendor/orders", json={
            "seller_id": supplier.id,
            "items": [{"product_id": 31337, "quantity": 1}],
        }, headers=vendor_headers)
        assert resp.status_code == 404
        assert resp.json["details"]["product_id"] == 31337

    def test_missing_items_is_400(self, client, supplier, vendor_headers):
        resp = client.post("/api/vendor/orders", json={"seller_id": supplier.id}, headers=vendor_headers)
        assert resp.status_code == 400

    def test_unknown_order_is_404(self, client, supplier_headers):
        resp = client.post("/api/supplier/orders/999/fulfill", headers=supplier_headers)
        assert resp.status_code == 404


# =============================================================================
# CATALOG AND REVIEWS
# =============================================================================


class TestCatalogAndReviews:

    def test_listing_hides_unavailable(self, client, db_session, supplier, vendor_headers, product):
        make_product(db_session, supplier, name="Sold Out", quantity=0)

        resp = client.get(f"/api/products?seller_id={supplier.id}", headers=vendor_headers)
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json["products"]] == ["Onions"]

        resp = client.get(f"/api/products/{product.id}", headers=vendor_headers)
        assert resp.json["product"]["is_low_stock"] is True

    def test_listing_carries_seller_name_and_location(self, client, supplier, vendor_headers, product):
        resp = client.get("/api/products", headers=vendor_headers)
        (listed,) = resp.json["products"]
        assert listed["seller_id"] == supplier.id
        assert listed["seller_name"] == "Sharma Wholesale"
        assert listed["seller_location"] == "Pune"

    def test_review_and_directory(self, client, supplier, vendor_headers):
        resp = client.post(
            f"/api/vendor/suppliers/{supplier.id}/reviews",
            json={"rating": 4, "comment": "Fresh stock"},
            headers=vendor_headers,
        )
        assert resp.status_code == 201

        resp = client.post(
            f"/api/vendor/suppliers/{supplier.id}/reviews",
            json={"rating": 6},
            headers=vendor_headers,
        )
        assert resp.status_code == 400

        reviews = client.get(f"/api/suppliers/{supplier.id}/reviews", headers=vendor_headers)
        assert reviews.json["average_rating"] == 4.0
        assert reviews.json["reviews"][0]["buyer_name"] == "Chaat Corner"

        directory = client.get("/api/vendor/suppliers", headers=vendor_headers)
        (entry,) = directory.json["suppliers"]
        assert entry["id"] == supplier.id
        assert entry["average_rating"] == 4.0


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["status"] == "healthy"
