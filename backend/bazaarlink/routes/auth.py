# Overview: Flask API routes for account registration, login and sessions.

# backend/bazaarlink/routes/auth.py
"""
Authentication API routes

Vendors and suppliers register themselves and log in with their phone
number. Login returns a bearer token for the Authorization header.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth, json_errors
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
@json_errors
def register_route():
    """
    Create a vendor or supplier account and log it in.

    Body: name, phone, location, password, role, optional aadhaar / gstin.
    """
    data = request.get_json(silent=True) or {}

    user = auth_service.register_user(
        name=data.get("name"),
        phone=data.get("phone"),
        location=data.get("location"),
        password=data.get("password") or "",
        role=data.get("role"),
        aadhaar=data.get("aadhaar"),
        gstin=data.get("gstin"),
    )
    _, token = session_service.create_session(user.id)

    current_app.logger.info("User registered user_id=%s role=%s", user.id, user.role)
    return jsonify({"user": user.to_dict(), "token": token}), 201


@auth_bp.post("/login")
@json_errors
def login_route():
    data = request.get_json(silent=True) or {}
    phone = data.get("phone")
    password = data.get("password")

    if not all([phone, password]):
        return jsonify({"error": "phone and password required"}), 400

    user = auth_service.authenticate(phone, password)
    if not user:
        current_app.logger.warning("Failed login for phone=%s", phone)
        return jsonify({"error": "Invalid credentials"}), 401

    session, token = session_service.create_session(user.id)

    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "message": "Login successful",
    }), 200


@auth_bp.post("/logout")
@require_auth
@json_errors
def logout_route():
    session_service.revoke_session(g.auth_token, reason="User logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
