# Overview: Flask API routes for PIN auth; parses input and returns JSON responses.

# backend/turnledger/routes/auth.py
"""
PIN Authentication API routes

- POST /api/auth/login-pin  exchange a PIN for a session token
- POST /api/auth/logout     revoke the current token
- GET  /api/auth/me         snapshot of the signed-in user
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login-pin")
def login_pin_route():
    """
    Authenticate user by PIN.

    Request body:
    {
        "pin": "1234"      // required, 4-8 digits
    }

    Returns user snapshot and session token on success. Unknown PINs and
    PINs shared by several users both answer 401 "Invalid PIN".
    """
    try:
        data = request.get_json(silent=True) or {}
        pin = data.get("pin")

        if not pin or not isinstance(pin, str):
            return jsonify({"error": "PIN is required"}), 400

        try:
            auth_service.validate_pin_format(pin)
        except auth_service.PinValidationError as e:
            return jsonify({"error": str(e)}), 400

        user = auth_service.authenticate_by_pin(pin)
        if not user:
            current_app.logger.info("Rejected PIN login from %s", request.remote_addr)
            return jsonify({"error": "Invalid PIN"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "PIN login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user by PIN")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.session_token)
        return jsonify({"message": "Logged out"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
