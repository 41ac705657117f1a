# Overview: Flask API routes for operator login and logout.

from flask import Blueprint, request, jsonify, current_app

from ..services import auth_service
from ..services import session_service
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate an operator and create a session token.

    Request body:
    {
        "org_code": "TIENDA1",
        "username": "cajero",
        "password": "..."
    }

    The token goes in the Authorization header (Bearer) of protected routes.
    The session is bound to the organization of the user.
    """
    try:
        data = request.get_json(silent=True) or {}
        org_code = data.get("org_code") or data.get("orgCode")
        username = data.get("username")
        password = data.get("password")

        if not all([org_code, username, password]):
            return jsonify({"success": False, "error": "org_code, username and password required"}), 400

        user = auth_service.authenticate(org_code, username, password)
        if not user:
            return jsonify({"success": False, "error": "Invalid credentials"}), 401

        session, token = session_service.create_session(user.id)

        return jsonify({
            "success": True,
            "data": {
                "user": user.to_dict(),
                "token": token,
                "org_id": session.org_id,
                "expires_at": to_utc_z(session.expires_at),
            },
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the session token sent in the Authorization header."""
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"success": False, "error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]
        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"success": False, "error": "Invalid or expired token"}), 401

        return jsonify({"success": True, "message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"success": False, "error": "Internal server error"}), 500
