# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/rewards/routes/auth.py
"""
Authentication API routes

Login hands out an opaque bearer token. An account flagged with
requires_password_change can only call /me, /change-password and /logout
until it picks a new password.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..errors import RewardsError, error_payload
from ..services import auth_service
from ..services import session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        account = auth_service.authenticate(username, password)
        if not account:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(account.id)

        return jsonify({
            "account": account.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "requires_password_change": account.requires_password_change,
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"account": g.current_user.to_dict()}), 200


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Body: {"current_password": str, "new_password": str}

    current_password may be omitted during a forced change.
    """
    try:
        data = request.get_json(silent=True) or {}
        account = auth_service.change_password(
            g.current_user.id,
            data.get("current_password"),
            data.get("new_password"),
        )
        return jsonify({"account": account.to_dict()}), 200

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500
