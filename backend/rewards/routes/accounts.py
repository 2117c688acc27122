# Overview: Flask API routes for account administration; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_admin
from ..errors import RewardsError, error_payload
from ..services import accounts_service


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")


@accounts_bp.get("")
@require_auth
@require_admin
def list_accounts_route():
    role = request.args.get("role") or None
    include_inactive = str(request.args.get("include_inactive")).lower() in {"1", "true", "yes"}
    accounts = accounts_service.list_accounts(role=role, include_inactive=include_inactive)
    return jsonify({"accounts": [a.to_dict() for a in accounts]}), 200


@accounts_bp.post("")
@require_auth
@require_admin
def create_account_route():
    try:
        data = request.get_json(silent=True) or {}
        account = accounts_service.provision_account(
            username=data.get("username"),
            display_name=data.get("display_name", data.get("name")),
            password=data.get("password"),
            role=data.get("role"),
            points_balance=data.get("points_balance", data.get("points", 0)),
        )
        return jsonify({"account": account.to_dict()}), 201

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to create account")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.get("/<int:account_id>")
@require_auth
@require_admin
def get_account_route(account_id: int):
    try:
        account = accounts_service.get_account(account_id, include_inactive=True)
        return jsonify({"account": account.to_dict()}), 200
    except RewardsError as e:
        return jsonify(error_payload(e)), e.status


@accounts_bp.patch("/<int:account_id>")
@require_auth
@require_admin
def update_account_route(account_id: int):
    """Body: any of display_name, points_balance, role, password, version_id."""
    try:
        data = request.get_json(silent=True) or {}
        account = accounts_service.update_profile(
            account_id,
            data,
            expected_version=data.get("version_id"),
        )
        return jsonify({"account": account.to_dict()}), 200

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to update account")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.post("/<int:account_id>/points")
@require_auth
@require_admin
def add_points_route(account_id: int):
    try:
        data = request.get_json(silent=True) or {}
        account = accounts_service.add_points(account_id, data.get("points_to_add"))
        return jsonify({"account": account.to_dict()}), 200

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to add points")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.post("/<int:account_id>/reset-password")
@require_auth
@require_admin
def reset_password_route(account_id: int):
    try:
        account = accounts_service.reset_password(account_id)
        return jsonify({"account": account.to_dict()}), 200

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to reset password")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.delete("/<int:account_id>")
@require_auth
@require_admin
def remove_account_route(account_id: int):
    try:
        account = accounts_service.remove_account(account_id, actor_account_id=g.current_user.id)
        return jsonify({"account": account.to_dict()}), 200

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to remove account")
        return jsonify({"error": "Internal server error"}), 500
