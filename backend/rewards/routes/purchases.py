# Overview: Flask API routes for purchases; request queue, admin resolution, checkout and history.

# backend/rewards/routes/purchases.py
"""
Purchase API routes

Employees submit carts to the approval queue. Admins approve or deny queued
requests, or check out a cart directly for any account. Business failures
(insufficient points or stock) come back as 409 with the typed result in
the body.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_admin
from ..errors import RewardsError, error_payload
from ..services import approval_service, purchase_service
from ..services.approval_service import OUTCOME_ALREADY_RESOLVED


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("/requests")
@require_auth
def submit_request_route():
    """
    Body: {"cart": [{"item_id": int, "quantity": int}, ...]}

    Prices sent by the client are ignored.
    """
    try:
        data = request.get_json(silent=True) or {}
        req = approval_service.submit_request(g.current_user.id, data.get("cart"))
        return jsonify({"request": req.to_dict(), "message": "Request sent to admin for approval."}), 201

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to submit purchase request")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/requests")
@require_auth
def list_requests_route():
    """Admins see the whole queue (optionally ?account_id=); employees see their own."""
    if g.current_user.is_admin:
        account_id = request.args.get("account_id", type=int)
    else:
        account_id = g.current_user.id
    return jsonify({"requests": approval_service.list_pending(account_id)}), 200


@purchases_bp.get("/requests/<int:request_id>")
@require_auth
def get_request_route(request_id: int):
    try:
        req = approval_service.get_request(request_id)
        if not g.current_user.is_admin and req.account_id != g.current_user.id:
            return jsonify({"error": "Purchase request not found"}), 404
        return jsonify({"request": req.to_dict()}), 200
    except RewardsError as e:
        return jsonify(error_payload(e)), e.status


def _resolution_response(result):
    status = 409 if result.outcome == OUTCOME_ALREADY_RESOLVED else 200
    return jsonify({"result": result.to_dict()}), status


@purchases_bp.post("/requests/<int:request_id>/approve")
@require_auth
@require_admin
def approve_request_route(request_id: int):
    try:
        result = approval_service.approve(request_id, actor_account_id=g.current_user.id)
        return _resolution_response(result)

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to approve purchase request")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/requests/<int:request_id>/deny")
@require_auth
@require_admin
def deny_request_route(request_id: int):
    try:
        data = request.get_json(silent=True) or {}
        result = approval_service.deny(
            request_id,
            actor_account_id=g.current_user.id,
            reason=data.get("reason"),
        )
        return _resolution_response(result)

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to deny purchase request")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/checkout")
@require_auth
@require_admin
def checkout_route():
    """
    Admin direct purchase on behalf of an account.

    Body: {"account_id": int, "cart": [...]}
    """
    try:
        data = request.get_json(silent=True) or {}
        account_id = data.get("account_id")
        if account_id is None:
            return jsonify({"error": "account_id required"}), 400

        result = purchase_service.execute_purchase(
            account_id,
            data.get("cart"),
            actor_account_id=g.current_user.id,
        )
        return jsonify({"result": result.to_dict()}), 200 if result.success else 409

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to check out cart")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/history")
@require_auth
def history_route():
    if g.current_user.is_admin:
        account_id = request.args.get("account_id", type=int)
    else:
        account_id = g.current_user.id
    limit = request.args.get("limit", default=100, type=int)
    records = purchase_service.list_history(account_id=account_id, limit=limit)
    return jsonify({"history": [r.to_dict() for r in records]}), 200
