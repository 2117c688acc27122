# Overview: Flask API routes for the notification mailbox; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_admin
from ..errors import RewardsError, error_payload
from ..services import mailbox_service


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    notes = mailbox_service.list_notifications(g.current_user.id)
    return jsonify({
        "notifications": [n.to_dict() for n in notes],
        "unread_count": sum(1 for n in notes if not n.is_read),
    }), 200


@notifications_bp.post("/read")
@require_auth
def mark_read_route():
    updated = mailbox_service.mark_all_read(g.current_user.id)
    return jsonify({"updated": updated}), 200


@notifications_bp.post("")
@require_auth
@require_admin
def post_notification_route():
    """Admin message to one account. Body: {"account_id", "message", "kind"}."""
    try:
        data = request.get_json(silent=True) or {}
        account_id = data.get("account_id")
        if account_id is None:
            return jsonify({"error": "account_id required"}), 400
        note = mailbox_service.post(account_id, data.get("message"), data.get("kind") or "info")
        return jsonify({"notification": note.to_dict()}), 201

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to post notification")
        return jsonify({"error": "Internal server error"}), 500
