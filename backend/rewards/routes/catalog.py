# Overview: Flask API routes for the catalog; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_admin
from ..errors import RewardsError, error_payload
from ..services import catalog_service


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _as_bool(value) -> bool:
    return str(value).lower() in {"1", "true", "yes"}


@catalog_bp.get("/items")
@require_auth
def list_items_route():
    """
    Query: include_inactive (admin only), in_stock.
    """
    include_inactive = _as_bool(request.args.get("include_inactive")) and g.current_user.is_admin
    items = catalog_service.list_items(
        include_inactive=include_inactive,
        in_stock_only=_as_bool(request.args.get("in_stock")),
    )
    return jsonify({"items": [item.to_dict() for item in items]}), 200


@catalog_bp.get("/items/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = catalog_service.get_item(item_id)
        return jsonify({"item": item.to_dict()}), 200
    except RewardsError as e:
        return jsonify(error_payload(e)), e.status


@catalog_bp.post("/items")
@require_auth
@require_admin
def create_item_route():
    try:
        data = request.get_json(silent=True) or {}
        item = catalog_service.create_item(
            name=data.get("name"),
            base_price=data.get("base_price"),
            stock=data.get("stock"),
            image_ref=data.get("image_ref"),
        )
        return jsonify({"item": item.to_dict()}), 201

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to create catalog item")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.patch("/items/<int:item_id>")
@require_auth
@require_admin
def update_item_route(item_id: int):
    try:
        data = request.get_json(silent=True) or {}
        item = catalog_service.update_item(
            item_id,
            data,
            expected_version=data.get("version_id"),
        )
        return jsonify({"item": item.to_dict()}), 200

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to update catalog item")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete("/items/<int:item_id>")
@require_auth
@require_admin
def delete_item_route(item_id: int):
    try:
        item = catalog_service.delete_item(item_id)
        return jsonify({"item": item.to_dict()}), 200

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to delete catalog item")
        return jsonify({"error": "Internal server error"}), 500
