# Overview: Flask API routes for global settings; theme, logo and inflation.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_admin
from ..errors import RewardsError, error_payload
from ..services import settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
def get_settings_route():
    """Public: the login screen needs theme and logo before anyone signs in."""
    settings = settings_service.get_settings()
    return jsonify({"settings": settings.to_dict()}), 200


@settings_bp.get("/themes")
def list_themes_route():
    themes = [{"key": key, **values} for key, values in settings_service.THEMES.items()]
    return jsonify({"themes": themes, "default": settings_service.DEFAULT_THEME}), 200


@settings_bp.patch("")
@require_auth
@require_admin
def update_settings_route():
    """
    Body: any of theme, logo_ref, inflation_percent, version_id.

    A changed inflation_percent reprices every catalog item before the
    response is sent.
    """
    try:
        data = request.get_json(silent=True) or {}
        result = settings_service.update_settings(
            theme=data.get("theme"),
            logo_ref=data.get("logo_ref"),
            inflation_percent=data.get("inflation_percent"),
            actor_account_id=g.current_user.id,
            expected_version=data.get("version_id"),
        )
        return jsonify({
            "settings": result["settings"].to_dict(),
            "repriced": result["repriced"],
        }), 200

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500
