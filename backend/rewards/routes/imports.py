# Overview: Flask API routes for imports; parses input and returns JSON responses.

"""
Import Routes

Supports CSV, JSON, and Excel (.xlsx) uploads, or rows posted as JSON.
Modes: catalog, add_points, employees.
"""

import io

from flask import Blueprint, request, jsonify, current_app, send_file

from ..decorators import require_auth, require_admin
from ..errors import RewardsError, error_payload
from ..services import import_service


imports_bp = Blueprint("imports", __name__, url_prefix="/api/imports")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@imports_bp.post("/<mode>")
@require_auth
@require_admin
def import_route(mode: str):
    """
    multipart/form-data with a "file" field, or JSON {"rows": [...]}.
    """
    try:
        if "file" in request.files:
            file = request.files["file"]
            report = import_service.import_file(mode, file.filename or "", file.stream)
        else:
            data = request.get_json(silent=True) or {}
            rows = data.get("rows")
            if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
                return jsonify({"error": "file or rows is required"}), 400
            report = import_service.import_rows(mode, rows)
        return jsonify(report.to_dict()), 200

    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    except Exception:
        current_app.logger.exception("Failed to import %s", mode)
        return jsonify({"error": "Failed to import upload"}), 500


@imports_bp.get("/templates/<mode>")
@require_auth
@require_admin
def template_route(mode: str):
    try:
        filename, content = import_service.build_template(mode)
    except RewardsError as e:
        return jsonify(error_payload(e)), e.status
    return send_file(
        io.BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )
