# backend/rewards/routes/system.py
"""
System health endpoint.

Reports database reachability plus a few counts useful when debugging a
deployment (pending requests, admins present, settings row initialized).
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Account, CatalogItem, GlobalSettings, PurchaseRequest
from ..models.accounts import ROLE_ADMIN
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        account_count = db.session.query(Account).filter_by(is_active=True).count()
        item_count = db.session.query(CatalogItem).filter_by(is_active=True).count()
        pending_count = db.session.query(PurchaseRequest).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "accounts": account_count,
                "catalog_items": item_count,
                "pending_requests": pending_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_bootstrap_health() -> dict:
    """Degraded until `flask system init` has created settings and an admin."""
    try:
        has_settings = db.session.query(GlobalSettings.id).first() is not None
        has_admin = (
            db.session.query(Account.id)
            .filter_by(role=ROLE_ADMIN, is_active=True)
            .first()
        ) is not None
    except Exception:
        current_app.logger.exception("Bootstrap health check failed")
        return {"status": "unhealthy", "error": "Database error"}

    missing = [name for name, ok in (("settings", has_settings), ("admin", has_admin)) if not ok]
    if missing:
        return {"status": "degraded", "warning": f"Not initialized: {', '.join(missing)}"}
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    bootstrap_health = check_bootstrap_health()

    all_checks = [database_health, bootstrap_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "bootstrap": bootstrap_health,
        }
    }
    return response, http_status
