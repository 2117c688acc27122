from __future__ import annotations

import logging

from ..errors import ConflictError, InvalidInputError
from ..extensions import db
from ..models import GlobalSettings
from ..models.settings import SETTINGS_ROW_ID
from . import pricing_service
from .concurrency import begin_serializable, lock_for_update, run_with_retry

logger = logging.getLogger(__name__)


THEMES = {
    "indigo": {"name": "Default Indigo", "primary": "#4f46e5", "light": "#e0e7ff", "dark": "#3730a3"},
    "sky": {"name": "Sky Blue", "primary": "#0ea5e9", "light": "#e0f2fe", "dark": "#0369a1"},
    "emerald": {"name": "Emerald Green", "primary": "#10b981", "light": "#d1fae5", "dark": "#047857"},
    "rose": {"name": "Rose Pink", "primary": "#f43f5e", "light": "#ffe4e6", "dark": "#be123c"},
    "amber": {"name": "Amber Orange", "primary": "#f59e0b", "light": "#fef3c7", "dark": "#b45309"},
    "fuchsia": {"name": "Fuchsia Purple", "primary": "#d946ef", "light": "#f5d0fe", "dark": "#a21caf"},
    "teal": {"name": "Teal", "primary": "#14b8a6", "light": "#ccfbf1", "dark": "#0f766e"},
    "slate": {"name": "Cool Slate", "primary": "#64748b", "light": "#e2e8f0", "dark": "#334155"},
    "lime": {"name": "Lime Green", "primary": "#84cc16", "light": "#ecfccb", "dark": "#4d7c0f"},
    "violet": {"name": "Deep Violet", "primary": "#7c3aed", "light": "#e9d5ff", "dark": "#5b21b6"},
}
DEFAULT_THEME = "indigo"
DEFAULT_LOGO_REF = "https://img.icons8.com/plasticine/100/like-us.png"

# Data-URI logos are stored inline; a 2MB image is about 2.7MB once base64 encoded
MAX_LOGO_REF_LENGTH = 3 * 1024 * 1024


def ensure_settings() -> GlobalSettings:
    """Return the singleton settings row, creating it with defaults if missing."""
    settings = db.session.query(GlobalSettings).filter_by(id=SETTINGS_ROW_ID).first()
    if settings:
        return settings
    settings = GlobalSettings(
        id=SETTINGS_ROW_ID,
        theme=DEFAULT_THEME,
        logo_ref=DEFAULT_LOGO_REF,
        inflation_bps=0,
    )
    db.session.add(settings)
    db.session.flush()
    return settings


def get_settings() -> GlobalSettings:
    settings = ensure_settings()
    db.session.commit()
    return settings


def current_inflation_bps() -> int:
    row = db.session.query(GlobalSettings.inflation_bps).filter_by(id=SETTINGS_ROW_ID).first()
    return int(row[0]) if row else 0


def locked_inflation_bps() -> int:
    """
    Inflation read under the settings row lock.

    Call inside the writer's transaction before deriving a price, so an
    inflation change cannot commit between the read and the price write.
    """
    settings = ensure_settings()
    settings = lock_for_update(db.session.query(GlobalSettings).filter_by(id=settings.id)).first()
    return int(settings.inflation_bps)


def update_settings(
    *,
    theme: str | None = None,
    logo_ref: str | None = None,
    inflation_percent=None,
    actor_account_id: int | None = None,
    expected_version: int | None = None,
) -> dict:
    """
    The one write path for GlobalSettings.

    A change of inflation reprices the whole catalog in the same
    transaction, so no reader ever sees the new rate with old prices.
    expected_version, when given, must match the row's version_id.

    Returns {"settings": GlobalSettings, "repriced": int}.
    """
    if theme is not None and theme not in THEMES:
        raise InvalidInputError(f"Unknown theme: {theme}", details={"themes": sorted(THEMES)})
    if logo_ref is not None and len(logo_ref) > MAX_LOGO_REF_LENGTH:
        raise InvalidInputError("logo_ref is too large")
    new_bps = pricing_service.percent_to_bps(inflation_percent) if inflation_percent is not None else None

    def _op():
        begin_serializable()
        ensure_settings()
        settings = lock_for_update(db.session.query(GlobalSettings).filter_by(id=SETTINGS_ROW_ID)).first()
        if expected_version is not None and settings.version_id != expected_version:
            raise ConflictError(
                "Settings were changed by someone else",
                details={"expected_version": expected_version, "version_id": settings.version_id},
            )

        if theme is not None:
            settings.theme = theme
        if logo_ref is not None:
            settings.logo_ref = logo_ref or None

        repriced = 0
        if new_bps is not None and new_bps != settings.inflation_bps:
            settings.inflation_bps = new_bps
            repriced = pricing_service.recompute_prices(new_bps)

        settings.updated_by_account_id = actor_account_id
        db.session.commit()
        return {"settings": settings, "repriced": repriced}

    result = run_with_retry(_op)
    if new_bps is not None:
        logger.info("Inflation set to %d bps; %d catalog prices changed", new_bps, result["repriced"])
    return result


def reprice_catalog() -> int:
    """Re-derive every current price from the stored inflation. Safe to repeat."""
    def _op():
        begin_serializable()
        repriced = pricing_service.recompute_prices(current_inflation_bps())
        db.session.commit()
        return repriced

    return run_with_retry(_op)
