from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SETTINGS_ROW_ID = 1


class GlobalSettings(db.Model):
    """
    Store-wide settings. Exactly one row (id=1).

    inflation_bps is the inflation percentage in basis points of a percent:
    15% is stored as 1500, -12.5% as -1250. Changing it goes through
    settings_service.update_settings, which reprices the catalog in the same
    transaction.
    """
    __tablename__ = "global_settings"
    __table_args__ = (
        db.CheckConstraint("inflation_bps >= -10000", name="ck_global_settings_inflation_floor"),
    )

    id = db.Column(db.Integer, primary_key=True)

    theme = db.Column(db.String(32), nullable=False, default="indigo")
    logo_ref = db.Column(db.Text, nullable=True)
    inflation_bps = db.Column(db.Integer, nullable=False, default=0)

    updated_by_account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def inflation_percent(self) -> float:
        return self.inflation_bps / 100

    def to_dict(self) -> dict:
        return {
            "theme": self.theme,
            "logo_ref": self.logo_ref,
            "inflation_percent": self.inflation_percent,
            "inflation_bps": self.inflation_bps,
            "updated_by_account_id": self.updated_by_account_id,
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
