from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


LANGUAGE_EN = "en"
LANGUAGE_AR = "ar"
VALID_LANGUAGES = {LANGUAGE_EN, LANGUAGE_AR}

VALID_THEMES = {"light", "dark"}


class UserSettings(db.Model):
    """
    Per-tenant preferences. Created lazily with defaults on first read.

    language drives which variant of a bilingual notification is rendered;
    notifications_enabled opts the tenant out of the scheduled scans.
    """
    __tablename__ = "user_settings"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_user_settings_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    language = db.Column(db.String(8), nullable=False, default=LANGUAGE_EN)
    theme = db.Column(db.String(16), nullable=False, default="light")
    notifications_enabled = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "language": self.language,
            "theme": self.theme,
            "notifications_enabled": self.notifications_enabled,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
