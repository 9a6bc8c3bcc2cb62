from __future__ import annotations

from ..extensions import db
from ..models import UserSettings
from ..models.settings import LANGUAGE_EN, VALID_LANGUAGES, VALID_THEMES
from ..validation import ModelValidationPolicy, validate_payload


SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={"language", "theme", "notifications_enabled"},
    choices={"language": VALID_LANGUAGES, "theme": VALID_THEMES},
)


def get_settings(user_id: int) -> UserSettings:
    """Return the user's settings, creating the defaults on first access."""
    settings = db.session.query(UserSettings).filter_by(user_id=user_id).first()
    if settings is None:
        settings = UserSettings(user_id=user_id)
        db.session.add(settings)
        db.session.commit()
    return settings


def update_settings(user_id: int, payload: dict) -> UserSettings:
    patch = validate_payload(model=UserSettings, payload=payload, policy=SETTINGS_POLICY, partial=True)
    settings = get_settings(user_id)
    for key, value in patch.items():
        setattr(settings, key, value)
    db.session.commit()
    return settings


def resolve_language(user_id: int, requested: str | None = None) -> str:
    """An explicit, supported ?lang= wins; otherwise the stored preference."""
    if requested in VALID_LANGUAGES:
        return requested
    settings = db.session.query(UserSettings).filter_by(user_id=user_id).first()
    if settings is None:
        return LANGUAGE_EN
    return settings.language
