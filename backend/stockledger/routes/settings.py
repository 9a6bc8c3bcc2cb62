# Overview: Flask API routes for per-user settings; parses input and returns JSON responses.

from flask import Blueprint, g

from ..decorators import require_auth
from ..responses import ok, json_body
from ..services import settings_service

settings_bp = Blueprint("settings", __name__, url_prefix="/api/user-settings")


@settings_bp.get("")
@require_auth
def get_settings_route():
    return ok(settings_service.get_settings(g.user_id).to_dict())


@settings_bp.put("")
@require_auth
def update_settings_route():
    """Body: any of language (en/ar), theme (light/dark), notifications_enabled."""
    settings = settings_service.update_settings(g.user_id, json_body())
    return ok(settings.to_dict())
