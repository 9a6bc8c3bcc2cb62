# Overview: Flask API routes for notifications; scan triggers and the per-user inbox.
"""
Notification routes.

The two scan endpoints accept either a user session (scans only that user)
or the scheduler's X-Cron-Secret header (scans every tenant). Scans are
idempotent per UTC day, so calling them repeatedly is safe.
"""

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_cron_or_auth
from ..errors import ValidationError
from ..models.notifications import VALID_STATUSES, VALID_TYPES
from ..responses import ok, json_body, page_args, flag_arg, choice_arg
from ..services import notification_service
from ..services.settings_service import resolve_language

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


def _language() -> str:
    return resolve_language(g.user_id, request.args.get("lang"))


@notifications_bp.get("/stock-alerts")
@require_cron_or_auth
def stock_alert_scan_route():
    """?force=true creates alerts even when one was already sent today."""
    result = notification_service.scan_stock_alerts(user_id=g.user_id, force=flag_arg("force"))
    return ok(result.to_dict(), scope="all" if g.is_cron else "user")


@notifications_bp.get("/payment-due-check")
@require_cron_or_auth
def payment_due_scan_route():
    """?window_days=N overrides PAYMENT_DUE_WINDOW_DAYS."""
    window_days = request.args.get("window_days", type=int)
    if window_days is None:
        window_days = current_app.config["PAYMENT_DUE_WINDOW_DAYS"]
    if window_days < 0:
        raise ValidationError(errors={"window_days": ["window_days must be >= 0"]})

    result = notification_service.scan_payment_due(user_id=g.user_id, window_days=window_days)
    return ok(result.to_dict(), scope="all" if g.is_cron else "user")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """Query params: status, type, lang (en/ar), page, per_page."""
    page, per_page = page_args()
    data = notification_service.list_notifications(
        g.user_id,
        status=choice_arg("status", VALID_STATUSES),
        ntype=choice_arg("type", VALID_TYPES),
        language=_language(),
        page=page,
        per_page=per_page,
    )
    return ok(data)


@notifications_bp.post("")
@require_auth
def create_notification_route():
    note = notification_service.create_notification(g.user_id, json_body())
    return ok(note.to_dict(_language()), status=201)


@notifications_bp.delete("")
@require_auth
def mark_all_read_route():
    updated = notification_service.mark_all_read(g.user_id)
    return ok({"updated": updated})


@notifications_bp.get("/<int:notification_id>")
@require_auth
def get_notification_route(notification_id: int):
    note = notification_service.get_notification(g.user_id, notification_id)
    return ok(note.to_dict(_language()))


@notifications_bp.patch("/<int:notification_id>")
@require_auth
def update_notification_route(notification_id: int):
    """Body: {"status": "READ" | "UNREAD" | "ARCHIVED"}."""
    status = json_body().get("status")
    if not isinstance(status, str):
        raise ValidationError(errors={"status": [f"status must be one of: {', '.join(sorted(VALID_STATUSES))}"]})
    note = notification_service.update_notification_status(g.user_id, notification_id, status.upper())
    return ok(note.to_dict(_language()))


@notifications_bp.delete("/<int:notification_id>")
@require_auth
def delete_notification_route(notification_id: int):
    notification_service.delete_notification(g.user_id, notification_id)
    return ok({"id": notification_id, "deleted": True})
