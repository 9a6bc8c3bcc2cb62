# Overview: Flask API routes for the dashboard and reports; parses input and returns JSON responses.

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..responses import ok, date_range_args
from ..services import dashboard_service
from ..services import reporting_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api")


@reports_bp.get("/dashboard/stats")
@require_auth
def dashboard_stats_route():
    """
    Query params: start, end (ISO-8601). Defaults to start of today .. now.
    recent (int) overrides DASHBOARD_RECENT_TRANSACTIONS.
    """
    start, end = date_range_args()
    recent = request.args.get("recent", type=int) or current_app.config["DASHBOARD_RECENT_TRANSACTIONS"]
    data = dashboard_service.dashboard_stats(g.user_id, start, end, recent_limit=max(1, min(recent, 50)))
    return ok(data)


@reports_bp.get("/reports/sales")
@require_auth
def sales_report_route():
    """Daily series for COMPLETED transactions. Defaults to the last 30 days."""
    start, end = date_range_args()
    return ok(reporting_service.sales_report(g.user_id, start, end))


@reports_bp.get("/reports/top-products")
@require_auth
def top_products_route():
    start, end = date_range_args()
    limit = request.args.get("limit", default=5, type=int)
    return ok(reporting_service.top_products(g.user_id, start, end, limit=limit))
