# Overview: Health and version endpoints.
"""
System health and version endpoints.

Health reports database reachability and session-table state so a load
balancer can take an instance out of rotation when its database is gone.
"""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import User, SessionToken
from stockledger.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start_time),
            "error": "Database error",
        }

    return {
        "status": "healthy",
        "latency_ms": _elapsed_ms(start_time),
        "details": {"users": user_count},
    }


def check_session_health() -> dict:
    """Active sessions and expired ones still waiting for cleanup-sessions."""
    start_time = time.time()
    try:
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        expired_sessions = db.session.query(SessionToken).filter(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(False),
        ).count()
    except SQLAlchemyError:
        current_app.logger.exception("Session health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start_time),
            "error": "Session store error",
        }

    return {
        "status": "healthy",
        "latency_ms": _elapsed_ms(start_time),
        "details": {
            "active_sessions": active_sessions,
            "expired_pending_cleanup": expired_sessions,
        },
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: all checks healthy
    - 503: at least one check unhealthy
    """
    start_time = time.time()
    checks = {
        "database": check_database_health(),
        "sessions": check_session_health(),
    }
    healthy = all(check["status"] == "healthy" for check in checks.values())

    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }
    return body, 200 if healthy else 503


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info. No secrets, credentials or paths."""
    return {
        "api_version": API_VERSION,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
