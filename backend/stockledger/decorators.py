# Overview: Request decorators for API routes.

import hmac
from functools import wraps
from flask import current_app, request, g

from .errors import UnauthorizedError
from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _authenticate() -> None:
    """
    Resolve the bearer token and establish tenant context:
    - g.current_user: The authenticated User object
    - g.user_id: The tenant every query is scoped to
    - g.session_context: The full SessionContext object
    """
    token = _bearer_token()
    if token is None:
        raise UnauthorizedError("Authentication required")

    context = session_service.validate_session(token)
    if not context:
        raise UnauthorizedError("Invalid or expired token")

    g.current_user = context.user
    g.user_id = context.user_id
    g.session_context = context
    g.is_cron = False


def require_auth(f):
    """Require a valid bearer session. Returns 401 otherwise."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _authenticate()
        return f(*args, **kwargs)

    return decorated_function


def _valid_cron_secret() -> bool:
    expected = current_app.config.get("CRON_SECRET") or ""
    provided = request.headers.get("X-Cron-Secret") or ""
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected, provided)


def require_cron_or_auth(f):
    """
    Accept either the scheduler's X-Cron-Secret header or a user session.

    With the secret, g.is_cron is True and g.user_id is None (all tenants).
    With a session, the request is scoped to that user as usual.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if _valid_cron_secret():
            g.current_user = None
            g.user_id = None
            g.is_cron = True
            return f(*args, **kwargs)

        _authenticate()
        return f(*args, **kwargs)

    return decorated_function
