# Overview: Flask API routes for auth operations; parses input and returns JSON responses.
"""
Authentication API routes.

Tokens are opaque bearer strings; only their SHA-256 hash is stored.
Protected routes expect `Authorization: Bearer <token>`.
"""

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, _bearer_token
from ..errors import BadRequestError, UnauthorizedError
from ..responses import ok, json_body
from ..services import auth_service
from ..services import session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _issue_session(user):
    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return {
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/register")
def register_route():
    """Self-service signup. Each new user is a fresh tenant with default settings."""
    data = json_body()
    user = auth_service.create_user(
        username=(data.get("username") or "").strip(),
        email=(data.get("email") or "").strip(),
        password=data.get("password") or "",
    )
    current_app.logger.info("Registered user %s", user.id)
    return ok(_issue_session(user), status=201)


@auth_bp.post("/login")
def login_route():
    """Accepts username or email as `username`, `email` or `identifier`."""
    data = json_body()
    identifier = data.get("username") or data.get("email") or data.get("identifier")
    password = data.get("password")
    if not identifier or not password:
        raise BadRequestError("username/email and password required")

    user = auth_service.authenticate(identifier, password)
    if not user:
        raise UnauthorizedError("Invalid credentials")

    return ok(_issue_session(user))


@auth_bp.post("/logout")
def logout_route():
    token = _bearer_token()
    if token is None:
        raise UnauthorizedError("Authorization header required")

    if not session_service.revoke_session(token, reason="User logout"):
        raise UnauthorizedError("Invalid or expired token")

    return ok({"message": "Logout successful"})


@auth_bp.get("/me")
@require_auth
def me_route():
    return ok({
        "user": g.current_user.to_dict(),
        "session": g.session_context.session.to_dict(),
    })


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """Changing the password signs out every other session of the user."""
    data = json_body()
    auth_service.change_password(
        g.current_user,
        data.get("current_password") or "",
        data.get("new_password") or "",
    )
    revoked = session_service.revoke_all_user_sessions(
        g.user_id,
        reason="Password changed",
        keep_session_id=g.session_context.session.id,
    )
    return ok({"message": "Password changed", "revoked_sessions": revoked})
