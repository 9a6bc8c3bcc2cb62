# Overview: Success envelope and query-string helpers shared by the route modules.

from __future__ import annotations

from flask import jsonify, request

from .errors import ValidationError
from .services.reporting_service import parse_range


def ok(data=None, status: int = 200, **extra):
    """{"success": true, "data": ...} plus any extra top-level keys."""
    body = {"success": True, "data": data}
    body.update(extra)
    return jsonify(body), status


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def page_args() -> tuple[int | None, int | None]:
    return request.args.get("page", type=int), request.args.get("per_page", type=int)


def date_range_args():
    """Reads ?start=&end= (ISO-8601). Either may be omitted."""
    return parse_range(request.args.get("start"), request.args.get("end"))


def flag_arg(name: str) -> bool:
    return (request.args.get(name) or "").lower() in {"1", "true", "yes"}


def choice_arg(name: str, allowed) -> str | None:
    """Optional enum filter, matched case-insensitively against upper-case choices."""
    value = request.args.get(name)
    if not value:
        return None
    value = value.upper()
    if value not in allowed:
        raise ValidationError(errors={name: [f"{name} must be one of: {', '.join(sorted(allowed))}"]})
    return value
