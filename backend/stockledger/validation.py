from __future__ import annotations
from datetime import datetime
from stockledger.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum money amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999


class FieldError(ValueError):
    """Single-field coercion failure; collected into ValidationError.errors."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - choices: allowed values for enum-like string columns
    - non_negative: integer fields that must be >= 0
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    choices: dict[str, set[str]] = field(default_factory=dict)
    non_negative: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise FieldError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise FieldError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise FieldError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise FieldError(f"{key} must be an integer")
    if isinstance(value, float):
        raise FieldError(f"{key} must be an integer, not a decimal")
    raise FieldError(f"{key} must be an integer")


def coerce_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise FieldError(f"{key} must be an ISO-8601 datetime")
        if dt is None:
            raise FieldError(f"{key} must be an ISO-8601 datetime")
        return dt
    raise FieldError(f"{key} must be a datetime")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise FieldError(f"{col.key} must be a boolean")

    if isinstance(coltype, DateTime):
        return coerce_datetime(col.key, value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    - policy choices and non_negative rules
    Returns a cleaned patch dict with only writable fields.

    All problems are collected and raised together as one ValidationError
    whose `errors` maps field name -> list of messages.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: dict[str, list[str]] = {}

    def add(key: str, message: str) -> None:
        errors.setdefault(key, []).append(message)

    if not partial:
        for f in sorted(policy.required_on_create):
            if f not in payload:
                add(f, f"{f} is required")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields or k not in cols:
            add(k, f"Field not allowed: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in errors:
            continue
        col = cols[k]

        if raw is None:
            if not col.nullable:
                add(k, f"{k} cannot be null")
            else:
                patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except FieldError as exc:
            add(k, str(exc))
            continue

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                add(k, f"{k} cannot be blank")
                continue

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                add(k, f"{k} exceeds max length {col.type.length}")
                continue

        if k in policy.choices and val not in policy.choices[k]:
            add(k, f"{k} must be one of: {', '.join(sorted(policy.choices[k]))}")
            continue

        if k in policy.non_negative and isinstance(val, int):
            if val < 0:
                add(k, f"{k} must be >= 0")
                continue
            if k.endswith("_cents") and val > MAX_AMOUNT_CENTS:
                add(k, f"{k} cannot exceed {MAX_AMOUNT_CENTS}")
                continue

        patch[k] = val

    if errors:
        raise ValidationError(errors=errors)

    return patch
