# Overview: Per-item bulk deletion with success/failure reporting.

from __future__ import annotations

import logging
from typing import Callable

from ..extensions import db
from ..errors import ApiError, ValidationError
from ..validation import FieldError, coerce_int


logger = logging.getLogger(__name__)

MAX_BULK_IDS = 200


def parse_ids(payload: dict) -> list[int]:
    ids = payload.get("ids") if isinstance(payload, dict) else None
    if not isinstance(ids, list) or not ids:
        raise ValidationError(errors={"ids": ["ids must be a non-empty list"]})
    if len(ids) > MAX_BULK_IDS:
        raise ValidationError(errors={"ids": [f"At most {MAX_BULK_IDS} ids per request"]})
    try:
        return [coerce_int("ids", raw) for raw in ids]
    except FieldError as exc:
        raise ValidationError(errors={"ids": [str(exc)]})


def bulk_delete(user_id: int, ids: list[int], delete_one: Callable[[int, int], None]) -> dict:
    """
    Delete each id independently. One item failing (missing, still in use)
    does not stop the rest; each failure is reported with its message.
    """
    deleted: list[int] = []
    failures: list[dict] = []

    for row_id in ids:
        try:
            delete_one(user_id, row_id)
            deleted.append(row_id)
        except ApiError as exc:
            db.session.rollback()
            failures.append({"id": row_id, "error": exc.message, "status": exc.status_code})

    if failures:
        logger.info("Bulk delete for user %s: %s deleted, %s failed", user_id, len(deleted), len(failures))

    return {
        "requested": len(ids),
        "success_count": len(deleted),
        "failure_count": len(failures),
        "deleted_ids": deleted,
        "failures": failures,
    }
