# Overview: Typed API errors and their translation to the JSON response envelope.

"""
Error taxonomy shared by services and routes.

Services raise these at the point of detection. The handlers registered by
register_error_handlers() turn them into:

    {"success": false, "error": "<message>", "errors": {...}, "details": {...}}

Anything that is not an ApiError is logged and collapsed to a generic 500.
"""

from __future__ import annotations

from flask import Flask, current_app, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from .extensions import db


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        errors: dict[str, list[str]] | None = None,
        details: dict | None = None,
    ):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors
        self.details = details

    def to_dict(self) -> dict:
        body: dict = {"success": False, "error": self.message}
        if self.errors:
            body["errors"] = self.errors
        if self.details:
            body["details"] = self.details
        return body


class BadRequestError(ApiError):
    status_code = 400
    default_message = "Bad request"


class UnauthorizedError(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Conflict"


class InternalServerError(ApiError):
    status_code = 500
    default_message = "Internal server error"


class ValidationError(BadRequestError):
    """400-level input problem with a per-field error map."""

    default_message = "Validation failed"


class InsufficientStockError(BadRequestError):
    """A SALE (or stock-reducing change) would drive a product negative."""

    default_message = "Insufficient stock for one or more products"


class TransactionFinalizedError(ConflictError):
    """COMPLETED and CANCELLED transactions accept no further updates."""


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        db.session.rollback()
        if exc.status_code >= 500:
            current_app.logger.error("API error: %s", exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc: IntegrityError):
        db.session.rollback()
        current_app.logger.warning("Integrity error: %s", exc.orig)
        return jsonify({"success": False, "error": "Duplicate or conflicting record"}), 409

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        return jsonify({"success": False, "error": exc.description or exc.name}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        db.session.rollback()
        current_app.logger.exception("Unhandled error")
        return jsonify({"success": False, "error": "Internal server error"}), 500
