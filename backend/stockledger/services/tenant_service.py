"""
Multi-Tenant Service: Tenant Scoping Helpers

Every authenticated request runs as one user, and every business row carries
user_id. Lookups by id always filter on the caller's user_id, so a row owned
by another tenant is indistinguishable from a missing one (404, never 403).

USAGE:
    from stockledger.services.tenant_service import get_owned_or_404

    product = get_owned_or_404(Product, product_id, g.user_id, "Product")
"""

from flask import g

from ..extensions import db
from ..errors import NotFoundError, UnauthorizedError


def get_current_user_id() -> int:
    """Raises UnauthorizedError if @require_auth did not run first."""
    user_id = getattr(g, "user_id", None)
    if user_id is None:
        raise UnauthorizedError("Tenant context not established")
    return user_id


def scoped_query(model, user_id: int):
    return db.session.query(model).filter(model.user_id == user_id)


def get_owned(model, row_id, user_id: int):
    if row_id is None:
        return None
    return scoped_query(model, user_id).filter(model.id == row_id).first()


def get_owned_or_404(model, row_id, user_id: int, label: str | None = None):
    row = get_owned(model, row_id, user_id)
    if row is None:
        raise NotFoundError(f"{label or model.__name__} not found")
    return row
