# Overview: Service-layer operations for clients; CRUD around the stored running balance.

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import Client, Payment, Transaction
from ..validation import ModelValidationPolicy, validate_payload
from .auth_service import EMAIL_RE
from .ledger_service import apply_client_delta
from .pagination import paginate
from .tenant_service import get_owned_or_404, scoped_query


logger = logging.getLogger(__name__)

CLIENT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "notes", "total_due_cents", "amount_paid_cents"},
    required_on_create={"name"},
    non_negative={"total_due_cents", "amount_paid_cents"},
)

# Aggregates only move through the ledger after creation.
CLIENT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "notes"},
)


def _normalize_email(user_id: int, patch: dict, exclude_id: int | None = None) -> None:
    if not patch.get("email"):
        if "email" in patch:
            patch["email"] = None
        return

    email = patch["email"].lower()
    if not EMAIL_RE.match(email):
        raise ValidationError(errors={"email": ["Invalid email address"]})

    query = scoped_query(Client, user_id).filter(db.func.lower(Client.email) == email)
    if exclude_id is not None:
        query = query.filter(Client.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("A client with this email already exists", errors={"email": ["Email already exists"]})
    patch["email"] = email


def list_clients(
    user_id: int,
    *,
    search: str | None = None,
    with_balance: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = scoped_query(Client, user_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Client.name.ilike(like), Client.email.ilike(like), Client.phone.ilike(like)))
    if with_balance:
        query = query.filter(Client.balance_cents != 0)
    query = query.order_by(Client.name.asc(), Client.id.asc())
    return paginate(query, page, per_page)


def get_client(user_id: int, client_id: int) -> Client:
    return get_owned_or_404(Client, client_id, user_id, "Client")


def create_client(user_id: int, payload: dict) -> Client:
    """
    Create a client, optionally with an opening total due / amount paid.

    The opening amounts are applied through apply_client_delta like any
    other ledger movement, so balance is derived rather than accepted.
    """
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_CREATE_POLICY, partial=False)
    _normalize_email(user_id, patch)

    opening_due = patch.pop("total_due_cents", None) or 0
    opening_paid = patch.pop("amount_paid_cents", None) or 0

    client = Client(user_id=user_id, total_due_cents=0, amount_paid_cents=0, balance_cents=0, **patch)
    db.session.add(client)
    db.session.flush()

    apply_client_delta(client.id, user_id, opening_due, opening_paid)
    db.session.commit()
    logger.info("Created client %s for user %s", client.id, user_id)
    return client


def update_client(user_id: int, client_id: int, payload: dict) -> Client:
    client = get_client(user_id, client_id)
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_UPDATE_POLICY, partial=True)
    if "email" in patch:
        _normalize_email(user_id, patch, exclude_id=client.id)
    for key, value in patch.items():
        setattr(client, key, value)
    db.session.commit()
    return client


def delete_client(user_id: int, client_id: int) -> None:
    client = get_client(user_id, client_id)
    has_transactions = db.session.query(Transaction.id).filter(Transaction.client_id == client.id).first()
    has_payments = db.session.query(Payment.id).filter(Payment.client_id == client.id).first()
    if has_transactions is not None or has_payments is not None:
        raise ConflictError("Client has transactions and cannot be deleted")
    db.session.delete(client)
    db.session.commit()
