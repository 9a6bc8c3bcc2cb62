# Overview: Service-layer operations for payments; installments recorded against PENDING transactions.

from __future__ import annotations

import logging
from datetime import datetime

from ..extensions import db
from ..errors import BadRequestError, ConflictError, NotFoundError, ValidationError
from ..models import Payment, Transaction
from ..models.transactions import (
    METHOD_CASH,
    STATUS_COMPLETED,
    STATUS_PENDING,
    TYPE_SALE,
    VALID_PAYMENT_METHODS,
)
from ..validation import FieldError, coerce_int
from . import notification_service
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import apply_amount_paid, rollback_on_error
from .pagination import paginate
from .tenant_service import get_owned_or_404, scoped_query


logger = logging.getLogger(__name__)


def _parse_payment(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: dict[str, list[str]] = {}
    data: dict = {}

    for key in ("transaction_id", "amount_cents"):
        raw = payload.get(key)
        if raw is None:
            errors[key] = [f"{key} is required"]
            continue
        try:
            data[key] = coerce_int(key, raw)
        except FieldError as exc:
            errors[key] = [str(exc)]

    if "amount_cents" in data and data["amount_cents"] <= 0:
        errors["amount_cents"] = ["amount_cents must be greater than zero"]

    method = payload.get("payment_method") or METHOD_CASH
    if method not in VALID_PAYMENT_METHODS:
        errors["payment_method"] = [f"payment_method must be one of: {', '.join(sorted(VALID_PAYMENT_METHODS))}"]
    data["payment_method"] = method
    data["reference"] = (payload.get("reference") or "").strip() or None
    data["notes"] = (payload.get("notes") or "").strip() or None

    if errors:
        raise ValidationError(errors=errors)
    return data


def _load_pending_transaction(user_id: int, transaction_id: int) -> Transaction:
    txn = lock_for_update(
        scoped_query(Transaction, user_id).filter(Transaction.id == transaction_id)
    ).first()
    if txn is None:
        raise NotFoundError("Transaction not found")
    if txn.status != STATUS_PENDING:
        raise ConflictError(f"Payments can only be recorded against PENDING transactions (status is {txn.status})")
    return txn


def add_payment(user_id: int, payload: dict) -> Payment:
    """
    Record a payment and move the transaction's amount paid by the same amount.

    Completes the transaction when nothing remains to pay. SALE payments
    also raise a PAYMENT_RECEIVED notification.
    """
    data = _parse_payment(payload)

    def _op():
        txn = _load_pending_transaction(user_id, data["transaction_id"])

        if txn.type == TYPE_SALE and txn.client_id is None:
            raise BadRequestError("Transaction has no associated client")

        amount = data["amount_cents"]
        if amount > txn.remaining_amount_cents:
            raise BadRequestError(
                f"Payment amount exceeds remaining amount ({txn.remaining_amount_cents})",
                errors={"amount_cents": [f"amount_cents must be <= {txn.remaining_amount_cents}"]},
            )

        apply_amount_paid(txn, txn.amount_paid_cents + amount)
        if txn.remaining_amount_cents <= 0:
            txn.status = STATUS_COMPLETED

        payment = Payment(
            user_id=user_id,
            transaction_id=txn.id,
            client_id=txn.client_id,
            amount_cents=amount,
            payment_method=data["payment_method"],
            reference=data["reference"],
            notes=data["notes"],
            status=STATUS_COMPLETED,
        )
        db.session.add(payment)

        if txn.type == TYPE_SALE:
            notification_service.notify_payment_received(txn, amount)

        db.session.commit()
        logger.info("Recorded payment %s of %s cents on transaction %s", payment.id, amount, txn.id)
        return payment

    return run_with_retry(lambda: rollback_on_error(_op))


def delete_payment(user_id: int, payment_id: int) -> None:
    """Reverse a payment. Only allowed while the transaction is still PENDING."""
    def _op():
        payment = get_owned_or_404(Payment, payment_id, user_id, "Payment")
        txn = _load_pending_transaction(user_id, payment.transaction_id)

        apply_amount_paid(txn, txn.amount_paid_cents - payment.amount_cents)
        db.session.delete(payment)
        db.session.commit()
        logger.info("Deleted payment %s from transaction %s", payment_id, txn.id)

    return run_with_retry(lambda: rollback_on_error(_op))


def get_payment(user_id: int, payment_id: int) -> Payment:
    return get_owned_or_404(Payment, payment_id, user_id, "Payment")


def list_payments(
    user_id: int,
    *,
    transaction_id: int | None = None,
    client_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = scoped_query(Payment, user_id)
    if transaction_id is not None:
        query = query.filter(Payment.transaction_id == transaction_id)
    if client_id is not None:
        query = query.filter(Payment.client_id == client_id)
    if start is not None:
        query = query.filter(Payment.created_at >= start)
    if end is not None:
        query = query.filter(Payment.created_at <= end)
    query = query.order_by(Payment.created_at.desc(), Payment.id.desc())
    return paginate(query, page, per_page)
