# Overview: Service-layer operations for the transaction ledger; keeps stock, payment state and client balances consistent.

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import update

from ..extensions import db
from ..errors import (
    ApiError,
    BadRequestError,
    InsufficientStockError,
    InternalServerError,
    NotFoundError,
    TransactionFinalizedError,
    ValidationError,
)
from ..models import Client, Product, Supplier, Transaction, TransactionItem
from ..models.transactions import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_PENDING,
    TYPE_ADJUSTMENT,
    TYPE_PURCHASE,
    TYPE_SALE,
    VALID_PAYMENT_METHODS,
    VALID_TYPES,
)
from ..validation import FieldError, MAX_AMOUNT_CENTS, coerce_datetime, coerce_int
from .concurrency import guarded_decrement, guarded_increment, lock_for_update, run_with_retry
from .pagination import paginate
from .tenant_service import get_owned_or_404, scoped_query

"""
Ledger invariants (authoritative)

- transaction.remaining_amount_cents == total_cents - amount_paid_cents.
- client.balance_cents == total_due_cents - amount_paid_cents; the three
  columns only move together, through apply_client_delta().
- A SALE never drives product quantity negative: every decrement is a
  single conditional UPDATE (quantity >= q), and the whole unit of work
  fails if any row is not updated.
- Create/update/cancel are all-or-nothing. On any error the session is
  rolled back before the error propagates.
- COMPLETED and CANCELLED are terminal.
"""

logger = logging.getLogger(__name__)

CREATE_FIELDS = {
    "type", "status", "total_cents", "amount_paid_cents", "payment_method",
    "reference", "notes", "client_id", "supplier_id", "payment_due_date", "items",
}
UPDATE_FIELDS = {"status", "amount_paid_cents", "notes", "payment_due_date"}


class _Errors:
    """Collects field -> [messages] while walking a payload."""

    def __init__(self):
        self.errors: dict[str, list[str]] = {}

    def add(self, key: str, message: str) -> None:
        self.errors.setdefault(key, []).append(message)

    def raise_if_any(self) -> None:
        if self.errors:
            raise ValidationError(errors=self.errors)


def _opt_int(payload: dict, key: str, errs: _Errors, minimum: int | None = None, label: str | None = None):
    label = label or key
    raw = payload.get(key)
    if raw is None:
        return None
    try:
        value = coerce_int(key, raw)
    except FieldError as exc:
        errs.add(label, str(exc))
        return None
    if minimum is not None and value < minimum:
        errs.add(label, f"{key} must be >= {minimum}")
        return None
    if key.endswith("_cents") and value > MAX_AMOUNT_CENTS:
        errs.add(label, f"{key} cannot exceed {MAX_AMOUNT_CENTS}")
        return None
    return value


def _opt_str(payload: dict, key: str, errs: _Errors, max_length: int | None = None):
    raw = payload.get(key)
    if raw is None:
        return None
    value = str(raw).strip()
    if max_length and len(value) > max_length:
        errs.add(key, f"{key} exceeds max length {max_length}")
        return None
    return value or None


def _opt_choice(payload: dict, key: str, allowed, errs: _Errors, default: str | None = None) -> str | None:
    raw = payload.get(key)
    if raw is None or raw == "":
        return default
    if not isinstance(raw, str) or raw not in allowed:
        errs.add(key, f"{key} must be one of: {', '.join(sorted(allowed))}")
        return None
    return raw


def _opt_datetime(payload: dict, key: str, errs: _Errors) -> datetime | None:
    raw = payload.get(key)
    if raw is None or raw == "":
        return None
    try:
        return coerce_datetime(key, raw)
    except FieldError as exc:
        errs.add(key, str(exc))
        return None


def _parse_items(raw_items, tx_type: str, errs: _Errors) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        errs.add("items", "At least one item is required")
        return []

    items = []
    for idx, raw in enumerate(raw_items):
        prefix = f"items.{idx}"
        if not isinstance(raw, dict):
            errs.add(prefix, "Item must be an object")
            continue

        for key in ("product_id", "quantity", "price_cents"):
            if raw.get(key) is None:
                errs.add(f"{prefix}.{key}", f"{key} is required")

        product_id = _opt_int(raw, "product_id", errs, label=f"{prefix}.product_id")
        price = _opt_int(raw, "price_cents", errs, minimum=0, label=f"{prefix}.price_cents")
        quantity = _opt_int(raw, "quantity", errs, label=f"{prefix}.quantity")
        if quantity is not None:
            if tx_type == TYPE_ADJUSTMENT:
                if quantity == 0:
                    errs.add(f"{prefix}.quantity", "quantity must be non-zero for ADJUSTMENT")
            elif quantity < 1:
                errs.add(f"{prefix}.quantity", "quantity must be >= 1")

        items.append({"product_id": product_id, "quantity": quantity, "price_cents": price})
    return items


def validate_create_payload(payload: dict) -> dict:
    """Normalize and validate a create payload; raises ValidationError with a field map."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errs = _Errors()
    for key in payload:
        if key not in CREATE_FIELDS:
            errs.add(key, f"Field not allowed: {key}")

    tx_type = payload.get("type")
    if not isinstance(tx_type, str) or tx_type not in VALID_TYPES:
        errs.add("type", f"type must be one of: {', '.join(sorted(VALID_TYPES))}")
        tx_type = None

    status = payload.get("status") or STATUS_PENDING
    if not isinstance(status, str) or status not in (STATUS_PENDING, STATUS_COMPLETED):
        errs.add("status", "status must be PENDING or COMPLETED on create")

    method = _opt_choice(payload, "payment_method", VALID_PAYMENT_METHODS, errs)

    data = {
        "type": tx_type,
        "status": status,
        "total_cents": _opt_int(payload, "total_cents", errs, minimum=0),
        "amount_paid_cents": _opt_int(payload, "amount_paid_cents", errs, minimum=0) or 0,
        "payment_method": method,
        "reference": _opt_str(payload, "reference", errs, max_length=128),
        "notes": _opt_str(payload, "notes", errs),
        "client_id": _opt_int(payload, "client_id", errs),
        "supplier_id": _opt_int(payload, "supplier_id", errs),
        "payment_due_date": _opt_datetime(payload, "payment_due_date", errs),
        "items": _parse_items(payload.get("items"), tx_type, errs),
    }

    if tx_type == TYPE_SALE and data["client_id"] is None and "client_id" not in errs.errors:
        errs.add("client_id", "Client is required for sale transactions")
    if tx_type == TYPE_PURCHASE and data["supplier_id"] is None and "supplier_id" not in errs.errors:
        errs.add("supplier_id", "Supplier is required for purchase transactions")

    errs.raise_if_any()
    return data


def validate_update_payload(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errs = _Errors()
    for key in payload:
        if key not in UPDATE_FIELDS:
            errs.add(key, f"Field not allowed: {key}")

    patch: dict = {}
    if "status" in payload:
        if not isinstance(payload["status"], str) or payload["status"] not in (STATUS_PENDING, STATUS_COMPLETED, STATUS_CANCELLED):
            errs.add("status", "status must be one of: CANCELLED, COMPLETED, PENDING")
        else:
            patch["status"] = payload["status"]
    if "amount_paid_cents" in payload:
        if payload["amount_paid_cents"] is None:
            errs.add("amount_paid_cents", "amount_paid_cents cannot be null")
        else:
            patch["amount_paid_cents"] = _opt_int(payload, "amount_paid_cents", errs, minimum=0)
    if "notes" in payload:
        patch["notes"] = _opt_str(payload, "notes", errs)
    if "payment_due_date" in payload:
        patch["payment_due_date"] = _opt_datetime(payload, "payment_due_date", errs)

    if patch.get("status") == STATUS_CANCELLED and "amount_paid_cents" in patch:
        errs.add("amount_paid_cents", "amount_paid_cents cannot be changed while cancelling")

    errs.raise_if_any()
    return patch


# ---------------------------------------------------------------------------
# Ledger primitives
# ---------------------------------------------------------------------------

def apply_client_delta(client_id: int, user_id: int, total_due_delta: int, amount_paid_delta: int) -> None:
    """
    The only write path for client aggregates.

    Applies the deltas as one relative UPDATE so concurrent transactions for
    the same client compose instead of overwriting each other:

        total_due   += total_due_delta
        amount_paid += amount_paid_delta
        balance     += total_due_delta - amount_paid_delta
    """
    if total_due_delta == 0 and amount_paid_delta == 0:
        return

    result = db.session.execute(
        update(Client)
        .where(Client.id == client_id, Client.user_id == user_id)
        .values(
            total_due_cents=Client.total_due_cents + total_due_delta,
            amount_paid_cents=Client.amount_paid_cents + amount_paid_delta,
            balance_cents=Client.balance_cents + (total_due_delta - amount_paid_delta),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise NotFoundError("Client not found")


def _stock_deltas(tx_type: str, items) -> dict[int, int]:
    """Net signed quantity change per product for a transaction's lines."""
    deltas: dict[int, int] = {}
    for item in items:
        product_id = item["product_id"] if isinstance(item, dict) else item.product_id
        quantity = item["quantity"] if isinstance(item, dict) else item.quantity
        if tx_type == TYPE_SALE:
            change = -quantity
        else:
            change = quantity
        deltas[product_id] = deltas.get(product_id, 0) + change
    return deltas


def _shortfalls(user_id: int, deltas: dict[int, int]) -> list[dict]:
    """Products whose current quantity cannot absorb their (negative) delta."""
    needed = {pid: -d for pid, d in deltas.items() if d < 0}
    if not needed:
        return []
    products = scoped_query(Product, user_id).filter(Product.id.in_(needed.keys())).all()
    short = []
    for product in sorted(products, key=lambda p: p.id):
        if product.quantity < needed[product.id]:
            short.append({
                "product_id": product.id,
                "name": product.name,
                "requested": needed[product.id],
                "available": product.quantity,
            })
    return short


def apply_stock_deltas(user_id: int, deltas: dict[int, int]) -> None:
    """
    Apply signed per-product quantity changes.

    Decrements are conditional; if any decrement matches no row (stock moved
    underneath us), InsufficientStockError is raised and the caller's unit
    of work must be rolled back.
    """
    failed: dict[int, int] = {}
    for product_id in sorted(deltas):
        delta = deltas[product_id]
        if delta < 0:
            if not guarded_decrement(Product, "quantity", product_id, -delta, user_id=user_id):
                failed[product_id] = delta
        elif delta > 0:
            if not guarded_increment(Product, "quantity", product_id, delta, user_id=user_id):
                raise NotFoundError(f"Product {product_id} not found")

    if failed:
        # Session state is stale after the bulk UPDATEs; re-read for the report.
        db.session.expire_all()
        raise InsufficientStockError(details={"items": _shortfalls(user_id, failed)})


def _load_products(user_id: int, product_ids) -> dict[int, Product]:
    wanted = set(product_ids)
    products = scoped_query(Product, user_id).filter(Product.id.in_(wanted)).all()
    found = {p.id: p for p in products}
    missing = sorted(wanted - set(found))
    if missing:
        raise BadRequestError(
            "One or more products not found",
            details={"missing_product_ids": missing},
        )
    return found


def apply_amount_paid(txn: Transaction, new_amount_paid: int) -> int:
    """
    Move a transaction to a new amount_paid and mirror the change on its client.

    Shared by direct updates and payments. Returns the amount_paid delta.
    """
    if new_amount_paid < 0 or new_amount_paid > txn.total_cents:
        raise ValidationError(
            "Amount paid must be between 0 and the transaction total",
            errors={"amount_paid_cents": [f"amount_paid_cents must be between 0 and {txn.total_cents}"]},
        )

    old_amount_paid = txn.amount_paid_cents
    old_remaining = txn.remaining_amount_cents
    new_remaining = txn.total_cents - new_amount_paid

    amount_paid_delta = new_amount_paid - old_amount_paid
    remaining_delta = old_remaining - new_remaining
    if amount_paid_delta != remaining_delta:
        logger.error(
            "Payment delta mismatch on transaction %s: paid_delta=%s remaining_delta=%s",
            txn.id, amount_paid_delta, remaining_delta,
        )
        raise InternalServerError(
            "Transaction payment state is inconsistent",
            details={"amount_paid_delta": amount_paid_delta, "remaining_delta": remaining_delta},
        )

    txn.amount_paid_cents = new_amount_paid
    txn.remaining_amount_cents = new_remaining

    if txn.type == TYPE_SALE and txn.client_id is not None:
        apply_client_delta(txn.client_id, txn.user_id, 0, amount_paid_delta)

    return amount_paid_delta


def rollback_on_error(func):
    """Run func; on an ApiError roll the unit of work back before re-raising."""
    try:
        return func()
    except ApiError:
        db.session.rollback()
        raise


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def create_transaction(user_id: int, payload: dict) -> Transaction:
    """
    Record a SALE, PURCHASE or ADJUSTMENT.

    One unit of work: insert the transaction and its items, move each
    product's stock, and for a SALE with a client, charge the client.
    """
    data = validate_create_payload(payload)
    tx_type = data["type"]

    def _op():
        if data["client_id"] is not None:
            get_owned_or_404(Client, data["client_id"], user_id, "Client")
        if data["supplier_id"] is not None:
            get_owned_or_404(Supplier, data["supplier_id"], user_id, "Supplier")

        _load_products(user_id, [i["product_id"] for i in data["items"]])

        total = data["total_cents"]
        if total is None:
            total = sum(abs(i["quantity"]) * i["price_cents"] for i in data["items"])
        amount_paid = data["amount_paid_cents"]
        if amount_paid > total:
            raise BadRequestError(
                "Amount paid cannot exceed the transaction total",
                errors={"amount_paid_cents": [f"amount_paid_cents must be <= {total}"]},
            )

        deltas = _stock_deltas(tx_type, data["items"])
        short = _shortfalls(user_id, deltas)
        if short:
            raise InsufficientStockError(details={"items": short})

        txn = Transaction(
            user_id=user_id,
            type=tx_type,
            status=data["status"],
            total_cents=total,
            amount_paid_cents=amount_paid,
            remaining_amount_cents=total - amount_paid,
            payment_method=data["payment_method"],
            reference=data["reference"],
            notes=data["notes"],
            client_id=data["client_id"],
            supplier_id=data["supplier_id"],
            payment_due_date=data["payment_due_date"],
        )
        for item in data["items"]:
            txn.items.append(TransactionItem(
                product_id=item["product_id"],
                quantity=item["quantity"],
                price_cents=item["price_cents"],
            ))
        db.session.add(txn)
        db.session.flush()

        apply_stock_deltas(user_id, deltas)

        if tx_type == TYPE_SALE and txn.client_id is not None:
            apply_client_delta(txn.client_id, user_id, total, amount_paid)

        db.session.commit()
        logger.info("Created %s transaction %s for user %s (total_cents=%s)", tx_type, txn.id, user_id, total)
        return txn

    return run_with_retry(lambda: rollback_on_error(_op))


def _cancel(txn: Transaction) -> None:
    reverse = {pid: -d for pid, d in _stock_deltas(txn.type, txn.items).items()}
    apply_stock_deltas(txn.user_id, reverse)

    if txn.type == TYPE_SALE and txn.client_id is not None:
        apply_client_delta(txn.client_id, txn.user_id, -txn.total_cents, -txn.amount_paid_cents)

    txn.status = STATUS_CANCELLED


def update_transaction(user_id: int, transaction_id: int, payload: dict) -> Transaction:
    """
    Edit a PENDING transaction: amount paid, notes, due date, or a status
    transition to COMPLETED or CANCELLED.

    Raises TransactionFinalizedError when the transaction is already terminal.
    A concurrent writer that wins the version race makes this call retry;
    the retry re-reads the row and sees the terminal state.
    """
    patch = validate_update_payload(payload)

    def _op():
        txn = lock_for_update(
            scoped_query(Transaction, user_id).filter(Transaction.id == transaction_id)
        ).first()
        if txn is None:
            raise NotFoundError("Transaction not found")

        if txn.is_final:
            raise TransactionFinalizedError("Transaction already finalized")

        new_status = patch.get("status", txn.status)

        if new_status == STATUS_CANCELLED:
            _cancel(txn)
        else:
            if "amount_paid_cents" in patch:
                apply_amount_paid(txn, patch["amount_paid_cents"])
            txn.status = new_status

        if "notes" in patch:
            txn.notes = patch["notes"]
        if "payment_due_date" in patch:
            txn.payment_due_date = patch["payment_due_date"]

        db.session.commit()
        logger.info("Updated transaction %s for user %s (status=%s)", txn.id, user_id, txn.status)
        return txn

    return run_with_retry(lambda: rollback_on_error(_op))


def get_transaction(user_id: int, transaction_id: int) -> Transaction:
    return get_owned_or_404(Transaction, transaction_id, user_id, "Transaction")


def list_transactions(
    user_id: int,
    *,
    tx_type: str | None = None,
    status: str | None = None,
    client_id: int | None = None,
    supplier_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = scoped_query(Transaction, user_id)
    if tx_type:
        query = query.filter(Transaction.type == tx_type)
    if status:
        query = query.filter(Transaction.status == status)
    if client_id is not None:
        query = query.filter(Transaction.client_id == client_id)
    if supplier_id is not None:
        query = query.filter(Transaction.supplier_id == supplier_id)
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at <= end)

    query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
    return paginate(query, page, per_page)
