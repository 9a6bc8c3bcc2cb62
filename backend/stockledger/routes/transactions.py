# Overview: Flask API routes for the transaction ledger; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..models.transactions import VALID_STATUSES, VALID_TYPES
from ..responses import ok, json_body, page_args, date_range_args, choice_arg
from ..services import ledger_service

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    Query params: type, status, client_id, supplier_id, start, end (ISO-8601),
    page, per_page. Newest first.
    """
    start, end = date_range_args()
    page, per_page = page_args()
    data = ledger_service.list_transactions(
        g.user_id,
        tx_type=choice_arg("type", VALID_TYPES),
        status=choice_arg("status", VALID_STATUSES),
        client_id=request.args.get("client_id", type=int),
        supplier_id=request.args.get("supplier_id", type=int),
        start=start,
        end=end,
        page=page,
        per_page=per_page,
    )
    return ok(data)


@transactions_bp.post("")
@require_auth
def create_transaction_route():
    """
    Body: type, items [{product_id, quantity, price_cents}], and optionally
    client_id, supplier_id, total_cents, amount_paid_cents, status,
    payment_method, payment_due_date, reference, notes.

    Returns 400 with details.items on insufficient stock; nothing is written.
    """
    txn = ledger_service.create_transaction(g.user_id, json_body())
    return ok(txn.to_dict(), status=201)


@transactions_bp.get("/<int:transaction_id>")
@require_auth
def get_transaction_route(transaction_id: int):
    return ok(ledger_service.get_transaction(g.user_id, transaction_id).to_dict())


@transactions_bp.put("/<int:transaction_id>")
@require_auth
def update_transaction_route(transaction_id: int):
    """Returns 409 once the transaction is COMPLETED or CANCELLED."""
    txn = ledger_service.update_transaction(g.user_id, transaction_id, json_body())
    return ok(txn.to_dict())
