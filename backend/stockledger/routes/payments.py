# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..responses import ok, json_body, page_args, date_range_args
from ..services import ledger_service
from ..services import payment_service

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("")
@require_auth
def list_payments_route():
    """Query params: transaction_id, client_id, start, end, page, per_page."""
    start, end = date_range_args()
    page, per_page = page_args()
    data = payment_service.list_payments(
        g.user_id,
        transaction_id=request.args.get("transaction_id", type=int),
        client_id=request.args.get("client_id", type=int),
        start=start,
        end=end,
        page=page,
        per_page=per_page,
    )
    return ok(data)


@payments_bp.post("")
@require_auth
def add_payment_route():
    """
    Body: transaction_id, amount_cents, optional payment_method, reference, notes.

    Response carries the payment and the updated transaction.
    """
    payment = payment_service.add_payment(g.user_id, json_body())
    txn = ledger_service.get_transaction(g.user_id, payment.transaction_id)
    return ok({"payment": payment.to_dict(), "transaction": txn.to_dict(include_items=False)}, status=201)


@payments_bp.get("/<int:payment_id>")
@require_auth
def get_payment_route(payment_id: int):
    return ok(payment_service.get_payment(g.user_id, payment_id).to_dict())


@payments_bp.delete("/<int:payment_id>")
@require_auth
def delete_payment_route(payment_id: int):
    payment_service.delete_payment(g.user_id, payment_id)
    return ok({"id": payment_id, "deleted": True})
