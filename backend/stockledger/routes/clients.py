# Overview: Flask API routes for clients operations; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..responses import ok, json_body, page_args, flag_arg
from ..services import clients_service
from ..services.bulk_service import bulk_delete, parse_ids

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
def list_clients_route():
    """Query params: search (name, email, phone), with_balance=true, page, per_page."""
    page, per_page = page_args()
    data = clients_service.list_clients(
        g.user_id,
        search=request.args.get("search"),
        with_balance=flag_arg("with_balance"),
        page=page,
        per_page=per_page,
    )
    return ok(data)


@clients_bp.post("")
@require_auth
def create_client_route():
    """Opening total_due_cents / amount_paid_cents are accepted on create only."""
    client = clients_service.create_client(g.user_id, json_body())
    return ok(client.to_dict(), status=201)


@clients_bp.post("/bulk-delete")
@require_auth
def bulk_delete_clients_route():
    ids = parse_ids(json_body())
    return ok(bulk_delete(g.user_id, ids, clients_service.delete_client))


@clients_bp.get("/<int:client_id>")
@require_auth
def get_client_route(client_id: int):
    return ok(clients_service.get_client(g.user_id, client_id).to_dict())


@clients_bp.put("/<int:client_id>")
@require_auth
def update_client_route(client_id: int):
    # Balance fields are derived from the ledger and rejected here
    client = clients_service.update_client(g.user_id, client_id, json_body())
    return ok(client.to_dict())


@clients_bp.delete("/<int:client_id>")
@require_auth
def delete_client_route(client_id: int):
    clients_service.delete_client(g.user_id, client_id)
    return ok({"id": client_id, "deleted": True})
