# Overview: Flask API routes for products operations; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..responses import ok, json_body, page_args, flag_arg
from ..services import products_service
from ..services.bulk_service import bulk_delete, parse_ids

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    Query params: search (name or SKU), category_id, supplier_id,
    low_stock=true, page, per_page.
    """
    page, per_page = page_args()
    data = products_service.list_products(
        g.user_id,
        search=request.args.get("search"),
        category_id=request.args.get("category_id", type=int),
        supplier_id=request.args.get("supplier_id", type=int),
        low_stock=flag_arg("low_stock"),
        page=page,
        per_page=per_page,
    )
    return ok(data)


@products_bp.post("")
@require_auth
def create_product_route():
    product = products_service.create_product(g.user_id, json_body())
    return ok(product.to_dict(), status=201)


@products_bp.get("/stock-alerts")
@require_auth
def stock_alerts_route():
    """Products below their minimum quantity. Read-only; creates no notifications."""
    products = products_service.stock_alerts(g.user_id)
    return ok({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.post("/bulk-delete")
@require_auth
def bulk_delete_products_route():
    ids = parse_ids(json_body())
    return ok(bulk_delete(g.user_id, ids, products_service.delete_product))


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    return ok(products_service.get_product(g.user_id, product_id).to_dict())


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    product = products_service.update_product(g.user_id, product_id, json_body())
    return ok(product.to_dict())


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    products_service.delete_product(g.user_id, product_id)
    return ok({"id": product_id, "deleted": True})
