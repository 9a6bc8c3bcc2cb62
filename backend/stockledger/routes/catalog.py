# Overview: Flask API routes for product categories and suppliers; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..responses import ok, json_body, page_args
from ..services import catalog_service
from ..services.bulk_service import bulk_delete, parse_ids

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


# Categories

@catalog_bp.get("/categories")
@require_auth
def list_categories_route():
    page, per_page = page_args()
    data = catalog_service.list_categories(
        g.user_id, search=request.args.get("search"), page=page, per_page=per_page
    )
    return ok(data)


@catalog_bp.post("/categories")
@require_auth
def create_category_route():
    category = catalog_service.create_category(g.user_id, json_body())
    return ok(category.to_dict(), status=201)


@catalog_bp.post("/categories/bulk-delete")
@require_auth
def bulk_delete_categories_route():
    ids = parse_ids(json_body())
    return ok(bulk_delete(g.user_id, ids, catalog_service.delete_category))


@catalog_bp.get("/categories/<int:category_id>")
@require_auth
def get_category_route(category_id: int):
    return ok(catalog_service.get_category(g.user_id, category_id).to_dict())


@catalog_bp.put("/categories/<int:category_id>")
@require_auth
def update_category_route(category_id: int):
    category = catalog_service.update_category(g.user_id, category_id, json_body())
    return ok(category.to_dict())


@catalog_bp.delete("/categories/<int:category_id>")
@require_auth
def delete_category_route(category_id: int):
    catalog_service.delete_category(g.user_id, category_id)
    return ok({"id": category_id, "deleted": True})


# Suppliers

@catalog_bp.get("/suppliers")
@require_auth
def list_suppliers_route():
    page, per_page = page_args()
    data = catalog_service.list_suppliers(
        g.user_id, search=request.args.get("search"), page=page, per_page=per_page
    )
    return ok(data)


@catalog_bp.post("/suppliers")
@require_auth
def create_supplier_route():
    supplier = catalog_service.create_supplier(g.user_id, json_body())
    return ok(supplier.to_dict(), status=201)


@catalog_bp.post("/suppliers/bulk-delete")
@require_auth
def bulk_delete_suppliers_route():
    ids = parse_ids(json_body())
    return ok(bulk_delete(g.user_id, ids, catalog_service.delete_supplier))


@catalog_bp.get("/suppliers/<int:supplier_id>")
@require_auth
def get_supplier_route(supplier_id: int):
    return ok(catalog_service.get_supplier(g.user_id, supplier_id).to_dict())


@catalog_bp.put("/suppliers/<int:supplier_id>")
@require_auth
def update_supplier_route(supplier_id: int):
    supplier = catalog_service.update_supplier(g.user_id, supplier_id, json_body())
    return ok(supplier.to_dict())


@catalog_bp.delete("/suppliers/<int:supplier_id>")
@require_auth
def delete_supplier_route(supplier_id: int):
    catalog_service.delete_supplier(g.user_id, supplier_id)
    return ok({"id": supplier_id, "deleted": True})
