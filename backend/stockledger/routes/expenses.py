# Overview: Flask API routes for expenses and expense categories; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..models.transactions import VALID_STATUSES
from ..responses import ok, json_body, page_args, date_range_args, choice_arg
from ..services import expenses_service
from ..services.bulk_service import bulk_delete, parse_ids

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api")


# Expense categories

@expenses_bp.get("/expense-categories")
@require_auth
def list_expense_categories_route():
    page, per_page = page_args()
    data = expenses_service.list_expense_categories(
        g.user_id, search=request.args.get("search"), page=page, per_page=per_page
    )
    return ok(data)


@expenses_bp.post("/expense-categories")
@require_auth
def create_expense_category_route():
    category = expenses_service.create_expense_category(g.user_id, json_body())
    return ok(category.to_dict(), status=201)


@expenses_bp.post("/expense-categories/bulk-delete")
@require_auth
def bulk_delete_expense_categories_route():
    ids = parse_ids(json_body())
    return ok(bulk_delete(g.user_id, ids, expenses_service.delete_expense_category))


@expenses_bp.get("/expense-categories/<int:category_id>")
@require_auth
def get_expense_category_route(category_id: int):
    return ok(expenses_service.get_expense_category(g.user_id, category_id).to_dict())


@expenses_bp.put("/expense-categories/<int:category_id>")
@require_auth
def update_expense_category_route(category_id: int):
    category = expenses_service.update_expense_category(g.user_id, category_id, json_body())
    return ok(category.to_dict())


@expenses_bp.delete("/expense-categories/<int:category_id>")
@require_auth
def delete_expense_category_route(category_id: int):
    expenses_service.delete_expense_category(g.user_id, category_id)
    return ok({"id": category_id, "deleted": True})


# Expenses

@expenses_bp.get("/expenses")
@require_auth
def list_expenses_route():
    """Query params: search, category_id, status, start, end, page, per_page."""
    start, end = date_range_args()
    page, per_page = page_args()
    data = expenses_service.list_expenses(
        g.user_id,
        search=request.args.get("search"),
        category_id=request.args.get("category_id", type=int),
        status=choice_arg("status", VALID_STATUSES),
        start=start,
        end=end,
        page=page,
        per_page=per_page,
    )
    return ok(data)


@expenses_bp.post("/expenses")
@require_auth
def create_expense_route():
    expense = expenses_service.create_expense(g.user_id, json_body())
    return ok(expense.to_dict(), status=201)


@expenses_bp.post("/expenses/bulk-delete")
@require_auth
def bulk_delete_expenses_route():
    ids = parse_ids(json_body())
    return ok(bulk_delete(g.user_id, ids, expenses_service.delete_expense))


@expenses_bp.get("/expenses/<int:expense_id>")
@require_auth
def get_expense_route(expense_id: int):
    return ok(expenses_service.get_expense(g.user_id, expense_id).to_dict())


@expenses_bp.put("/expenses/<int:expense_id>")
@require_auth
def update_expense_route(expense_id: int):
    expense = expenses_service.update_expense(g.user_id, expense_id, json_body())
    return ok(expense.to_dict())


@expenses_bp.delete("/expenses/<int:expense_id>")
@require_auth
def delete_expense_route(expense_id: int):
    expenses_service.delete_expense(g.user_id, expense_id)
    return ok({"id": expense_id, "deleted": True})
