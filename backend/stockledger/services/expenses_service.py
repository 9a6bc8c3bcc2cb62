# Overview: Service-layer operations for expenses and expense categories.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import Expense, ExpenseCategory
from ..models.transactions import VALID_PAYMENT_METHODS, VALID_STATUSES
from ..validation import ModelValidationPolicy, validate_payload
from .pagination import paginate
from .tenant_service import get_owned_or_404, scoped_query


EXPENSE_CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"category_id", "amount_cents", "description", "status", "payment_method", "reference", "notes"},
    required_on_create={"category_id", "amount_cents", "description", "payment_method"},
    choices={"status": VALID_STATUSES, "payment_method": VALID_PAYMENT_METHODS},
    non_negative={"amount_cents"},
)


# Expense categories

def _check_category_name(user_id: int, name: str, exclude_id: int | None = None) -> None:
    query = scoped_query(ExpenseCategory, user_id).filter(db.func.lower(ExpenseCategory.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(ExpenseCategory.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Expense category already exists", errors={"name": ["Expense category name already exists"]})


def list_expense_categories(user_id: int, *, search: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    query = scoped_query(ExpenseCategory, user_id)
    if search:
        query = query.filter(ExpenseCategory.name.ilike(f"%{search.strip()}%"))
    return paginate(query.order_by(ExpenseCategory.name.asc()), page, per_page)


def get_expense_category(user_id: int, category_id: int) -> ExpenseCategory:
    return get_owned_or_404(ExpenseCategory, category_id, user_id, "Expense category")


def create_expense_category(user_id: int, payload: dict) -> ExpenseCategory:
    patch = validate_payload(model=ExpenseCategory, payload=payload, policy=EXPENSE_CATEGORY_POLICY, partial=False)
    _check_category_name(user_id, patch["name"])
    category = ExpenseCategory(user_id=user_id, **patch)
    db.session.add(category)
    db.session.commit()
    return category


def update_expense_category(user_id: int, category_id: int, payload: dict) -> ExpenseCategory:
    category = get_expense_category(user_id, category_id)
    patch = validate_payload(model=ExpenseCategory, payload=payload, policy=EXPENSE_CATEGORY_POLICY, partial=True)
    if "name" in patch:
        _check_category_name(user_id, patch["name"], exclude_id=category.id)
    for key, value in patch.items():
        setattr(category, key, value)
    db.session.commit()
    return category


def delete_expense_category(user_id: int, category_id: int) -> None:
    category = get_expense_category(user_id, category_id)
    if db.session.query(Expense.id).filter(Expense.category_id == category.id).first() is not None:
        raise ConflictError("Expense category has expenses and cannot be deleted")
    db.session.delete(category)
    db.session.commit()


# Expenses

def _check_amount(patch: dict) -> None:
    if "amount_cents" in patch and patch["amount_cents"] <= 0:
        raise ValidationError(errors={"amount_cents": ["Amount must be greater than zero"]})


def list_expenses(
    user_id: int,
    *,
    search: str | None = None,
    category_id: int | None = None,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = scoped_query(Expense, user_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Expense.description.ilike(like),
            Expense.notes.ilike(like),
            Expense.reference.ilike(like),
        ))
    if category_id is not None:
        query = query.filter(Expense.category_id == category_id)
    if status:
        query = query.filter(Expense.status == status)
    if start is not None:
        query = query.filter(Expense.created_at >= start)
    if end is not None:
        query = query.filter(Expense.created_at <= end)
    query = query.order_by(Expense.created_at.desc(), Expense.id.desc())
    return paginate(query, page, per_page)


def get_expense(user_id: int, expense_id: int) -> Expense:
    return get_owned_or_404(Expense, expense_id, user_id, "Expense")


def create_expense(user_id: int, payload: dict) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    _check_amount(patch)
    get_expense_category(user_id, patch["category_id"])
    expense = Expense(user_id=user_id, **patch)
    db.session.add(expense)
    db.session.commit()
    return expense


def update_expense(user_id: int, expense_id: int, payload: dict) -> Expense:
    expense = get_expense(user_id, expense_id)
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    _check_amount(patch)
    if "category_id" in patch:
        get_expense_category(user_id, patch["category_id"])
    for key, value in patch.items():
        setattr(expense, key, value)
    db.session.commit()
    return expense


def delete_expense(user_id: int, expense_id: int) -> None:
    expense = get_expense(user_id, expense_id)
    db.session.delete(expense)
    db.session.commit()
