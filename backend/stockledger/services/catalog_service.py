# Overview: Service-layer operations for categories and suppliers.

from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError
from ..models import Category, Product, Supplier, Transaction
from ..validation import ModelValidationPolicy, validate_payload
from .pagination import paginate
from .tenant_service import get_owned_or_404, scoped_query


CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address"},
    required_on_create={"name"},
)


def _search(query, search: str | None, *columns):
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(*[col.ilike(like) for col in columns]))
    return query


# Categories

def _check_category_name(user_id: int, name: str, exclude_id: int | None = None) -> None:
    query = scoped_query(Category, user_id).filter(db.func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Category already exists", errors={"name": ["Category name already exists"]})


def list_categories(user_id: int, *, search: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    query = _search(scoped_query(Category, user_id), search, Category.name, Category.description)

    def serialize(category: Category) -> dict:
        data = category.to_dict()
        data["product_count"] = len(category.products)
        return data

    return paginate(query.order_by(Category.name.asc()), page, per_page, serialize=serialize)


def get_category(user_id: int, category_id: int) -> Category:
    return get_owned_or_404(Category, category_id, user_id, "Category")


def create_category(user_id: int, payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    _check_category_name(user_id, patch["name"])
    category = Category(user_id=user_id, **patch)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(user_id: int, category_id: int, payload: dict) -> Category:
    category = get_category(user_id, category_id)
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    if "name" in patch:
        _check_category_name(user_id, patch["name"], exclude_id=category.id)
    for key, value in patch.items():
        setattr(category, key, value)
    db.session.commit()
    return category


def delete_category(user_id: int, category_id: int) -> None:
    category = get_category(user_id, category_id)
    if db.session.query(Product.id).filter(Product.category_id == category.id).first() is not None:
        raise ConflictError("Category has products and cannot be deleted")
    db.session.delete(category)
    db.session.commit()


# Suppliers

def list_suppliers(user_id: int, *, search: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    query = _search(scoped_query(Supplier, user_id), search, Supplier.name, Supplier.email, Supplier.phone)
    return paginate(query.order_by(Supplier.name.asc(), Supplier.id.asc()), page, per_page)


def get_supplier(user_id: int, supplier_id: int) -> Supplier:
    return get_owned_or_404(Supplier, supplier_id, user_id, "Supplier")


def create_supplier(user_id: int, payload: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    supplier = Supplier(user_id=user_id, **patch)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(user_id: int, supplier_id: int, payload: dict) -> Supplier:
    supplier = get_supplier(user_id, supplier_id)
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    for key, value in patch.items():
        setattr(supplier, key, value)
    db.session.commit()
    return supplier


def delete_supplier(user_id: int, supplier_id: int) -> None:
    supplier = get_supplier(user_id, supplier_id)
    has_products = db.session.query(Product.id).filter(Product.supplier_id == supplier.id).first()
    has_transactions = db.session.query(Transaction.id).filter(Transaction.supplier_id == supplier.id).first()
    if has_products is not None or has_transactions is not None:
        raise ConflictError("Supplier has products or transactions and cannot be deleted")
    db.session.delete(supplier)
    db.session.commit()
