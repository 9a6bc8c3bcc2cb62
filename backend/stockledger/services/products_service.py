# Overview: Service-layer operations for products; tenant-scoped catalog CRUD and stock alerts.

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import ConflictError
from ..models import Category, Product, Supplier, TransactionItem
from ..models.inventory import VALID_UNITS
from ..validation import ModelValidationPolicy, validate_payload
from .pagination import paginate
from .tenant_service import get_owned_or_404, scoped_query


logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "price_cents", "quantity", "min_quantity",
        "unit", "category_id", "supplier_id",
    },
    required_on_create={"sku", "name", "price_cents"},
    choices={"unit": VALID_UNITS},
    non_negative={"price_cents", "quantity", "min_quantity"},
)


def _check_references(user_id: int, patch: dict) -> None:
    if patch.get("category_id") is not None:
        get_owned_or_404(Category, patch["category_id"], user_id, "Category")
    if patch.get("supplier_id") is not None:
        get_owned_or_404(Supplier, patch["supplier_id"], user_id, "Supplier")


def _check_sku(user_id: int, sku: str, exclude_id: int | None = None) -> None:
    query = scoped_query(Product, user_id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"SKU {sku!r} already exists", errors={"sku": ["SKU already exists"]})


def list_products(
    user_id: int,
    *,
    search: str | None = None,
    category_id: int | None = None,
    supplier_id: int | None = None,
    low_stock: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = scoped_query(Product, user_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(like), Product.sku.ilike(like)))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)
    if low_stock:
        query = query.filter(Product.quantity < Product.min_quantity)
    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page, per_page)


def get_product(user_id: int, product_id: int) -> Product:
    return get_owned_or_404(Product, product_id, user_id, "Product")


def create_product(user_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    _check_references(user_id, patch)
    _check_sku(user_id, patch["sku"])

    product = Product(user_id=user_id, **patch)
    db.session.add(product)
    db.session.commit()
    logger.info("Created product %s (sku=%s) for user %s", product.id, product.sku, user_id)
    return product


def update_product(user_id: int, product_id: int, payload: dict) -> Product:
    product = get_product(user_id, product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    _check_references(user_id, patch)
    if "sku" in patch and patch["sku"] != product.sku:
        _check_sku(user_id, patch["sku"], exclude_id=product.id)

    for key, value in patch.items():
        setattr(product, key, value)
    db.session.commit()
    return product


def delete_product(user_id: int, product_id: int) -> None:
    product = get_product(user_id, product_id)
    used = db.session.query(TransactionItem.id).filter(TransactionItem.product_id == product.id).first()
    if used is not None:
        raise ConflictError("Product is referenced by transactions and cannot be deleted")
    db.session.delete(product)
    db.session.commit()


def stock_alerts(user_id: int) -> list[Product]:
    """Products strictly below their minimum quantity, emptiest first."""
    return (
        scoped_query(Product, user_id)
        .filter(Product.quantity < Product.min_quantity)
        .order_by((Product.quantity - Product.min_quantity).asc(), Product.id.asc())
        .all()
    )
