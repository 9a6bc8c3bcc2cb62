# Overview: Read-only dashboard aggregates over the tenant's ledger.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..errors import ValidationError
from ..models import Category, Client, Expense, Product, Supplier, Transaction
from ..models.transactions import (
    STATUS_CANCELLED,
    STATUS_PENDING,
    TYPE_PURCHASE,
    TYPE_SALE,
)
from .tenant_service import scoped_query
from stockledger.time_utils import start_of_day, to_utc_z, utcnow


def _count(model, user_id: int, *criteria) -> int:
    return scoped_query(model, user_id).filter(*criteria).count()


def _sum(column, model, user_id: int, *criteria) -> int:
    value = (
        db.session.query(func.coalesce(func.sum(column), 0))
        .filter(model.user_id == user_id, *criteria)
        .scalar()
    )
    return int(value or 0)


def dashboard_stats(
    user_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    recent_limit: int = 5,
) -> dict:
    """
    Dashboard aggregates for [start, end]. Defaults to start of today .. now.

    Range sums exclude CANCELLED transactions and expenses. Pending
    receivables/payables and client balances are current, not ranged.
    """
    end = end or utcnow()
    start = start or start_of_day(end)
    if start > end:
        raise ValidationError(errors={"start": ["start must not be after end"]})

    in_range = (
        Transaction.created_at >= start,
        Transaction.created_at <= end,
        Transaction.status != STATUS_CANCELLED,
    )

    total_sales = _sum(Transaction.total_cents, Transaction, user_id, Transaction.type == TYPE_SALE, *in_range)
    total_purchases = _sum(Transaction.total_cents, Transaction, user_id, Transaction.type == TYPE_PURCHASE, *in_range)
    total_received = _sum(Transaction.amount_paid_cents, Transaction, user_id, Transaction.type == TYPE_SALE, *in_range)
    total_paid = _sum(Transaction.amount_paid_cents, Transaction, user_id, Transaction.type == TYPE_PURCHASE, *in_range)

    pending_receivables = _sum(
        Transaction.remaining_amount_cents, Transaction, user_id,
        Transaction.type == TYPE_SALE, Transaction.status == STATUS_PENDING,
    )
    pending_payables = _sum(
        Transaction.remaining_amount_cents, Transaction, user_id,
        Transaction.type == TYPE_PURCHASE, Transaction.status == STATUS_PENDING,
    )

    total_expenses = _sum(
        Expense.amount_cents, Expense, user_id,
        Expense.created_at >= start,
        Expense.created_at <= end,
        Expense.status != STATUS_CANCELLED,
    )

    stock_value = _sum(Product.price_cents * Product.quantity, Product, user_id)

    clients_with_balance = _count(Client, user_id, Client.balance_cents != 0)
    total_client_balance = _sum(Client.balance_cents, Client, user_id)

    recent = (
        scoped_query(Transaction, user_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(recent_limit)
        .all()
    )

    profit = total_sales - total_purchases

    return {
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "total_products": _count(Product, user_id),
        "low_stock_products": _count(Product, user_id, Product.quantity < Product.min_quantity),
        "total_suppliers": _count(Supplier, user_id),
        "total_categories": _count(Category, user_id),
        "total_clients": _count(Client, user_id),
        "stock_value_cents": stock_value,
        "total_sales_cents": total_sales,
        "total_purchases_cents": total_purchases,
        "total_received_cents": total_received,
        "total_paid_cents": total_paid,
        "pending_receivables_cents": pending_receivables,
        "pending_payables_cents": pending_payables,
        "profit_cents": profit,
        "total_expenses_cents": total_expenses,
        "net_profit_cents": profit - total_expenses,
        "clients_with_balance": clients_with_balance,
        "total_client_balance_cents": total_client_balance,
        "recent_transactions": [t.to_dict(include_items=False) for t in recent],
    }
