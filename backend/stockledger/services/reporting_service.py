# Overview: Service-layer operations for reporting; per-day sales and top products over completed transactions.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..errors import ValidationError
from ..models import Product, Transaction, TransactionItem
from ..models.transactions import STATUS_COMPLETED, TYPE_PURCHASE, TYPE_SALE
from stockledger.time_utils import parse_iso_datetime, start_of_day, to_utc_z, utcnow


DEFAULT_REPORT_DAYS = 30
MAX_REPORT_DAYS = 366


def parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    """Parse ISO-8601 bounds; raises ValidationError naming the bad field."""
    errors: dict[str, list[str]] = {}
    start_dt = end_dt = None
    try:
        start_dt = parse_iso_datetime(start) if start else None
    except ValueError:
        errors["start"] = ["start must be an ISO-8601 datetime"]
    try:
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        errors["end"] = ["end must be an ISO-8601 datetime"]
    if errors:
        raise ValidationError(errors=errors)
    if start_dt and end_dt and start_dt > end_dt:
        raise ValidationError(errors={"start": ["start must not be after end"]})
    return start_dt, end_dt


def sales_report(user_id: int, start: datetime | None = None, end: datetime | None = None) -> dict:
    """
    Per-day sales, purchases, sale count and profit for COMPLETED transactions.

    Every calendar day in [start, end] has a row, zero-filled. Defaults to the
    last 30 days ending now.
    """
    end = end or utcnow()
    start = start or start_of_day(end - timedelta(days=DEFAULT_REPORT_DAYS - 1))

    if start > end:
        raise ValidationError(errors={"start": ["start must not be after end"]})
    if (end - start).days >= MAX_REPORT_DAYS:
        raise ValidationError(errors={"start": [f"Range cannot exceed {MAX_REPORT_DAYS} days"]})

    day_expr = func.date(Transaction.created_at)
    rows = (
        db.session.query(
            day_expr.label("day"),
            Transaction.type,
            func.count(Transaction.id).label("count"),
            func.coalesce(func.sum(Transaction.total_cents), 0).label("total"),
        )
        .filter(
            Transaction.user_id == user_id,
            Transaction.status == STATUS_COMPLETED,
            Transaction.created_at >= start,
            Transaction.created_at <= end,
        )
        .group_by(day_expr, Transaction.type)
        .all()
    )

    buckets: dict[str, dict] = {}
    day = start_of_day(start)
    while day <= end:
        key = day.strftime("%Y-%m-%d")
        buckets[key] = {
            "date": key,
            "sales_cents": 0,
            "purchases_cents": 0,
            "sale_count": 0,
            "profit_cents": 0,
        }
        day += timedelta(days=1)

    for row in rows:
        bucket = buckets.get(str(row.day))
        if bucket is None:
            continue
        if row.type == TYPE_SALE:
            bucket["sales_cents"] += int(row.total)
            bucket["sale_count"] += int(row.count)
        elif row.type == TYPE_PURCHASE:
            bucket["purchases_cents"] += int(row.total)

    for bucket in buckets.values():
        bucket["profit_cents"] = bucket["sales_cents"] - bucket["purchases_cents"]

    days = list(buckets.values())
    return {
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "rows": days,
        "totals": {
            "sales_cents": sum(d["sales_cents"] for d in days),
            "purchases_cents": sum(d["purchases_cents"] for d in days),
            "sale_count": sum(d["sale_count"] for d in days),
            "profit_cents": sum(d["profit_cents"] for d in days),
        },
    }


def top_products(
    user_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 5,
) -> dict:
    """Products ranked by quantity sold (then revenue) across COMPLETED sales."""
    limit = max(1, min(limit, 50))

    quantity = func.sum(TransactionItem.quantity)
    revenue = func.sum(TransactionItem.quantity * TransactionItem.price_cents)

    query = (
        db.session.query(
            Product.id,
            Product.name,
            Product.sku,
            Product.unit,
            quantity.label("quantity_sold"),
            revenue.label("revenue_cents"),
        )
        .join(TransactionItem, TransactionItem.product_id == Product.id)
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(
            Transaction.user_id == user_id,
            Product.user_id == user_id,
            Transaction.type == TYPE_SALE,
            Transaction.status == STATUS_COMPLETED,
        )
    )
    if start:
        query = query.filter(Transaction.created_at >= start)
    if end:
        query = query.filter(Transaction.created_at <= end)

    rows = (
        query.group_by(Product.id, Product.name, Product.sku, Product.unit)
        .order_by(quantity.desc(), revenue.desc(), Product.id.asc())
        .limit(limit)
        .all()
    )

    return {
        "start": to_utc_z(start) if start else None,
        "end": to_utc_z(end) if end else None,
        "items": [
            {
                "product_id": row.id,
                "name": row.name,
                "sku": row.sku,
                "unit": row.unit,
                "quantity_sold": int(row.quantity_sold or 0),
                "revenue_cents": int(row.revenue_cents or 0),
            }
            for row in rows
        ],
    }
