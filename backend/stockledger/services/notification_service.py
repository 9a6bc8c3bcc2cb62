# Overview: Service-layer operations for notifications; scans, bilingual templates and inbox CRUD.

"""
Notification Service

Two idempotent scans turn ledger state into notifications:

- scan_stock_alerts: products with quantity < min_quantity
- scan_payment_due:  PENDING transactions due within the window with
                     something left to pay

DEDUP: one notification per (user_id, link, UTC calendar day). The stock
scan can be forced past the dedup check.

ISOLATION: each candidate is written inside its own SAVEPOINT. A failure
is logged, counted and rolled back to the savepoint; the scan carries on
with the remaining candidates.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..extensions import db
from ..errors import ValidationError
from ..models import Notification, Product, Transaction, User, UserSettings
from ..models.notifications import (
    STATUS_READ,
    STATUS_UNREAD,
    TYPE_PAYMENT_DUE,
    TYPE_PAYMENT_RECEIVED,
    TYPE_STOCK_ALERT,
    TYPE_SYSTEM,
    VALID_STATUSES,
    VALID_TYPES,
)
from ..models.transactions import STATUS_PENDING, TYPE_SALE
from .pagination import paginate
from .tenant_service import get_owned_or_404, scoped_query
from stockledger.time_utils import day_bounds, utcnow


logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_DUE_WINDOW_DAYS = 7


@dataclass
class ScanResult:
    created: int = 0
    skipped: int = 0
    failed: int = 0
    notification_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "skipped": self.skipped,
            "failed": self.failed,
            "notification_ids": self.notification_ids,
        }


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def format_amount(cents: int) -> str:
    return f"{cents / 100:.2f}"


def stock_link(product_id: int) -> str:
    return f"/inventory?id={product_id}"


def transaction_link(transaction_id: int) -> str:
    return f"/transactions?id={transaction_id}"


def render_stock_alert(product: Product) -> dict:
    unit = product.unit
    return {
        "title_en": "Low Stock Alert",
        "message_en": (
            f"{product.name} is low on stock. Current quantity: {product.quantity} {unit}, "
            f"Minimum quantity: {product.min_quantity} {unit}"
        ),
        "title_ar": "تنبيه انخفاض المخزون",
        "message_ar": (
            f"{product.name} منخفض في المخزون. الكمية الحالية: {product.quantity} {unit}، "
            f"الحد الأدنى للكمية: {product.min_quantity} {unit}"
        ),
    }


def counterparty_name(txn: Transaction) -> str:
    if txn.type == TYPE_SALE:
        return txn.client.name if txn.client else "Unknown client"
    return txn.supplier.name if txn.supplier else "Unknown supplier"


def render_payment_due(txn: Transaction, days_until_due: int) -> dict:
    name = counterparty_name(txn)
    amount = format_amount(txn.remaining_amount_cents)
    day_en = "day" if days_until_due == 1 else "days"
    day_ar = "يوم" if days_until_due == 1 else "أيام"
    return {
        "title_en": "Payment Due Soon",
        "message_en": f"Payment of DH {amount} for {name} is due in {days_until_due} {day_en}.",
        "title_ar": "استحقاق الدفع قريبًا",
        "message_ar": f"دفعة بقيمة {amount} درهم لـ {name} مستحقة خلال {days_until_due} {day_ar}.",
    }


def render_payment_received(txn: Transaction, amount_cents: int) -> dict:
    name = counterparty_name(txn)
    amount = format_amount(amount_cents)
    remaining = format_amount(txn.remaining_amount_cents)
    return {
        "title_en": "Payment Received",
        "message_en": f"Received DH {amount} from {name}. Remaining: DH {remaining}.",
        "title_ar": "تم استلام دفعة",
        "message_ar": f"تم استلام {amount} درهم من {name}. المتبقي: {remaining} درهم.",
    }


def days_until(due: datetime, now: datetime) -> int:
    return math.ceil((due - now) / timedelta(days=1))


# ---------------------------------------------------------------------------
# Scans
# ---------------------------------------------------------------------------

def notifications_enabled_user_ids(user_id: int | None = None) -> list[int]:
    """Active tenants that have not opted out (a missing settings row means enabled)."""
    query = (
        db.session.query(User.id)
        .outerjoin(UserSettings, UserSettings.user_id == User.id)
        .filter(User.is_active.is_(True))
        .filter(db.or_(UserSettings.id.is_(None), UserSettings.notifications_enabled.is_(True)))
    )
    if user_id is not None:
        query = query.filter(User.id == user_id)
    return [row[0] for row in query.order_by(User.id.asc()).all()]


def already_notified(user_id: int, link: str, now: datetime | None = None) -> bool:
    start, end = day_bounds(now or utcnow())
    return db.session.query(Notification.id).filter(
        Notification.user_id == user_id,
        Notification.link == link,
        Notification.created_at >= start,
        Notification.created_at < end,
    ).first() is not None


def _emit(result: ScanResult, *, user_id: int, ntype: str, link: str, render, now: datetime, label: str) -> None:
    """Create one notification in a savepoint; failures are logged and counted."""
    try:
        with db.session.begin_nested():
            note = Notification(
                user_id=user_id,
                type=ntype,
                status=STATUS_UNREAD,
                link=link,
                created_at=now,
                **render(),
            )
            db.session.add(note)
        result.created += 1
        result.notification_ids.append(note.id)
    except Exception:
        logger.exception("Failed to create %s notification for %s (user %s)", ntype, label, user_id)
        result.failed += 1


def scan_stock_alerts(user_id: int | None = None, force: bool = False, now: datetime | None = None) -> ScanResult:
    """
    Notify about every product below its minimum quantity.

    user_id=None scans every tenant with notifications enabled.
    """
    now = now or utcnow()
    result = ScanResult()

    for uid in notifications_enabled_user_ids(user_id):
        products = (
            scoped_query(Product, uid)
            .filter(Product.quantity < Product.min_quantity)
            .order_by(Product.id.asc())
            .all()
        )
        for product in products:
            link = stock_link(product.id)
            if not force and already_notified(uid, link, now):
                result.skipped += 1
                continue
            _emit(
                result,
                user_id=uid,
                ntype=TYPE_STOCK_ALERT,
                link=link,
                render=lambda p=product: render_stock_alert(p),
                now=now,
                label=f"product {product.id}",
            )

    db.session.commit()
    logger.info("Stock alert scan: created=%s skipped=%s failed=%s", result.created, result.skipped, result.failed)
    return result


def scan_payment_due(
    user_id: int | None = None,
    now: datetime | None = None,
    window_days: int | None = None,
) -> ScanResult:
    """
    Notify about PENDING transactions with now <= payment_due_date <= now + window
    and remaining_amount_cents > 0.
    """
    now = now or utcnow()
    window = timedelta(days=window_days if window_days is not None else DEFAULT_PAYMENT_DUE_WINDOW_DAYS)
    result = ScanResult()

    for uid in notifications_enabled_user_ids(user_id):
        transactions = (
            scoped_query(Transaction, uid)
            .filter(
                Transaction.status == STATUS_PENDING,
                Transaction.payment_due_date.isnot(None),
                Transaction.payment_due_date >= now,
                Transaction.payment_due_date <= now + window,
                Transaction.remaining_amount_cents > 0,
            )
            .order_by(Transaction.payment_due_date.asc(), Transaction.id.asc())
            .all()
        )
        for txn in transactions:
            link = transaction_link(txn.id)
            if already_notified(uid, link, now):
                result.skipped += 1
                continue
            days = days_until(txn.payment_due_date, now)
            _emit(
                result,
                user_id=uid,
                ntype=TYPE_PAYMENT_DUE,
                link=link,
                render=lambda t=txn, d=days: render_payment_due(t, d),
                now=now,
                label=f"transaction {txn.id}",
            )

    db.session.commit()
    logger.info("Payment due scan: created=%s skipped=%s failed=%s", result.created, result.skipped, result.failed)
    return result


def notify_payment_received(txn: Transaction, amount_cents: int) -> Notification:
    """Added to the caller's unit of work; the caller commits."""
    note = Notification(
        user_id=txn.user_id,
        type=TYPE_PAYMENT_RECEIVED,
        status=STATUS_UNREAD,
        link=transaction_link(txn.id),
        **render_payment_received(txn, amount_cents),
    )
    db.session.add(note)
    return note


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------

def list_notifications(
    user_id: int,
    *,
    status: str | None = None,
    ntype: str | None = None,
    language: str = "en",
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = scoped_query(Notification, user_id)
    if status:
        query = query.filter(Notification.status == status)
    if ntype:
        query = query.filter(Notification.type == ntype)
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc())

    data = paginate(query, page, per_page, serialize=lambda n: n.to_dict(language))
    data["unread_count"] = scoped_query(Notification, user_id).filter(
        Notification.status == STATUS_UNREAD
    ).count()
    return data


def get_notification(user_id: int, notification_id: int) -> Notification:
    return get_owned_or_404(Notification, notification_id, user_id, "Notification")


def create_notification(user_id: int, payload: dict) -> Notification:
    """
    Create a notification by hand. Missing Arabic text falls back to English.

    Accepts title/message as shorthand for title_en/message_en.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    title_en = (payload.get("title_en") or payload.get("title") or "").strip()
    message_en = (payload.get("message_en") or payload.get("message") or "").strip()
    ntype = payload.get("type") or TYPE_SYSTEM

    errors: dict[str, list[str]] = {}
    if not title_en:
        errors["title_en"] = ["title_en is required"]
    if not message_en:
        errors["message_en"] = ["message_en is required"]
    if ntype not in VALID_TYPES:
        errors["type"] = [f"type must be one of: {', '.join(sorted(VALID_TYPES))}"]
    if errors:
        raise ValidationError(errors=errors)

    note = Notification(
        user_id=user_id,
        type=ntype,
        status=STATUS_UNREAD,
        title_en=title_en,
        message_en=message_en,
        title_ar=(payload.get("title_ar") or title_en).strip(),
        message_ar=(payload.get("message_ar") or message_en).strip(),
        link=payload.get("link"),
    )
    db.session.add(note)
    db.session.commit()
    return note


def update_notification_status(user_id: int, notification_id: int, status: str) -> Notification:
    if status not in VALID_STATUSES:
        raise ValidationError(errors={"status": [f"status must be one of: {', '.join(sorted(VALID_STATUSES))}"]})
    note = get_notification(user_id, notification_id)
    note.status = status
    db.session.commit()
    return note


def mark_all_read(user_id: int) -> int:
    count = scoped_query(Notification, user_id).filter(
        Notification.status == STATUS_UNREAD
    ).update({Notification.status: STATUS_READ}, synchronize_session=False)
    db.session.commit()
    return count


def delete_notification(user_id: int, notification_id: int) -> None:
    note = get_notification(user_id, notification_id)
    db.session.delete(note)
    db.session.commit()
