from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow


TYPE_STOCK_ALERT = "STOCK_ALERT"
TYPE_PAYMENT_DUE = "PAYMENT_DUE"
TYPE_PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
TYPE_SYSTEM = "SYSTEM"
VALID_TYPES = {TYPE_STOCK_ALERT, TYPE_PAYMENT_DUE, TYPE_PAYMENT_RECEIVED, TYPE_SYSTEM}

STATUS_UNREAD = "UNREAD"
STATUS_READ = "READ"
STATUS_ARCHIVED = "ARCHIVED"
VALID_STATUSES = {STATUS_UNREAD, STATUS_READ, STATUS_ARCHIVED}


class Notification(db.Model):
    """
    In-app notification, one row per event.

    Both language variants live on the row; the reader's language picks
    which pair is returned as title/message.

    DEDUP:
    Scans create at most one notification per (user_id, link, UTC day).
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_link_created", "user_id", "link", "created_at"),
        db.Index("ix_notifications_user_status", "user_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, default=TYPE_SYSTEM)
    status = db.Column(db.String(16), nullable=False, default=STATUS_UNREAD)

    title_en = db.Column(db.String(255), nullable=False)
    message_en = db.Column(db.Text, nullable=False)
    title_ar = db.Column(db.String(255), nullable=False)
    message_ar = db.Column(db.Text, nullable=False)

    link = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self, language: str = "en") -> dict:
        if language == "ar":
            title, message = self.title_ar, self.message_ar
        else:
            title, message = self.title_en, self.message_en
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "status": self.status,
            "title": title,
            "message": message,
            "title_en": self.title_en,
            "message_en": self.message_en,
            "title_ar": self.title_ar,
            "message_ar": self.message_ar,
            "link": self.link,
            "created_at": to_utc_z(self.created_at),
        }
