from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow


TYPE_PURCHASE = "PURCHASE"
TYPE_SALE = "SALE"
TYPE_ADJUSTMENT = "ADJUSTMENT"
VALID_TYPES = {TYPE_PURCHASE, TYPE_SALE, TYPE_ADJUSTMENT}

STATUS_PENDING = "PENDING"
STATUS_COMPLETED = "COMPLETED"
STATUS_CANCELLED = "CANCELLED"
VALID_STATUSES = {STATUS_PENDING, STATUS_COMPLETED, STATUS_CANCELLED}
TERMINAL_STATUSES = {STATUS_COMPLETED, STATUS_CANCELLED}

METHOD_CASH = "CASH"
METHOD_BANK_TRANSFER = "BANK_TRANSFER"
METHOD_CHECK = "CHECK"
VALID_PAYMENT_METHODS = {METHOD_CASH, METHOD_BANK_TRANSFER, METHOD_CHECK}


class Transaction(db.Model):
    """
    Sale, purchase or stock adjustment document.

    LIFECYCLE:
    PENDING -> COMPLETED
    PENDING -> CANCELLED (reverses stock and client balance)
    COMPLETED and CANCELLED are terminal.

    PAYMENT STATE (all amounts in cents):
    remaining_amount_cents == total_cents - amount_paid_cents at all times.

    CONCURRENCY:
    version_id is the optimistic lock; two writers that both read the same
    PENDING row cannot both commit a transition.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_user_type_created", "user_id", "type", "created_at"),
        db.Index("ix_transactions_user_status", "user_id", "status"),
        db.CheckConstraint("amount_paid_cents >= 0", name="ck_transactions_paid_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING)

    total_cents = db.Column(db.Integer, nullable=False)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    remaining_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=True)
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    payment_due_date = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    client = db.relationship("Client", backref=db.backref("transactions", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("transactions", lazy=True))
    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="TransactionItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} type={self.type} status={self.status} total_cents={self.total_cents}>"

    @property
    def is_final(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "status": self.status,
            "total_cents": self.total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "remaining_amount_cents": self.remaining_amount_cents,
            "payment_method": self.payment_method,
            "reference": self.reference,
            "notes": self.notes,
            "client_id": self.client_id,
            "client": self.client.name if self.client else None,
            "supplier_id": self.supplier_id,
            "supplier": self.supplier.name if self.supplier else None,
            "payment_due_date": to_utc_z(self.payment_due_date),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """Line of a transaction. Written once, with its parent; never edited."""
    __tablename__ = "transaction_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Signed only for ADJUSTMENT lines
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product": self.product.name if self.product else None,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "line_total_cents": self.quantity * self.price_cents,
        }


class Payment(db.Model):
    """
    Installment recorded against a PENDING transaction.

    Adding a payment moves transaction.amount_paid_cents (and the client
    aggregates for a SALE) through the same routine as a direct edit of
    amount_paid; deleting one reverses it.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default=METHOD_CASH)
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_COMPLETED)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    transaction = db.relationship("Transaction", backref=db.backref("payments", lazy=True))
    client = db.relationship("Client")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "transaction_id": self.transaction_id,
            "client_id": self.client_id,
            "client": self.client.name if self.client else None,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "reference": self.reference,
            "notes": self.notes,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
