from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class Client(db.Model):
    """
    Customer of SALE transactions, with a stored running balance.

    BALANCE:
    total_due_cents   - sum of SALE totals charged to the client
    amount_paid_cents - sum of what the client paid against them
    balance_cents     - total_due_cents - amount_paid_cents, always

    The three columns are only written together, through
    ledger_service.apply_client_delta(). Opening values may be supplied on
    create; balance is never accepted from input.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_user_name", "user_id", "name"),
        db.Index("ix_clients_user_email", "user_id", "email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    total_due_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Client id={self.id} name={self.name!r} balance_cents={self.balance_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "notes": self.notes,
            "total_due_cents": self.total_due_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "balance_cents": self.balance_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
