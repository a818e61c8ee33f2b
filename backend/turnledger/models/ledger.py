from __future__ import annotations

from ..extensions import db
from turnledger.money import from_cents
from turnledger.time_utils import to_utc_z

PAYMENT_TYPES = ("card", "cash")

# Fields a client may write on a row
TEXT_FIELDS = ("time", "service", "note")
AMOUNT_FIELDS = ("cash_amount", "card_amount", "tips")
EDITABLE_FIELDS = TEXT_FIELDS + AMOUNT_FIELDS


class _TurnColumns:
    """Columns shared by live and archived turns."""

    # "YYYY-MM-DD" in the business timezone
    business_date = db.Column(db.String(10), nullable=False, index=True)

    # Dense 1-based position within (user, payment_type, business_date)
    entry_number = db.Column(db.Integer, nullable=False)

    payment_type = db.Column(db.String(8), nullable=False)

    time = db.Column(db.String(8), nullable=True)
    service = db.Column(db.Text, nullable=True)
    cash_amount_cents = db.Column(db.Integer, nullable=True)
    card_amount_cents = db.Column(db.Integer, nullable=True)
    tips_cents = db.Column(db.Integer, nullable=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def _turn_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "business_date": self.business_date,
            "entry_number": self.entry_number,
            "payment_type": self.payment_type,
            "time": self.time,
            "service": self.service,
            "cash_amount": from_cents(self.cash_amount_cents),
            "card_amount": from_cents(self.card_amount_cents),
            "tips": from_cents(self.tips_cents),
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Transaction(_TurnColumns, db.Model):
    """
    One turn in a user's daily ledger for a payment type.

    Rows are dense per bucket: deleting entry k shifts every later entry
    down by one (see transaction_service.delete_transaction).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index(
            "ix_transactions_bucket",
            "user_id", "payment_type", "business_date", "entry_number",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    user = db.relationship("User", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        data = {"id": self.id}
        data.update(self._turn_dict())
        return data


class ArchivedTransaction(_TurnColumns, db.Model):
    """Copy of a transaction taken by the nightly reset before it is cleared."""
    __tablename__ = "archived_transactions"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    original_id = db.Column(db.Integer, nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    archived_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        data = {"id": self.id, "original_id": self.original_id}
        data.update(self._turn_dict())
        data["archived_at"] = to_utc_z(self.archived_at)
        return data
