# Overview: Service-layer operations for the per-user turn ledger.

"""
Transaction Ledger Service

WHY: Each user keeps one dense, 1-based list of turns per payment type per
business day. Everything here is scoped by user_id; a row belonging to
someone else is reported as not found, never as forbidden.

INVARIANTS:
- Within (user, payment_type, business_date) entry numbers never repeat
- Deleting entry k renumbers k+1.. down by one in the same DB transaction,
  so a failure part-way leaves the bucket untouched
"""

from flask import current_app

from ..extensions import db
from ..models import Transaction, PAYMENT_TYPES, TEXT_FIELDS, AMOUNT_FIELDS, EDITABLE_FIELDS
from turnledger.money import to_cents
from turnledger.time_utils import utcnow, parse_business_date, business_date as compute_business_date

MAX_TEXT_LENGTHS = {"time": 8, "service": 500, "note": 1000}


def current_business_date() -> str:
    """Today's bucket key in the configured business timezone."""
    return compute_business_date(tz_name=current_app.config["BUSINESS_TIMEZONE"])


class TransactionError(ValueError):
    """Raised for invalid ledger operations."""
    pass


class TransactionNotFound(TransactionError):
    pass


class TransactionConflict(TransactionError):
    pass


def validate_payment_type(payment_type: str | None) -> str:
    if payment_type not in PAYMENT_TYPES:
        raise TransactionError(f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}")
    return payment_type


def validate_entry_number(entry_number) -> int:
    if isinstance(entry_number, bool) or not isinstance(entry_number, int) or entry_number < 1:
        raise TransactionError("entry_number must be a positive integer")
    return entry_number


def _validate_business_date(value: str | None) -> str:
    try:
        parsed = parse_business_date(value)
    except ValueError:
        raise TransactionError("business_date must be YYYY-MM-DD") from None
    if not parsed:
        raise TransactionError("business_date is required")
    return parsed


def _apply_fields(txn: Transaction, fields: dict) -> None:
    """Copy editable fields onto txn. Blank text and blank amounts become NULL."""
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise TransactionError(f"Unknown field(s): {', '.join(sorted(unknown))}")

    for name in TEXT_FIELDS:
        if name not in fields:
            continue
        value = fields[name]
        if value is not None and not isinstance(value, str):
            raise TransactionError(f"{name} must be a string")
        value = value or None
        if value is not None and len(value) > MAX_TEXT_LENGTHS[name]:
            raise TransactionError(f"{name} is too long")
        setattr(txn, name, value)

    for name in AMOUNT_FIELDS:
        if name not in fields:
            continue
        try:
            cents = to_cents(fields[name])
        except ValueError as exc:
            raise TransactionError(f"{name}: {exc}") from None
        setattr(txn, f"{name}_cents", cents)


def _bucket_query(user_id: int, payment_type: str, business_date: str):
    return db.session.query(Transaction).filter_by(
        user_id=user_id,
        payment_type=payment_type,
        business_date=business_date,
    )


def list_transactions(user_id: int, payment_type: str, business_date: str) -> list[Transaction]:
    """All rows of one bucket, ordered by entry number."""
    validate_payment_type(payment_type)
    business_date = _validate_business_date(business_date)
    return _bucket_query(user_id, payment_type, business_date).order_by(Transaction.entry_number).all()


def get_transaction(user_id: int, transaction_id: int) -> Transaction:
    txn = db.session.query(Transaction).filter_by(id=transaction_id, user_id=user_id).first()
    if not txn:
        raise TransactionNotFound("Transaction not found")
    return txn


def create_transaction(
    *,
    user_id: int,
    payment_type: str,
    business_date: str,
    entry_number: int,
    fields: dict | None = None,
) -> Transaction:
    """
    Insert one turn.

    Raises TransactionConflict if the bucket already holds entry_number.
    """
    validate_payment_type(payment_type)
    business_date = _validate_business_date(business_date)
    validate_entry_number(entry_number)

    existing = _bucket_query(user_id, payment_type, business_date).filter_by(
        entry_number=entry_number
    ).first()
    if existing:
        raise TransactionConflict(f"Entry {entry_number} already exists")

    now = utcnow()
    txn = Transaction(
        user_id=user_id,
        payment_type=payment_type,
        business_date=business_date,
        entry_number=entry_number,
        created_at=now,
        updated_at=now,
    )
    _apply_fields(txn, fields or {})

    db.session.add(txn)
    db.session.commit()
    return txn


def update_transaction(*, user_id: int, transaction_id: int, fields: dict) -> Transaction:
    """Overwrite the given editable fields; fields not named are left alone."""
    txn = get_transaction(user_id, transaction_id)
    _apply_fields(txn, fields)
    txn.updated_at = utcnow()
    db.session.commit()
    return txn


def delete_transaction(*, user_id: int, transaction_id: int) -> list[Transaction]:
    """
    Delete one turn and close the gap it leaves.

    Every later row in the bucket moves down by one. Delete and renumbering
    commit together or not at all.

    Returns the renumbered rows in their new order.
    """
    txn = get_transaction(user_id, transaction_id)
    removed_number = txn.entry_number

    try:
        later = (
            _bucket_query(user_id, txn.payment_type, txn.business_date)
            .filter(Transaction.entry_number > removed_number)
            .order_by(Transaction.entry_number)
            .with_for_update()
            .all()
        )

        db.session.delete(txn)
        db.session.flush()

        now = utcnow()
        for row in later:
            row.entry_number -= 1
            row.updated_at = now

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return later
