# Overview: Service-layer operations for the nightly archive-and-clear job.

"""
Daily Reset Service

WHY: Each business day starts from an empty ledger. Before clearing, every
row of the day is copied to archived_transactions so nothing is lost.

Copy and delete share one DB transaction. Running the job twice is safe: the
second run finds no rows and archives nothing.
"""

from ..extensions import db
from ..models import Transaction, ArchivedTransaction
from turnledger.time_utils import utcnow
from .transaction_service import current_business_date

_COPIED_COLUMNS = (
    "user_id",
    "business_date",
    "entry_number",
    "payment_type",
    "time",
    "service",
    "cash_amount_cents",
    "card_amount_cents",
    "tips_cents",
    "note",
    "created_at",
    "updated_at",
)


def archive_business_day(business_date: str | None = None) -> int:
    """
    Archive and clear all users' transactions for one business day.

    Defaults to today's business date. Returns the number of rows archived.
    """
    if business_date is None:
        business_date = current_business_date()

    try:
        rows = db.session.query(Transaction).filter_by(business_date=business_date).all()
        if not rows:
            return 0

        archived_at = utcnow()
        for row in rows:
            archived = ArchivedTransaction(original_id=row.id, archived_at=archived_at)
            for column in _COPIED_COLUMNS:
                setattr(archived, column, getattr(row, column))
            db.session.add(archived)

        db.session.query(Transaction).filter_by(business_date=business_date).delete(
            synchronize_session=False
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return len(rows)
