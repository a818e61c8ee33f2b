"""
Transaction grid sync.

Shows a dense grid of ``row_count`` numbered rows for one payment type and
business day, backed sparsely by backend transactions. Edits land in memory
at once; persistence runs through a per-row write queue so typing never
waits on the network.

ROW LIFECYCLE:
- VIRTUAL: shown, nothing stored
- PENDING: edited locally, write scheduled or in flight (local key only
  until the first insert returns)
- SYNCED: backend id assigned and no write outstanding
- FAILED: a write ran out of retries; edit again or retry_failed()

Deleting a stored row renumbers every later row down by one. The backend does
the delete and the renumbering in one transaction.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Callable

from turnledger.models.ledger import AMOUNT_FIELDS, EDITABLE_FIELDS, PAYMENT_TYPES, TEXT_FIELDS
from turnledger.money import parse_amount
from turnledger.service_catalog import build_selection
from turnledger.time_utils import DEFAULT_BUSINESS_TIMEZONE, business_date as compute_business_date

from .backend import BackendError
from .write_queue import DEFAULT_DELAY, RowWriteQueue

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

TOTAL_KEYS = {"cash": "cash_amount", "card": "card_amount", "tips": "tips"}


class GridError(ValueError):
    """Raised for grid operations that make no sense in the current state."""
    pass


class RowStatus(str, Enum):
    VIRTUAL = "virtual"
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


@dataclass(eq=False)
class GridRow:
    entry_number: int
    key: str = field(default_factory=lambda: f"tmp-{uuid.uuid4().hex}")
    record_id: int | None = None
    values: dict = field(default_factory=dict)

    @property
    def id(self):
        """Backend id once stored, the temporary local key before that."""
        return self.record_id if self.record_id is not None else self.key

    @property
    def committed(self) -> bool:
        return self.record_id is not None

    @property
    def is_blank(self) -> bool:
        return all(value in (None, "") for value in self.values.values())

    def get(self, name: str):
        return self.values.get(name)

    def payload(self) -> dict:
        """Full row state as sent to the backend."""
        data = {}
        for name in TEXT_FIELDS:
            data[name] = self.values.get(name) or None
        for name in AMOUNT_FIELDS:
            amount = self.values.get(name)
            data[name] = str(amount) if amount is not None else None
        return data

    @classmethod
    def from_record(cls, record: dict) -> "GridRow":
        values = {name: record.get(name) for name in TEXT_FIELDS}
        for name in AMOUNT_FIELDS:
            values[name] = parse_amount(record.get(name))
        return cls(entry_number=record["entry_number"], record_id=record["id"], values=values)


class TransactionGrid:
    def __init__(
        self,
        backend,
        payment_type: str,
        *,
        business_date: str | None = None,
        tz_name: str = DEFAULT_BUSINESS_TIMEZONE,
        min_rows: int = 1,
        debounce: float = DEFAULT_DELAY,
        max_attempts: int = 3,
        backoff_base: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        if payment_type not in PAYMENT_TYPES:
            raise GridError(f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}")

        self._backend = backend
        self.payment_type = payment_type
        self.business_date = business_date or compute_business_date(tz_name=tz_name)
        self._min_rows = max(min_rows, 0)
        self.row_count = self._min_rows

        self.status = "idle"
        self.load_error: BackendError | None = None

        self._rows: dict[int, GridRow] = {}
        self._by_key: dict[str, GridRow] = {}
        self._pending_delete: str | None = None
        self._lock = threading.RLock()

        self._queue = RowWriteQueue(
            self._persist,
            delay=debounce,
            max_attempts=max_attempts,
            backoff_base=backoff_base,
            retry_on=(BackendError,),
            clock=clock,
        )

    # -- row index ------------------------------------------------------

    def _index(self, row: GridRow) -> GridRow:
        self._rows[row.entry_number] = row
        self._by_key[row.key] = row
        return row

    def _drop(self, row: GridRow) -> None:
        self._queue.cancel(row.key)
        self._rows.pop(row.entry_number, None)
        self._by_key.pop(row.key, None)

    def _row_at(self, entry_number: int) -> GridRow:
        row = self._rows.get(entry_number)
        if row is None:
            row = self._index(GridRow(entry_number=entry_number))
        return row

    def _check_visible(self, entry_number: int) -> None:
        if not 1 <= entry_number <= self.row_count:
            raise GridError(f"Row {entry_number} is not in the grid (1..{self.row_count})")

    # -- reading --------------------------------------------------------

    def load(self) -> list[GridRow]:
        """
        Replace local state with the backend's rows for this bucket.

        Any unsent edits from before are discarded. On failure ``status``
        becomes "error" and the BackendError is re-raised.
        """
        with self._lock:
            self.status = "loading"

        try:
            records = self._backend.list_transactions(self.payment_type, self.business_date)
        except BackendError as exc:
            with self._lock:
                self.status = "error"
                self.load_error = exc
            logger.exception("Error loading %s transactions for %s", self.payment_type, self.business_date)
            raise

        with self._lock:
            for key in list(self._by_key):
                self._queue.cancel(key)
            self._rows.clear()
            self._by_key.clear()

            loaded = [self._index(GridRow.from_record(record)) for record in records]
            loaded.sort(key=lambda row: row.entry_number)

            highest = loaded[-1].entry_number if loaded else 0
            self.row_count = max(highest, self._min_rows)
            self.status = "ready"
            self.load_error = None
            return list(loaded)

    def rows(self) -> list[GridRow]:
        """Every visible row, stored or not, in entry order."""
        with self._lock:
            return [self._row_at(n) for n in range(1, self.row_count + 1)]

    def row(self, entry_number: int) -> GridRow:
        with self._lock:
            self._check_visible(entry_number)
            return self._row_at(entry_number)

    def row_status(self, entry_number: int) -> RowStatus:
        with self._lock:
            row = self._rows.get(entry_number)
        if row is None:
            return RowStatus.VIRTUAL
        if self._queue.is_failed(row.key):
            return RowStatus.FAILED
        if self._queue.is_pending(row.key):
            return RowStatus.PENDING
        if row.committed:
            return RowStatus.SYNCED
        return RowStatus.VIRTUAL

    def failed_rows(self) -> list[int]:
        failed = set(self._queue.failed_keys())
        with self._lock:
            return sorted(row.entry_number for row in self._by_key.values() if row.key in failed)

    def totals(self) -> dict[str, Decimal]:
        """Sums over the visible rows; a missing amount counts as zero."""
        with self._lock:
            visible = [self._rows.get(n) for n in range(1, self.row_count + 1)]
        totals = {}
        for total, name in TOTAL_KEYS.items():
            totals[total] = sum(
                ((row.values.get(name) or ZERO) for row in visible if row is not None),
                ZERO,
            )
        return totals

    # -- editing --------------------------------------------------------

    def edit_cell(self, entry_number: int, name: str, value) -> GridRow:
        """
        Apply an edit locally and schedule the row's write.

        Amount fields become a 2dp Decimal, or None when blank; text fields
        are stored as given. Raises GridError for an unknown field or a row
        outside the grid, ValueError for a non-numeric amount.
        """
        if name not in EDITABLE_FIELDS:
            raise GridError(f"Unknown field: {name}")
        if name in AMOUNT_FIELDS:
            value = parse_amount(value)
        elif value is None:
            value = ""

        with self._lock:
            self._check_visible(entry_number)
            row = self._row_at(entry_number)
            row.values[name] = value
            self._queue.submit(row.key)
            return row

    def select_service(self, entry_number: int, tier1: str, tier2: str, tier3: str | None = None) -> GridRow:
        selection = build_selection(tier1, tier2, tier3)
        return self.edit_cell(entry_number, "service", selection.to_json())

    def _persist(self, key: str) -> None:
        """Write one row's current state: update when stored, insert otherwise."""
        with self._lock:
            row = self._by_key.get(key)
            if row is None:
                return
            entry_number = row.entry_number
            record_id = row.record_id
            payload = row.payload()

        if record_id is not None:
            self._backend.update_transaction(record_id, payload)
            return

        record = self._backend.insert_transaction(
            payment_type=self.payment_type,
            business_date=self.business_date,
            entry_number=entry_number,
            fields=payload,
        )
        with self._lock:
            if self._by_key.get(key) is row:
                row.record_id = record["id"]

    def add_row(self) -> GridRow:
        """
        Append a row and store it right away, so it has an id before typing.

        Edits to the new row made before the insert returns are held back
        and sent as an update afterwards. On failure the row count is rolled
        back and the BackendError raised.
        """
        with self._lock:
            entry_number = self.row_count + 1
            self.row_count = entry_number
            row = self._row_at(entry_number)
            payload = row.payload()

        with self._queue.claim(row.key):
            try:
                record = self._backend.insert_transaction(
                    payment_type=self.payment_type,
                    business_date=self.business_date,
                    entry_number=entry_number,
                    fields=payload,
                )
            except BackendError:
                logger.exception("Error adding row %d", entry_number)
                with self._lock:
                    if self.row_count == entry_number:
                        self.row_count = entry_number - 1
                    if not row.committed and row.is_blank:
                        self._drop(row)
                raise

            with self._lock:
                row.record_id = record["id"]
        return row

    def remove_row(self) -> bool:
        """
        Hide the trailing row if it is blank and never stored.

        Returns False, changing nothing, when the trailing row holds data
        or only one row is left.
        """
        with self._lock:
            if self.row_count <= 1:
                return False
            row = self._rows.get(self.row_count)
            if row is not None:
                if row.committed or not row.is_blank or self._queue.is_pending(row.key):
                    return False
                self._drop(row)
            self.row_count -= 1
            return True

    # -- two-phase delete -----------------------------------------------

    @property
    def pending_delete(self) -> int | None:
        """Entry number awaiting confirm_delete(), if any."""
        with self._lock:
            row = self._by_key.get(self._pending_delete) if self._pending_delete else None
            return row.entry_number if row else None

    def request_delete(self, entry_number: int) -> GridRow:
        with self._lock:
            row = self._rows.get(entry_number)
            if row is None or (not row.committed and row.is_blank):
                raise GridError(f"Row {entry_number} has nothing to delete")
            self._pending_delete = row.key
            return row

    def cancel_delete(self) -> None:
        with self._lock:
            self._pending_delete = None

    def confirm_delete(self) -> list[GridRow]:
        """
        Delete the row chosen by request_delete().

        The background pump is held off for the whole delete, and pending
        edits (including any write already in flight) are sent first, so
        backend numbering matches ours. Returns the rows that moved down.
        On backend failure nothing local changes, the confirmation is
        dropped and BackendError is raised.
        """
        with self._lock:
            key = self._pending_delete
            self._pending_delete = None
            if key is None:
                raise GridError("No delete is awaiting confirmation")

        with self._queue.hold():
            self._queue.flush()
            return self._delete_row(key)

    def _delete_row(self, key: str) -> list[GridRow]:
        with self._lock:
            row = self._by_key.get(key)
            if row is None:
                raise GridError("Row no longer exists")
            record_id = row.record_id

        renumbered = []
        if record_id is not None:
            try:
                renumbered = self._backend.delete_transaction(record_id)
            except BackendError:
                logger.exception("Error deleting transaction %s", record_id)
                raise

        with self._lock:
            removed = row.entry_number
            self._drop(row)

            shifted = sorted(
                (r for r in self._rows.values() if r.entry_number > removed),
                key=lambda r: r.entry_number,
            )
            for r in shifted:
                del self._rows[r.entry_number]
            for r in shifted:
                r.entry_number -= 1
                self._rows[r.entry_number] = r

            expected = {record["id"]: record["entry_number"] for record in renumbered}
            for r in shifted:
                if r.record_id in expected and expected[r.record_id] != r.entry_number:
                    logger.warning(
                        "Row %s renumbered to %d locally but %d by the backend",
                        r.record_id, r.entry_number, expected[r.record_id],
                    )

            self.row_count = max(self.row_count - 1, self._min_rows)
            return shifted

    # -- write queue ----------------------------------------------------

    def pump(self, now: float | None = None) -> int:
        """Send writes whose quiet period has passed."""
        return self._queue.run_due(now)

    def flush(self) -> int:
        """Send every scheduled write now."""
        return self._queue.flush()

    def retry_failed(self) -> int:
        failed = self._queue.failed_keys()
        for key in failed:
            self._queue.submit(key)
        return len(failed)

    def has_pending_writes(self) -> bool:
        with self._lock:
            keys = list(self._by_key)
        return any(self._queue.is_pending(key) for key in keys)

    def start(self, poll_interval: float = 0.05) -> None:
        self._queue.start(poll_interval)

    @property
    def running(self) -> bool:
        """True while the background pump is sending writes."""
        return self._queue.running

    def close(self) -> None:
        """Flush outstanding writes and stop the background pump."""
        self._queue.stop(flush=True)
