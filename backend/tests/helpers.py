"""
Shared test helpers: constants, request helpers and in-memory fakes for
client tests (a recording backend and a hand-driven clock).
"""

from turnledger.client.backend import BackendError

BUSINESS_DATE = "2026-10-19"
CRON_SECRET = "cron-test-secret"

ANA_PIN = "4821"
BEN_PIN = "7350"


def login(client, pin: str) -> str | None:
    """Helper to get a session token for a PIN."""
    response = client.post('/api/auth/login-pin', json={'pin': pin})
    if response.status_code == 200:
        return response.json['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def cron_headers(secret: str = CRON_SECRET) -> dict:
    return {'Authorization': f'Bearer {secret}'}


class FakeClock:
    """Clock the test moves by hand."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """
    In-memory stand-in for HttpBackend.

    Records every call in ``calls`` as (method, args). ``fail_next(method, n)``
    makes the next n calls of that method raise BackendError.
    """

    def __init__(self, users: dict | None = None):
        self.users = users or {}
        self.records: dict[int, dict] = {}
        self.calls: list[tuple] = []
        self.token = None
        self.live_tokens: dict[str, dict] = {}
        self._failures: dict[str, int] = {}
        self._next_id = 1

    # -- test helpers -----------------------------------------------------

    def fail_next(self, method: str, times: int = 1) -> None:
        self._failures[method] = times

    def _call(self, method: str, *args):
        self.calls.append((method, args))
        remaining = self._failures.get(method, 0)
        if remaining:
            self._failures[method] = remaining - 1
            raise BackendError(f"{method} failed", status_code=500)

    def expire_sessions(self) -> None:
        """Server-side idle timeout: every issued token stops working."""
        self.live_tokens.clear()

    def calls_to(self, method: str) -> list[tuple]:
        return [args for name, args in self.calls if name == method]

    def seed(self, payment_type: str, business_date: str, entry_number: int, **fields) -> dict:
        record = {
            "id": self._next_id,
            "payment_type": payment_type,
            "business_date": business_date,
            "entry_number": entry_number,
            "time": None, "service": None, "note": None,
            "cash_amount": None, "card_amount": None, "tips": None,
        }
        record.update(fields)
        self.records[record["id"]] = record
        self._next_id += 1
        return record

    def bucket(self, payment_type: str, business_date: str) -> list[dict]:
        return sorted(
            (r for r in self.records.values()
             if r["payment_type"] == payment_type and r["business_date"] == business_date),
            key=lambda r: r["entry_number"],
        )

    # -- backend surface --------------------------------------------------

    def set_token(self, token):
        self.token = token

    @property
    def has_token(self) -> bool:
        return bool(self.token)

    def login_pin(self, pin):
        self._call("login_pin", pin)
        matches = self.users.get(pin, [])
        if len(matches) != 1:
            return None
        token = f"token-{pin}"
        self.live_tokens[token] = dict(matches[0])
        return dict(matches[0]), token

    def logout(self):
        self._call("logout")
        self.live_tokens.pop(self.token, None)

    def me(self):
        self._call("me")
        if self.token not in self.live_tokens:
            raise BackendError("Invalid or expired session", status_code=401)
        return dict(self.live_tokens[self.token])

    def list_transactions(self, payment_type, business_date):
        self._call("list_transactions", payment_type, business_date)
        return [dict(r) for r in self.bucket(payment_type, business_date)]

    def insert_transaction(self, *, payment_type, business_date, entry_number, fields):
        self._call("insert_transaction", payment_type, business_date, entry_number, dict(fields))
        for existing in self.bucket(payment_type, business_date):
            if existing["entry_number"] == entry_number:
                raise BackendError(f"Entry {entry_number} already exists", status_code=409)
        return dict(self.seed(payment_type, business_date, entry_number, **fields))

    def update_transaction(self, transaction_id, fields):
        self._call("update_transaction", transaction_id, dict(fields))
        if transaction_id not in self.records:
            raise BackendError("Transaction not found", status_code=404)
        self.records[transaction_id].update(fields)
        return dict(self.records[transaction_id])

    def delete_transaction(self, transaction_id):
        self._call("delete_transaction", transaction_id)
        removed = self.records.pop(transaction_id, None)
        if removed is None:
            raise BackendError("Transaction not found", status_code=404)
        renumbered = []
        for record in self.bucket(removed["payment_type"], removed["business_date"]):
            if record["entry_number"] > removed["entry_number"]:
                record["entry_number"] -= 1
                renumbered.append(dict(record))
        return renumbered
