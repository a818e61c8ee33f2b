"""
Amount conversions.

Amounts are stored as integer cents and travel over the API as two-decimal
strings ("12.50"), so neither side ever does float arithmetic on money.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")

# Largest magnitude accepted; its cents still fit a signed 32-bit column
MAX_AMOUNT = Decimal("9999999.99")


def parse_amount(value) -> Decimal | None:
    """
    Coerce user or wire input to a 2dp Decimal.

    None, "" and whitespace mean "no amount". Anything else must be numeric
    and no larger than MAX_AMOUNT either way, or ValueError is raised.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Amount must be numeric")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Amount must be numeric, got {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Amount must be numeric, got {value!r}")
    if abs(amount) > MAX_AMOUNT:
        raise ValueError(f"Amount must be at most {MAX_AMOUNT}, got {value!r}")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Amount must be numeric, got {value!r}") from None


def to_cents(value) -> int | None:
    amount = parse_amount(value)
    if amount is None:
        return None
    return int(amount * 100)


def from_cents(cents: int | None) -> str | None:
    if cents is None:
        return None
    return str((Decimal(cents) / 100).quantize(CENT))
