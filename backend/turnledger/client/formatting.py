from __future__ import annotations

from datetime import date
from decimal import Decimal


def format_currency(amount: Decimal | None) -> str:
    if amount is None:
        return ""
    return f"{Decimal(amount):.2f}"


def format_time(value: str | None) -> str:
    """"14:05" -> "2:05 PM". Unparseable input comes back unchanged."""
    if not value:
        return ""
    try:
        hours, minutes = value.split(":")[:2]
        hour = int(hours)
    except ValueError:
        return value
    suffix = "PM" if hour >= 12 else "AM"
    return f"{hour % 12 or 12}:{minutes} {suffix}"


def format_display_date(business_date: str) -> str:
    """"2026-10-19" -> "Monday, October 19, 2026"."""
    day = date.fromisoformat(business_date)
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"
