"""
Tiered service picker.

A service is chosen in up to three steps: kind (tier 1), style (tier 2) and,
for refills only, the weeks since the last visit (tier 3). The choice is
stored in a transaction's ``service`` field as JSON; anything else found there
is legacy free text and is shown as-is.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

TIER1_OPTIONS = ("Full Set", "Refill", "Other")
TIER2_OPTIONS = {
    "Full Set": ("Natural", "Elegant", "Mega"),
    "Refill": ("Natural", "Elegant", "Mega"),
    "Other": ("Removal", "Bottom Set", "Demi Set"),
}
TIER3_OPTIONS = ("1-7", "7-14", "15-28")

# Only this tier-1 choice continues to tier 3
TIER3_PARENT = "Refill"

DISPLAY_SEPARATOR = " → "


class ServiceSelectionError(ValueError):
    pass


@dataclass(frozen=True)
class ServiceSelection:
    tier1: str | None = None
    tier2: str | None = None
    tier3: str | None = None

    @property
    def is_complete(self) -> bool:
        if not (self.tier1 and self.tier2):
            return False
        if self.tier1 == TIER3_PARENT:
            return self.tier3 is not None
        return True

    def display_text(self) -> str:
        return DISPLAY_SEPARATOR.join(part for part in (self.tier1, self.tier2, self.tier3) if part)

    def to_json(self) -> str:
        data = {key: value for key, value in
                (("tier1", self.tier1), ("tier2", self.tier2), ("tier3", self.tier3)) if value}
        return json.dumps(data, ensure_ascii=False)


def next_options(selection: ServiceSelection) -> tuple[str, ...]:
    """Choices offered for the next step, or () once the selection is final."""
    if not selection.tier1:
        return TIER1_OPTIONS
    if not selection.tier2:
        return TIER2_OPTIONS[selection.tier1]
    if selection.tier1 == TIER3_PARENT and not selection.tier3:
        return TIER3_OPTIONS
    return ()


def build_selection(tier1: str, tier2: str, tier3: str | None = None) -> ServiceSelection:
    """
    Validate a finished choice.

    Raises ServiceSelectionError for an option that does not belong to its
    tier, a missing tier 3 on a refill, or a tier 3 anywhere else.
    """
    if tier1 not in TIER1_OPTIONS:
        raise ServiceSelectionError(f"Unknown service: {tier1!r}")
    if tier2 not in TIER2_OPTIONS[tier1]:
        raise ServiceSelectionError(f"{tier2!r} is not a {tier1} option")
    if tier1 == TIER3_PARENT:
        if tier3 not in TIER3_OPTIONS:
            raise ServiceSelectionError(f"Refill needs one of: {', '.join(TIER3_OPTIONS)}")
    elif tier3 is not None:
        raise ServiceSelectionError(f"{tier1} has no third step")
    return ServiceSelection(tier1, tier2, tier3)


def parse_service(value: str | None) -> ServiceSelection | None:
    """Read a stored service value. Returns None for empty or legacy text."""
    if not value:
        return None
    try:
        data = json.loads(value)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    return ServiceSelection(data.get("tier1"), data.get("tier2"), data.get("tier3"))


def display_service(value: str | None) -> str:
    selection = parse_service(value)
    if selection is None:
        return value or ""
    return selection.display_text()
