# Overview: Service-layer operations for auth; encapsulates PIN lookup and user admin.

"""
PIN Authentication Service

WHY: Staff sign in on a shared device with a short numeric PIN. The PIN is
the only credential, so lookup must be unambiguous: a PIN held by more than
one user authenticates nobody.

SECURITY NOTES:
- PINs are stored as HMAC-SHA256 digests keyed by SECRET_KEY. A keyed,
  unsalted digest keeps lookup an indexed equality query.
- PINs are digits only, at least 4 long
- Session tokens managed separately (see session_service.py)
"""

import hashlib
import hmac
import re

from flask import current_app

from ..extensions import db
from ..models import User, USER_ROLES

MIN_PIN_LENGTH = 4
MAX_PIN_LENGTH = 8


class PinValidationError(ValueError):
    """Raised when a PIN doesn't meet format requirements."""
    pass


def normalize_pin(raw: str | None) -> str:
    """Strip everything but digits, as the keypad input does."""
    return re.sub(r"[^0-9]", "", raw or "")


def validate_pin_format(pin: str) -> None:
    """
    Validate PIN format.

    Requirements:
    - Digits only
    - Between 4 and 8 digits

    Raises PinValidationError if requirements not met.
    """
    if not pin or not pin.isdigit():
        raise PinValidationError("PIN must contain digits only")
    if len(pin) < MIN_PIN_LENGTH:
        raise PinValidationError(f"PIN must be at least {MIN_PIN_LENGTH} digits")
    if len(pin) > MAX_PIN_LENGTH:
        raise PinValidationError(f"PIN must be at most {MAX_PIN_LENGTH} digits")


def hash_pin(pin: str) -> str:
    """Keyed digest of a PIN. Same PIN and key always give the same digest."""
    key = current_app.config["SECRET_KEY"].encode("utf-8")
    return hmac.new(key, pin.encode("utf-8"), hashlib.sha256).hexdigest()


def find_users_by_pin(pin: str) -> list[User]:
    return db.session.query(User).filter_by(pin_digest=hash_pin(pin)).all()


def authenticate_by_pin(pin: str) -> User | None:
    """
    Return the single user holding ``pin``.

    Returns None when the PIN is malformed, unknown, or shared by several
    users. Callers must not tell these cases apart to the person at the
    keypad.
    """
    try:
        validate_pin_format(pin)
    except PinValidationError:
        return None

    matches = find_users_by_pin(pin)
    if len(matches) != 1:
        return None
    return matches[0]


def _ensure_pin_available(pin: str, user_id: int | None = None) -> None:
    for other in find_users_by_pin(pin):
        if other.id != user_id:
            raise PinValidationError("PIN is already assigned to another user")


def create_user(
    name: str,
    pin: str,
    role: str = "technician",
    timezone: str = "America/Los_Angeles",
    session_start_time: str = "09:00",
    session_end_time: str = "21:00",
) -> User:
    """
    Create a PIN user.

    Raises:
        PinValidationError: malformed PIN or PIN already in use
        ValueError: unknown role or empty name
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Name is required")
    if role not in USER_ROLES:
        raise ValueError(f"Role must be one of: {', '.join(USER_ROLES)}")

    validate_pin_format(pin)
    _ensure_pin_available(pin)

    user = User(
        name=name,
        pin_digest=hash_pin(pin),
        role=role,
        timezone=timezone,
        session_start_time=session_start_time,
        session_end_time=session_end_time,
    )
    db.session.add(user)
    db.session.commit()
    return user


def set_user_pin(user_id: int, pin: str) -> User:
    """Replace a user's PIN. Raises ValueError if the user does not exist."""
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    validate_pin_format(pin)
    _ensure_pin_available(pin, user_id=user_id)

    user.pin_digest = hash_pin(pin)
    db.session.commit()
    return user
