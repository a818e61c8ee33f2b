"""
Client session store.

Holds who is signed in on this device and whether that session is still
live. Expiry is lazy: there is no timer, ``is_active()`` notices an idle
session the next time anything asks and clears it.

SESSION MODEL:
- 30-minute idle timeout, sliding: every successful check pushes it out
- logout() ends the session but keeps the cached user for display
- clear() forgets everything (the "reset PIN" path)
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Callable

from .storage import MemoryStorage

logger = logging.getLogger(__name__)

SESSION_TIMEOUT = timedelta(minutes=30)

USER_ID_KEY = "user_id"
USER_DATA_KEY = "user_data"
SESSION_KEY = "session_active"
LAST_ACTIVITY_KEY = "last_activity"
TOKEN_KEY = "session_token"

ALL_KEYS = (USER_ID_KEY, USER_DATA_KEY, SESSION_KEY, LAST_ACTIVITY_KEY, TOKEN_KEY)


@dataclass(frozen=True)
class UserSnapshot:
    """The parts of a user record the client keeps. Never includes the PIN."""
    id: int
    name: str
    role: str
    timezone: str
    session_start_time: str | None = None
    session_end_time: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "UserSnapshot":
        return cls(
            id=data["id"],
            name=data["name"],
            role=data["role"],
            timezone=data["timezone"],
            session_start_time=data.get("session_start_time"),
            session_end_time=data.get("session_end_time"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


class SessionStore:
    """
    Explicit session context, handed to whatever needs the current user.

    ``storage`` is any object with get/set/remove of string values
    (see storage.py). ``clock`` returns seconds since the epoch.
    """

    def __init__(
        self,
        storage=None,
        *,
        clock: Callable[[], float] = time.time,
        timeout: timedelta = SESSION_TIMEOUT,
    ):
        self._storage = storage if storage is not None else MemoryStorage()
        self._clock = clock
        self._timeout_ms = int(timeout.total_seconds() * 1000)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def set_session(self, user: UserSnapshot, token: str | None = None) -> None:
        """Start a session for ``user``, replacing any previous one."""
        self._storage.set(USER_ID_KEY, str(user.id))
        self._storage.set(USER_DATA_KEY, json.dumps(user.to_dict()))
        if token:
            self._storage.set(TOKEN_KEY, token)
        else:
            self._storage.remove(TOKEN_KEY)
        self._storage.set(SESSION_KEY, "true")
        self._storage.set(LAST_ACTIVITY_KEY, str(self._now_ms()))

    def is_active(self) -> bool:
        """
        True while the session is live; refreshes the activity stamp.

        An idle session past the timeout is logged out here and reported
        as inactive.
        """
        active = self._storage.get(SESSION_KEY)
        last_activity = self._storage.get(LAST_ACTIVITY_KEY)
        if not active or not last_activity:
            return False

        try:
            last_ms = int(last_activity)
        except ValueError:
            self.logout()
            return False

        now = self._now_ms()
        if now - last_ms > self._timeout_ms:
            logger.info("Session expired after %d ms idle", now - last_ms)
            self.logout()
            return False

        self._storage.set(LAST_ACTIVITY_KEY, str(now))
        return True

    def current_user(self) -> UserSnapshot | None:
        if not self.is_active():
            return None
        raw = self._storage.get(USER_DATA_KEY)
        if not raw:
            return None
        try:
            return UserSnapshot.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable cached user")
            self.clear()
            return None

    def user_id(self) -> int | None:
        if not self.is_active():
            return None
        raw = self._storage.get(USER_ID_KEY)
        return int(raw) if raw else None

    def token(self) -> str | None:
        if not self.is_active():
            return None
        return self._storage.get(TOKEN_KEY)

    def cached_user(self) -> UserSnapshot | None:
        """Last signed-in user, even after logout. Grants nothing."""
        raw = self._storage.get(USER_DATA_KEY)
        if not raw:
            return None
        try:
            return UserSnapshot.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            return None

    def logout(self) -> None:
        self._storage.remove(SESSION_KEY)
        self._storage.remove(LAST_ACTIVITY_KEY)
        self._storage.remove(TOKEN_KEY)

    def clear(self) -> None:
        for key in ALL_KEYS:
            self._storage.remove(key)
