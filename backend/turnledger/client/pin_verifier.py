"""
PIN verification against the backend user table.

Every sign-in is a full backend lookup; there is no locally stored PIN and
no "has PIN" shortcut.
"""

from __future__ import annotations

import logging

from .backend import BackendError
from .session_store import SessionStore, UserSnapshot

logger = logging.getLogger(__name__)

MIN_PIN_LENGTH = 4


def clean_pin(raw: str | None) -> str:
    """Keep digits only, as typed on the keypad."""
    return "".join(ch for ch in (raw or "") if ch.isdigit())


class PinVerifier:
    def __init__(self, backend, session: SessionStore):
        self._backend = backend
        self._session = session

    def verify(self, pin: str) -> UserSnapshot | None:
        """
        Sign in with ``pin``.

        Returns the user snapshot and starts a session when exactly one
        user holds the PIN. Returns None otherwise, including when the
        backend cannot be reached; the caller shows the same "Invalid PIN"
        either way.
        """
        pin = clean_pin(pin)
        if len(pin) < MIN_PIN_LENGTH:
            return None

        try:
            result = self._backend.login_pin(pin)
        except BackendError:
            logger.exception("PIN verification failed at the backend")
            return None

        if result is None:
            return None

        user_data, token = result
        user = UserSnapshot.from_dict(user_data)
        self._session.set_session(user, token=token)
        self._backend.set_token(token)
        logger.info("User %s signed in", user.id)
        return user

    def restore(self) -> UserSnapshot | None:
        """Re-arm the backend from a still-live stored session."""
        user = self._session.current_user()
        token = self._session.token()
        if user is None or not token:
            return None
        self._backend.set_token(token)
        return user

    def logout(self) -> None:
        """End the local session; revoking the server token is best effort."""
        if self._backend.has_token:
            try:
                self._backend.logout()
            except BackendError:
                logger.warning("Could not revoke server session", exc_info=True)
        self._backend.set_token(None)
        self._session.logout()

    def reset(self) -> None:
        """Forget this device's user entirely."""
        self.logout()
        self._session.clear()
