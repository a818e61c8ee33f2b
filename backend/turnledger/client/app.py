"""
Client composition root.

Builds the session store, backend gateway and PIN verifier once, and moves
between the PIN screen and the dashboard the way the app shell does:
restore a live session on start, open the dashboard after login, drop back
to the PIN screen on logout or expiry.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Callable

import httpx

from .backend import HttpBackend
from .dashboard import PUMP_INTERVAL, Dashboard
from .pin_verifier import PinVerifier
from .session_store import SessionStore, UserSnapshot
from .storage import FileStorage, MemoryStorage

logger = logging.getLogger(__name__)


class ClientApp:
    def __init__(
        self,
        base_url: str,
        *,
        state_path: str | os.PathLike | None = None,
        storage=None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.time,
        grid_options: dict | None = None,
        pump_interval: float | None = PUMP_INTERVAL,
    ):
        if storage is None:
            storage = FileStorage(state_path) if state_path else MemoryStorage()

        self.session = SessionStore(storage, clock=clock)
        self.backend = HttpBackend(base_url, transport=transport)
        self.verifier = PinVerifier(self.backend, self.session)
        self._grid_options = grid_options
        self._pump_interval = pump_interval
        self.dashboard: Dashboard | None = None

        if self.verifier.restore() is not None:
            self._open_dashboard()

    @property
    def is_authenticated(self) -> bool:
        return self.dashboard is not None and self.session.is_active()

    def login(self, pin: str) -> UserSnapshot | None:
        user = self.verifier.verify(pin)
        if user is not None:
            self._open_dashboard()
        return user

    def logout(self) -> None:
        if self.dashboard is not None:
            self.dashboard.logout()
        else:
            self.verifier.logout()

    def reset_pin(self) -> None:
        """Forget the user on this device; the next login starts from scratch."""
        self.logout()
        self.session.clear()

    def _open_dashboard(self) -> Dashboard:
        if self.dashboard is not None:
            self.dashboard.close()
        self.dashboard = Dashboard(
            self.session,
            self.backend,
            verifier=self.verifier,
            on_logout=self._on_logout,
            grid_options=self._grid_options,
            pump_interval=self._pump_interval,
        )
        return self.dashboard

    def _on_logout(self) -> None:
        self.dashboard = None

    def close(self) -> None:
        if self.dashboard is not None:
            self.dashboard.close()
        self.backend.close()
