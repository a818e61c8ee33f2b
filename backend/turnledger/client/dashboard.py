"""
Dashboard shell: card/cash tabs over two transaction grids.

Presentation state only. The view layer calls check_auth() on a timer
(AUTH_CHECK_INTERVAL) and renders whatever this object reports. Each grid
sends its writes from a background pump started when the grid is opened;
pass ``pump_interval=None`` to drive the grids by hand.
"""

from __future__ import annotations

import logging
from typing import Callable

from turnledger.time_utils import DEFAULT_BUSINESS_TIMEZONE, business_date as compute_business_date

from .backend import BackendError
from .formatting import format_currency, format_display_date
from .grid import TransactionGrid
from .session_store import SessionStore, UserSnapshot

logger = logging.getLogger(__name__)

TABS = ("card", "cash")
SWIPE_DIRECTIONS = ("left", "right")

# Seconds between session checks while the dashboard is open
AUTH_CHECK_INTERVAL = 60

# Seconds between write-queue polls of each open grid
PUMP_INTERVAL = 0.05


class Dashboard:
    def __init__(
        self,
        session: SessionStore,
        backend,
        *,
        verifier=None,
        on_logout: Callable[[], None] | None = None,
        tz_name: str = DEFAULT_BUSINESS_TIMEZONE,
        grid_options: dict | None = None,
        pump_interval: float | None = PUMP_INTERVAL,
    ):
        self._session = session
        self._backend = backend
        self._verifier = verifier
        self._on_logout = on_logout
        self._pump_interval = pump_interval
        self._grid_options = dict(grid_options or {})
        self._grid_options.setdefault("tz_name", tz_name)

        self.business_date = self._grid_options.get("business_date") or compute_business_date(tz_name=tz_name)
        self._grid_options["business_date"] = self.business_date

        self.active_tab = TABS[0]
        self.privacy_mode = False
        self.closed = False
        self._grids: dict[str, TransactionGrid] = {}

    @property
    def user(self) -> UserSnapshot | None:
        return self._session.current_user()

    def display_date(self) -> str:
        return format_display_date(self.business_date)

    # -- tabs -----------------------------------------------------------

    def grid(self, tab: str | None = None) -> TransactionGrid:
        """
        Grid for ``tab`` (default: the active one), loaded and pumping on
        first use.

        A failed load leaves the grid with status "error" for the view to
        show; call grid.load() again to retry.
        """
        tab = tab or self.active_tab
        if tab not in TABS:
            raise ValueError(f"Unknown tab: {tab}")

        grid = self._grids.get(tab)
        if grid is None:
            grid = TransactionGrid(self._backend, tab, **self._grid_options)
            self._grids[tab] = grid
            try:
                grid.load()
            except BackendError:
                pass  # grid.status == "error", already logged by the grid
            if self._pump_interval is not None and not self.closed:
                grid.start(self._pump_interval)
        return grid

    def select_tab(self, tab: str) -> str:
        if tab not in TABS:
            raise ValueError(f"Unknown tab: {tab}")
        self.active_tab = tab
        return tab

    def swipe(self, direction: str) -> str:
        """Left moves to the next tab, right to the previous; stops at the ends."""
        if direction not in SWIPE_DIRECTIONS:
            raise ValueError(f"Unknown swipe direction: {direction}")
        index = TABS.index(self.active_tab)
        index = index + 1 if direction == "left" else index - 1
        self.active_tab = TABS[min(max(index, 0), len(TABS) - 1)]
        return self.active_tab

    def toggle_privacy(self) -> bool:
        self.privacy_mode = not self.privacy_mode
        return self.privacy_mode

    def totals_display(self, tab: str | None = None) -> dict[str, str]:
        """Formatted totals, masked while privacy mode is on."""
        totals = self.grid(tab).totals()
        if self.privacy_mode:
            return {key: "•••" for key in totals}
        return {key: f"${format_currency(value)}" for key, value in totals.items()}

    # -- session --------------------------------------------------------

    def check_auth(self) -> bool:
        """
        False (and the logout callback fired) once the session has lapsed.

        The local session is checked first, then the server token. A token
        the backend rejects ends the local session too; a backend that
        cannot be reached leaves the dashboard open.
        """
        if self.closed:
            return False
        if not self._session.is_active():
            logger.info("Session expired; leaving dashboard")
            self._end()
            return False

        try:
            self._backend.me()
        except BackendError as exc:
            if exc.status_code != 401:
                logger.warning("Could not confirm session with the backend: %s", exc)
                return True
            logger.info("Server session ended; leaving dashboard")
            self.close()
            self._backend.set_token(None)
            self._session.logout()
            if self._on_logout is not None:
                self._on_logout()
            return False
        return True

    def logout(self) -> None:
        # Flush while the token is still valid
        self.close()
        if self._verifier is not None:
            self._verifier.logout()
        else:
            self._session.logout()
        if self._on_logout is not None:
            self._on_logout()

    def _end(self) -> None:
        self.close()
        if self._on_logout is not None:
            self._on_logout()

    def close(self) -> None:
        """Flush every grid's outstanding writes and stop their pumps."""
        if self.closed:
            return
        self.closed = True
        for grid in self._grids.values():
            grid.close()
