# Overview: Tests for the dashboard shell (tabs, privacy, session checks).

"""
Dashboard tests.

The dashboard owns one grid per tab, masks totals in privacy mode and
drops back to the PIN screen once the session lapses.
"""

import time
from datetime import timedelta

import pytest

from helpers import BUSINESS_DATE, FakeBackend
from turnledger.client.dashboard import AUTH_CHECK_INTERVAL, Dashboard
from turnledger.client.pin_verifier import PinVerifier
from turnledger.client.session_store import SessionStore, UserSnapshot

ANA = {"id": 1, "name": "Ana", "role": "technician", "timezone": "America/Los_Angeles"}


@pytest.fixture
def backend():
    return FakeBackend(users={"4821": [ANA]})


@pytest.fixture
def session(clock):
    return SessionStore(clock=clock)


@pytest.fixture
def verifier(backend, session):
    verifier = PinVerifier(backend, session)
    assert verifier.verify("4821") is not None
    return verifier


@pytest.fixture
def logouts():
    return []


@pytest.fixture
def dashboard(backend, session, verifier, logouts):
    dashboard = Dashboard(
        session,
        backend,
        verifier=verifier,
        on_logout=lambda: logouts.append(True),
        grid_options={"business_date": BUSINESS_DATE, "debounce": 0.5},
    )
    yield dashboard
    dashboard.close()


class TestTabs:

    def test_starts_on_card(self, dashboard):
        assert dashboard.active_tab == "card"
        assert dashboard.grid().payment_type == "card"

    def test_grid_loads_once_per_tab(self, dashboard, backend):
        first = dashboard.grid("cash")
        second = dashboard.grid("cash")

        assert first is second
        assert backend.calls_to("list_transactions") == [("cash", BUSINESS_DATE)]

    def test_swipe_moves_between_tabs_and_stops_at_ends(self, dashboard):
        assert dashboard.swipe("right") == "card"
        assert dashboard.swipe("left") == "cash"
        assert dashboard.swipe("left") == "cash"
        assert dashboard.swipe("right") == "card"

    def test_select_tab(self, dashboard):
        assert dashboard.select_tab("cash") == "cash"
        assert dashboard.grid().payment_type == "cash"

    @pytest.mark.parametrize("tab", ["tips", "", "CARD"])
    def test_unknown_tab(self, dashboard, tab):
        with pytest.raises(ValueError):
            dashboard.select_tab(tab)

    def test_unknown_swipe(self, dashboard):
        with pytest.raises(ValueError):
            dashboard.swipe("up")

    def test_load_failure_leaves_grid_in_error(self, dashboard, backend):
        backend.fail_next("list_transactions")

        grid = dashboard.grid()

        assert grid.status == "error"

    def test_display_date(self, dashboard):
        assert dashboard.display_date() == "Monday, October 19, 2026"


class TestBackgroundWrites:

    def test_opened_grid_is_pumping(self, dashboard):
        assert dashboard.grid("card").running

    def test_edit_is_stored_after_quiet_period(self, backend, session, verifier):
        dashboard = Dashboard(
            session, backend, verifier=verifier,
            grid_options={"business_date": BUSINESS_DATE, "debounce": 0.01},
        )
        grid = dashboard.grid("card")
        grid.edit_cell(1, "note", "walk-in")

        deadline = time.monotonic() + 2
        while grid.has_pending_writes() and time.monotonic() < deadline:
            time.sleep(0.01)

        try:
            assert [r["note"] for r in backend.bucket("card", BUSINESS_DATE)] == ["walk-in"]
        finally:
            dashboard.close()

    def test_manual_pumping(self, backend, session, verifier):
        dashboard = Dashboard(
            session, backend, verifier=verifier, pump_interval=None,
            grid_options={"business_date": BUSINESS_DATE},
        )

        assert not dashboard.grid("cash").running

    def test_close_stops_pumps(self, dashboard):
        grid = dashboard.grid("cash")

        dashboard.close()

        assert not grid.running


class TestPrivacy:

    def test_totals_display(self, dashboard, backend):
        backend.seed("card", BUSINESS_DATE, 1, card_amount="1234.50", tips="5.00")

        assert dashboard.totals_display() == {
            "cash": "$0.00",
            "card": "$1234.50",
            "tips": "$5.00",
        }

    def test_privacy_masks_totals(self, dashboard):
        assert dashboard.toggle_privacy() is True
        assert set(dashboard.totals_display().values()) == {"•••"}

        assert dashboard.toggle_privacy() is False
        assert "•••" not in dashboard.totals_display().values()


class TestSessionChecks:

    def test_check_auth_while_active(self, dashboard, clock, logouts):
        clock.advance(AUTH_CHECK_INTERVAL)

        assert dashboard.check_auth() is True
        assert logouts == []

    def test_check_auth_confirms_token_with_backend(self, dashboard, backend):
        assert dashboard.check_auth() is True
        assert backend.calls_to("me") == [()]

    def test_check_auth_after_server_session_lapsed(self, dashboard, backend, session, logouts):
        dashboard.grid().edit_cell(1, "note", "before expiry")
        backend.expire_sessions()

        assert dashboard.check_auth() is False
        assert logouts == [True]
        assert dashboard.closed
        assert session.is_active() is False
        assert session.cached_user().name == "Ana"
        assert not backend.has_token

    def test_check_auth_survives_unreachable_backend(self, dashboard, backend, logouts):
        backend.fail_next("me")

        assert dashboard.check_auth() is True
        assert logouts == []
        assert not dashboard.closed

    def test_check_auth_after_idle_timeout(self, dashboard, clock, logouts):
        clock.advance(timedelta(minutes=31).total_seconds())

        assert dashboard.check_auth() is False
        assert logouts == [True]
        assert dashboard.closed

        assert dashboard.check_auth() is False
        assert logouts == [True]

    def test_logout_revokes_and_notifies(self, dashboard, backend, session, logouts):
        dashboard.logout()

        assert backend.calls_to("logout") == [()]
        assert session.is_active() is False
        assert logouts == [True]

    def test_logout_flushes_unsaved_edits(self, dashboard, backend):
        dashboard.grid().edit_cell(1, "note", "last one")

        dashboard.logout()

        assert backend.bucket("card", BUSINESS_DATE)[0]["note"] == "last one"

    def test_user(self, dashboard):
        assert dashboard.user.name == "Ana"


def test_dashboard_without_verifier_ends_local_session(clock):
    backend = FakeBackend()
    session = SessionStore(clock=clock)
    session.set_session(UserSnapshot.from_dict(ANA))

    dashboard = Dashboard(session, backend, grid_options={"business_date": BUSINESS_DATE})
    dashboard.logout()

    assert session.is_active() is False
    assert backend.calls_to("logout") == []
