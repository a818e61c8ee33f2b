# Overview: Tests for the nightly archive-and-clear job and its endpoint.

"""
Daily reset tests.

Covers:
- bearer CRON_SECRET is required (503 when unset)
- today's rows of every user move to archived_transactions
- other days are untouched, a second run archives nothing
"""

import pytest

from helpers import cron_headers
from turnledger.extensions import db
from turnledger.models import ArchivedTransaction, Transaction
from turnledger.services import reset_service, transaction_service


def add_turn(user, business_date, entry_number, payment_type="card", **fields):
    return transaction_service.create_transaction(
        user_id=user.id,
        payment_type=payment_type,
        business_date=business_date,
        entry_number=entry_number,
        fields=fields,
    )


@pytest.fixture
def today():
    return transaction_service.current_business_date()


@pytest.fixture
def ledger(ana, ben, today):
    return [
        add_turn(ana, today, 1, service="Haircut", card_amount="40"),
        add_turn(ana, today, 1, payment_type="cash", cash_amount="25", tips="5"),
        add_turn(ben, today, 1, note="walk-in"),
        add_turn(ana, "2000-01-01", 1, note="old"),
    ]


# ============================================================================
# ENDPOINT GUARD
# ============================================================================

class TestCronSecret:

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_missing_secret_is_unauthorized(self, client, db_session, method):
        response = getattr(client, method)('/api/reset-daily')

        assert response.status_code == 401

    def test_wrong_secret_is_unauthorized(self, client, db_session):
        response = client.post('/api/reset-daily', headers=cron_headers("nope"))

        assert response.status_code == 401

    def test_unconfigured_secret_disables_endpoint(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "CRON_SECRET", None)

        response = client.post('/api/reset-daily', headers=cron_headers())

        assert response.status_code == 503

    def test_user_token_is_not_enough(self, client, ana_headers):
        response = client.post('/api/reset-daily', headers=ana_headers)

        assert response.status_code == 401


# ============================================================================
# ARCHIVE
# ============================================================================

class TestResetDaily:

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_archives_and_clears_today(self, client, ledger, today, method):
        response = getattr(client, method)('/api/reset-daily', headers=cron_headers())

        assert response.status_code == 200
        body = response.json
        assert body["success"] is True
        assert body["business_date"] == today
        assert body["archived"] == 3
        assert "Archived 3 transactions" in body["message"]

        assert db.session.query(Transaction).filter_by(business_date=today).count() == 0
        assert db.session.query(ArchivedTransaction).count() == 3

    def test_archived_rows_keep_their_data(self, client, ledger, today):
        original_ids = {txn.id for txn in ledger[:3]}

        client.post('/api/reset-daily', headers=cron_headers())

        archived = db.session.query(ArchivedTransaction).order_by(ArchivedTransaction.original_id).all()
        assert {row.original_id for row in archived} == original_ids
        assert all(row.archived_at is not None for row in archived)

        haircut = next(row for row in archived if row.service == "Haircut")
        assert haircut.card_amount_cents == 4000
        assert haircut.to_dict()["card_amount"] == "40.00"
        assert haircut.business_date == today

    def test_other_days_are_untouched(self, client, ledger):
        client.post('/api/reset-daily', headers=cron_headers())

        remaining = db.session.query(Transaction).all()
        assert [row.note for row in remaining] == ["old"]

    def test_second_run_archives_nothing(self, client, ledger):
        client.post('/api/reset-daily', headers=cron_headers())

        response = client.post('/api/reset-daily', headers=cron_headers())

        assert response.status_code == 200
        assert response.json["archived"] == 0
        assert db.session.query(ArchivedTransaction).count() == 3

    def test_empty_day(self, client, db_session):
        response = client.get('/api/reset-daily', headers=cron_headers())

        assert response.status_code == 200
        assert response.json["archived"] == 0


class TestArchiveService:

    def test_explicit_business_date(self, ledger):
        assert reset_service.archive_business_day("2000-01-01") == 1

        archived = db.session.query(ArchivedTransaction).one()
        assert archived.note == "old"
        assert db.session.query(Transaction).count() == 3

    def test_failure_keeps_live_rows(self, ledger, today, monkeypatch):
        def failing_commit():
            raise RuntimeError("disk full")

        monkeypatch.setattr(db.session, "commit", failing_commit)
        with pytest.raises(RuntimeError):
            reset_service.archive_business_day(today)
        monkeypatch.undo()

        assert db.session.query(Transaction).filter_by(business_date=today).count() == 3
        assert db.session.query(ArchivedTransaction).count() == 0
