"""
Tests for background ranking jobs (scheduler not started)
"""
import pytest

from app.models import PlayerRanking
from app.services.ranking_service import ranking_service
from app.services.scheduler_service import scheduler_service


@pytest.fixture
def jobs(session_factory):
    original_factory = scheduler_service.session_factory
    scheduler_service.session_factory = session_factory
    yield scheduler_service
    scheduler_service.session_factory = original_factory


def test_enqueue_runs_inline_when_not_running(jobs, db_session, active_period, factory):
    tournament = factory.tournament()
    category = factory.category(tournament)
    players = factory.players(2)
    factory.register(tournament, category, players)
    final = factory.match(tournament, category, 1, 1, players[0], players[1], winner_side=1)

    assert jobs.running is False
    assert jobs.enqueue_match_completed(final.id) is False

    db_session.expire_all()
    assert db_session.query(PlayerRanking).count() == 2


def test_unknown_match_is_skipped(jobs, db_session, active_period):
    jobs.run_match_completed(9999)
    assert db_session.query(PlayerRanking).count() == 0


def test_full_recalculation_job(jobs, db_session, active_period, factory):
    tournament = factory.tournament()
    category = factory.category(tournament)
    players = factory.players(4)
    factory.register(tournament, category, players)
    factory.singles_bracket(tournament, category, players)

    result = jobs.run_full_recalculation(timeout_seconds=60)

    assert result is not None
    assert result.cancelled is False
    assert result.rankings_updated == 4
    assert result.positions_assigned == 4


def test_full_recalculation_failure_returns_none(jobs, monkeypatch):
    def broken(db, state_id=None, cancel_event=None):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(ranking_service, "recalculate_all", broken)

    assert jobs.run_full_recalculation(timeout_seconds=60) is None


def test_full_recalculation_passes_cancel_event(jobs, monkeypatch):
    seen = {}

    def capture(db, state_id=None, cancel_event=None):
        seen["state_id"] = state_id
        seen["cancel_event"] = cancel_event
        return ranking_service.__class__.recalculate_all(ranking_service, db, state_id, cancel_event)

    monkeypatch.setattr(ranking_service, "recalculate_all", capture)

    result = jobs.run_full_recalculation(state_id=7, timeout_seconds=60)

    assert seen["state_id"] == 7
    assert seen["cancel_event"] is not None
    assert not seen["cancel_event"].is_set()
    assert result.players_processed == 0
