"""
API tests for ranking and match-result endpoints
"""
import pytest

from app.models import PlayerRanking, RankingPointsHistory, TournamentMatch

API = "/api/v1"


@pytest.fixture
def ranked_bracket(db_session, active_period, factory):
    """Eight-player local bracket with rankings already recalculated"""
    state = factory.state()
    tournament = factory.tournament(name="City Open")
    category = factory.category(tournament)
    players = factory.players(8, state=state)
    factory.register(tournament, category, players)
    factory.singles_bracket(tournament, category, players)
    return tournament, category, players


def test_health(client, active_period):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["services"]["database"]["status"] == "connected"
    assert data["services"]["rankings"]["active_period"] == "2026 Rankings"
    assert data["services"]["scheduler"]["status"] == "stopped"


class TestRecalculate:
    def test_recalculate(self, client, ranked_bracket, active_period):
        response = client.post(f"{API}/rankings/recalculate")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["period_id"] == active_period.id
        assert data["players_processed"] == 8
        assert data["rankings_updated"] == 8
        assert data["positions_assigned"] == 8
        assert data["errors"] == []
        assert data["message"] == "Rankings recalculated successfully"

    def test_recalculate_reports_errors(self, client, ranked_bracket, monkeypatch):
        from app.core.exceptions import RankingDataError
        from app.services.ranking_service import ranking_service

        _, _, players = ranked_bracket
        original = ranking_service.calculate_player_ranking

        def flaky(db, player_id, period_id):
            if player_id == players[0].id:
                raise RankingDataError("broken registration")
            return original(db, player_id, period_id)

        monkeypatch.setattr(ranking_service, "calculate_player_ranking", flaky)

        response = client.post(f"{API}/rankings/recalculate")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Rankings recalculated with 1 errors"
        assert data["errors"][0]["player_id"] == players[0].id

    def test_recalculate_failure_is_500(self, client, monkeypatch):
        from app.core.exceptions import RankingPeriodConflictError
        from app.services.ranking_period_service import ranking_period_service

        def conflict(db):
            raise RankingPeriodConflictError("Could not resolve the active ranking period")

        monkeypatch.setattr(ranking_period_service, "get_or_create_active_period", conflict)

        response = client.post(f"{API}/rankings/recalculate")

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to recalculate rankings"


class TestReads:
    def test_leaderboard(self, client, ranked_bracket):
        _, _, players = ranked_bracket
        client.post(f"{API}/rankings/recalculate")

        response = client.get(f"{API}/rankings/leaderboard", params={"limit": 3})

        assert response.status_code == 200
        entries = response.json()["entries"]
        assert [e["ranking_position"] for e in entries] == [1, 2, 3]
        assert entries[0]["player_id"] == players[0].id
        assert entries[0]["total_points"] == 100
        assert entries[0]["state_name"] == "Central State"
        assert [e["state_position"] for e in entries] == [1, 2, 3]
        assert entries[0]["trend"] == "new"
        assert entries[0]["recent_performance"]["points_earned"] == 100
        assert entries[0]["recent_performance"]["tournaments"] == 1

    def test_player_rankings_pagination_and_filters(self, client, ranked_bracket):
        client.post(f"{API}/rankings/recalculate")

        response = client.get(f"{API}/rankings/players", params={"page": 2, "page_size": 3})
        data = response.json()
        assert data["total_count"] == 8
        assert data["total_pages"] == 3
        assert [r["ranking_position"] for r in data["rankings"]] == [4, 5, 6]

        response = client.get(f"{API}/rankings/players", params={"change_type": "new"})
        assert response.json()["total_count"] == 8

        response = client.get(f"{API}/rankings/players", params={"search": "Player 5"})
        assert [r["player_name"] for r in response.json()["rankings"]] == ["Player 5"]

    def test_invalid_change_type(self, client, active_period):
        response = client.get(f"{API}/rankings/players", params={"change_type": "sideways"})
        assert response.status_code == 400

    def test_player_ranking_detail(self, client, ranked_bracket, active_period):
        _, _, players = ranked_bracket
        client.post(f"{API}/rankings/recalculate")

        response = client.get(f"{API}/rankings/players/{players[4].id}")

        assert response.status_code == 200
        data = response.json()
        assert data["ranking_position"] == 2
        assert data["total_points"] == 70
        assert data["best_finish"] == 2
        assert data["period_id"] == active_period.id

    def test_player_ranking_not_found(self, client, active_period):
        response = client.get(f"{API}/rankings/players/9999")
        assert response.status_code == 404

    def test_points_history(self, client, ranked_bracket):
        tournament, _, players = ranked_bracket
        client.post(f"{API}/rankings/recalculate")

        response = client.get(f"{API}/rankings/players/{players[0].id}/history")

        history = response.json()["history"]
        assert len(history) == 1
        assert history[0]["tournament_name"] == tournament.name
        assert history[0]["points_earned"] == 100
        assert history[0]["finish_position"] == 1
        assert history[0]["change_type"] == "gain"

    def test_ranking_changes(self, client, ranked_bracket):
        client.post(f"{API}/rankings/recalculate")

        response = client.get(f"{API}/rankings/changes", params={"page_size": 5})

        data = response.json()
        assert data["total_count"] == 8
        assert len(data["changes"]) == 5

    def test_stats(self, client, ranked_bracket):
        client.post(f"{API}/rankings/recalculate")

        data = client.get(f"{API}/rankings/stats").json()

        assert data["total_ranked_players"] == 8
        assert data["highest_points"] == 100
        assert data["most_active_state"] == "Central State"
        # 100 + 70 + 50 + 50 + 4 x 35 = 410
        assert data["average_points"] == 51
        assert data["active_period"]["status"] == "active"

    def test_stats_without_period(self, client):
        data = client.get(f"{API}/rankings/stats").json()
        assert data["total_ranked_players"] == 0
        assert data["active_period"] is None


class TestPeriods:
    def test_active_period(self, client, active_period):
        response = client.get(f"{API}/rankings/periods/active")
        assert response.status_code == 200
        assert response.json()["id"] == active_period.id

    def test_no_active_period(self, client):
        assert client.get(f"{API}/rankings/periods/active").status_code == 404
        assert client.post(f"{API}/rankings/periods/close").status_code == 400

    def test_close_period(self, client, active_period):
        response = client.post(f"{API}/rankings/periods/close")

        assert response.status_code == 200
        assert response.json()["status"] == "closed"
        periods = client.get(f"{API}/rankings/periods").json()["periods"]
        assert [p["status"] for p in periods] == ["closed"]


class TestAdjust:
    def test_adjust_points_and_position(self, client, db_session, ranked_bracket, active_period):
        _, _, players = ranked_bracket
        client.post(f"{API}/rankings/recalculate")
        player = players[7]

        response = client.post(f"{API}/rankings/adjust", json={
            "player_id": player.id,
            "points": 60,
            "new_position": 3,
            "reason": "Appeal upheld",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["previous_position"] == 8
        assert data["new_position"] == 3
        assert data["points_change"] == 25

        db_session.expire_all()
        ranking = db_session.query(PlayerRanking).filter(PlayerRanking.player_id == player.id).one()
        assert ranking.total_points == 60
        assert ranking.position_change == -5

        manual = db_session.query(RankingPointsHistory).filter(
            RankingPointsHistory.player_id == player.id,
            RankingPointsHistory.tournament_id.is_(None)
        ).one()
        assert manual.points_earned == 25
        assert manual.reason == "Appeal upheld"

    def test_adjust_requires_a_change(self, client, active_period):
        response = client.post(f"{API}/rankings/adjust", json={"player_id": 1})
        assert response.status_code == 422

    def test_adjust_unknown_ranking(self, client, active_period):
        response = client.post(f"{API}/rankings/adjust", json={"player_id": 9999, "points": 10})
        assert response.status_code == 404

    def test_adjust_without_active_period(self, client):
        response = client.post(f"{API}/rankings/adjust", json={"player_id": 1, "points": 10})
        assert response.status_code == 400


class TestCompleteMatch:
    def test_completing_final_updates_rankings(self, client, db_session, active_period, factory):
        tournament = factory.tournament()
        category = factory.category(tournament)
        players = factory.players(2)
        factory.register(tournament, category, players)
        final = factory.match(
            tournament, category, 1, 1, players[0], players[1], status="scheduled"
        )

        response = client.post(
            f"{API}/tournaments/matches/{final.id}/complete",
            json={"winner_side": 2, "score": "11-7, 9-11, 11-4"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["match"]["status"] == "completed"
        assert data["match"]["winner_side"] == 2
        # Scheduler is not running under test, so the update ran inline
        assert data["rankings_update_queued"] is False

        db_session.expire_all()
        rankings = {
            r.player_id: r for r in db_session.query(PlayerRanking).all()
        }
        # 2-player field: 100 x log10(2)/log10(8) and 70 x log10(2)/log10(8)
        assert rankings[players[1].id].total_points == 33
        assert rankings[players[1].id].ranking_position == 1
        assert rankings[players[0].id].total_points == 23
        assert rankings[players[0].id].ranking_position == 2

    def test_complete_unknown_match(self, client):
        response = client.post(f"{API}/tournaments/matches/9999/complete", json={"winner_side": 1})
        assert response.status_code == 404

    def test_complete_twice_is_rejected(self, client, db_session, factory):
        tournament = factory.tournament()
        category = factory.category(tournament)
        players = factory.players(2)
        match = factory.match(tournament, category, 1, 1, players[0], players[1], winner_side=1)

        response = client.post(f"{API}/tournaments/matches/{match.id}/complete", json={"winner_side": 1})

        assert response.status_code == 400
        assert db_session.query(TournamentMatch).filter(TournamentMatch.id == match.id).one().winner_side == 1

    def test_invalid_winner_side(self, client, factory):
        tournament = factory.tournament()
        category = factory.category(tournament)
        players = factory.players(2)
        match = factory.match(tournament, category, 1, 1, players[0], players[1], status="scheduled")

        response = client.post(f"{API}/tournaments/matches/{match.id}/complete", json={"winner_side": 3})

        assert response.status_code == 422

    def test_get_match(self, client, factory):
        tournament = factory.tournament()
        category = factory.category(tournament)
        players = factory.players(2)
        match = factory.match(tournament, category, 1, 1, players[0], players[1], status="scheduled")

        response = client.get(f"{API}/tournaments/matches/{match.id}")

        assert response.status_code == 200
        assert response.json()["player_ids"] == [players[0].id, players[1].id]
