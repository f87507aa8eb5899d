"""
Shared fixtures: in-memory SQLite database and a FastAPI test client
"""
import os
from datetime import date

# Settings are read at import time
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("RANKING_PERIOD_RETRY_BACKOFF_SECONDS", "0")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, get_db
from app.main import app as fastapi_app
from app.models import (
    State,
    Player,
    Tournament,
    TournamentCategory,
    TournamentRegistration,
    TournamentMatch,
    RankingPeriod,
)
from app.services.scheduler_service import scheduler_service

TEST_DATABASE_URL = "sqlite://"

PERIOD_START = date(2026, 1, 1)
PERIOD_END = date(2026, 12, 31)


@pytest.fixture
def engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session, session_factory):
    def override_get_db():
        yield db_session

    original_factory = scheduler_service.session_factory
    fastapi_app.dependency_overrides[get_db] = override_get_db
    scheduler_service.session_factory = session_factory

    # No context manager: the lifespan would connect to the configured database
    yield TestClient(fastapi_app)

    fastapi_app.dependency_overrides.clear()
    scheduler_service.session_factory = original_factory


@pytest.fixture
def active_period(db_session):
    period = RankingPeriod(
        name="2026 Rankings",
        start_date=PERIOD_START,
        end_date=PERIOD_END,
        status="active",
    )
    db_session.add(period)
    db_session.commit()
    return period


class Factory:
    """Builds tournament data directly through the session"""

    def __init__(self, db):
        self.db = db

    def state(self, name="Central State", short_code="CS"):
        state = State(name=name, short_code=short_code)
        self.db.add(state)
        self.db.commit()
        return state

    def player(self, full_name="Player", state=None):
        player = Player(full_name=full_name, state_id=state.id if state else None)
        self.db.add(player)
        self.db.commit()
        return player

    def players(self, count, state=None, prefix="Player"):
        return [self.player(f"{prefix} {i + 1}", state) for i in range(count)]

    def tournament(
        self,
        name="Open",
        tournament_type="local",
        state=None,
        is_ranking=True,
        ranking_multiplier=1.0,
        start_date=date(2026, 3, 14),
    ):
        tournament = Tournament(
            name=name,
            tournament_type=tournament_type,
            state_id=state.id if state else None,
            is_ranking=is_ranking,
            ranking_multiplier=ranking_multiplier,
            start_date=start_date,
            end_date=start_date,
        )
        self.db.add(tournament)
        self.db.commit()
        return tournament

    def category(self, tournament, name="Open Singles", format="singles"):
        category = TournamentCategory(tournament_id=tournament.id, name=name, format=format)
        self.db.add(category)
        self.db.commit()
        return category

    def register(self, tournament, category, players, status="registered"):
        for player in players:
            self.db.add(TournamentRegistration(
                tournament_id=tournament.id,
                category_id=category.id,
                player_id=player.id,
                status=status,
            ))
        self.db.commit()

    def register_team(self, tournament, category, player, partner, status="registered"):
        """One doubles entry: the partner rides on the player's registration"""
        self.db.add(TournamentRegistration(
            tournament_id=tournament.id,
            category_id=category.id,
            player_id=player.id,
            partner_player_id=partner.id,
            status=status,
        ))
        self.db.commit()

    def match(
        self,
        tournament,
        category,
        round,
        match_number,
        side1,
        side2,
        winner_side=None,
        status="completed",
    ):
        """side1/side2 are a player (singles) or a pair of players (doubles)"""
        side1 = side1 if isinstance(side1, (list, tuple)) else [side1]
        side2 = side2 if isinstance(side2, (list, tuple)) else [side2]
        match = TournamentMatch(
            tournament_id=tournament.id,
            category_id=category.id,
            round=round,
            match_number=match_number,
            player1_id=side1[0].id,
            player2_id=side1[1].id if len(side1) > 1 else None,
            player3_id=side2[0].id,
            player4_id=side2[1].id if len(side2) > 1 else None,
            winner_side=winner_side,
            status=status,
        )
        self.db.add(match)
        self.db.commit()
        return match

    def singles_bracket(self, tournament, category, players):
        """
        Play out a full single-elimination bracket in which the lower seed
        (earlier in the list) always wins. len(players) must be a power of two.
        """
        current = list(players)
        round_number = 1
        while len(current) > 1:
            winners = []
            for i in range(0, len(current), 2):
                self.match(
                    tournament, category, round_number, i // 2 + 1,
                    current[i], current[i + 1], winner_side=1
                )
                winners.append(current[i])
            current = winners
            round_number += 1
        return current[0]


@pytest.fixture
def factory(db_session):
    return Factory(db_session)
