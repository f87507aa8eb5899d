"""
Ranking models: periods, per-period standings and the points ledger
"""
from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, UniqueConstraint, Index, text
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.time_utils import utc_now


class RankingPeriod(Base):
    """Date range within which tournament points accumulate"""
    __tablename__ = "ranking_periods"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), default="active", nullable=False)  # 'active', 'closed'

    # Timestamps
    created_at = Column(DateTime, default=utc_now)
    closed_at = Column(DateTime, nullable=True)

    # At most one active period
    __table_args__ = (
        Index(
            'ix_ranking_periods_single_active', 'status', unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    rankings = relationship("PlayerRanking", back_populates="period", cascade="all, delete-orphan")


class PlayerRanking(Base):
    """A player's standing within one ranking period"""
    __tablename__ = "player_rankings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)
    period_id = Column(Integer, ForeignKey("ranking_periods.id", ondelete="CASCADE"), nullable=False, index=True)

    # Aggregates
    total_points = Column(Integer, default=0, nullable=False)
    tournaments_played = Column(Integer, default=0, nullable=False)
    best_finish = Column(Integer, nullable=True)  # Lowest finish position scored

    # Standings
    ranking_position = Column(Integer, nullable=True)
    previous_position = Column(Integer, nullable=True)
    state_position = Column(Integer, nullable=True)  # Within the player's state
    position_change = Column(Integer, default=0, nullable=False)  # new - previous

    last_updated = Column(DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint('player_id', 'period_id', name='unique_player_ranking'),
        Index('ix_player_rankings_standings', 'period_id', 'ranking_position'),
    )

    player = relationship("Player", back_populates="rankings")
    period = relationship("RankingPeriod", back_populates="rankings")

    @property
    def trend(self) -> str:
        """'new', 'up', 'down' or 'same' relative to the previous position"""
        if self.previous_position is None or self.ranking_position is None:
            return "new"
        if self.ranking_position < self.previous_position:
            return "up"
        if self.ranking_position > self.previous_position:
            return "down"
        return "same"


class RankingPointsHistory(Base):
    """
    Points ledger.

    Tournament rows are keyed by (player, tournament, category, period) and
    rebuilt on every aggregation; rows without a tournament are manual
    adjustments and carry a reason.
    """
    __tablename__ = "ranking_points_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=True)
    category_id = Column(Integer, ForeignKey("tournament_categories.id", ondelete="CASCADE"), nullable=True)
    period_id = Column(Integer, ForeignKey("ranking_periods.id", ondelete="CASCADE"), nullable=False, index=True)

    points_earned = Column(Integer, nullable=False)
    finish_position = Column(Integer, nullable=True)
    total_participants = Column(Integer, nullable=True)
    reason = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=utc_now, index=True)

    __table_args__ = (
        UniqueConstraint('player_id', 'tournament_id', 'category_id', 'period_id', name='unique_points_event'),
    )

    player = relationship("Player")
    tournament = relationship("Tournament")
    category = relationship("TournamentCategory")
    period = relationship("RankingPeriod")
