"""
Tournament system models

The ranking engine only reads these tables; tournament operations own them.
"""
from sqlalchemy import (
    Column, String, Integer, Boolean, Date, DateTime, Numeric, Text, ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.time_utils import utc_now


# Registrations that count towards a category's field size
ACTIVE_REGISTRATION_STATUSES = ("registered", "confirmed")


class Tournament(Base):
    """Tournament definition"""
    __tablename__ = "tournaments"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Tournament details
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Tier and status
    tournament_type = Column(String(50), default="local")  # 'local', 'regional', 'state', 'national', 'pro'
    status = Column(String(20), default="upcoming")  # 'upcoming', 'ongoing', 'completed', 'canceled'
    state_id = Column(Integer, ForeignKey("states.id"), nullable=True, index=True)

    # Ranking configuration
    is_ranking = Column(Boolean, default=True, nullable=False)
    ranking_multiplier = Column(Numeric(3, 1), default=1.0, nullable=False)

    # Schedule
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    categories = relationship("TournamentCategory", back_populates="tournament", cascade="all, delete-orphan")
    registrations = relationship("TournamentRegistration", back_populates="tournament", cascade="all, delete-orphan")
    matches = relationship("TournamentMatch", back_populates="tournament", cascade="all, delete-orphan")


class TournamentCategory(Base):
    """Bracket within a tournament (e.g. Men's Doubles 4.0)"""
    __tablename__ = "tournament_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    gender = Column(String(10), nullable=True)  # 'Male', 'Female', 'Mixed'
    format = Column(String(50), nullable=True)  # 'singles', 'doubles'

    tournament = relationship("Tournament", back_populates="categories")


class TournamentRegistration(Base):
    """Player's entry into one tournament category"""
    __tablename__ = "tournament_registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("tournament_categories.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)
    partner_player_id = Column(Integer, ForeignKey("players.id"), nullable=True)

    status = Column(String(20), default="registered")  # 'registered', 'confirmed', 'waitlisted', 'withdrawn'
    registration_date = Column(DateTime, default=utc_now)

    __table_args__ = (
        UniqueConstraint('tournament_id', 'category_id', 'player_id', name='unique_registration'),
    )

    tournament = relationship("Tournament", back_populates="registrations")
    category = relationship("TournamentCategory")
    player = relationship("Player", foreign_keys=[player_id])


class TournamentMatch(Base):
    """
    Bracket match.

    Slots 1 and 2 form side 1, slots 3 and 4 form side 2; singles matches
    leave slots 2 and 4 empty.
    """
    __tablename__ = "tournament_matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("tournament_categories.id", ondelete="CASCADE"), nullable=False)

    round = Column(Integer, nullable=False)  # 1 = earliest round
    match_number = Column(Integer, nullable=False)
    match_date = Column(Date, nullable=True)

    player1_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    player2_id = Column(Integer, ForeignKey("players.id"), nullable=True)
    player3_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    player4_id = Column(Integer, ForeignKey("players.id"), nullable=True)

    score = Column(Text, nullable=True)
    winner_side = Column(Integer, nullable=True)  # 1 or 2
    status = Column(String(20), default="scheduled")  # 'scheduled', 'in_progress', 'completed', 'walkover', 'canceled'

    # Timestamps
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now)

    __table_args__ = (
        UniqueConstraint('tournament_id', 'category_id', 'round', 'match_number', name='unique_match'),
        Index('ix_tournament_matches_bracket', 'tournament_id', 'category_id', 'status', 'round'),
    )

    tournament = relationship("Tournament", back_populates="matches")
    category = relationship("TournamentCategory")

    @property
    def player_ids(self) -> list:
        """Distinct occupied slots, in slot order"""
        ids = []
        for player_id in (self.player1_id, self.player2_id, self.player3_id, self.player4_id):
            if player_id is not None and player_id not in ids:
                ids.append(player_id)
        return ids

    def side_of(self, player_id: int):
        """Side (1 or 2) the player occupies, or None"""
        if player_id in (self.player1_id, self.player2_id):
            return 1
        if player_id in (self.player3_id, self.player4_id):
            return 2
        return None
