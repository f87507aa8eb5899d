"""
Player and state affiliation models
"""
from sqlalchemy import Column, String, Integer, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.time_utils import utc_now


class State(Base):
    """State federation that players and tournaments belong to"""
    __tablename__ = "states"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    short_code = Column(String(5), nullable=True)

    players = relationship("Player", back_populates="state")


class Player(Base):
    """Registered player profile"""
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(255), nullable=False)
    state_id = Column(Integer, ForeignKey("states.id"), nullable=True, index=True)
    nrtp_level = Column(Numeric(3, 1), nullable=True)  # Skill rating, not computed here

    # Timestamps
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    state = relationship("State", back_populates="players")
    rankings = relationship("PlayerRanking", back_populates="player", cascade="all, delete-orphan")
