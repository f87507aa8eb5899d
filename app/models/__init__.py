"""
Database models for the Federation Rankings Backend

All models should be imported here for Alembic to detect them.
"""
from app.models.player import State, Player
from app.models.tournament import Tournament, TournamentCategory, TournamentRegistration, TournamentMatch
from app.models.ranking import RankingPeriod, PlayerRanking, RankingPointsHistory

__all__ = [
    # Player
    "State",
    "Player",
    # Tournament
    "Tournament",
    "TournamentCategory",
    "TournamentRegistration",
    "TournamentMatch",
    # Ranking
    "RankingPeriod",
    "PlayerRanking",
    "RankingPointsHistory",
]
