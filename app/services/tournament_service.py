"""
Tournament service for match results
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session

from app.models.tournament import Tournament, TournamentMatch
from app.utils.time_utils import utc_now, utc_today

logger = logging.getLogger(__name__)

# Statuses from which a result can be recorded
OPEN_MATCH_STATUSES = ("scheduled", "in_progress")


class TournamentService:
    """Service for tournament operations"""

    def get_tournament(self, db: Session, tournament_id: int) -> Optional[Tournament]:
        """Get tournament by ID"""
        return db.query(Tournament).filter(Tournament.id == tournament_id).first()

    def get_match(self, db: Session, match_id: int) -> Optional[TournamentMatch]:
        """Get match by ID"""
        return db.query(TournamentMatch).filter(TournamentMatch.id == match_id).first()

    def complete_match(
        self,
        db: Session,
        match_id: int,
        winner_side: int,
        score: Optional[str] = None
    ) -> TournamentMatch:
        """
        Record a match result and mark it completed.

        Ranking recomputation is the caller's follow-up and must not be able
        to fail this operation.
        """
        match = self.get_match(db, match_id)
        if not match:
            raise ValueError("Match not found")

        if match.status not in OPEN_MATCH_STATUSES:
            raise ValueError(f"Match cannot be completed from status '{match.status}'")

        if winner_side not in (1, 2):
            raise ValueError("winner_side must be 1 or 2")

        match.winner_side = winner_side
        match.score = score
        match.status = "completed"
        match.completed_at = utc_now()
        if match.match_date is None:
            match.match_date = utc_today()

        db.commit()
        db.refresh(match)

        logger.info(f"Match {match.id} completed, side {winner_side} won")
        return match


tournament_service = TournamentService()
