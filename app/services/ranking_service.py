"""
Ranking service: turns bracket results into period standings

Flow: recalculate_all / on_match_completed
      -> calculate_player_ranking (per player)
         -> resolve_finish + calculate_points
      -> update_ranking_positions
"""
import logging
import threading
from contextlib import contextmanager
from typing import Optional, List, Dict, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import desc, asc, or_
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import RankingDataError
from app.models.player import Player
from app.models.ranking import RankingPeriod, PlayerRanking, RankingPointsHistory
from app.models.tournament import (
    Tournament,
    TournamentRegistration,
    TournamentMatch,
    ACTIVE_REGISTRATION_STATUSES,
)
from app.schemas.ranking import (
    FinishResult,
    TournamentResult,
    PlayerRankingResult,
    RecalculationError,
    RecalculationResult,
)
from app.services.ranking_points import calculate_points, bracket_rounds, MIN_SCORING_FIELD_SIZE
from app.services.ranking_period_service import ranking_period_service
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

MATCH_PLAYER_COLUMNS = (
    TournamentMatch.player1_id,
    TournamentMatch.player2_id,
    TournamentMatch.player3_id,
    TournamentMatch.player4_id,
)


class RankingService:
    """Service for ranking points and standings"""

    def __init__(self):
        # (player, period) -> [lock, holders and waiters]
        self._locks: Dict[Tuple[int, int], list] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _player_lock(self, player_id: int, period_id: int):
        """Serialize writes to one (player, period) ranking within this process"""
        key = (player_id, period_id)
        with self._locks_guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    # ------------------------------------------------------------------
    # Finish position
    # ------------------------------------------------------------------

    def count_active_registrations(self, db: Session, tournament_id: int, category_id: int) -> int:
        """Live field size of a category"""
        return db.query(TournamentRegistration).filter(
            TournamentRegistration.tournament_id == tournament_id,
            TournamentRegistration.category_id == category_id,
            TournamentRegistration.status.in_(ACTIVE_REGISTRATION_STATUSES)
        ).count()

    def resolve_finish(
        self,
        db: Session,
        player_id: int,
        tournament_id: int,
        category_id: int
    ) -> FinishResult:
        """
        Derive a player's finish position from completed bracket matches.

        Reaching the final yields 1 or 2 from the winning side. An earlier
        exit in round r of an R-round bracket is bucketed to 2 ** (R - r + 1),
        e.g. every quarterfinal loser of a 16-draw finishes 8th. Players with
        no completed match, or categories with fewer than two active entries,
        are not scored (finish_position None).
        """
        player_matches = db.query(TournamentMatch).filter(
            TournamentMatch.tournament_id == tournament_id,
            TournamentMatch.category_id == category_id,
            TournamentMatch.status == "completed",
            or_(*[column == player_id for column in MATCH_PLAYER_COLUMNS])
        ).order_by(desc(TournamentMatch.round), asc(TournamentMatch.match_number)).all()

        if not player_matches:
            return FinishResult(finish_position=None, total_participants=0)

        total_participants = self.count_active_registrations(db, tournament_id, category_id)
        if total_participants < MIN_SCORING_FIELD_SIZE:
            return FinishResult(finish_position=None, total_participants=total_participants)

        total_rounds = bracket_rounds(total_participants)
        last_match = player_matches[0]
        highest_round = last_match.round

        if highest_round >= total_rounds:
            won_final = (
                last_match.winner_side is not None
                and last_match.side_of(player_id) == last_match.winner_side
            )
            return FinishResult(
                finish_position=1 if won_final else 2,
                total_participants=total_participants
            )

        return FinishResult(
            finish_position=2 ** (total_rounds - highest_round + 1),
            total_participants=total_participants
        )

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def calculate_player_ranking(
        self,
        db: Session,
        player_id: int,
        period_id: int
    ) -> PlayerRankingResult:
        """
        Recompute a player's points for a period.

        The player's tournament history rows for the period are upserted by
        (tournament, category) and the PlayerRanking summary rewritten in a single
        transaction, so repeated runs never double-count.
        """
        with self._player_lock(player_id, period_id):
            try:
                return self._aggregate(db, player_id, period_id)
            except Exception:
                db.rollback()
                raise

    def _aggregate(self, db: Session, player_id: int, period_id: int) -> PlayerRankingResult:
        period = db.query(RankingPeriod).filter(RankingPeriod.id == period_id).first()
        if not period:
            raise RankingDataError(f"Ranking period {period_id} not found")

        player = db.query(Player.id).filter(Player.id == player_id).first()
        if not player:
            raise RankingDataError(f"Player {player_id} not found")

        entries = db.query(TournamentRegistration, Tournament).join(
            Tournament, TournamentRegistration.tournament_id == Tournament.id
        ).filter(
            or_(
                TournamentRegistration.player_id == player_id,
                TournamentRegistration.partner_player_id == player_id
            ),
            Tournament.is_ranking.is_(True),
            Tournament.start_date >= period.start_date,
            Tournament.start_date <= period.end_date
        ).order_by(
            Tournament.start_date, Tournament.id, TournamentRegistration.category_id
        ).all()

        tournament_results: List[TournamentResult] = []
        seen = set()
        for registration, tournament in entries:
            if registration.category_id is None:
                raise RankingDataError(
                    f"Registration {registration.id} for player {player_id} has no category"
                )
            # Entered as both registrant and partner in one category
            if (tournament.id, registration.category_id) in seen:
                continue
            seen.add((tournament.id, registration.category_id))

            finish = self.resolve_finish(db, player_id, tournament.id, registration.category_id)
            if finish.finish_position is None:
                continue

            points = calculate_points(
                tournament.tournament_type,
                finish.total_participants,
                finish.finish_position,
                tournament.ranking_multiplier
            )
            tournament_results.append(TournamentResult(
                tournament_id=tournament.id,
                tournament_name=tournament.name,
                category_id=registration.category_id,
                finish_position=finish.finish_position,
                total_participants=finish.total_participants,
                points=points
            ))

        total_points = sum(r.points for r in tournament_results)
        tournaments_played = len({r.tournament_id for r in tournament_results})
        best_finish = min((r.finish_position for r in tournament_results), default=None)

        ranking = db.query(PlayerRanking).filter(
            PlayerRanking.player_id == player_id,
            PlayerRanking.period_id == period_id
        ).with_for_update().first()

        # Upsert by (tournament, category); rows no longer scored are dropped.
        # Manual adjustments (no tournament) are left alone.
        existing = {
            (row.tournament_id, row.category_id): row
            for row in db.query(RankingPointsHistory).filter(
                RankingPointsHistory.player_id == player_id,
                RankingPointsHistory.period_id == period_id,
                RankingPointsHistory.tournament_id.isnot(None)
            ).all()
        }

        now = utc_now()
        for result in tournament_results:
            row = existing.pop((result.tournament_id, result.category_id), None)
            if row is None:
                row = RankingPointsHistory(
                    player_id=player_id,
                    tournament_id=result.tournament_id,
                    category_id=result.category_id,
                    period_id=period_id,
                    created_at=now
                )
                db.add(row)
            row.points_earned = result.points
            row.finish_position = result.finish_position
            row.total_participants = result.total_participants

        for stale in existing.values():
            db.delete(stale)

        if ranking is None:
            ranking = PlayerRanking(player_id=player_id, period_id=period_id, position_change=0)
            db.add(ranking)

        ranking.total_points = total_points
        ranking.tournaments_played = tournaments_played
        ranking.best_finish = best_finish
        ranking.last_updated = now

        db.commit()

        return PlayerRankingResult(
            player_id=player_id,
            period_id=period_id,
            total_points=total_points,
            tournaments_played=tournaments_played,
            best_finish=best_finish,
            tournament_results=tournament_results
        )

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def update_ranking_positions(
        self,
        db: Session,
        period_id: int,
        state_id: Optional[int] = None
    ) -> int:
        """
        Assign dense 1-based positions for a period.

        Order: points desc, tournaments played desc, player id asc.
        ranking_position is one sequence over the whole period, so it is
        always reassigned for every row. state_position is the same order
        restricted to a player's state; with state_id only that state's
        standings are refreshed (other states' relative order cannot have
        changed). Returns the number of rankings positioned.
        """
        rows = db.query(PlayerRanking, Player.state_id).join(
            Player, PlayerRanking.player_id == Player.id
        ).filter(
            PlayerRanking.period_id == period_id
        ).order_by(
            desc(PlayerRanking.total_points),
            desc(PlayerRanking.tournaments_played),
            asc(PlayerRanking.player_id)
        ).with_for_update(of=PlayerRanking).all()

        state_counts: Dict[int, int] = {}
        for idx, (ranking, player_state_id) in enumerate(rows):
            previous_position = ranking.ranking_position
            new_position = idx + 1
            ranking.previous_position = previous_position
            ranking.ranking_position = new_position
            ranking.position_change = (
                new_position - previous_position if previous_position is not None else 0
            )

            if player_state_id is None:
                ranking.state_position = None
            elif state_id is None or player_state_id == state_id:
                state_counts[player_state_id] = state_counts.get(player_state_id, 0) + 1
                ranking.state_position = state_counts[player_state_id]

        db.commit()
        return len(rows)

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def get_players_to_recalculate(
        self,
        db: Session,
        period: RankingPeriod,
        state_id: Optional[int] = None
    ) -> List[int]:
        """
        Players with a completed match in a ranking tournament of the period,
        plus players already ranked in it (so stale rankings get rebuilt).
        """
        player_ids = set()
        for column in MATCH_PLAYER_COLUMNS:
            rows = db.query(column).join(
                Tournament, TournamentMatch.tournament_id == Tournament.id
            ).filter(
                TournamentMatch.status == "completed",
                Tournament.is_ranking.is_(True),
                Tournament.start_date >= period.start_date,
                Tournament.start_date <= period.end_date,
                column.isnot(None)
            ).distinct().all()
            player_ids.update(row[0] for row in rows)

        ranked = db.query(PlayerRanking.player_id).filter(
            PlayerRanking.period_id == period.id
        ).all()
        player_ids.update(row[0] for row in ranked)

        if state_id is not None and player_ids:
            in_state = db.query(Player.id).filter(
                Player.id.in_(list(player_ids)),
                Player.state_id == state_id
            ).all()
            player_ids = {row[0] for row in in_state}

        return sorted(player_ids)

    def recalculate_all(
        self,
        db: Session,
        state_id: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> RecalculationResult:
        """
        Rebuild every ranking of the active period (optionally one state).

        Per-player failures are collected and the batch continues. Setting
        cancel_event stops the batch between players; positions are then
        left untouched. Failures resolving the period propagate.
        """
        period = ranking_period_service.get_or_create_active_period(db)
        period_id = period.id
        player_ids = self.get_players_to_recalculate(db, period, state_id)

        logger.info(
            f"Recalculating rankings for period {period_id}: {len(player_ids)} players"
            + (f" in state {state_id}" if state_id is not None else "")
        )

        result = RecalculationResult(period_id=period_id)
        for player_id in player_ids:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.warning(
                    f"Ranking recalculation cancelled after {result.players_processed} players"
                )
                break

            result.players_processed += 1
            try:
                self.calculate_player_ranking(db, player_id, period_id)
                result.rankings_updated += 1
            except (RankingDataError, SQLAlchemyError, ValueError) as e:
                logger.warning(f"Ranking recalculation failed for player {player_id}: {e}")
                result.errors.append(RecalculationError(player_id=player_id, error=str(e)))

        if not result.cancelled:
            result.positions_assigned = self.update_ranking_positions(db, period_id, state_id)

        result.completed_at = utc_now()
        logger.info(
            f"Ranking recalculation finished: {result.rankings_updated}/{result.players_processed} "
            f"players updated, {len(result.errors)} errors"
        )
        return result

    def on_match_completed(self, db: Session, match: TournamentMatch) -> None:
        """
        Refresh rankings of the players in a just-completed match.

        Best effort: failures are logged and never raised to the caller.
        """
        match_id = match.id
        try:
            tournament = db.query(Tournament).filter(
                Tournament.id == match.tournament_id
            ).first()
            if not tournament or not tournament.is_ranking:
                return

            period = ranking_period_service.get_active_period(db)
            if not period:
                return

            for player_id in match.player_ids:
                self.calculate_player_ranking(db, player_id, period.id)

            # Whole-period positions; standings of the tournament's state (all states when national)
            self.update_ranking_positions(db, period.id, tournament.state_id)
            logger.info(f"Rankings updated for match {match_id} completion")

        except Exception:
            db.rollback()
            logger.error(
                f"Error updating rankings after completion of match {match_id}",
                exc_info=True
            )


ranking_service = RankingService()
