"""
Leaderboard service for ranking listings and the points ledger
"""
import logging
import math
from typing import Optional, List, Dict
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import func, desc, asc

from app.core.config import settings
from app.core.exceptions import RankingDataError
from app.models.player import Player, State
from app.models.ranking import RankingPeriod, PlayerRanking, RankingPointsHistory
from app.models.tournament import Tournament
from app.schemas.ranking import (
    PlayerRankingEntry,
    PlayerRankingListResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    PlayerRankingDetailResponse,
    RecentPerformance,
    PointsHistoryEntry,
    PointsHistoryResponse,
    RankingChangesResponse,
    RankingStatsResponse,
    RankingPeriodResponse,
    RankingAdjustRequest,
    RankingAdjustResponse,
)
from app.services.ranking_period_service import ranking_period_service
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

CHANGE_TYPES = ("up", "down", "stable", "new")


class LeaderboardService:
    """Service for ranking reads and manual adjustments"""

    def _resolve_period(self, db: Session, period_id: Optional[int]) -> Optional[RankingPeriod]:
        if period_id is not None:
            return ranking_period_service.get_period(db, period_id)
        return ranking_period_service.get_active_period(db)

    def _standings_query(self, db: Session, period_id: int, state_id: Optional[int] = None):
        query = db.query(PlayerRanking, Player, State).join(
            Player, PlayerRanking.player_id == Player.id
        ).outerjoin(
            State, Player.state_id == State.id
        ).filter(
            PlayerRanking.period_id == period_id
        )
        if state_id is not None:
            query = query.filter(Player.state_id == state_id)
        return query

    def _entry_fields(self, ranking: PlayerRanking, player: Player, state: Optional[State]) -> dict:
        return dict(
            player_id=player.id,
            player_name=player.full_name,
            state_id=player.state_id,
            state_name=state.name if state else None,
            ranking_position=ranking.ranking_position,
            previous_position=ranking.previous_position,
            state_position=ranking.state_position,
            position_change=ranking.position_change or 0,
            trend=ranking.trend,
            total_points=ranking.total_points or 0,
            tournaments_played=ranking.tournaments_played or 0,
            best_finish=ranking.best_finish,
            last_updated=ranking.last_updated,
        )

    def _recent_performance(
        self,
        db: Session,
        player_ids: List[int],
        since: datetime
    ) -> Dict[int, RecentPerformance]:
        """Points and tournaments first scored since a date, per player"""
        days = settings.RANKING_RECENT_DAYS
        performance = {pid: RecentPerformance(days=days) for pid in player_ids}
        if not player_ids:
            return performance

        rows = db.query(
            RankingPointsHistory.player_id,
            func.coalesce(func.sum(RankingPointsHistory.points_earned), 0),
            func.count(func.distinct(RankingPointsHistory.tournament_id))
        ).filter(
            RankingPointsHistory.player_id.in_(player_ids),
            RankingPointsHistory.created_at >= since
        ).group_by(RankingPointsHistory.player_id).all()

        for player_id, points, tournaments in rows:
            performance[player_id] = RecentPerformance(
                days=days,
                points_earned=int(points or 0),
                tournaments=tournaments or 0
            )
        return performance

    def list_player_rankings(
        self,
        db: Session,
        period_id: Optional[int] = None,
        state_id: Optional[int] = None,
        search: Optional[str] = None,
        min_position: Optional[int] = None,
        max_position: Optional[int] = None,
        change_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 50
    ) -> PlayerRankingListResponse:
        """Filterable, paginated standings (active period by default)"""
        if change_type and change_type not in CHANGE_TYPES:
            raise ValueError(f"change_type must be one of {', '.join(CHANGE_TYPES)}")

        period = self._resolve_period(db, period_id)
        if not period:
            return PlayerRankingListResponse(
                period_id=period_id, rankings=[], total_count=0,
                page=page, page_size=page_size, total_pages=0
            )

        query = self._standings_query(db, period.id, state_id)

        if search:
            query = query.filter(Player.full_name.ilike(f"%{search}%"))
        if min_position is not None:
            query = query.filter(PlayerRanking.ranking_position >= min_position)
        if max_position is not None:
            query = query.filter(PlayerRanking.ranking_position <= max_position)

        if change_type == "up":
            query = query.filter(PlayerRanking.ranking_position < PlayerRanking.previous_position)
        elif change_type == "down":
            query = query.filter(PlayerRanking.ranking_position > PlayerRanking.previous_position)
        elif change_type == "stable":
            query = query.filter(PlayerRanking.ranking_position == PlayerRanking.previous_position)
        elif change_type == "new":
            query = query.filter(PlayerRanking.previous_position.is_(None))

        total_count = query.count()

        offset = (page - 1) * page_size
        results = query.order_by(
            PlayerRanking.ranking_position.is_(None),
            asc(PlayerRanking.ranking_position),
            desc(PlayerRanking.total_points)
        ).offset(offset).limit(page_size).all()

        rankings = [
            PlayerRankingEntry(**self._entry_fields(ranking, player, state))
            for ranking, player, state in results
        ]

        return PlayerRankingListResponse(
            period_id=period.id,
            rankings=rankings,
            total_count=total_count,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total_count / page_size) if page_size else 0
        )

    def get_leaderboard(
        self,
        db: Session,
        period_id: Optional[int] = None,
        state_id: Optional[int] = None,
        limit: int = 50
    ) -> LeaderboardResponse:
        """Positioned players in order, with recent activity"""
        period = self._resolve_period(db, period_id)
        if not period:
            return LeaderboardResponse(period_id=period_id, state_id=state_id, entries=[])

        results = self._standings_query(db, period.id, state_id).filter(
            PlayerRanking.ranking_position.isnot(None)
        ).order_by(asc(PlayerRanking.ranking_position)).limit(limit).all()

        since = utc_now() - timedelta(days=settings.RANKING_RECENT_DAYS)
        performance = self._recent_performance(db, [player.id for _, player, _ in results], since)

        entries = [
            LeaderboardEntry(
                **self._entry_fields(ranking, player, state),
                recent_performance=performance[player.id]
            )
            for ranking, player, state in results
        ]

        return LeaderboardResponse(
            period_id=period.id,
            period_name=period.name,
            state_id=state_id,
            entries=entries
        )

    def get_player_ranking(self, db: Session, player_id: int) -> Optional[PlayerRankingDetailResponse]:
        """A player's standing in the active period"""
        period = ranking_period_service.get_active_period(db)
        if not period:
            return None

        result = self._standings_query(db, period.id).filter(
            PlayerRanking.player_id == player_id
        ).first()
        if not result:
            return None

        ranking, player, state = result
        since = utc_now() - timedelta(days=settings.RANKING_RECENT_DAYS)
        performance = self._recent_performance(db, [player_id], since)

        return PlayerRankingDetailResponse(
            **self._entry_fields(ranking, player, state),
            recent_performance=performance[player_id],
            period_id=period.id,
            period_name=period.name
        )

    def _history_entry(
        self,
        entry: RankingPointsHistory,
        player: Optional[Player],
        tournament: Optional[Tournament]
    ) -> PointsHistoryEntry:
        return PointsHistoryEntry(
            id=entry.id,
            player_id=entry.player_id,
            player_name=player.full_name if player else None,
            tournament_id=entry.tournament_id,
            tournament_name=tournament.name if tournament else "Manual Adjustment",
            category_id=entry.category_id,
            period_id=entry.period_id,
            points_earned=entry.points_earned,
            finish_position=entry.finish_position,
            total_participants=entry.total_participants,
            reason=entry.reason,
            change_type="gain" if entry.points_earned >= 0 else "loss",
            created_at=entry.created_at
        )

    def get_points_history(
        self,
        db: Session,
        player_id: int,
        period_id: Optional[int] = None,
        limit: int = 20
    ) -> PointsHistoryResponse:
        """A player's points ledger, newest first"""
        query = db.query(RankingPointsHistory, Player, Tournament).join(
            Player, RankingPointsHistory.player_id == Player.id
        ).outerjoin(
            Tournament, RankingPointsHistory.tournament_id == Tournament.id
        ).filter(
            RankingPointsHistory.player_id == player_id
        )
        if period_id is not None:
            query = query.filter(RankingPointsHistory.period_id == period_id)

        results = query.order_by(
            desc(RankingPointsHistory.created_at), desc(RankingPointsHistory.id)
        ).limit(limit).all()

        return PointsHistoryResponse(
            player_id=player_id,
            history=[self._history_entry(entry, player, tournament) for entry, player, tournament in results]
        )

    def get_ranking_changes(
        self,
        db: Session,
        player_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 50
    ) -> RankingChangesResponse:
        """Points ledger feed across players"""
        query = db.query(RankingPointsHistory, Player, Tournament).join(
            Player, RankingPointsHistory.player_id == Player.id
        ).outerjoin(
            Tournament, RankingPointsHistory.tournament_id == Tournament.id
        )
        if player_id is not None:
            query = query.filter(RankingPointsHistory.player_id == player_id)
        if date_from is not None:
            query = query.filter(RankingPointsHistory.created_at >= date_from)
        if date_to is not None:
            query = query.filter(RankingPointsHistory.created_at <= date_to)

        total_count = query.count()
        offset = (page - 1) * page_size
        results = query.order_by(
            desc(RankingPointsHistory.created_at), desc(RankingPointsHistory.id)
        ).offset(offset).limit(page_size).all()

        return RankingChangesResponse(
            changes=[self._history_entry(entry, player, tournament) for entry, player, tournament in results],
            total_count=total_count,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total_count / page_size) if page_size else 0
        )

    def get_ranking_stats(self, db: Session) -> RankingStatsResponse:
        """Summary statistics for the active period"""
        period = ranking_period_service.get_active_period(db)
        if not period:
            return RankingStatsResponse()

        total_ranked = db.query(func.count(PlayerRanking.id)).filter(
            PlayerRanking.period_id == period.id,
            PlayerRanking.ranking_position.isnot(None)
        ).scalar()

        since = utc_now() - timedelta(days=7)
        recent_changes = db.query(func.count(RankingPointsHistory.id)).filter(
            RankingPointsHistory.period_id == period.id,
            RankingPointsHistory.created_at >= since
        ).scalar()

        avg_points, max_points, total_tournaments = db.query(
            func.avg(PlayerRanking.total_points),
            func.max(PlayerRanking.total_points),
            func.sum(PlayerRanking.tournaments_played)
        ).filter(
            PlayerRanking.period_id == period.id,
            PlayerRanking.total_points > 0
        ).one()

        most_active = db.query(
            State.name,
            func.count(PlayerRanking.id).label("player_count")
        ).join(
            Player, Player.state_id == State.id
        ).join(
            PlayerRanking, PlayerRanking.player_id == Player.id
        ).filter(
            PlayerRanking.period_id == period.id
        ).group_by(State.id, State.name).order_by(
            desc("player_count"), asc(State.name)
        ).first()

        return RankingStatsResponse(
            total_ranked_players=total_ranked or 0,
            recent_changes=recent_changes or 0,
            average_points=int(round(float(avg_points or 0))),
            highest_points=int(max_points or 0),
            most_active_state=most_active[0] if most_active else "N/A",
            total_tournaments_considered=int(total_tournaments or 0),
            active_period=RankingPeriodResponse.model_validate(period)
        )

    def adjust_ranking(self, db: Session, request: RankingAdjustRequest) -> RankingAdjustResponse:
        """
        Manually override a player's points and/or position in the active period.

        Point overrides are recorded in the ledger as a reason-bearing row
        without a tournament. The next recalculation rebuilds the summary from
        tournament results.
        """
        period = ranking_period_service.get_active_period(db)
        if not period:
            raise ValueError("No active ranking period found")

        ranking = db.query(PlayerRanking).filter(
            PlayerRanking.player_id == request.player_id,
            PlayerRanking.period_id == period.id
        ).with_for_update().first()
        if not ranking:
            raise RankingDataError("Player ranking not found")

        previous_position = ranking.ranking_position
        previous_points = ranking.total_points or 0
        points_change = 0

        if request.points is not None:
            points_change = request.points - previous_points
            ranking.total_points = request.points
            if points_change:
                db.add(RankingPointsHistory(
                    player_id=request.player_id,
                    period_id=period.id,
                    points_earned=points_change,
                    reason=request.reason or "Manual adjustment"
                ))

        if request.new_position is not None:
            ranking.previous_position = previous_position
            ranking.ranking_position = request.new_position
            ranking.position_change = (
                request.new_position - previous_position if previous_position is not None else 0
            )

        ranking.last_updated = utc_now()
        db.commit()
        db.refresh(ranking)

        logger.info(
            f"Manual ranking adjustment for player {request.player_id}: "
            f"points {previous_points} -> {ranking.total_points}, "
            f"position {previous_position} -> {ranking.ranking_position}"
        )

        return RankingAdjustResponse(
            success=True,
            message="Ranking adjusted successfully",
            previous_position=previous_position,
            new_position=ranking.ranking_position,
            points_change=points_change
        )


leaderboard_service = LeaderboardService()
