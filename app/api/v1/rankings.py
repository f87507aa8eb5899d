"""
Ranking API endpoints
"""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import RankingError, RankingDataError
from app.database import get_db
from app.schemas.ranking import (
    RecalculationResponse,
    RankingPeriodResponse,
    RankingPeriodListResponse,
    PlayerRankingListResponse,
    PlayerRankingDetailResponse,
    PointsHistoryResponse,
    RankingChangesResponse,
    LeaderboardResponse,
    RankingStatsResponse,
    RankingAdjustRequest,
    RankingAdjustResponse,
)
from app.services.leaderboard_service import leaderboard_service
from app.services.ranking_period_service import ranking_period_service
from app.services.ranking_service import ranking_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rankings", tags=["rankings"])


# Plain def: a full recalculation is long-running and runs in the threadpool
@router.post("/recalculate", response_model=RecalculationResponse)
def recalculate_rankings(
    state_id: Optional[int] = Query(None, description="Limit to players of one state"),
    db: Session = Depends(get_db)
):
    """Recalculate points and positions for the active period"""
    try:
        result = ranking_service.recalculate_all(db, state_id=state_id)
    except (SQLAlchemyError, RankingError) as e:
        logger.error(f"Ranking recalculation failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to recalculate rankings"
        )

    if result.errors:
        message = f"Rankings recalculated with {len(result.errors)} errors"
    else:
        message = "Rankings recalculated successfully"

    return RecalculationResponse(
        **result.model_dump(),
        success=True,
        message=message
    )


@router.get("/periods", response_model=RankingPeriodListResponse)
async def list_ranking_periods(db: Session = Depends(get_db)):
    """List ranking periods, active first"""
    periods = ranking_period_service.list_periods(db)
    return RankingPeriodListResponse(
        periods=[RankingPeriodResponse.model_validate(p) for p in periods]
    )


@router.get("/periods/active", response_model=RankingPeriodResponse)
async def get_active_period(db: Session = Depends(get_db)):
    """Get the active ranking period"""
    period = ranking_period_service.get_active_period(db)
    if not period:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active ranking period found"
        )
    return RankingPeriodResponse.model_validate(period)


@router.post("/periods/close", response_model=RankingPeriodResponse)
async def close_active_period(db: Session = Depends(get_db)):
    """Close the active ranking period"""
    period = ranking_period_service.close_active_period(db)
    if not period:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No active ranking period found"
        )
    return RankingPeriodResponse.model_validate(period)


@router.get("/players", response_model=PlayerRankingListResponse)
async def list_player_rankings(
    period_id: Optional[int] = Query(None, description="Defaults to the active period"),
    state_id: Optional[int] = Query(None, description="Filter by state"),
    search: Optional[str] = Query(None, description="Player name contains"),
    min_position: Optional[int] = Query(None, ge=1),
    max_position: Optional[int] = Query(None, ge=1),
    change_type: Optional[str] = Query(None, description="up, down, stable or new"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    db: Session = Depends(get_db)
):
    """List player rankings with filters"""
    try:
        return leaderboard_service.list_player_rankings(
            db, period_id, state_id, search, min_position, max_position,
            change_type, page, page_size
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.get("/players/{player_id}", response_model=PlayerRankingDetailResponse)
async def get_player_ranking(
    player_id: int,
    db: Session = Depends(get_db)
):
    """Get a player's ranking in the active period"""
    ranking = leaderboard_service.get_player_ranking(db, player_id)
    if not ranking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Player ranking not found"
        )
    return ranking


@router.get("/players/{player_id}/history", response_model=PointsHistoryResponse)
async def get_player_points_history(
    player_id: int,
    period_id: Optional[int] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Get a player's points history"""
    return leaderboard_service.get_points_history(db, player_id, period_id, limit)


@router.get("/changes", response_model=RankingChangesResponse)
async def get_ranking_changes(
    player_id: Optional[int] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    db: Session = Depends(get_db)
):
    """Get the points ledger feed"""
    return leaderboard_service.get_ranking_changes(
        db, player_id, date_from, date_to, page, page_size
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    period_id: Optional[int] = Query(None, description="Defaults to the active period"),
    state_id: Optional[int] = Query(None, description="Filter by state"),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Get the ranking leaderboard"""
    return leaderboard_service.get_leaderboard(db, period_id, state_id, limit)


@router.get("/stats", response_model=RankingStatsResponse)
async def get_ranking_stats(db: Session = Depends(get_db)):
    """Get ranking statistics for the active period"""
    return leaderboard_service.get_ranking_stats(db)


@router.post("/adjust", response_model=RankingAdjustResponse)
async def adjust_ranking(
    adjustment: RankingAdjustRequest,
    db: Session = Depends(get_db)
):
    """Manually adjust a player's points or position"""
    try:
        return leaderboard_service.adjust_ranking(db, adjustment)
    except RankingDataError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
