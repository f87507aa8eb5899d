"""
Tournament API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.tournament import (
    MatchCompleteRequest,
    MatchCompleteResponse,
    TournamentMatchResponse,
)
from app.services.scheduler_service import scheduler_service
from app.services.tournament_service import tournament_service

router = APIRouter(prefix="/tournaments", tags=["tournaments"])


@router.get("/matches/{match_id}", response_model=TournamentMatchResponse)
async def get_match(
    match_id: int,
    db: Session = Depends(get_db)
):
    """Get match details"""
    match = tournament_service.get_match(db, match_id)
    if not match:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Match not found"
        )
    return TournamentMatchResponse.model_validate(match)


@router.post("/matches/{match_id}/complete", response_model=MatchCompleteResponse)
async def complete_match(
    match_id: int,
    result: MatchCompleteRequest,
    db: Session = Depends(get_db)
):
    """Record a match result; rankings are refreshed in the background"""
    if not tournament_service.get_match(db, match_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Match not found"
        )

    try:
        match = tournament_service.complete_match(
            db, match_id, result.winner_side, result.score
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    queued = scheduler_service.enqueue_match_completed(match.id)

    return MatchCompleteResponse(
        success=True,
        message="Match completed",
        match=TournamentMatchResponse.model_validate(match),
        rankings_update_queued=queued
    )
