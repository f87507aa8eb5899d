"""
Tournament schemas
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class MatchCompleteRequest(BaseModel):
    """Record the result of a match"""
    winner_side: int = Field(..., ge=1, le=2)
    score: Optional[str] = Field(default=None, max_length=100)


class TournamentMatchResponse(BaseModel):
    """Tournament match response"""
    id: int
    tournament_id: int
    category_id: int
    round: int
    match_number: int
    player_ids: List[int]
    score: Optional[str] = None
    winner_side: Optional[int] = None
    status: str
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MatchCompleteResponse(BaseModel):
    """Response after completing a match"""
    success: bool
    message: str
    match: TournamentMatchResponse
    rankings_update_queued: bool = False
