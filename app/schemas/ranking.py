"""
Ranking schemas
"""
from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field, model_validator


class FinishResult(BaseModel):
    """Resolved finish of one player in one tournament category"""
    finish_position: Optional[int] = None  # None = not scored
    total_participants: int = 0


class TournamentResult(BaseModel):
    """One scored tournament category"""
    tournament_id: int
    tournament_name: str
    category_id: int
    finish_position: int
    total_participants: int
    points: int


class PlayerRankingResult(BaseModel):
    """Outcome of aggregating one player for one period"""
    player_id: int
    period_id: int
    total_points: int = 0
    tournaments_played: int = 0
    best_finish: Optional[int] = None
    tournament_results: List[TournamentResult] = []


class RecalculationError(BaseModel):
    """Per-player failure collected during a batch recalculation"""
    player_id: int
    error: str


class RecalculationResult(BaseModel):
    """Outcome of a full recalculation"""
    period_id: Optional[int] = None
    players_processed: int = 0
    rankings_updated: int = 0
    positions_assigned: int = 0
    errors: List[RecalculationError] = []
    cancelled: bool = False
    completed_at: Optional[datetime] = None


class RecalculationResponse(RecalculationResult):
    """Response of the admin recalculation endpoint"""
    success: bool = True
    message: str = ""


class RankingPeriodResponse(BaseModel):
    """Ranking period"""
    id: int
    name: str
    start_date: date
    end_date: date
    status: str
    created_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RankingPeriodListResponse(BaseModel):
    periods: List[RankingPeriodResponse]


class RecentPerformance(BaseModel):
    """Points earned over the recent window"""
    days: int
    points_earned: int = 0
    tournaments: int = 0


class PlayerRankingEntry(BaseModel):
    """Single row of a rankings listing"""
    player_id: int
    player_name: str
    state_id: Optional[int] = None
    state_name: Optional[str] = None
    ranking_position: Optional[int] = None
    previous_position: Optional[int] = None
    state_position: Optional[int] = None
    position_change: int = 0
    trend: str = "new"
    total_points: int
    tournaments_played: int
    best_finish: Optional[int] = None
    last_updated: Optional[datetime] = None


class PlayerRankingListResponse(BaseModel):
    """Paginated rankings listing"""
    period_id: Optional[int] = None
    rankings: List[PlayerRankingEntry]
    total_count: int
    page: int
    page_size: int
    total_pages: int


class LeaderboardEntry(PlayerRankingEntry):
    """Leaderboard row with recent activity"""
    recent_performance: RecentPerformance


class LeaderboardResponse(BaseModel):
    period_id: Optional[int] = None
    period_name: Optional[str] = None
    state_id: Optional[int] = None
    entries: List[LeaderboardEntry]


class PlayerRankingDetailResponse(LeaderboardEntry):
    """A player's ranking in the active period"""
    period_id: int
    period_name: str


class PointsHistoryEntry(BaseModel):
    """Points ledger row"""
    id: int
    player_id: int
    player_name: Optional[str] = None
    tournament_id: Optional[int] = None
    tournament_name: str
    category_id: Optional[int] = None
    period_id: int
    points_earned: int
    finish_position: Optional[int] = None
    total_participants: Optional[int] = None
    reason: Optional[str] = None
    change_type: str
    created_at: datetime


class PointsHistoryResponse(BaseModel):
    player_id: int
    history: List[PointsHistoryEntry]


class RankingChangesResponse(BaseModel):
    """Paginated points ledger feed"""
    changes: List[PointsHistoryEntry]
    total_count: int
    page: int
    page_size: int
    total_pages: int


class RankingStatsResponse(BaseModel):
    """Summary statistics for the active period"""
    total_ranked_players: int = 0
    recent_changes: int = 0
    average_points: int = 0
    highest_points: int = 0
    most_active_state: str = "N/A"
    total_tournaments_considered: int = 0
    active_period: Optional[RankingPeriodResponse] = None


class RankingAdjustRequest(BaseModel):
    """Manual ranking adjustment (admin)"""
    player_id: int
    points: Optional[int] = Field(default=None, ge=0)
    new_position: Optional[int] = Field(default=None, ge=1)
    reason: Optional[str] = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def check_has_change(self):
        if self.points is None and self.new_position is None:
            raise ValueError("Either points or new_position must be provided")
        return self


class RankingAdjustResponse(BaseModel):
    success: bool
    message: str
    previous_position: Optional[int] = None
    new_position: Optional[int] = None
    points_change: int = 0
