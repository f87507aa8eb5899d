"""
Points table for tournament finishes

Points = base points for the finish position
         x tournament tier multiplier
         x per-tournament ranking multiplier
         x field-size scaling (log10(field) / log10(8), so an 8-player field scales by 1.0)
"""
import math

# Tier multipliers by tournament type
TOURNAMENT_MULTIPLIERS = {
    "local": 1.0,
    "regional": 1.5,
    "state": 2.0,
    "national": 3.0,
    "pro": 4.0,
}
DEFAULT_TOURNAMENT_MULTIPLIER = 1.0

# (worst finish position covered, base points), best bucket first
BASE_POINTS_STAIRCASE = (
    (1, 100),   # winner
    (2, 70),    # finalist
    (4, 50),    # semifinalist
    (8, 35),    # quarterfinalist
    (16, 25),   # round of 16
    (32, 15),   # round of 32
    (64, 10),   # round of 64
)
PARTICIPATION_POINTS = 5

# Field size at which scaling is exactly 1.0
REFERENCE_FIELD_SIZE = 8

# Smallest field that can produce points; a single entrant has log10(1) == 0
MIN_SCORING_FIELD_SIZE = 2


def tournament_multiplier(tournament_type: str) -> float:
    return TOURNAMENT_MULTIPLIERS.get(tournament_type, DEFAULT_TOURNAMENT_MULTIPLIER)


def base_points(finish_position: int) -> int:
    """Base points for a finish position (1 = champion)"""
    if finish_position < 1:
        raise ValueError(f"Finish position must be >= 1, got {finish_position}")
    for worst_position, points in BASE_POINTS_STAIRCASE:
        if finish_position <= worst_position:
            return points
    return PARTICIPATION_POINTS


def field_size_factor(total_participants: int) -> float:
    """Logarithmic scaling by field size; 0.0 for fields too small to score"""
    if total_participants < MIN_SCORING_FIELD_SIZE:
        return 0.0
    return math.log10(total_participants) / math.log10(REFERENCE_FIELD_SIZE)


def calculate_points(
    tournament_type: str,
    total_participants: int,
    finish_position: int,
    ranking_multiplier: float = 1.0
) -> int:
    """
    Points earned for one tournament finish.

    Fields with fewer than two participants earn 0. The result is rounded
    half up and never negative.
    """
    ranking_multiplier = float(ranking_multiplier if ranking_multiplier is not None else 1.0)
    if ranking_multiplier < 0:
        raise ValueError(f"Ranking multiplier must be >= 0, got {ranking_multiplier}")

    raw = (
        base_points(finish_position)
        * tournament_multiplier(tournament_type)
        * ranking_multiplier
        * field_size_factor(total_participants)
    )
    return max(0, int(math.floor(raw + 0.5)))


def bracket_rounds(total_participants: int) -> int:
    """Number of rounds in the smallest power-of-two bracket holding the field"""
    if total_participants < 1:
        return 0
    return math.ceil(math.log2(total_participants))
