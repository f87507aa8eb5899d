"""
Ranking engine exceptions
"""


class RankingError(Exception):
    """Base class for ranking engine failures"""


class RankingDataError(RankingError):
    """Referenced player, period or tournament data is missing or malformed"""


class RankingPeriodConflictError(RankingError):
    """The active ranking period could not be resolved after concurrent creation attempts"""
