"""
Ranking period service

Exactly one period is active at a time. Creation relies on the partial
unique index on ranking_periods.status, so concurrent creators race on the
insert rather than on a read.
"""
import logging
import time
from typing import Optional, List
from sqlalchemy.orm import Session
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.exceptions import RankingPeriodConflictError
from app.models.ranking import RankingPeriod
from app.utils.time_utils import utc_now, year_bounds

logger = logging.getLogger(__name__)


class RankingPeriodService:
    """Service for ranking period lifecycle"""

    def get_period(self, db: Session, period_id: int) -> Optional[RankingPeriod]:
        return db.query(RankingPeriod).filter(RankingPeriod.id == period_id).first()

    def get_active_period(self, db: Session) -> Optional[RankingPeriod]:
        """Get the currently active period, if any"""
        return db.query(RankingPeriod).filter(
            RankingPeriod.status == "active"
        ).first()

    def list_periods(self, db: Session) -> List[RankingPeriod]:
        """Active period first, then most recent"""
        return db.query(RankingPeriod).order_by(
            RankingPeriod.status != "active",
            desc(RankingPeriod.start_date)
        ).all()

    def get_or_create_active_period(self, db: Session) -> RankingPeriod:
        """
        Return the active period, creating a calendar-year period if none exists.

        A losing concurrent insert hits the unique index; the session is rolled
        back and the lookup retried with linear backoff.
        """
        attempts = max(1, settings.RANKING_PERIOD_CREATE_RETRIES)
        for attempt in range(1, attempts + 1):
            period = self.get_active_period(db)
            if period:
                return period

            year = utc_now().year
            start_date, end_date = year_bounds(year)
            period = RankingPeriod(
                name=f"{year} Rankings",
                start_date=start_date,
                end_date=end_date,
                status="active",
            )
            db.add(period)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(
                    f"Active ranking period created concurrently (attempt {attempt}/{attempts}), retrying"
                )
                time.sleep(settings.RANKING_PERIOD_RETRY_BACKOFF_SECONDS * attempt)
                continue

            db.refresh(period)
            logger.info(f"Created ranking period {period.id} ({period.name})")
            return period

        # Last look after the final backoff
        period = self.get_active_period(db)
        if period:
            return period
        raise RankingPeriodConflictError("Could not resolve the active ranking period")

    def close_active_period(self, db: Session) -> Optional[RankingPeriod]:
        """Close the active period; its rankings are kept for history"""
        period = self.get_active_period(db)
        if not period:
            return None

        period.status = "closed"
        period.closed_at = utc_now()
        db.commit()
        db.refresh(period)
        logger.info(f"Closed ranking period {period.id} ({period.name})")
        return period


ranking_period_service = RankingPeriodService()
