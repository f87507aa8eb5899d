import logging
import threading
from typing import List, Dict, Any, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.cron import CronTrigger

from ..core.config import settings
from ..database import SessionLocal
from ..schemas.ranking import RecalculationResult
from .ranking_service import ranking_service
from .tournament_service import tournament_service
from ..utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class SchedulerService:
    """Service for background ranking jobs."""

    def __init__(self):
        self.scheduler = None
        # Jobs open their own sessions; tests point this at their engine
        self.session_factory = SessionLocal
        self._initialize_scheduler()

    def _initialize_scheduler(self):
        """Initialize the APScheduler instance."""
        jobstores = {
            'default': MemoryJobStore(),
        }
        executors = {
            'default': ThreadPoolExecutor(10),
        }
        job_defaults = {
            'coalesce': True,
            'max_instances': 1,
            'misfire_grace_time': 300,
        }

        self.scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone="UTC",
        )
        logger.info("Scheduler service initialized")

    @property
    def running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def start(self):
        """Start the scheduler."""
        if self.scheduler and not self.scheduler.running:
            self.scheduler.start()
            self._setup_recurring_jobs()
            logger.info("Scheduler service started")

    def shutdown(self):
        """Shutdown the scheduler."""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler service stopped")

    def _setup_recurring_jobs(self):
        """Set up recurring ranking jobs."""
        if not settings.RANKING_NIGHTLY_RECALC_ENABLED:
            logger.info("Nightly ranking recalculation disabled")
            return

        self.scheduler.add_job(
            func=self.run_full_recalculation,
            trigger=CronTrigger(hour=settings.RANKING_NIGHTLY_RECALC_HOUR, minute=0),
            id='nightly_ranking_recalculation',
            name='Nightly Ranking Recalculation',
            replace_existing=True
        )

        logger.info("Recurring ranking jobs scheduled")

    def enqueue_match_completed(self, match_id: int) -> bool:
        """
        Queue ranking recomputation for a completed match.

        Returns True when queued on the scheduler; when the scheduler is not
        running the recomputation runs inline. Never raises.
        """
        if self.running:
            try:
                self.scheduler.add_job(
                    func=self.run_match_completed,
                    trigger=DateTrigger(run_date=utc_now()),
                    args=[match_id],
                    id=f"match_completed_{match_id}",
                    name=f"Rankings after match {match_id}",
                    replace_existing=True
                )
                logger.info(f"Ranking update queued for match {match_id}")
                return True
            except Exception as e:
                logger.error(f"Failed to queue ranking update for match {match_id}: {e}")

        self.run_match_completed(match_id)
        return False

    def run_match_completed(self, match_id: int):
        """Job body: recompute rankings for the players of one match."""
        db = self.session_factory()
        try:
            match = tournament_service.get_match(db, match_id)
            if not match:
                logger.warning(f"Ranking update skipped, match {match_id} not found")
                return
            ranking_service.on_match_completed(db, match)
        except Exception as e:
            logger.error(f"Ranking update for match {match_id} failed: {e}", exc_info=True)
        finally:
            db.close()

    def run_full_recalculation(
        self,
        state_id: Optional[int] = None,
        timeout_seconds: Optional[int] = None
    ) -> Optional[RecalculationResult]:
        """Job body: full recalculation, cancelled cooperatively on timeout."""
        timeout_seconds = timeout_seconds or settings.RANKING_RECALC_TIMEOUT_SECONDS
        cancel_event = threading.Event()
        timer = threading.Timer(timeout_seconds, cancel_event.set)
        timer.daemon = True
        timer.start()

        db = self.session_factory()
        try:
            result = ranking_service.recalculate_all(db, state_id=state_id, cancel_event=cancel_event)
            if result.cancelled:
                logger.warning(f"Scheduled ranking recalculation timed out after {timeout_seconds}s")
            return result
        except Exception as e:
            logger.error(f"Scheduled ranking recalculation failed: {e}", exc_info=True)
            return None
        finally:
            timer.cancel()
            db.close()

    def get_scheduled_jobs(self) -> List[Dict[str, Any]]:
        """Get list of all scheduled jobs."""
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger)
            })
        return jobs


# Global scheduler service instance
scheduler_service = SchedulerService()
