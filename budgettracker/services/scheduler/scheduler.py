"""
Background scheduler - APScheduler BackgroundScheduler (runs alongside FastAPI)
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from budgettracker.core.settings import settings
from budgettracker.services.agent.types import Cancellation
from budgettracker.services.recommendations.processor import RecommendationProcessor

logger = logging.getLogger(__name__)


class RecommendationScheduler:
    """Daily recommendation generation and cleanup"""

    def __init__(self, processor: RecommendationProcessor):
        self.processor = processor
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self._cancellation = Cancellation()

    def add_recommendation_job(self, cron_expression: Optional[str] = None):
        """
        Add the recommendation job

        Args:
            cron_expression: 5-field cron expression in UTC, defaults to RECOMMENDATION_CRON
        """
        if cron_expression is None:
            cron_expression = settings.RECOMMENDATION_CRON

        try:
            parts = cron_expression.split()
            if len(parts) != 5:
                raise ValueError(f"Invalid cron expression: {cron_expression}")

            self.scheduler.add_job(
                func=self.run_once,
                trigger=CronTrigger.from_crontab(cron_expression, timezone="UTC"),
                id="recommendation_job",
                name="Daily recommendation generation",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            logger.info(f"Recommendation job added: {cron_expression} (UTC)")
        except Exception as e:
            logger.error(f"Failed to add recommendation job: {e}")

    def run_once(self) -> Optional[Dict[str, int]]:
        """Run one generation batch followed by cleanup"""
        try:
            logger.info("=" * 60)
            logger.info(f"Recommendation job started at {datetime.now(timezone.utc).isoformat()}")
            stats = self.processor.process_all_users(self._cancellation)
            cleanup = self.processor.cleanup_expired()
            stats.update(cleanup)
            logger.info(f"Recommendation job finished: {stats}")
            logger.info("=" * 60)
            return stats
        except Exception as e:
            logger.error(f"Recommendation job failed: {e}", exc_info=True)
            return None

    def start(self):
        """Start the scheduler"""
        self.add_recommendation_job()
        self.scheduler.start()
        logger.info("Scheduler started")

    def shutdown(self):
        """Stop the scheduler; an in-flight batch stops before the next user"""
        self._cancellation.cancel()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

    def get_jobs(self):
        return self.scheduler.get_jobs()


def create_scheduler(processor: RecommendationProcessor) -> RecommendationScheduler:
    """Create and start the scheduler"""
    scheduler = RecommendationScheduler(processor)
    scheduler.start()
    return scheduler
