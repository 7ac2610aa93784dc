"""
Recommendation generation for every user with transactions
"""
import logging
from datetime import timedelta
from typing import Dict, Optional

from budgettracker.db import DatabaseManager
from budgettracker.db.models import utcnow
from budgettracker.db.repositories import RecommendationRepository, TransactionRepository
from budgettracker.services.agent.policies import Policy, recommendation_policy
from budgettracker.services.agent.runtime import AgentRunner
from budgettracker.services.agent.tools import ToolRegistry
from budgettracker.services.agent.types import CallerContext, Cancellation

logger = logging.getLogger(__name__)

STATUS_GENERATED = "generated"
STATUS_SKIPPED = "skipped"
STATUS_INCOMPLETE = "incomplete"
STATUS_EMPTY = "empty"


class RecommendationProcessor:
    """Runs the recommendation agent per user and stores the result"""

    def __init__(
        self,
        db: DatabaseManager,
        runner: AgentRunner,
        registry: ToolRegistry,
        *,
        policy: Optional[Policy] = None,
        min_transactions: int = 5,
        regenerate_window_minutes: int = 1,
        expiry_days: int = 7,
        user_delay_seconds: float = 0.1,
        retention_days: int = 30,
    ):
        self.db = db
        self.runner = runner
        self.registry = registry
        self.policy = policy or recommendation_policy()
        self.min_transactions = min_transactions
        self.regenerate_window = timedelta(minutes=regenerate_window_minutes)
        self.expiry_days = expiry_days
        self.user_delay_seconds = user_delay_seconds
        self.retention_days = retention_days

    def process_all_users(self, cancellation: Optional[Cancellation] = None) -> Dict[str, int]:
        """
        Generate recommendations for every user, one at a time

        A failure for one user is logged and counted; the batch carries on.

        Returns:
            {"total", "success", "skipped", "errors"}
        """
        cancellation = cancellation or Cancellation()
        with self.db.get_session() as session:
            user_ids = TransactionRepository.get_user_ids(session)

        stats = {"total": len(user_ids), "success": 0, "skipped": 0, "errors": 0}
        logger.info(f"Generating recommendations for {len(user_ids)} users")

        for index, user_id in enumerate(user_ids):
            if cancellation.cancelled:
                logger.warning(f"Recommendation batch cancelled after {index} of {len(user_ids)} users")
                break
            try:
                status = self.process_user(user_id, cancellation)
                if status == STATUS_GENERATED:
                    stats["success"] += 1
                else:
                    stats["skipped"] += 1
            except Exception as e:
                stats["errors"] += 1
                logger.error(f"Recommendation generation failed for user {user_id}: {e}", exc_info=True)

            if index < len(user_ids) - 1 and self.user_delay_seconds > 0:
                cancellation.wait(self.user_delay_seconds)

        logger.info(
            f"Recommendation batch done: total={stats['total']} success={stats['success']} "
            f"skipped={stats['skipped']} errors={stats['errors']}"
        )
        return stats

    def process_user(self, user_id: str, cancellation: Optional[Cancellation] = None) -> str:
        """
        Generate and store recommendations for one user

        Args:
            user_id: user to process
            cancellation: stops the agent run between steps

        Returns:
            one of generated / skipped / incomplete / empty
        """
        if not self._is_eligible(user_id):
            return STATUS_SKIPPED

        outcome = self.runner.run(self.policy, self.registry, CallerContext(user_id), cancellation)
        if not outcome.success:
            logger.warning(
                f"Keeping existing recommendations for user {user_id}: "
                f"{outcome.reason.value} ({outcome.detail})"
            )
            return STATUS_INCOMPLETE

        items = outcome.payload.get("recommendations") or []
        if not items:
            logger.info(f"Agent returned no recommendations for user {user_id}")
            return STATUS_EMPTY

        with self.db.get_session() as session:
            created = RecommendationRepository.replace_active(
                session, user_id, items, expiry_days=self.expiry_days
            )
            count = len(created)
        logger.info(f"Stored {count} recommendations for user {user_id}")
        return STATUS_GENERATED

    def cleanup_expired(self) -> Dict[str, int]:
        """Expire overdue recommendations and delete old expired ones"""
        now = utcnow()
        with self.db.get_session() as session:
            expired = RecommendationRepository.expire_overdue(session, now=now)
            deleted = RecommendationRepository.delete_older_than(
                session, now - timedelta(days=self.retention_days)
            )
        if expired or deleted:
            logger.info(f"Recommendation cleanup: expired={expired} deleted={deleted}")
        return {"expired": expired, "deleted": deleted}

    def _is_eligible(self, user_id: str) -> bool:
        with self.db.get_session() as session:
            last_generated = RecommendationRepository.get_last_generated_at(session, user_id)
            last_imported = TransactionRepository.get_last_imported_at(session, user_id)
            transaction_count = TransactionRepository.count_for_user(session, user_id)

        if last_generated and last_imported and last_generated > last_imported - self.regenerate_window:
            logger.debug(f"No new transactions for user {user_id} since last generation, skipping")
            return False

        if transaction_count < self.min_transactions:
            logger.debug(
                f"User {user_id} has {transaction_count} transactions "
                f"(< {self.min_transactions}), skipping"
            )
            return False
        return True
