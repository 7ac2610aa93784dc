"""
Natural-language questions about a user's transactions
"""
import logging
from typing import Any, Dict, List, Optional

from budgettracker.db import DatabaseManager
from budgettracker.db.repositories import TransactionRepository
from budgettracker.schemas.query import QueryResponse, TransactionReference
from budgettracker.services.agent.policies import query_policy
from budgettracker.services.agent.runtime import AgentRunner
from budgettracker.services.agent.tools import ToolRegistry
from budgettracker.services.agent.types import CallerContext, Cancellation

logger = logging.getLogger(__name__)

MAX_QUESTION_LENGTH = 500

EMPTY_QUESTION_MESSAGE = "Please provide a question about your finances."
QUESTION_TOO_LONG_MESSAGE = (
    f"Your question is too long. Please keep it under {MAX_QUESTION_LENGTH} characters."
)
AUTH_REQUIRED_MESSAGE = "User authentication required."
NO_TRANSACTIONS_MESSAGE = (
    "You don't have any transactions yet. Import some transactions to start asking "
    "questions about your finances."
)
APOLOGY_MESSAGE = "I'm sorry, I couldn't process your question right now. Please try again later."


class QueryAssistantService:
    """Answers questions with the query agent"""

    def __init__(
        self,
        db: DatabaseManager,
        runner: AgentRunner,
        registry: ToolRegistry,
        *,
        timeout_seconds: float = 60.0,
        max_iterations: int = 5,
    ):
        self.db = db
        self.runner = runner
        self.registry = registry
        self.timeout_seconds = timeout_seconds
        self.max_iterations = max_iterations

    def ask(
        self,
        question: Optional[str],
        user_id: Optional[str],
        cancellation: Optional[Cancellation] = None,
    ) -> QueryResponse:
        """
        Answer a question; never raises for agent failures

        Args:
            question: the user's question
            user_id: caller identity
            cancellation: optional caller token; a deadline of QUERY_TIMEOUT_SECONDS applies otherwise

        Returns:
            the answer, or a fixed message when the question cannot be answered
        """
        question = (question or "").strip()
        if not question:
            return QueryResponse(answer=EMPTY_QUESTION_MESSAGE)
        if len(question) > MAX_QUESTION_LENGTH:
            return QueryResponse(answer=QUESTION_TOO_LONG_MESSAGE)
        if not user_id:
            return QueryResponse(answer=AUTH_REQUIRED_MESSAGE)

        with self.db.get_session() as session:
            transaction_count = TransactionRepository.count_for_user(session, user_id)
        if transaction_count == 0:
            return QueryResponse(answer=NO_TRANSACTIONS_MESSAGE)

        logger.info(f"Answering question for user {user_id} ({len(question)} chars)")
        outcome = self.runner.run(
            query_policy(question, max_iterations=self.max_iterations),
            self.registry,
            CallerContext(user_id),
            cancellation or Cancellation(timeout=self.timeout_seconds),
        )
        if not outcome.success:
            return QueryResponse(answer=APOLOGY_MESSAGE)

        return self._to_response(outcome.payload)

    @staticmethod
    def _to_response(payload: Dict[str, Any]) -> QueryResponse:
        amount = payload.get("amount")
        transactions: Optional[List[TransactionReference]] = None
        if payload.get("transactions") is not None:
            transactions = [
                TransactionReference(
                    id=item.get("id"),
                    date=item.get("date"),
                    description=item.get("description"),
                    amount=float(item["amount"]) if item.get("amount") is not None else None,
                    category=item.get("category"),
                    account=item.get("account"),
                )
                for item in payload["transactions"]
            ]
        return QueryResponse(
            answer=payload["answer"],
            amount=float(amount) if amount is not None else None,
            transactions=transactions,
        )
