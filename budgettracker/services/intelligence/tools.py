"""
Financial tools exposed to the agent
"""
import logging
from typing import Any, Dict

from budgettracker.db import DatabaseManager
from budgettracker.db.repositories import TransactionRepository
from budgettracker.services.agent.tools import ToolDescriptor, ToolParameter, ToolRegistry, clamp_int
from budgettracker.services.agent.types import CallerContext, Cancellation
from budgettracker.services.intelligence.search import SemanticSearchService

logger = logging.getLogger(__name__)

SEARCH_TRANSACTIONS = "SearchTransactions"
GET_CATEGORY_SPENDING = "GetCategorySpending"

MAX_TOOL_RESULTS = 20


def build_tool_registry(db: DatabaseManager, search_service: SemanticSearchService) -> ToolRegistry:
    """Build the shared registry; every handler is scoped to the caller's user id"""

    def search_transactions(
        caller: CallerContext,
        cancellation: Cancellation,
        query: str,
        maxResults: int = 10,
    ) -> Dict[str, Any]:
        cancellation.raise_if_cancelled()
        limit = clamp_int(maxResults, 1, MAX_TOOL_RESULTS, 10)
        logger.debug("SearchTransactions user=%s query=%r limit=%d", caller.user_id, query, limit)
        transactions = search_service.find_relevant_transactions(query, caller.user_id, max_results=limit)
        result: Dict[str, Any] = {
            "success": True,
            "count": len(transactions),
            "query": query,
            "transactions": transactions,
        }
        if not transactions:
            result["message"] = f"No transactions found matching '{query}'."
        return result

    def get_category_spending(
        caller: CallerContext,
        cancellation: Cancellation,
        topN: int = 10,
        includeIncome: bool = False,
    ) -> Dict[str, Any]:
        cancellation.raise_if_cancelled()
        top_n = clamp_int(topN, 1, MAX_TOOL_RESULTS, 10)
        with db.get_session() as session:
            rows = TransactionRepository.get_category_spending(
                session, caller.user_id, top_n=top_n, include_income=includeIncome
            )
        categories = [
            {
                "category": row["category"],
                "total": row["total"],
                "transactionCount": row["transaction_count"],
            }
            for row in rows
        ]
        result: Dict[str, Any] = {
            "success": True,
            "count": len(categories),
            "grandTotal": round(sum(row["total"] for row in categories), 2),
            "categories": categories,
        }
        if not categories:
            result["message"] = "No categorized transactions found."
        return result

    return ToolRegistry(
        [
            ToolDescriptor(
                name=SEARCH_TRANSACTIONS,
                description=(
                    "Search the user's transactions by topic, merchant or description "
                    "(e.g. 'coffee', 'subscriptions', 'Amazon'). Returns the most relevant matches."
                ),
                parameters=(
                    ToolParameter(
                        name="query",
                        type="string",
                        description="What to look for in the transactions",
                        required=True,
                    ),
                    ToolParameter(
                        name="maxResults",
                        type="integer",
                        description=f"Maximum transactions to return (1-{MAX_TOOL_RESULTS})",
                        default=10,
                    ),
                ),
                handler=search_transactions,
            ),
            ToolDescriptor(
                name=GET_CATEGORY_SPENDING,
                description=(
                    "Total spending per category, largest first. Amounts are positive totals "
                    "of expenses; set includeIncome to also count positive transactions."
                ),
                parameters=(
                    ToolParameter(
                        name="topN",
                        type="integer",
                        description=f"Number of categories to return (1-{MAX_TOOL_RESULTS})",
                        default=10,
                    ),
                    ToolParameter(
                        name="includeIncome",
                        type="boolean",
                        description="Include income (positive amounts)",
                        default=False,
                    ),
                ),
                handler=get_category_spending,
            ),
        ]
    )
