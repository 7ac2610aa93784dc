"""
Financial tools and transaction search used by the agent
"""
from budgettracker.services.intelligence.search import EmbeddingService, SemanticSearchService
from budgettracker.services.intelligence.tools import (
    GET_CATEGORY_SPENDING,
    SEARCH_TRANSACTIONS,
    build_tool_registry,
)

__all__ = [
    "EmbeddingService",
    "GET_CATEGORY_SPENDING",
    "SEARCH_TRANSACTIONS",
    "SemanticSearchService",
    "build_tool_registry",
]
