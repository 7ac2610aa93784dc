"""
Pydantic models (API schemas)
"""
from budgettracker.schemas.query import QueryRequest, QueryResponse, TransactionReference
from budgettracker.schemas.recommendation import RecommendationResponse

__all__ = [
    "QueryRequest",
    "QueryResponse",
    "RecommendationResponse",
    "TransactionReference",
]
