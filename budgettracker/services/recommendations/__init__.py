"""
Recommendation generation
"""
from budgettracker.services.recommendations.processor import RecommendationProcessor

__all__ = ["RecommendationProcessor"]
