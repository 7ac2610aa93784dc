"""
Scheduled jobs
"""
from budgettracker.services.scheduler.scheduler import RecommendationScheduler, create_scheduler

__all__ = ["RecommendationScheduler", "create_scheduler"]
