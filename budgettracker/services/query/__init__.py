"""
Query assistant
"""
from budgettracker.services.query.assistant import APOLOGY_MESSAGE, QueryAssistantService

__all__ = ["APOLOGY_MESSAGE", "QueryAssistantService"]
