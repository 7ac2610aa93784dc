"""
Recommendation Pydantic models
"""
from datetime import datetime

from pydantic import BaseModel


class RecommendationResponse(BaseModel):
    """Active recommendation"""
    id: str
    title: str
    message: str
    type: str
    priority: str
    generated_at: datetime
    expires_at: datetime

    @classmethod
    def from_model(cls, recommendation) -> "RecommendationResponse":
        return cls(
            id=recommendation.id,
            title=recommendation.title,
            message=recommendation.message,
            type=recommendation.type,
            priority=recommendation.priority_name,
            generated_at=recommendation.generated_at,
            expires_at=recommendation.expires_at,
        )
