"""
Recommendation endpoints
"""
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from budgettracker.core.dependencies import get_current_user_id, get_database
from budgettracker.db.repositories import RecommendationRepository
from budgettracker.schemas.recommendation import RecommendationResponse

router = APIRouter()


@router.get("", response_model=List[RecommendationResponse])
def get_active_recommendations(
    limit: int = Query(5, ge=1, le=20, description="Maximum recommendations"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_database),
):
    """Active recommendations, highest priority first"""
    recommendations = RecommendationRepository.get_active(db, user_id, limit=limit)
    return [RecommendationResponse.from_model(item) for item in recommendations]
