"""
Dependency injection
"""
from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from budgettracker.db import get_db
from budgettracker.services.query.assistant import QueryAssistantService
from budgettracker.utils.factories import IntelligenceServices, get_intelligence_services


def get_database() -> Generator[Session, None, None]:
    """Database session"""
    db = get_db()
    with db.get_session() as session:
        yield session


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity from the X-User-Id header"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="User authentication required.")
    return x_user_id.strip()


def get_intelligence() -> IntelligenceServices:
    services = get_intelligence_services()
    if services is None:
        raise HTTPException(status_code=503, detail="AI features are not configured")
    return services


def get_query_assistant(services: IntelligenceServices = Depends(get_intelligence)) -> QueryAssistantService:
    return services.assistant
