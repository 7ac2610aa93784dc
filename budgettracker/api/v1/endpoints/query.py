"""
Natural-language query endpoint
"""
from fastapi import APIRouter, Depends

from budgettracker.core.dependencies import get_current_user_id, get_query_assistant
from budgettracker.schemas.query import QueryRequest, QueryResponse
from budgettracker.services.query.assistant import QueryAssistantService

router = APIRouter()


@router.post("", response_model=QueryResponse)
def ask_question(
    request: QueryRequest,
    user_id: str = Depends(get_current_user_id),
    assistant: QueryAssistantService = Depends(get_query_assistant),
):
    """Answer a question about the caller's transactions"""
    return assistant.ask(request.question, user_id)
