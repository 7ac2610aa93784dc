"""
Query assistant Pydantic models
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    """Natural-language question about the caller's finances"""
    question: str = Field("", description="Question, at most 500 characters")


class TransactionReference(BaseModel):
    """Transaction cited in an answer"""
    id: Optional[str] = None
    date: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    category: Optional[str] = None
    account: Optional[str] = None


class QueryResponse(BaseModel):
    """Answer to a question"""
    answer: str
    amount: Optional[float] = Field(None, description="Single total the question asked for, if any")
    transactions: Optional[List[TransactionReference]] = None
