from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from budgettracker.db import DatabaseManager
from budgettracker.db.models import Transaction, utcnow
from budgettracker.services.agent.tools import ToolDescriptor
from budgettracker.services.agent.types import (
    CallerContext,
    Cancellation,
    CompletionResponse,
    ConversationState,
    Message,
    TerminationSignal,
    ToolCallRequest,
)

ScriptItem = Union[CompletionResponse, Exception, Callable[[ConversationState], CompletionResponse]]


def text_response(text: str, signal: TerminationSignal = TerminationSignal.COMPLETED) -> CompletionResponse:
    return CompletionResponse(message=Message.assistant(text), signal=signal)


def tool_response(*calls: tuple, prefix: str = "call") -> CompletionResponse:
    requests = tuple(
        ToolCallRequest(call_id=f"{prefix}_{index}", name=name, arguments=dict(arguments))
        for index, (name, arguments) in enumerate(calls)
    )
    return CompletionResponse(
        message=Message.assistant("", requests),
        signal=TerminationSignal.TOOL_CALLS_REQUESTED,
    )


class FakeCompletionClient:
    """Replays scripted responses and records every request."""

    def __init__(self, responses: Sequence[ScriptItem]) -> None:
        self.responses: List[ScriptItem] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def complete(
        self,
        conversation: ConversationState,
        tools: Sequence[ToolDescriptor],
        caller: CallerContext,
        cancellation: Optional[Cancellation] = None,
        *,
        temperature: float = 0.2,
        max_tokens: int = 2500,
    ) -> CompletionResponse:
        self.calls.append(
            {
                "messages": conversation.messages,
                "tools": [tool.name for tool in tools],
                "user_id": caller.user_id,
            }
        )
        if not self.responses:
            raise AssertionError("unexpected completion call")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(conversation)
        return item


def add_transaction(
    db: DatabaseManager,
    user_id: str,
    description: str,
    amount: str,
    *,
    category: Optional[str] = None,
    date: Optional[datetime] = None,
    imported_at: Optional[datetime] = None,
    account: str = "Checking",
    embedding: Optional[List[float]] = None,
) -> str:
    with db.get_session() as session:
        transaction = Transaction(
            user_id=user_id,
            date=date or utcnow() - timedelta(days=1),
            description=description,
            amount=Decimal(amount),
            category=category,
            account=account,
            imported_at=imported_at or utcnow(),
            embedding=embedding,
        )
        session.add(transaction)
        session.flush()
        return transaction.id
