"""
Agent runtime: bounded tool-calling loop shared by recommendations and queries.
"""
from budgettracker.services.agent.extraction import (
    ExtractionSchema,
    FieldSpec,
    ParseFailure,
    ParsedResult,
    extract,
)
from budgettracker.services.agent.policies import Policy, query_policy, recommendation_policy
from budgettracker.services.agent.providers import CompletionClient, build_provider_adapter
from budgettracker.services.agent.runtime import AgentRunner
from budgettracker.services.agent.tools import (
    ToolDescriptor,
    ToolExecutor,
    ToolParameter,
    ToolRegistry,
    clamp_int,
)
from budgettracker.services.agent.types import (
    AgentOutcome,
    CallerContext,
    Cancellation,
    CompletionResponse,
    CompletionTransportError,
    ConversationState,
    IncompleteReason,
    Message,
    OperationCancelled,
    TerminationSignal,
    ToolCallRequest,
    ToolCallResult,
)

__all__ = [
    "AgentOutcome",
    "AgentRunner",
    "CallerContext",
    "Cancellation",
    "CompletionClient",
    "CompletionResponse",
    "CompletionTransportError",
    "ConversationState",
    "ExtractionSchema",
    "FieldSpec",
    "IncompleteReason",
    "Message",
    "OperationCancelled",
    "ParseFailure",
    "ParsedResult",
    "Policy",
    "TerminationSignal",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDescriptor",
    "ToolExecutor",
    "ToolParameter",
    "ToolRegistry",
    "build_provider_adapter",
    "clamp_int",
    "extract",
    "query_policy",
    "recommendation_policy",
]
