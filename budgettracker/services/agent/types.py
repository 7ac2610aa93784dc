"""
Agent runtime shared types.
"""
from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union


class TerminationSignal(str, Enum):
    """Why the model stopped producing output for a turn."""

    TOOL_CALLS_REQUESTED = "tool_calls_requested"
    COMPLETED = "completed"
    LENGTH_EXCEEDED = "length_exceeded"
    REFUSED = "refused"


class IncompleteReason(str, Enum):
    PARSE_FAILURE = "parse_failure"
    TOKEN_LIMIT_REACHED = "token_limit_reached"
    CONTENT_REFUSED = "content_refused"
    ITERATIONS_EXHAUSTED = "iterations_exhausted"
    TRANSPORT_ERROR = "transport_error"
    CANCELLED = "cancelled"


class OperationCancelled(Exception):
    """Raised when a cancellation token fires or its deadline passes."""


class CompletionTransportError(Exception):
    """Network, auth or protocol failure talking to the completion service."""


@dataclass(frozen=True)
class CallerContext:
    """Identity of the user an agent run acts for."""

    user_id: str

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValueError("CallerContext requires a user_id")


class Cancellation:
    """Cooperative cancellation token with an optional deadline."""

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled("operation cancelled")

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`, waking early on cancel. Returns True if cancelled."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(max(0.0, seconds))
        return self.cancelled


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ToolCallRequest:
    """A tool invocation requested by the model."""

    call_id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallResult:
    """Outcome of one tool invocation, fed back to the model."""

    call_id: str
    name: str
    success: bool
    payload: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    duration_ms: float = 0.0

    def to_content(self) -> str:
        body = self.payload if self.success else {"error": self.error or "Tool execution failed"}
        return json.dumps(body, ensure_ascii=False, default=str)


MessagePart = Union[TextPart, ToolCallRequest, ToolCallResult]


@dataclass(frozen=True)
class Message:
    """One conversation entry; content is an ordered tuple of parts."""

    role: str
    parts: Tuple[MessagePart, ...] = ()

    @classmethod
    def system(cls, text: str) -> "Message":
        return cls("system", (TextPart(text),))

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls("user", (TextPart(text),))

    @classmethod
    def assistant(cls, text: str = "", tool_calls: Tuple[ToolCallRequest, ...] = ()) -> "Message":
        parts: List[MessagePart] = []
        if text:
            parts.append(TextPart(text))
        parts.extend(tool_calls)
        return cls("assistant", tuple(parts))

    @classmethod
    def tool(cls, result: ToolCallResult) -> "Message":
        return cls("tool", (result,))

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))

    @property
    def tool_calls(self) -> List[ToolCallRequest]:
        return [part for part in self.parts if isinstance(part, ToolCallRequest)]

    @property
    def tool_results(self) -> List[ToolCallResult]:
        return [part for part in self.parts if isinstance(part, ToolCallResult)]


class ConversationState:
    """Append-only message history for a single agent run."""

    def __init__(self) -> None:
        self._messages: List[Message] = []

    def append(self, message: Message) -> None:
        self._messages.append(message)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))


@dataclass(frozen=True)
class CompletionResponse:
    """Unified model turn output."""

    message: Message
    signal: TerminationSignal


@dataclass(frozen=True)
class AgentOutcome:
    """Final result of an agent run: either a parsed payload or an incomplete reason."""

    success: bool
    payload: Optional[Dict[str, Any]] = None
    reason: Optional[IncompleteReason] = None
    detail: str = ""
    iterations: int = 0
    tool_calls: int = 0

    @classmethod
    def succeeded(cls, payload: Dict[str, Any], *, iterations: int, tool_calls: int) -> "AgentOutcome":
        return cls(success=True, payload=payload, iterations=iterations, tool_calls=tool_calls)

    @classmethod
    def incomplete(
        cls,
        reason: IncompleteReason,
        detail: str = "",
        *,
        iterations: int,
        tool_calls: int,
    ) -> "AgentOutcome":
        return cls(success=False, reason=reason, detail=detail, iterations=iterations, tool_calls=tool_calls)
