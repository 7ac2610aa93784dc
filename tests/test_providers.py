from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from budgettracker.services.agent.providers import OpenAICompatAdapter, build_provider_adapter
from budgettracker.services.agent.tools import ToolDescriptor, ToolParameter
from budgettracker.services.agent.types import (
    CallerContext,
    Cancellation,
    CompletionTransportError,
    ConversationState,
    Message,
    OperationCancelled,
    TerminationSignal,
    ToolCallRequest,
    ToolCallResult,
)

CALLER = CallerContext("user-1")

SEARCH_TOOL = ToolDescriptor(
    name="SearchTransactions",
    description="search",
    parameters=(ToolParameter(name="query", type="string", required=True),),
    handler=lambda caller, cancellation, query: {},
)


class FakeCompletions:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[dict] = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _adapter(completions: FakeCompletions) -> OpenAICompatAdapter:
    adapter = OpenAICompatAdapter(api_key="test-key", model="test-model")
    adapter.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return adapter


def _response(content=None, finish_reason="stop", tool_calls=None, refusal=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls, refusal=refusal)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish_reason)])


def _tool_call(call_id: str, name: str, arguments: str):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def _conversation() -> ConversationState:
    conversation = ConversationState()
    conversation.append(Message.system("be helpful"))
    conversation.append(Message.user("how much on coffee?"))
    return conversation


def test_tool_calls_are_parsed_and_win_over_finish_reason() -> None:
    completions = FakeCompletions(
        _response(
            finish_reason="stop",
            tool_calls=[
                _tool_call("c1", "SearchTransactions", '{"query": "coffee"}'),
                _tool_call("c2", "SearchTransactions", "not json"),
            ],
        )
    )

    response = _adapter(completions).complete(_conversation(), [SEARCH_TOOL], CALLER)

    assert response.signal is TerminationSignal.TOOL_CALLS_REQUESTED
    calls = response.message.tool_calls
    assert [call.call_id for call in calls] == ["c1", "c2"]
    assert calls[0].arguments == {"query": "coffee"}
    assert calls[1].arguments == {}

    request = completions.requests[0]
    assert request["model"] == "test-model"
    assert request["tool_choice"] == "auto"
    assert request["tools"][0]["function"]["name"] == "SearchTransactions"
    assert request["tools"][0]["function"]["parameters"]["required"] == ["query"]


@pytest.mark.parametrize(
    "finish_reason, refusal, expected",
    [
        ("stop", None, TerminationSignal.COMPLETED),
        ("length", None, TerminationSignal.LENGTH_EXCEEDED),
        ("content_filter", None, TerminationSignal.REFUSED),
        ("stop", "I can't help with that", TerminationSignal.REFUSED),
        (None, None, TerminationSignal.COMPLETED),
    ],
)
def test_finish_reason_mapping(finish_reason, refusal, expected) -> None:
    completions = FakeCompletions(_response(content="{}", finish_reason=finish_reason, refusal=refusal))

    response = _adapter(completions).complete(_conversation(), [], CALLER)

    assert response.signal is expected
    assert "tools" not in completions.requests[0]


def test_conversation_is_converted_to_openai_messages() -> None:
    conversation = _conversation()
    request = ToolCallRequest(call_id="c1", name="SearchTransactions", arguments={"query": "coffee"})
    conversation.append(Message.assistant("", (request,)))
    conversation.append(
        Message.tool(ToolCallResult(call_id="c1", name="SearchTransactions", success=True, payload={"count": 2}))
    )
    completions = FakeCompletions(_response(content='{"answer": "ok"}'))

    _adapter(completions).complete(conversation, [SEARCH_TOOL], CALLER)

    messages = completions.requests[0]["messages"]
    assert [message["role"] for message in messages] == ["system", "user", "assistant", "tool"]
    assert messages[2]["content"] is None
    assert messages[2]["tool_calls"][0]["id"] == "c1"
    assert json.loads(messages[2]["tool_calls"][0]["function"]["arguments"]) == {"query": "coffee"}
    assert messages[3] == {"role": "tool", "tool_call_id": "c1", "content": '{"count": 2}'}


def test_sdk_errors_become_transport_errors() -> None:
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.example.test/v1/chat/completions"))
    completions = FakeCompletions(error=error)

    with pytest.raises(CompletionTransportError):
        _adapter(completions).complete(_conversation(), [], CALLER)


def test_request_timeout_follows_deadline() -> None:
    completions = FakeCompletions(_response(content="{}"))

    _adapter(completions).complete(_conversation(), [], CALLER, Cancellation(timeout=5))

    assert 0 < completions.requests[0]["timeout"] <= 5


def test_cancelled_token_stops_before_request() -> None:
    completions = FakeCompletions(_response(content="{}"))
    cancellation = Cancellation()
    cancellation.cancel()

    with pytest.raises(OperationCancelled):
        _adapter(completions).complete(_conversation(), [], CALLER, cancellation)
    assert completions.requests == []


def test_build_provider_adapter_defaults_to_openai() -> None:
    adapter = build_provider_adapter(provider_type="openai", api_key="test-key", model="m")

    assert isinstance(adapter, OpenAICompatAdapter)
