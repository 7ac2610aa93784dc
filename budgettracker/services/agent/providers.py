"""
LLM provider adapters for unified agent runtime.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import openai
from openai import OpenAI

from budgettracker.services.agent.tools import ToolDescriptor
from budgettracker.services.agent.types import (
    CallerContext,
    Cancellation,
    CompletionResponse,
    CompletionTransportError,
    ConversationState,
    Message,
    OperationCancelled,
    TerminationSignal,
    ToolCallRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 90.0


class CompletionClient(Protocol):
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
        ...


def _request_timeout(cancellation: Optional[Cancellation]) -> float:
    """Per-request timeout, capped by the caller's remaining time budget."""
    if cancellation is None:
        return DEFAULT_REQUEST_TIMEOUT
    cancellation.raise_if_cancelled()
    remaining = cancellation.remaining()
    if remaining is None:
        return DEFAULT_REQUEST_TIMEOUT
    return min(DEFAULT_REQUEST_TIMEOUT, remaining)


def _safe_json_loads(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
        return parsed if isinstance(parsed, dict) else {}
    except json.JSONDecodeError:
        logger.warning("Tool call arguments are not valid JSON: %.200s", raw)
        return {}


class OpenAICompatAdapter:
    """Adapter for OpenAI-compatible chat-completions APIs."""

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None):
        client_kwargs: Dict[str, Any] = {
            "api_key": api_key,
            "timeout": DEFAULT_REQUEST_TIMEOUT,
            # the runner treats transport failures as final
            "max_retries": 0,
        }
        if base_url:
            client_kwargs["base_url"] = base_url
        self.client = OpenAI(**client_kwargs)
        self.model = model

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
        request_kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": self._to_openai_messages(conversation),
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": _request_timeout(cancellation),
        }
        if tools:
            request_kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.to_json_schema(),
                    },
                }
                for tool in tools
            ]
            request_kwargs["tool_choice"] = "auto"

        logger.debug("OpenAI completion model=%s user=%s messages=%d", self.model, caller.user_id, len(conversation))
        try:
            response = self.client.chat.completions.create(**request_kwargs)
        except openai.APITimeoutError as exc:
            if cancellation is not None and cancellation.cancelled:
                raise OperationCancelled("deadline passed during completion call") from exc
            raise CompletionTransportError(f"completion request timed out: {exc}") from exc
        except openai.OpenAIError as exc:
            raise CompletionTransportError(f"completion request failed: {exc}") from exc

        if not response.choices:
            raise CompletionTransportError("completion response contained no choices")
        choice = response.choices[0]
        message = choice.message
        calls = tuple(
            ToolCallRequest(
                call_id=call.id,
                name=call.function.name,
                arguments=_safe_json_loads(call.function.arguments),
            )
            for call in message.tool_calls or []
        )
        return CompletionResponse(
            message=Message.assistant(message.content or "", calls),
            signal=self._map_finish_reason(choice.finish_reason, bool(calls), getattr(message, "refusal", None)),
        )

    @staticmethod
    def _map_finish_reason(finish_reason: Optional[str], has_calls: bool, refusal: Optional[str]) -> TerminationSignal:
        if has_calls:
            return TerminationSignal.TOOL_CALLS_REQUESTED
        if refusal or finish_reason == "content_filter":
            return TerminationSignal.REFUSED
        if finish_reason == "length":
            return TerminationSignal.LENGTH_EXCEEDED
        return TerminationSignal.COMPLETED

    @staticmethod
    def _to_openai_messages(conversation: ConversationState) -> List[Dict[str, Any]]:
        converted: List[Dict[str, Any]] = []
        for message in conversation:
            if message.role == "tool":
                for result in message.tool_results:
                    converted.append(
                        {
                            "role": "tool",
                            "tool_call_id": result.call_id,
                            "content": result.to_content(),
                        }
                    )
                continue

            if message.role == "assistant":
                assistant_message: Dict[str, Any] = {"role": "assistant", "content": message.text or None}
                if message.tool_calls:
                    assistant_message["tool_calls"] = [
                        {
                            "id": call.call_id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": json.dumps(call.arguments, ensure_ascii=False),
                            },
                        }
                        for call in message.tool_calls
                    ]
                converted.append(assistant_message)
                continue

            converted.append({"role": message.role, "content": message.text})
        return converted


class AnthropicAdapter:
    """Adapter for Anthropic messages API."""

    _STOP_REASONS = {
        "tool_use": TerminationSignal.TOOL_CALLS_REQUESTED,
        "end_turn": TerminationSignal.COMPLETED,
        "stop_sequence": TerminationSignal.COMPLETED,
        "max_tokens": TerminationSignal.LENGTH_EXCEEDED,
        "refusal": TerminationSignal.REFUSED,
    }

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None):
        try:
            import anthropic  # type: ignore
            import httpx
        except ImportError as exc:  # pragma: no cover - depends on optional package
            raise RuntimeError(
                "The anthropic SDK is not installed; install the 'anthropic' extra."
            ) from exc

        client_kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if base_url:
            client_kwargs["base_url"] = base_url
        client_kwargs["http_client"] = httpx.Client(timeout=httpx.Timeout(DEFAULT_REQUEST_TIMEOUT))

        self._sdk = anthropic
        self.client = anthropic.Anthropic(**client_kwargs)
        self.model = model

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
        system_prompt, anthropic_messages = self._to_anthropic_messages(conversation)
        request_kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": anthropic_messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": _request_timeout(cancellation),
        }
        if system_prompt:
            request_kwargs["system"] = system_prompt
        if tools:
            request_kwargs["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.to_json_schema(),
                }
                for tool in tools
            ]

        logger.debug("Anthropic completion model=%s user=%s messages=%d", self.model, caller.user_id, len(conversation))
        try:
            response = self.client.messages.create(**request_kwargs)
        except self._sdk.APITimeoutError as exc:
            if cancellation is not None and cancellation.cancelled:
                raise OperationCancelled("deadline passed during completion call") from exc
            raise CompletionTransportError(f"completion request timed out: {exc}") from exc
        except self._sdk.AnthropicError as exc:
            raise CompletionTransportError(f"completion request failed: {exc}") from exc

        text_chunks: List[str] = []
        calls: List[ToolCallRequest] = []
        for block in response.content:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text_chunks.append(getattr(block, "text", ""))
            elif block_type == "tool_use":
                calls.append(
                    ToolCallRequest(
                        call_id=getattr(block, "id", ""),
                        name=getattr(block, "name", ""),
                        arguments=_safe_json_loads(getattr(block, "input", {}) or {}),
                    )
                )

        if calls:
            signal = TerminationSignal.TOOL_CALLS_REQUESTED
        else:
            signal = self._STOP_REASONS.get(response.stop_reason, TerminationSignal.COMPLETED)
            if signal is TerminationSignal.TOOL_CALLS_REQUESTED:
                signal = TerminationSignal.COMPLETED
        return CompletionResponse(
            message=Message.assistant("".join(text_chunks).strip(), tuple(calls)),
            signal=signal,
        )

    @staticmethod
    def _to_anthropic_messages(conversation: ConversationState) -> Tuple[str, List[Dict[str, Any]]]:
        system_parts: List[str] = []
        converted: List[Dict[str, Any]] = []

        for message in conversation:
            if message.role == "system":
                if message.text.strip():
                    system_parts.append(message.text.strip())
                continue

            if message.role == "user":
                converted.append({"role": "user", "content": message.text})
                continue

            if message.role == "assistant":
                blocks: List[Dict[str, Any]] = []
                if message.text.strip():
                    blocks.append({"type": "text", "text": message.text})
                for call in message.tool_calls:
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": call.call_id,
                            "name": call.name,
                            "input": call.arguments,
                        }
                    )
                converted.append({"role": "assistant", "content": blocks or [{"type": "text", "text": ""}]})
                continue

            for result in message.tool_results:
                tool_result_block = {
                    "type": "tool_result",
                    "tool_use_id": result.call_id,
                    "content": result.to_content(),
                    "is_error": not result.success,
                }
                if (
                    converted
                    and converted[-1].get("role") == "user"
                    and isinstance(converted[-1].get("content"), list)
                ):
                    converted[-1]["content"].append(tool_result_block)
                else:
                    converted.append({"role": "user", "content": [tool_result_block]})

        return "\n\n".join(system_parts), converted


def build_provider_adapter(
    *,
    provider_type: str,
    api_key: str,
    model: str,
    api_base: Optional[str] = None,
) -> CompletionClient:
    normalized = (provider_type or "").strip().lower()
    if "anthropic" in normalized or "claude" in normalized:
        return AnthropicAdapter(api_key=api_key, model=model, base_url=api_base)
    return OpenAICompatAdapter(api_key=api_key, model=model, base_url=api_base)
