"""
Tool registry and executor for the agent runtime.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from budgettracker.services.agent.types import (
    CallerContext,
    Cancellation,
    OperationCancelled,
    ToolCallRequest,
    ToolCallResult,
)

logger = logging.getLogger(__name__)

# handler(caller, cancellation, **arguments) -> dict | list | scalar
ToolHandler = Callable[..., Any]

_JSON_TYPES = {
    "string": "string",
    "integer": "integer",
    "number": "number",
    "boolean": "boolean",
    "object": "object",
    "array": "array",
}

_POLL_INTERVAL = 0.05


def clamp_int(value: Any, minimum: int, maximum: int, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        parsed = default
    return max(minimum, min(maximum, parsed))


class ToolArgumentError(ValueError):
    """Arguments from the model do not fit the tool's parameters."""


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str = "string"
    description: str = ""
    default: Any = None
    required: bool = False

    def __post_init__(self) -> None:
        if self.type not in _JSON_TYPES:
            raise ValueError(f"Unsupported parameter type {self.type!r} for {self.name}")


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool definition for model-visible tool calling."""

    name: str
    description: str
    parameters: Tuple[ToolParameter, ...]
    handler: ToolHandler

    def to_json_schema(self) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        for param in self.parameters:
            prop: Dict[str, Any] = {"type": _JSON_TYPES[param.type]}
            if param.description:
                prop["description"] = param.description
            if param.default is not None:
                prop["default"] = param.default
            properties[param.name] = prop
        return {
            "type": "object",
            "properties": properties,
            "required": [param.name for param in self.parameters if param.required],
        }


class ToolRegistry:
    """Immutable name -> descriptor map, built once and shared by every run."""

    def __init__(self, descriptors: Sequence[ToolDescriptor] = ()) -> None:
        tools: Dict[str, ToolDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in tools:
                raise ValueError(f"Duplicate tool name: {descriptor.name}")
            tools[descriptor.name] = descriptor
        self._tools = MappingProxyType(tools)

    def lookup(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def descriptors(self) -> List[ToolDescriptor]:
        return list(self._tools.values())

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools


@dataclass
class _PendingCall:
    request: ToolCallRequest
    future: Optional[Future] = None
    running: threading.Event = field(default_factory=threading.Event)
    started: float = 0.0


class ToolExecutor:
    """Run tool handlers with argument validation, timeouts and failure isolation.

    Every batch of calls gets its own worker threads, so a handler that hangs past
    its timeout never holds up calls from later rounds or other users.
    """

    def __init__(self, *, timeout_seconds: float = 30.0) -> None:
        self.timeout_seconds = timeout_seconds

    def execute(
        self,
        descriptor: ToolDescriptor,
        arguments: Dict[str, Any],
        caller: CallerContext,
        cancellation: Optional[Cancellation] = None,
        *,
        call_id: str = "",
    ) -> ToolCallResult:
        request = ToolCallRequest(call_id=call_id, name=descriptor.name, arguments=arguments)
        pool = self._new_pool(1)
        try:
            started = self._start(pool, request, descriptor, caller, cancellation)
            if isinstance(started, ToolCallResult):
                return started
            return self._finish(started, cancellation)
        finally:
            pool.shutdown(wait=False)

    def execute_all(
        self,
        requests: Sequence[ToolCallRequest],
        registry: "ToolRegistry",
        caller: CallerContext,
        cancellation: Optional[Cancellation] = None,
    ) -> List[ToolCallResult]:
        """Dispatch every call concurrently; results come back in request order."""
        pool = self._new_pool(len(requests))
        try:
            started: List[Union[ToolCallResult, _PendingCall]] = []
            for request in requests:
                descriptor = registry.lookup(request.name)
                if descriptor is None:
                    logger.warning("Agent requested unknown tool=%s user=%s", request.name, caller.user_id)
                    started.append(self._failed(request, "Tool not found"))
                    continue
                started.append(self._start(pool, request, descriptor, caller, cancellation))

            return [
                item if isinstance(item, ToolCallResult) else self._finish(item, cancellation)
                for item in started
            ]
        finally:
            pool.shutdown(wait=False)

    @staticmethod
    def _new_pool(size: int) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=max(1, size), thread_name_prefix="agent-tool")

    def _start(
        self,
        pool: ThreadPoolExecutor,
        request: ToolCallRequest,
        descriptor: ToolDescriptor,
        caller: CallerContext,
        cancellation: Optional[Cancellation],
    ) -> Union[ToolCallResult, _PendingCall]:
        try:
            arguments = self._prepare_arguments(descriptor, request.arguments)
        except ToolArgumentError as exc:
            logger.warning("Agent tool arguments rejected tool=%s error=%s", request.name, exc)
            return self._failed(request, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Agent tool arguments unusable tool=%s error=%r", request.name, exc)
            return self._failed(request, f"Invalid arguments: {exc.__class__.__name__}")

        token = cancellation or Cancellation()
        pending = _PendingCall(request=request)

        def run_handler():
            pending.started = time.perf_counter()
            pending.running.set()
            return descriptor.handler(caller, token, **arguments)

        pending.future = pool.submit(run_handler)
        return pending

    def _finish(self, pending: _PendingCall, cancellation: Optional[Cancellation]) -> ToolCallResult:
        request = pending.request
        while not pending.future.done():
            if cancellation is not None and cancellation.cancelled:
                pending.future.cancel()
                raise OperationCancelled(f"cancelled while running tool {request.name}")
            if not pending.running.is_set():
                pending.running.wait(_POLL_INTERVAL)
                continue
            # the timeout counts from the moment the handler starts running
            wait_for = min(_POLL_INTERVAL, pending.started + self.timeout_seconds - time.perf_counter())
            if wait_for <= 0:
                logger.warning(
                    "Agent tool timed out tool=%s after %.1fs", request.name, self.timeout_seconds
                )
                return self._failed(
                    request,
                    f"Tool timed out after {self.timeout_seconds:g}s",
                    duration_ms=self.timeout_seconds * 1000.0,
                )
            wait([pending.future], timeout=wait_for)

        duration_ms = self._elapsed_ms(pending)
        try:
            result = pending.future.result()
        except OperationCancelled:
            if cancellation is not None and cancellation.cancelled:
                raise
            return self._failed(request, "Tool cancelled", duration_ms=duration_ms)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Agent tool execution failed tool=%s duration_ms=%.1f error=%s",
                request.name,
                duration_ms,
                exc,
            )
            return self._failed(request, str(exc) or exc.__class__.__name__, duration_ms=duration_ms)

        logger.info("Agent tool finished tool=%s duration_ms=%.1f", request.name, duration_ms)
        return ToolCallResult(
            call_id=request.call_id,
            name=request.name,
            success=True,
            payload=self._normalize_tool_result(result),
            duration_ms=duration_ms,
        )

    @staticmethod
    def _elapsed_ms(pending: _PendingCall) -> float:
        if not pending.started:
            return 0.0
        return (time.perf_counter() - pending.started) * 1000.0

    @staticmethod
    def _failed(request: ToolCallRequest, error: str, duration_ms: float = 0.0) -> ToolCallResult:
        return ToolCallResult(
            call_id=request.call_id,
            name=request.name,
            success=False,
            error=error,
            duration_ms=duration_ms,
        )

    @classmethod
    def _prepare_arguments(cls, descriptor: ToolDescriptor, arguments: Any) -> Dict[str, Any]:
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ToolArgumentError("Tool arguments must be a JSON object")

        prepared: Dict[str, Any] = {}
        for param in descriptor.parameters:
            value = arguments.get(param.name)
            if value is None:
                if param.required:
                    raise ToolArgumentError(f"Missing required argument '{param.name}'")
                if param.default is not None:
                    prepared[param.name] = param.default
                continue
            prepared[param.name] = cls._coerce(param, value)

        unknown = set(arguments) - {param.name for param in descriptor.parameters}
        if unknown:
            logger.debug("Dropping unknown arguments for tool=%s: %s", descriptor.name, sorted(unknown))
        return prepared

    @staticmethod
    def _coerce(param: ToolParameter, value: Any) -> Any:
        try:
            if param.type == "string":
                if isinstance(value, (dict, list)):
                    raise ValueError("expected a string")
                return str(value)
            if param.type == "integer":
                if isinstance(value, bool):
                    raise ValueError("expected an integer")
                if isinstance(value, str):
                    return int(float(value.strip()))
                return int(value)
            if param.type == "number":
                if isinstance(value, bool):
                    raise ValueError("expected a number")
                return float(value)
            if param.type == "boolean":
                if isinstance(value, bool):
                    return value
                if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
                    return value.strip().lower() in ("true", "1")
                if isinstance(value, (int, float)):
                    return bool(value)
                raise ValueError("expected a boolean")
            if param.type == "object":
                if not isinstance(value, dict):
                    raise ValueError("expected an object")
                return value
            if param.type == "array":
                if not isinstance(value, list):
                    raise ValueError("expected an array")
                return value
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise ToolArgumentError(f"Invalid value for '{param.name}': {exc}") from exc
        return value

    @staticmethod
    def _normalize_tool_result(result: Any) -> Dict[str, Any]:
        if isinstance(result, dict):
            return result
        if isinstance(result, list):
            return {"items": result}
        return {"result": result}
