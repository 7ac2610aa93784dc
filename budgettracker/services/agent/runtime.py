"""
Protocol-agnostic agent runtime with tool-calling loop.
"""
from __future__ import annotations

import logging
from typing import Optional

from budgettracker.services.agent.extraction import ParseFailure, extract
from budgettracker.services.agent.policies import Policy
from budgettracker.services.agent.providers import CompletionClient
from budgettracker.services.agent.tools import ToolExecutor, ToolRegistry
from budgettracker.services.agent.types import (
    AgentOutcome,
    CallerContext,
    Cancellation,
    CompletionTransportError,
    ConversationState,
    IncompleteReason,
    Message,
    OperationCancelled,
    TerminationSignal,
)

logger = logging.getLogger(__name__)


class AgentRunner:
    """Drive a completion client through a bounded tool-calling loop.

    One runner is shared by every run; all per-run state lives in `run`.
    """

    def __init__(
        self,
        client: CompletionClient,
        executor: Optional[ToolExecutor] = None,
        *,
        hard_max_iterations: int = 10,
        temperature: float = 0.2,
        max_tokens: int = 2500,
    ) -> None:
        self.client = client
        self.executor = executor or ToolExecutor()
        self.hard_max_iterations = hard_max_iterations
        self.temperature = temperature
        self.max_tokens = max_tokens

    def run(
        self,
        policy: Policy,
        registry: ToolRegistry,
        caller: CallerContext,
        cancellation: Optional[Cancellation] = None,
    ) -> AgentOutcome:
        if not 1 <= policy.max_iterations <= self.hard_max_iterations:
            raise ValueError(
                f"Policy {policy.name} max_iterations={policy.max_iterations} "
                f"must be between 1 and {self.hard_max_iterations}"
            )

        cancellation = cancellation or Cancellation()
        conversation = ConversationState()
        conversation.append(Message.system(policy.system_prompt))
        conversation.append(Message.user(policy.initial_user_prompt))
        tools = registry.descriptors()
        tool_calls = 0
        iteration = 0

        def incomplete(reason: IncompleteReason, detail: str = "") -> AgentOutcome:
            return self._finish(
                policy,
                caller,
                AgentOutcome.incomplete(reason, detail, iterations=iteration, tool_calls=tool_calls),
            )

        for iteration in range(1, policy.max_iterations + 1):
            if cancellation.cancelled:
                return incomplete(IncompleteReason.CANCELLED, "cancelled before completion call")

            logger.info(
                "Agent %s iteration %d/%d user=%s",
                policy.name,
                iteration,
                policy.max_iterations,
                caller.user_id,
            )
            try:
                response = self.client.complete(
                    conversation,
                    tools,
                    caller,
                    cancellation,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                )
            except OperationCancelled as exc:
                return incomplete(IncompleteReason.CANCELLED, str(exc))
            except CompletionTransportError as exc:
                return incomplete(IncompleteReason.TRANSPORT_ERROR, str(exc))

            conversation.append(response.message)

            requests = response.message.tool_calls
            if requests:
                try:
                    results = self.executor.execute_all(requests, registry, caller, cancellation)
                except OperationCancelled as exc:
                    return incomplete(IncompleteReason.CANCELLED, str(exc))
                for result in results:
                    conversation.append(Message.tool(result))
                tool_calls += len(results)
                continue

            if response.signal is TerminationSignal.COMPLETED:
                parsed = extract(response.message.text, policy.extraction_schema)
                if isinstance(parsed, ParseFailure):
                    return incomplete(IncompleteReason.PARSE_FAILURE, parsed.reason)
                return self._finish(
                    policy,
                    caller,
                    AgentOutcome.succeeded(parsed.data, iterations=iteration, tool_calls=tool_calls),
                )
            if response.signal is TerminationSignal.LENGTH_EXCEEDED:
                return incomplete(IncompleteReason.TOKEN_LIMIT_REACHED, "model output hit the token limit")
            if response.signal is TerminationSignal.REFUSED:
                return incomplete(IncompleteReason.CONTENT_REFUSED, "model refused the request")

            logger.warning(
                "Agent %s got signal %s without tool calls, continuing", policy.name, response.signal.value
            )

        return incomplete(
            IncompleteReason.ITERATIONS_EXHAUSTED,
            f"no final answer after {policy.max_iterations} iterations",
        )

    @staticmethod
    def _finish(policy: Policy, caller: CallerContext, outcome: AgentOutcome) -> AgentOutcome:
        if outcome.success:
            logger.info(
                "Agent %s succeeded user=%s iterations=%d tool_calls=%d",
                policy.name,
                caller.user_id,
                outcome.iterations,
                outcome.tool_calls,
            )
        else:
            logger.warning(
                "Agent %s incomplete user=%s reason=%s iterations=%d tool_calls=%d detail=%s",
                policy.name,
                caller.user_id,
                outcome.reason.value,
                outcome.iterations,
                outcome.tool_calls,
                outcome.detail,
            )
        return outcome
