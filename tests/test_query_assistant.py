from __future__ import annotations

from dataclasses import replace

import pytest

from budgettracker.services.agent.runtime import AgentRunner
from budgettracker.services.agent.tools import ToolExecutor, ToolRegistry
from budgettracker.services.agent.types import CompletionTransportError, TerminationSignal
from budgettracker.services.intelligence.search import SemanticSearchService
from budgettracker.services.intelligence.tools import GET_CATEGORY_SPENDING, SEARCH_TRANSACTIONS, build_tool_registry
from budgettracker.services.query.assistant import (
    APOLOGY_MESSAGE,
    AUTH_REQUIRED_MESSAGE,
    EMPTY_QUESTION_MESSAGE,
    NO_TRANSACTIONS_MESSAGE,
    QUESTION_TOO_LONG_MESSAGE,
    QueryAssistantService,
)
from tests.fakes import FakeCompletionClient, add_transaction, text_response, tool_response


def _assistant(db, client, executor, registry=None) -> QueryAssistantService:
    return QueryAssistantService(db, AgentRunner(client, executor), registry or ToolRegistry())


@pytest.mark.parametrize(
    "question, user_id, expected",
    [
        ("", "alice", EMPTY_QUESTION_MESSAGE),
        ("   ", "alice", EMPTY_QUESTION_MESSAGE),
        ("x" * 501, "alice", QUESTION_TOO_LONG_MESSAGE),
        ("How much on coffee?", "", AUTH_REQUIRED_MESSAGE),
        ("How much on coffee?", "nobody", NO_TRANSACTIONS_MESSAGE),
    ],
)
def test_preconditions_short_circuit_before_any_call(db, executor: ToolExecutor, question, user_id, expected) -> None:
    client = FakeCompletionClient([])

    response = _assistant(db, client, executor).ask(question, user_id)

    assert response.answer == expected
    assert response.amount is None
    assert response.transactions is None
    assert client.calls == []


def test_question_of_exactly_500_characters_is_accepted(db, executor: ToolExecutor) -> None:
    add_transaction(db, "alice", "Coffee", "-4.00")
    client = FakeCompletionClient([text_response('{"answer": "ok"}')])

    response = _assistant(db, client, executor).ask("x" * 500, "alice")

    assert response.answer == "ok"
    assert len(client.calls) == 1


def test_coffee_question_end_to_end(db, executor: ToolExecutor) -> None:
    add_transaction(db, "alice", "Starbucks coffee", "-20.00", category="Dining")
    add_transaction(db, "alice", "Corner coffee", "-22.00", category="Dining")
    add_transaction(db, "alice", "Rent", "-1500.00", category="Housing")
    executed = []
    search = SemanticSearchService(db)
    registry = build_tool_registry(db, search)
    original = registry.lookup(SEARCH_TRANSACTIONS).handler

    def counting_search(caller, cancellation, **arguments):
        executed.append(arguments)
        return original(caller, cancellation, **arguments)

    registry = ToolRegistry(
        [
            descriptor if descriptor.name != SEARCH_TRANSACTIONS
            else replace(descriptor, handler=counting_search)
            for descriptor in registry.descriptors()
        ]
    )
    client = FakeCompletionClient(
        [
            tool_response((SEARCH_TRANSACTIONS, {"query": "coffee"})),
            text_response('{"answer":"You spent $42.00 on coffee.","amount":42.00,"transactions":null}'),
        ]
    )

    response = _assistant(db, client, executor, registry).ask("How much did I spend on coffee?", "alice")

    assert response.answer == "You spent $42.00 on coffee."
    assert response.amount == 42.0
    assert response.transactions is None
    assert len(client.calls) == 2
    assert executed == [{"query": "coffee", "maxResults": 10}]
    tool_result = client.calls[1]["messages"][-1].tool_results[0]
    assert tool_result.payload["count"] == 2


def test_transactions_are_returned_when_listed(db, executor: ToolExecutor) -> None:
    add_transaction(db, "alice", "Coffee", "-4.00")
    answer = (
        '{"answer":"Your last coffee","amount":null,"transactions":['
        '{"id":"t1","date":"2024-05-01","description":"Coffee","amount":-4.0,"category":"Dining","account":"Visa"}]}'
    )
    client = FakeCompletionClient([text_response(answer)])

    response = _assistant(db, client, executor).ask("What was my last coffee?", "alice")

    assert response.amount is None
    assert len(response.transactions) == 1
    assert response.transactions[0].description == "Coffee"
    assert response.transactions[0].amount == -4.0


@pytest.mark.parametrize(
    "script",
    [
        [text_response("no json here")],
        [text_response("", TerminationSignal.REFUSED)],
        [text_response('{"answer":', TerminationSignal.LENGTH_EXCEEDED)],
        [CompletionTransportError("boom: internal host 10.0.0.1")],
    ],
)
def test_incomplete_runs_return_generic_apology(db, executor: ToolExecutor, script) -> None:
    add_transaction(db, "alice", "Coffee", "-4.00")

    response = _assistant(db, FakeCompletionClient(script), executor).ask("How much on coffee?", "alice")

    assert response.answer == APOLOGY_MESSAGE
    assert response.amount is None
    assert response.transactions is None


def test_category_spending_question_end_to_end(db, executor: ToolExecutor) -> None:
    add_transaction(db, "alice", "Starbucks coffee", "-20.00", category="Dining")
    add_transaction(db, "alice", "Corner coffee", "-22.00", category="Dining")
    add_transaction(db, "alice", "Rent", "-1500.00", category="Housing")
    executed = []
    registry = build_tool_registry(db, SemanticSearchService(db))
    original = registry.lookup(GET_CATEGORY_SPENDING).handler

    def counting_spending(caller, cancellation, **arguments):
        executed.append(caller.user_id)
        return original(caller, cancellation, **arguments)

    registry = ToolRegistry(
        [
            descriptor if descriptor.name != GET_CATEGORY_SPENDING
            else replace(descriptor, handler=counting_spending)
            for descriptor in registry.descriptors()
        ]
    )
    client = FakeCompletionClient(
        [
            tool_response((GET_CATEGORY_SPENDING, {"topN": 5})),
            text_response('{"answer":"Dining cost you $42.00.","amount":42.00}'),
        ]
    )

    response = _assistant(db, client, executor, registry).ask("How much did I spend on dining?", "alice")

    assert response.answer == "Dining cost you $42.00."
    assert response.amount == 42.0
    assert len(client.calls) == 2
    assert executed == ["alice"]
    payload = client.calls[1]["messages"][-1].tool_results[0].payload
    assert payload["categories"][0] == {"category": "Housing", "total": 1500.0, "transactionCount": 1}
    assert payload["categories"][1]["total"] == 42.0
