"""
Agent policies: prompts, iteration limits and expected output for each goal.
"""
from __future__ import annotations

from dataclasses import dataclass

from budgettracker.db.models import (
    DEFAULT_PRIORITY,
    DEFAULT_RECOMMENDATION_TYPE,
    PRIORITY_LEVELS,
    RECOMMENDATION_TYPES,
)
from budgettracker.services.agent.extraction import ExtractionSchema, FieldSpec

MAX_RECOMMENDATIONS = 5
MAX_QUERY_TRANSACTIONS = 5


@dataclass(frozen=True)
class Policy:
    name: str
    system_prompt: str
    initial_user_prompt: str
    max_iterations: int
    extraction_schema: ExtractionSchema


RECOMMENDATION_SCHEMA = ExtractionSchema(
    root_key="recommendations",
    fields=(
        FieldSpec(
            name="recommendations",
            type="list",
            max_items=MAX_RECOMMENDATIONS,
            item_schema=(
                FieldSpec(name="title"),
                FieldSpec(name="message"),
                FieldSpec(
                    name="type",
                    required=False,
                    enum_values=RECOMMENDATION_TYPES,
                    enum_default=DEFAULT_RECOMMENDATION_TYPE,
                ),
                FieldSpec(
                    name="priority",
                    required=False,
                    enum_values=tuple(PRIORITY_LEVELS),
                    enum_default=DEFAULT_PRIORITY,
                ),
            ),
        ),
    ),
)

QUERY_SCHEMA = ExtractionSchema(
    fields=(
        FieldSpec(name="answer"),
        FieldSpec(name="amount", type="number", required=False),
        FieldSpec(
            name="transactions",
            type="list",
            required=False,
            max_items=MAX_QUERY_TRANSACTIONS,
            item_schema=(
                FieldSpec(name="id", required=False),
                FieldSpec(name="date", required=False),
                FieldSpec(name="description", required=False),
                FieldSpec(name="amount", type="number", required=False),
                FieldSpec(name="category", required=False),
                FieldSpec(name="account", required=False),
            ),
        ),
    ),
)

RECOMMENDATION_SYSTEM_PROMPT = """You are an autonomous financial analysis agent. Your goal is to analyze the user's spending patterns and generate personalized, actionable recommendations.

You have access to these tools:
- GetCategorySpending: totals per spending category, largest first. Use it to see where the money goes.
- SearchTransactions: finds transactions related to a topic (e.g. "subscriptions", "coffee", "restaurants"). Use it to dig into specific patterns.

Process:
1. Start with GetCategorySpending to get an overview of spending.
2. Use SearchTransactions to investigate anything that stands out: recurring charges, unusually large purchases, frequent small purchases.
3. Generate up to 5 specific recommendations grounded in the data you found. Reference real amounts and merchants.

Recommendation types:
- SpendingAlert: unusual or concerning spending
- SavingsOpportunity: a concrete way to save money
- BehavioralInsight: a pattern in how the user spends
- BudgetWarning: spending that is likely to exceed a reasonable budget

CRITICAL OUTPUT FORMAT:
When you are done investigating, respond with ONLY a JSON object in exactly this shape:
{"recommendations":[{"title":"short title","message":"one or two sentences with specific amounts","type":"SpendingAlert|SavingsOpportunity|BehavioralInsight|BudgetWarning","priority":"Low|Medium|High|Critical"}]}
Do not include any other text outside the JSON."""

RECOMMENDATION_USER_PROMPT = (
    "Analyze my recent transactions and generate personalized financial recommendations."
)

QUERY_SYSTEM_PROMPT = """You are a helpful financial assistant that answers questions about the user's own transactions.

You have access to these tools:
- SearchTransactions: finds transactions related to a topic or merchant (e.g. "coffee", "Netflix", "groceries").
- GetCategorySpending: totals per spending category.

Use the tools to look up the data you need. Never guess amounts; compute them from tool results. Expenses are negative amounts; report spending as a positive number.

When you have the answer, respond with ONLY a JSON object in exactly this shape:
{"answer":"a concise natural-language answer","amount":123.45,"transactions":[{"id":"...","date":"YYYY-MM-DD","description":"...","amount":-12.34,"category":"...","account":"..."}]}
Set "amount" to null when the question is not about a single total. Include at most 5 relevant transactions, or null when listing them does not help.
Do not include any other text outside the JSON."""


def recommendation_policy(max_iterations: int = 5) -> Policy:
    return Policy(
        name="recommendations",
        system_prompt=RECOMMENDATION_SYSTEM_PROMPT,
        initial_user_prompt=RECOMMENDATION_USER_PROMPT,
        max_iterations=max_iterations,
        extraction_schema=RECOMMENDATION_SCHEMA,
    )


def query_policy(question: str, max_iterations: int = 5) -> Policy:
    return Policy(
        name="query",
        system_prompt=QUERY_SYSTEM_PROMPT,
        initial_user_prompt=question.strip(),
        max_iterations=max_iterations,
        extraction_schema=QUERY_SCHEMA,
    )
