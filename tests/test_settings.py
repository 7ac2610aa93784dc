from __future__ import annotations

from budgettracker.core.settings import Settings


def test_defaults(monkeypatch) -> None:
    for name in ("AGENT_HARD_MAX_ITERATIONS", "RECOMMENDATION_CRON", "QUERY_TIMEOUT_SECONDS", "SCHEDULER_ENABLED"):
        monkeypatch.delenv(name, raising=False)

    config = Settings()

    assert config.AGENT_HARD_MAX_ITERATIONS == 10
    assert config.AGENT_TOOL_TIMEOUT_SECONDS == 30.0
    assert config.RECOMMENDATION_CRON == "0 6 * * *"
    assert config.RECOMMENDATION_EXPIRY_DAYS == 7
    assert config.QUERY_TIMEOUT_SECONDS == 60.0
    assert config.SCHEDULER_ENABLED is True


def test_environment_overrides_and_bad_values(monkeypatch) -> None:
    monkeypatch.setenv("RECOMMENDATION_MIN_TRANSACTIONS", "12")
    monkeypatch.setenv("AGENT_HARD_MAX_ITERATIONS", "lots")
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("LLM_API_KEY", "")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    config = Settings()

    assert config.RECOMMENDATION_MIN_TRANSACTIONS == 12
    assert config.AGENT_HARD_MAX_ITERATIONS == 10
    assert config.SCHEDULER_ENABLED is False
    assert config.LLM_API_KEY == "sk-test"
    assert config.is_ai_enabled()
