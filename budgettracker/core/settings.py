"""
Unified configuration management
"""
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}, using default {default}")
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}: {raw!r}, using default {default}")
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings"""

    def __init__(self):
        self._load_env()

    def _load_env(self):
        """Load settings from environment variables"""
        # __file__ = budgettracker/core/settings.py
        self.PROJECT_ROOT: Path = Path(__file__).parent.parent.parent
        self.DATA_DIR: Path = Path(os.getenv("DATA_DIR", str(self.PROJECT_ROOT / "data")))

        self.VERSION: str = "0.1.0"

        default_db_path = str(self.DATA_DIR / "budgettracker.db")
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{default_db_path}")

        # LLM provider
        self.LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")
        self.LLM_API_KEY: str = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY", "")
        self.LLM_API_BASE: Optional[str] = os.getenv("LLM_API_BASE") or None
        self.LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
        self.LLM_TEMPERATURE: float = _get_float("LLM_TEMPERATURE", 0.2)
        self.LLM_MAX_TOKENS: int = _get_int("LLM_MAX_TOKENS", 2500)
        self.EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

        # Agent loop
        self.AGENT_HARD_MAX_ITERATIONS: int = _get_int("AGENT_HARD_MAX_ITERATIONS", 10)
        self.AGENT_TOOL_TIMEOUT_SECONDS: float = _get_float("AGENT_TOOL_TIMEOUT_SECONDS", 30.0)

        # Recommendations
        self.RECOMMENDATION_MAX_ITERATIONS: int = _get_int("RECOMMENDATION_MAX_ITERATIONS", 5)
        self.RECOMMENDATION_REGENERATE_WINDOW_MINUTES: int = _get_int(
            "RECOMMENDATION_REGENERATE_WINDOW_MINUTES", 1
        )
        self.RECOMMENDATION_MIN_TRANSACTIONS: int = _get_int("RECOMMENDATION_MIN_TRANSACTIONS", 5)
        self.RECOMMENDATION_EXPIRY_DAYS: int = _get_int("RECOMMENDATION_EXPIRY_DAYS", 7)
        self.RECOMMENDATION_USER_DELAY_SECONDS: float = _get_float(
            "RECOMMENDATION_USER_DELAY_SECONDS", 0.1
        )
        self.RECOMMENDATION_RETENTION_DAYS: int = _get_int("RECOMMENDATION_RETENTION_DAYS", 30)
        self.RECOMMENDATION_CRON: str = os.getenv("RECOMMENDATION_CRON", "0 6 * * *")

        # Query assistant
        self.QUERY_MAX_ITERATIONS: int = _get_int("QUERY_MAX_ITERATIONS", 5)
        self.QUERY_TIMEOUT_SECONDS: float = _get_float("QUERY_TIMEOUT_SECONDS", 60.0)
        self.SEMANTIC_SEARCH_MIN_SIMILARITY: float = _get_float("SEMANTIC_SEARCH_MIN_SIMILARITY", 0.3)

        # Scheduler
        self.SCHEDULER_ENABLED: bool = _get_bool("SCHEDULER_ENABLED", True)

        # API server
        self.API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
        self.API_PORT: int = _get_int("API_PORT", 8000)

        # Logging
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        self.LOG_FILE: Optional[str] = os.getenv("LOG_FILE")

    def is_ai_enabled(self) -> bool:
        """Whether an LLM provider is configured"""
        return bool(self.LLM_API_KEY)


settings = Settings()
