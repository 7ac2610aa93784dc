"""
Factory functions - build the shared agent services from settings
"""
import logging
from dataclasses import dataclass
from typing import Optional

from budgettracker.core.settings import settings
from budgettracker.db import DatabaseManager, get_db
from budgettracker.services.agent.policies import recommendation_policy
from budgettracker.services.agent.providers import CompletionClient, build_provider_adapter
from budgettracker.services.agent.runtime import AgentRunner
from budgettracker.services.agent.tools import ToolExecutor, ToolRegistry
from budgettracker.services.intelligence.search import EmbeddingService, SemanticSearchService
from budgettracker.services.intelligence.tools import build_tool_registry
from budgettracker.services.query.assistant import QueryAssistantService
from budgettracker.services.recommendations.processor import RecommendationProcessor

logger = logging.getLogger(__name__)


@dataclass
class IntelligenceServices:
    """Process-wide agent services; the registry and runner are shared by every run"""
    registry: ToolRegistry
    runner: AgentRunner
    processor: RecommendationProcessor
    assistant: QueryAssistantService


def create_completion_client() -> Optional[CompletionClient]:
    """Completion client from settings, or None when no API key is configured"""
    if not settings.is_ai_enabled():
        logger.warning("LLM_API_KEY is not set, AI features are disabled")
        return None
    logger.info(f"Creating completion client: provider={settings.LLM_PROVIDER}, model={settings.LLM_MODEL}")
    return build_provider_adapter(
        provider_type=settings.LLM_PROVIDER,
        api_key=settings.LLM_API_KEY,
        model=settings.LLM_MODEL,
        api_base=settings.LLM_API_BASE,
    )


def create_search_service(db: DatabaseManager) -> SemanticSearchService:
    embedding_service = None
    # embeddings always go through an OpenAI-compatible endpoint
    if settings.is_ai_enabled() and "anthropic" not in settings.LLM_PROVIDER.lower():
        embedding_service = EmbeddingService(
            api_key=settings.LLM_API_KEY,
            model=settings.EMBEDDING_MODEL,
            base_url=settings.LLM_API_BASE,
        )
    return SemanticSearchService(
        db,
        embedding_service=embedding_service,
        min_similarity=settings.SEMANTIC_SEARCH_MIN_SIMILARITY,
    )


def create_intelligence_services(
    db: Optional[DatabaseManager] = None,
    client: Optional[CompletionClient] = None,
) -> Optional[IntelligenceServices]:
    """
    Wire registry, runner and both consumers

    Args:
        db: database manager, defaults to the global one
        client: completion client, defaults to one built from settings

    Returns:
        the services, or None when no completion client is available
    """
    db = db or get_db()
    client = client or create_completion_client()
    if client is None:
        return None

    registry = build_tool_registry(db, create_search_service(db))
    runner = AgentRunner(
        client,
        ToolExecutor(timeout_seconds=settings.AGENT_TOOL_TIMEOUT_SECONDS),
        hard_max_iterations=settings.AGENT_HARD_MAX_ITERATIONS,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=settings.LLM_MAX_TOKENS,
    )
    processor = RecommendationProcessor(
        db,
        runner,
        registry,
        policy=recommendation_policy(settings.RECOMMENDATION_MAX_ITERATIONS),
        min_transactions=settings.RECOMMENDATION_MIN_TRANSACTIONS,
        regenerate_window_minutes=settings.RECOMMENDATION_REGENERATE_WINDOW_MINUTES,
        expiry_days=settings.RECOMMENDATION_EXPIRY_DAYS,
        user_delay_seconds=settings.RECOMMENDATION_USER_DELAY_SECONDS,
        retention_days=settings.RECOMMENDATION_RETENTION_DAYS,
    )
    assistant = QueryAssistantService(
        db,
        runner,
        registry,
        timeout_seconds=settings.QUERY_TIMEOUT_SECONDS,
        max_iterations=settings.QUERY_MAX_ITERATIONS,
    )
    return IntelligenceServices(registry=registry, runner=runner, processor=processor, assistant=assistant)


_services: Optional[IntelligenceServices] = None


def get_intelligence_services() -> Optional[IntelligenceServices]:
    """Global services instance, built on first use"""
    global _services
    if _services is None:
        _services = create_intelligence_services()
    return _services
