"""
Semantic transaction search over stored embeddings
"""
import logging
from typing import Any, Dict, List, Optional

import numpy as np
from openai import OpenAI

from budgettracker.db import DatabaseManager
from budgettracker.db.repositories import TransactionRepository

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Text embeddings via an OpenAI-compatible embeddings API"""

    def __init__(self, api_key: str, model: str = "text-embedding-3-small", base_url: Optional[str] = None):
        client_kwargs: Dict[str, Any] = {"api_key": api_key, "timeout": 30.0}
        if base_url:
            client_kwargs["base_url"] = base_url
        self.client = OpenAI(**client_kwargs)
        self.model = model

    def generate_embedding(self, text: str) -> List[float]:
        if not text or not text.strip():
            return []
        response = self.client.embeddings.create(model=self.model, input=text.strip())
        return response.data[0].embedding


class SemanticSearchService:
    """Rank a user's transactions by similarity to a free-text query"""

    def __init__(
        self,
        db: DatabaseManager,
        embedding_service: Optional[EmbeddingService] = None,
        min_similarity: float = 0.3,
    ):
        """
        Args:
            db: database manager
            embedding_service: query embedder; keyword matching is used without one
            min_similarity: cosine score below which results are dropped
        """
        self.db = db
        self.embedding_service = embedding_service
        self.min_similarity = min_similarity

    def find_relevant_transactions(self, query: str, user_id: str, max_results: int = 10) -> List[Dict[str, Any]]:
        """
        Find the caller's transactions most related to `query`

        Args:
            query: free text such as "coffee" or "subscriptions"
            user_id: only this user's transactions are searched
            max_results: maximum number of results

        Returns:
            transaction dicts, best match first
        """
        if not query or not query.strip() or not user_id:
            return []

        if self.embedding_service is not None:
            results = self._semantic_search(query, user_id, max_results)
            if results is not None:
                return results

        with self.db.get_session() as session:
            rows = TransactionRepository.search_by_keyword(session, user_id, query, limit=max_results)
            return [row.to_dict() for row in rows]

    def _semantic_search(self, query: str, user_id: str, max_results: int) -> Optional[List[Dict[str, Any]]]:
        """None means fall back to keyword search; an embedding failure yields []"""
        try:
            query_embedding = self.embedding_service.generate_embedding(query)
        except Exception as e:
            logger.error(f"Query embedding failed: {e}")
            return []
        if not query_embedding:
            return None

        with self.db.get_session() as session:
            rows = TransactionRepository.get_with_embeddings(session, user_id)
            if not rows:
                return None

            scored = []
            for row in rows:
                similarity = self._cosine_similarity(query_embedding, row.embedding)
                if similarity >= self.min_similarity:
                    scored.append((similarity, row))

            scored.sort(key=lambda item: item[0], reverse=True)
            results = []
            for similarity, row in scored[:max_results]:
                item = row.to_dict()
                item["similarity"] = round(similarity, 4)
                results.append(item)

        logger.info(f"Semantic search user={user_id} matched {len(results)} of {len(rows)} transactions")
        return results

    @staticmethod
    def _cosine_similarity(vec1: List[float], vec2: List[float]) -> float:
        v1 = np.asarray(vec1, dtype=float)
        v2 = np.asarray(vec2, dtype=float)
        if v1.shape != v2.shape:
            return 0.0

        norm1 = np.linalg.norm(v1)
        norm2 = np.linalg.norm(v2)
        if norm1 == 0 or norm2 == 0:
            return 0.0
        return float(np.dot(v1, v2) / (norm1 * norm2))
