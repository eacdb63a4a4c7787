"""
Qdrant-backed semantic search over novel entities.

Points are expected to carry a payload with ``novel_id``, ``entity_id``,
``name`` and ``type``; any other payload keys are surfaced as result
metadata.
"""

import asyncio
import time
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import FieldCondition, Filter, MatchAny, MatchValue

from novel_memory.core.embeddings.base import Embedder
from novel_memory.core.vector_search.base import CATEGORY_TYPES, SemanticSearchService
from novel_memory.models.search import SearchOptions, SearchResults, SemanticSearchResult
from novel_memory.utils.exceptions import VectorSearchError
from novel_memory.utils.logger import get_logger

logger = get_logger(__name__)

_RESERVED_PAYLOAD_KEYS = {"novel_id", "entity_id", "name", "type"}


class QdrantSemanticSearch(SemanticSearchService):
    """
    Semantic search against a Qdrant collection.

    Each query is embedded once; the four context categories are then
    searched concurrently, one Qdrant request per (category, query) pair.
    Hits for the same entity are merged keeping the best score.
    """

    def __init__(
        self,
        embedder: Embedder,
        host: str = "localhost",
        port: int = 6333,
        collection_name: str = "novel_entities",
        use_grpc: bool = False,
        timeout: int = 30,
    ):
        self.embedder = embedder
        self.host = host
        self.port = port
        self.collection_name = collection_name
        self.use_grpc = use_grpc
        self.timeout = timeout
        self.client: AsyncQdrantClient | None = None

    async def connect(self) -> None:
        """
        Create the Qdrant client.

        Raises:
            VectorSearchError: If the client cannot be created
        """
        if self.client is not None:
            return
        try:
            self.client = AsyncQdrantClient(
                host=self.host,
                port=self.port,
                prefer_grpc=self.use_grpc,
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error(
                f"Failed to connect to Qdrant: {e}",
                extra={"host": self.host, "port": self.port, "error": str(e)},
            )
            raise VectorSearchError(f"Failed to connect to Qdrant: {e}") from e

    async def is_ready(self) -> bool:
        try:
            await self.connect()
            collections = await self.client.get_collections()
        except Exception as e:
            logger.warning(f"Qdrant not reachable: {e}")
            return False

        names = [col.name for col in collections.collections]
        if self.collection_name not in names:
            logger.warning(f"Qdrant collection '{self.collection_name}' does not exist")
            return False
        return True

    async def search(
        self,
        novel_id: str,
        queries: list[str],
        options: SearchOptions | None = None,
    ) -> SearchResults:
        options = options or SearchOptions()
        queries = [q for q in queries if q and q.strip()]
        if not queries:
            return SearchResults()

        start = time.time()
        await self.connect()

        vectors = await self.embedder.embed_queries(queries)

        limits = {
            "characters": options.max_characters,
            "world_entries": options.max_world_entries,
            "plot_elements": options.max_plot_elements,
            "power_elements": options.max_power_elements,
        }

        categories = list(CATEGORY_TYPES)
        category_results = await asyncio.gather(
            *(
                self._search_category(
                    novel_id, vectors, CATEGORY_TYPES[name], limits[name], options.min_score
                )
                for name in categories
            )
        )

        results = SearchResults(
            **dict(zip(categories, category_results, strict=True)),
            total_duration_ms=(time.time() - start) * 1000,
        )

        logger.debug(
            f"Semantic search: {len(queries)} queries, {results.total_results()} results "
            f"in {results.total_duration_ms:.1f}ms",
            extra={"novel_id": novel_id},
        )
        return results

    async def _search_category(
        self,
        novel_id: str,
        vectors: list[list[float]],
        entity_types: tuple[str, ...],
        limit: int,
        min_score: float,
    ) -> list[SemanticSearchResult]:
        if limit <= 0:
            return []

        query_filter = Filter(
            must=[
                FieldCondition(key="novel_id", match=MatchValue(value=novel_id)),
                FieldCondition(key="type", match=MatchAny(any=list(entity_types))),
            ]
        )

        try:
            responses = await asyncio.gather(
                *(
                    self.client.query_points(
                        collection_name=self.collection_name,
                        query=vector,
                        limit=limit,
                        score_threshold=min_score,
                        query_filter=query_filter,
                        with_payload=True,
                    )
                    for vector in vectors
                )
            )
        except Exception as e:
            logger.error(
                f"Qdrant query failed: {e}",
                extra={"collection": self.collection_name, "types": entity_types},
            )
            raise VectorSearchError(
                f"Qdrant query failed: {e}", context={"types": list(entity_types)}
            ) from e

        merged: dict[str, SemanticSearchResult] = {}
        for response in responses:
            for point in response.points:
                result = self._point_to_result(point.id, point.score, point.payload or {})
                if result.score < min_score:
                    continue
                existing = merged.get(result.id)
                if existing is None or result.score > existing.score:
                    merged[result.id] = result

        ranked = sorted(merged.values(), key=lambda r: r.score, reverse=True)
        return ranked[:limit]

    @staticmethod
    def _point_to_result(point_id: Any, score: float, payload: dict[str, Any]) -> SemanticSearchResult:
        return SemanticSearchResult(
            id=str(payload.get("entity_id") or point_id),
            name=str(payload.get("name", "")),
            type=str(payload.get("type", "")),
            score=min(max(float(score), 0.0), 1.0),
            metadata={k: v for k, v in payload.items() if k not in _RESERVED_PAYLOAD_KEYS},
        )

    async def close(self) -> None:
        """Close the connection to Qdrant."""
        if self.client is not None:
            await self.client.close()
            self.client = None
        await self.embedder.close()
