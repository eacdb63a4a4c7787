"""
Factory for creating the semantic search backend.
"""

from urllib.parse import urlparse

from novel_memory.config import Config
from novel_memory.core.embeddings.base import Embedder
from novel_memory.core.factory.embedder_factory import EmbedderFactory
from novel_memory.core.vector_search.base import SemanticSearchService
from novel_memory.core.vector_search.qdrant import QdrantSemanticSearch


class VectorSearchFactory:
    """Factory for creating semantic search from configuration."""

    @staticmethod
    def create(config: Config, embedder: Embedder | None = None) -> SemanticSearchService | None:
        """
        Create the Qdrant search service.

        Args:
            config: Full configuration
            embedder: Optional embedder; built from ``config.embedder`` when omitted

        Returns:
            Search service, or None when vector search is disabled
        """
        if not config.vector_search_enabled:
            return None

        parsed = urlparse(config.qdrant.url)
        host = parsed.hostname or "localhost"
        port = parsed.port or 6333

        return QdrantSemanticSearch(
            embedder=embedder or EmbedderFactory.create(config.embedder),
            host=host,
            port=port,
            collection_name=config.qdrant.collection_name,
            use_grpc=config.qdrant.use_grpc,
            timeout=config.qdrant.timeout,
        )
