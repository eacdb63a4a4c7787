"""
Abstract base class for embedding providers.

Search queries are embedded with the same model that indexed the novel
entities, so a provider is configured once per deployment.
"""

import asyncio
from abc import ABC, abstractmethod


class Embedder(ABC):
    """Abstract base for embedding providers."""

    model: str = ""

    @abstractmethod
    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding vector for text.

        Raises:
            ValidationError: If text is empty
            EmbeddingError: If the provider call fails
        """
        pass

    async def embed_queries(self, queries: list[str], **kwargs) -> list[list[float]]:
        """
        Embed several search queries concurrently.

        Args:
            queries: Query texts

        Returns:
            Embedding vectors in the same order as the queries
        """
        if not queries:
            return []
        return list(await asyncio.gather(*(self.embed(query, **kwargs) for query in queries)))

    @abstractmethod
    async def close(self):
        """Close any open connections."""
        pass
