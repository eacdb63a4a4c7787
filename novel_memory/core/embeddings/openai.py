"""
OpenAI embedder using official SDK.
"""

from openai import AsyncOpenAI

from novel_memory.core.embeddings.base import Embedder
from novel_memory.utils.exceptions import EmbeddingError, ValidationError
from novel_memory.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAIEmbedder(Embedder):
    """
    OpenAI embedder for search queries.

    Sends all queries of a search in a single request.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
        timeout: float = 60.0,
    ):
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding for a query using OpenAI.

        Raises:
            ValidationError: If text is empty
            EmbeddingError: If the API call fails
        """
        if not text or not text.strip():
            raise ValidationError("Query text cannot be empty")

        vectors = await self._create([text], **kwargs)
        return vectors[0]

    async def embed_queries(self, queries: list[str], **kwargs) -> list[list[float]]:
        """Embed all queries in one API request."""
        if not queries:
            return []
        if any(not q or not q.strip() for q in queries):
            raise ValidationError("Query text cannot be empty")
        return await self._create(queries, **kwargs)

    async def _create(self, inputs: list[str], **kwargs) -> list[list[float]]:
        try:
            response = await self.client.embeddings.create(model=self.model, input=inputs, **kwargs)
        except Exception as e:
            logger.error(
                f"OpenAI embedding error: {e}",
                extra={"model": self.model, "num_inputs": len(inputs), "error": str(e)},
            )
            raise EmbeddingError(
                f"OpenAI embedding error: {e}", context={"model": self.model}
            ) from e

        if not response.data or len(response.data) != len(inputs):
            raise EmbeddingError("OpenAI returned an incomplete embedding response")

        # response.data is ordered by input index
        return [item.embedding for item in response.data]

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
