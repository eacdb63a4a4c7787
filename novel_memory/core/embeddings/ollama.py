"""
Ollama embedder using native ollama-python SDK.
"""

import ollama

from novel_memory.core.embeddings.base import Embedder
from novel_memory.utils.exceptions import EmbeddingError, ValidationError
from novel_memory.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaEmbedder(Embedder):
    """
    Ollama embedder for search queries.

    Works with local embedding models such as nomic-embed-text or
    mxbai-embed-large.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 60.0,
    ):
        self.host = host
        self.model = model
        self.timeout = timeout
        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding for a query using Ollama.

        Raises:
            ValidationError: If text is empty
            EmbeddingError: If Ollama embedding fails
        """
        if not text or not text.strip():
            raise ValidationError("Query text cannot be empty")

        try:
            response = await self.client.embeddings(model=self.model, prompt=text, **kwargs)

            if not response or "embedding" not in response:
                raise EmbeddingError("Ollama returned invalid embedding response")

            return list(response["embedding"])
        except ValidationError:
            raise
        except EmbeddingError:
            raise
        except Exception as e:
            logger.error(
                f"Ollama embedding error: {e}",
                extra={"model": self.model, "host": self.host, "error": str(e)},
            )
            raise EmbeddingError(
                f"Ollama embedding error: {e}", context={"model": self.model}
            ) from e

    async def close(self):
        """Ollama SDK manages its own HTTP session."""
        pass
