"""
Exception hierarchy for Novel Memory.

Every error raised by the package derives from NovelMemoryError so callers
can catch the whole family at once. The memory orchestrators never let these
escape; they are raised by the pluggable seams (embedders, vector search,
lore synthesis) and converted into degraded output upstream.
"""


class NovelMemoryError(Exception):
    """Base exception for all Novel Memory errors."""

    def __init__(self, message: str, context: dict | None = None):
        """
        Args:
            message: Error message
            context: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigurationError(NovelMemoryError):
    """Raised when configuration is invalid or missing required values."""

    pass


class ValidationError(NovelMemoryError):
    """Raised when input validation fails."""

    pass


class EmbeddingError(NovelMemoryError):
    """Raised when query embedding generation fails."""

    pass


class VectorSearchError(NovelMemoryError):
    """Raised when the vector database cannot be queried."""

    pass


class LoreSynthesisError(NovelMemoryError):
    """Raised when a lore bible cannot be built for a novel."""

    pass
