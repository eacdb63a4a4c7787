"""Utility modules for Novel Memory."""

from novel_memory.utils.exceptions import (
    ConfigurationError,
    EmbeddingError,
    LoreSynthesisError,
    NovelMemoryError,
    ValidationError,
    VectorSearchError,
)
from novel_memory.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Exceptions
    "NovelMemoryError",
    "ConfigurationError",
    "ValidationError",
    "EmbeddingError",
    "VectorSearchError",
    "LoreSynthesisError",
]
