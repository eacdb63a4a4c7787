"""
Factories building pluggable components from configuration.
"""

from novel_memory.core.factory.embedder_factory import EmbedderFactory
from novel_memory.core.factory.search_factory import VectorSearchFactory

__all__ = [
    "EmbedderFactory",
    "VectorSearchFactory",
]
