"""
Semantic search over the novel entity index.

The index itself is built by an external ingestion pipeline; this package
only queries it.
"""

from novel_memory.core.vector_search.base import CATEGORY_TYPES, SemanticSearchService
from novel_memory.core.vector_search.qdrant import QdrantSemanticSearch

__all__ = ["SemanticSearchService", "QdrantSemanticSearch", "CATEGORY_TYPES"]
