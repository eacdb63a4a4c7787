"""
Base interface for semantic search over novel entities.
"""

from abc import ABC, abstractmethod

from novel_memory.models.search import SearchOptions, SearchResults

# Entity types stored in the index, grouped by the context category they feed
CATEGORY_TYPES: dict[str, tuple[str, ...]] = {
    "characters": ("character",),
    "world_entries": ("world_entry", "territory"),
    "plot_elements": ("story_thread", "antagonist", "arc"),
    "power_elements": ("technique", "item"),
}


class SemanticSearchService(ABC):
    """Abstract semantic search used by the long-term memory tier."""

    @abstractmethod
    async def is_ready(self) -> bool:
        """
        Report whether the index can serve queries.

        Must not raise: an unreachable backend is reported as False.
        """
        pass

    @abstractmethod
    async def search(
        self,
        novel_id: str,
        queries: list[str],
        options: SearchOptions | None = None,
    ) -> SearchResults:
        """
        Run all queries against one novel's entities.

        Args:
            novel_id: Novel whose entities are searched
            queries: Natural-language queries
            options: Per-category limits and score threshold

        Returns:
            Results grouped by category, best score first

        Raises:
            VectorSearchError: If the backend cannot be queried
            EmbeddingError: If queries cannot be embedded
        """
        pass

    async def close(self) -> None:
        """Release backend connections."""
        pass
