"""Semantic search results over the novel entity index."""

from typing import Any

from pydantic import BaseModel, Field


class SemanticSearchResult(BaseModel):
    """A single entity returned by semantic search."""

    id: str
    name: str
    type: str  # character, world_entry, territory, story_thread, antagonist, arc, technique, item
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchResults(BaseModel):
    """Search results grouped by context category."""

    characters: list[SemanticSearchResult] = Field(default_factory=list)
    world_entries: list[SemanticSearchResult] = Field(default_factory=list)
    plot_elements: list[SemanticSearchResult] = Field(default_factory=list)
    power_elements: list[SemanticSearchResult] = Field(default_factory=list)
    total_duration_ms: float = 0.0

    def is_empty(self) -> bool:
        return not (
            self.characters or self.world_entries or self.plot_elements or self.power_elements
        )

    def total_results(self) -> int:
        return (
            len(self.characters)
            + len(self.world_entries)
            + len(self.plot_elements)
            + len(self.power_elements)
        )


class SearchOptions(BaseModel):
    """Per-category limits for a chapter-context search."""

    max_characters: int = 5
    max_world_entries: int = 3
    max_plot_elements: int = 3
    max_power_elements: int = 3
    min_score: float = 0.5
