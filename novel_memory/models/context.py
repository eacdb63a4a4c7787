"""Prioritised context items and token budget allocation."""

from enum import Enum

from pydantic import BaseModel


class ContextItemType(str, Enum):
    CHARACTER = "character"
    WORLD = "world"
    PLOT = "plot"
    POWER = "power"
    CHAPTER = "chapter"
    LORE_BIBLE = "lore_bible"
    CONTINUITY = "continuity"


class PrioritizedItem(BaseModel):
    """A candidate piece of prompt context with its priority score."""

    id: str
    type: ContextItemType
    content: str
    priority: float
    token_count: int
    reason: str = ""


class BudgetAllocation(BaseModel):
    """Token budget per context category."""

    continuity: int = 0
    lore_bible: int = 0
    characters: int = 0
    plot_elements: int = 0
    world_building: int = 0
    power_elements: int = 0
    recent_chapters: int = 0
    style_profile: int = 0

    def total(self) -> int:
        return sum(self.model_dump().values())
