"""
Abstract base class for lore bible synthesis.
"""

from abc import ABC, abstractmethod

from novel_memory.models.lore import LoreBible
from novel_memory.models.novel import NovelState


class LoreBibleBuilder(ABC):
    """Builds the source-of-truth snapshot of a novel."""

    @abstractmethod
    async def build(self, state: NovelState, chapter_number: int) -> LoreBible:
        """
        Synthesize the lore bible as of a chapter.

        Args:
            state: Novel snapshot (not mutated)
            chapter_number: Chapter the bible should reflect

        Returns:
            Lore bible for the novel

        Raises:
            LoreSynthesisError: If synthesis fails
        """
        pass
