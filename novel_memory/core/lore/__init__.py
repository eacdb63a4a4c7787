"""
Lore bible synthesis and formatting.

Synthesis is a pluggable seam: the memory engine only needs something that
turns a novel state into a LoreBible within its deadline.
"""

from novel_memory.core.lore.base import LoreBibleBuilder
from novel_memory.core.lore.formatter import format_lore_bible_compact, format_lore_bible_for_prompt
from novel_memory.core.lore.state_builder import StateLoreBibleBuilder

__all__ = [
    "LoreBibleBuilder",
    "StateLoreBibleBuilder",
    "format_lore_bible_for_prompt",
    "format_lore_bible_compact",
]
