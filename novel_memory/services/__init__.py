"""
Services for Novel Memory.

High-level memory services:
- MemoryTierManager: Three-tier memory gathering and budgeted assembly
- MemoryEnhancedContextService: Memory block for chapter generation prompts
- ContextPrioritizer: Priority scoring and token budgeting
- arc_memory: Episodic arc summaries
- query_analyzer: Entity extraction and search query generation
"""

from novel_memory.services.context_prioritizer import ContextPrioritizer
from novel_memory.services.memory_enhanced_context import (
    MemoryEnhancedContextService,
    format_semantic_search_results,
)
from novel_memory.services.memory_tier_manager import MemoryTierManager

__all__ = [
    "MemoryTierManager",
    "MemoryEnhancedContextService",
    "ContextPrioritizer",
    "format_semantic_search_results",
]
