"""Data models for the novel memory engine."""

from novel_memory.models.arc import (
    ArcCharacterState,
    ArcMemorySummary,
    ArcRelationship,
    ArcThreadState,
    ConflictChanges,
)
from novel_memory.models.context import BudgetAllocation, ContextItemType, PrioritizedItem
from novel_memory.models.lore import LoreBible
from novel_memory.models.memory import (
    EnhancedContextOptions,
    GenerationPrompt,
    LongTermContext,
    MemoryContext,
    MemoryEnhancedContext,
    MemoryGatherOptions,
    MemoryPreview,
    MidTermContext,
    ShortTermContext,
)
from novel_memory.models.novel import (
    Antagonist,
    AntagonistRelationship,
    Arc,
    ArcChecklistItem,
    ArcStatus,
    Chapter,
    Character,
    CharacterStatus,
    CharacterUpdate,
    LogicAudit,
    NovelItem,
    NovelState,
    NovelTechnique,
    Realm,
    Relationship,
    StoryThread,
    StyleMetrics,
    StyleProfile,
    Territory,
    ThreadPriority,
    ThreadProgressionNote,
    ThreadStatus,
    WorldCategory,
    WorldEntry,
)
from novel_memory.models.query import (
    EntityType,
    ExtractedEntity,
    GeneratedQuery,
    QueryAnalysisResult,
    QueryPriority,
    QueryType,
)
from novel_memory.models.search import SearchOptions, SearchResults, SemanticSearchResult

__all__ = [
    # Novel state
    "NovelState",
    "Chapter",
    "LogicAudit",
    "Character",
    "CharacterStatus",
    "CharacterUpdate",
    "Relationship",
    "Arc",
    "ArcStatus",
    "ArcChecklistItem",
    "StoryThread",
    "ThreadStatus",
    "ThreadPriority",
    "ThreadProgressionNote",
    "Realm",
    "Territory",
    "WorldEntry",
    "WorldCategory",
    "NovelItem",
    "NovelTechnique",
    "Antagonist",
    "AntagonistRelationship",
    "StyleProfile",
    "StyleMetrics",
    # Arc memory
    "ArcMemorySummary",
    "ArcCharacterState",
    "ArcRelationship",
    "ArcThreadState",
    "ConflictChanges",
    # Memory tiers
    "ShortTermContext",
    "MidTermContext",
    "LongTermContext",
    "MemoryContext",
    "MemoryGatherOptions",
    "EnhancedContextOptions",
    "MemoryEnhancedContext",
    "MemoryPreview",
    "GenerationPrompt",
    # Query analysis
    "EntityType",
    "ExtractedEntity",
    "GeneratedQuery",
    "QueryAnalysisResult",
    "QueryPriority",
    "QueryType",
    # Prioritisation
    "PrioritizedItem",
    "ContextItemType",
    "BudgetAllocation",
    # Search
    "SemanticSearchResult",
    "SearchResults",
    "SearchOptions",
    # Lore
    "LoreBible",
]
