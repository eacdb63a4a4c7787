"""
Three-tier memory context records.

Each tier has an ``empty()`` constructor producing the value substituted
when that tier times out or fails.
"""

from pydantic import BaseModel, Field

from novel_memory.models.arc import ArcMemorySummary
from novel_memory.models.lore import LoreBible
from novel_memory.models.search import SearchResults


class ShortTermContext(BaseModel):
    """Current breath: recent chapter text and the hand-off into the next chapter."""

    recent_chapters_text: list[str] = Field(default_factory=list)
    chapter_numbers: list[int] = Field(default_factory=list)
    continuity_bridge: str = ""
    previous_ending: str = ""
    style_profile: str = ""
    token_count: int = 0

    @classmethod
    def empty(cls) -> "ShortTermContext":
        return cls()


class MidTermContext(BaseModel):
    """Episodic arc memory plus character and thread digests."""

    arc_memories: list[ArcMemorySummary] = Field(default_factory=list)
    formatted_context: str = ""
    active_arc_summary: str = ""
    character_states: str = ""
    thread_status: str = ""
    token_count: int = 0

    @classmethod
    def empty(cls) -> "MidTermContext":
        return cls()


class LongTermContext(BaseModel):
    """Sect library: semantic search results over the whole novel."""

    search_results: SearchResults = Field(default_factory=SearchResults)
    formatted_search_context: str = ""
    queries_used: list[str] = Field(default_factory=list)
    vector_db_available: bool = False
    token_count: int = 0

    @classmethod
    def empty(cls) -> "LongTermContext":
        return cls()


class MemoryContext(BaseModel):
    """All tiers gathered for one chapter generation request."""

    short_term: ShortTermContext = Field(default_factory=ShortTermContext)
    mid_term: MidTermContext = Field(default_factory=MidTermContext)
    long_term: LongTermContext = Field(default_factory=LongTermContext)
    lore_bible: LoreBible = Field(default_factory=LoreBible)
    formatted_lore_bible: str = ""
    total_token_count: int = 0
    retrieval_duration_ms: float = 0.0
    failed_tiers: list[str] = Field(default_factory=list)


class MemoryGatherOptions(BaseModel):
    """Knobs for a single memory gather."""

    recent_chapters_count: int = 5
    max_arc_memories: int = 3
    search_queries: list[str] | None = None
    max_search_results: int = 5
    token_budget: int = 12000
    compact_format: bool = False


class EnhancedContextOptions(BaseModel):
    """Knobs for the memory-enhanced generation context."""

    token_budget: int = 4000
    max_arc_memories: int = 3
    max_search_queries: int = 5
    search_queries: list[str] | None = None
    user_instruction: str | None = None
    skip_semantic_search: bool = False
    compact_format: bool = True


class MemoryEnhancedContext(BaseModel):
    """Sections of the memory-enhanced context and their combined rendering."""

    lore_bible: LoreBible = Field(default_factory=LoreBible)
    formatted_lore_bible: str = ""
    arc_memories: list[ArcMemorySummary] = Field(default_factory=list)
    formatted_arc_memory: str = ""
    search_results: SearchResults | None = None
    formatted_semantic_search: str = ""
    queries_used: list[str] = Field(default_factory=list)
    combined_context: str = ""
    lore_bible_tokens: int = 0
    arc_memory_tokens: int = 0
    semantic_search_tokens: int = 0
    total_tokens: int = 0
    vector_db_used: bool = False
    retrieval_duration_ms: float = 0.0


class MemoryPreview(BaseModel):
    """One-line summaries of the memory state for UI previews."""

    lore_bible_summary: str
    arc_memory_summary: str
    vector_db_status: str


class GenerationPrompt(BaseModel):
    """Prompt pair sent to the chapter generator."""

    system_instruction: str = ""
    user_prompt: str = ""
