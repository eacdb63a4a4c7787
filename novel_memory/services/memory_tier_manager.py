"""
Memory Tier Manager: orchestrates the three-tier hierarchical memory.

Tiers:
1. Short-term (current breath): recent chapter text and the continuity bridge
2. Mid-term (episodic arc): arc summaries, character and thread digests
3. Long-term (sect library): semantic search plus the lore bible

All tiers are gathered concurrently; a tier that fails or times out is
replaced by its empty value without affecting the others.
"""

import asyncio
import time

from novel_memory.config import Config
from novel_memory.core.lore import (
    LoreBibleBuilder,
    format_lore_bible_compact,
    format_lore_bible_for_prompt,
)
from novel_memory.core.tokenizer import Tokenizer, get_default_tokenizer
from novel_memory.core.vector_search import SemanticSearchService
from novel_memory.models.lore import LoreBible
from novel_memory.models.memory import (
    LongTermContext,
    MemoryContext,
    MemoryGatherOptions,
    MidTermContext,
    ShortTermContext,
)
from novel_memory.models.novel import ArcStatus, CharacterStatus, NovelState, ThreadPriority, ThreadStatus
from novel_memory.models.search import SearchOptions, SearchResults
from novel_memory.services.arc_memory import format_arc_memories_compact, get_relevant_arc_memories
from novel_memory.services.continuity import (
    build_continuity_bridge,
    extract_chapter_ending,
    format_style_profile,
)
from novel_memory.utils.logger import get_logger

logger = get_logger(__name__)

TIER_NAMES = ("short_term", "mid_term", "long_term", "lore_bible")

GENERAL_WORLD_QUERY = "cultivation system power levels"
LORE_TRUNCATION_MARKER = "\n[...truncated...]"
# Share of the budget the previous chapter ending may fill up to
PREVIOUS_ENDING_BUDGET_RATIO = 0.95
SECTION_SEPARATOR = "\n\n"


def build_character_states_summary(state: NovelState) -> str:
    """Protagonist line plus up to five other living characters."""
    lines = ["[CHARACTER STATES]"]

    protagonist = state.protagonist
    if protagonist is not None:
        lines.append(
            f"Protagonist: {protagonist.name} - {protagonist.current_cultivation} "
            f"({protagonist.status.value})"
        )

    others = [
        c for c in state.characters
        if not c.is_protagonist and c.status == CharacterStatus.ALIVE
    ][:5]
    if others:
        lines.append("Key Characters:")
        for character in others:
            lines.append(
                f"- {character.name}: {character.current_cultivation or 'Unknown cultivation'}"
            )

    return "\n".join(lines)


def build_thread_status_summary(state: NovelState) -> str:
    """Active threads grouped by priority."""
    if not state.story_threads:
        return "[ACTIVE THREADS]\nNo tracked story threads."

    active = [t for t in state.story_threads if t.status == ThreadStatus.ACTIVE]
    critical = [t for t in active if t.priority == ThreadPriority.CRITICAL]
    high = [t for t in active if t.priority == ThreadPriority.HIGH]
    other = [
        t for t in active if t.priority not in (ThreadPriority.CRITICAL, ThreadPriority.HIGH)
    ]

    lines = ["[ACTIVE THREADS]"]
    if critical:
        lines.append("CRITICAL:")
        lines.extend(f"- {t.title}: {t.description[:100]}" for t in critical)
    if high:
        lines.append("High Priority:")
        lines.extend(f"- {t.title}: {t.description[:80]}" for t in high[:3])
    if other:
        lines.append(f"Other Active: {len(other)} threads")

    return "\n".join(lines)


def generate_default_queries(state: NovelState, max_queries: int = 5) -> list[str]:
    """Search queries used when the caller supplies none."""
    queries: list[str] = []

    protagonist = state.protagonist
    if protagonist is not None:
        queries.append(f"{protagonist.name} abilities and techniques")

    active_arc = state.active_arc
    if active_arc is not None:
        queries.append(active_arc.title)

    latest = state.latest_chapter
    if latest is not None and latest.summary:
        words = [w for w in latest.summary.split() if len(w) > 5]
        if words:
            queries.append(" ".join(words[:5]))

    queries.append(GENERAL_WORLD_QUERY)
    return queries[:max_queries]


def format_search_results(results: SearchResults) -> str:
    """Sect library section listing every search hit by category."""
    lines = ["[SECT LIBRARY - SEMANTIC SEARCH RESULTS]", ""]

    if results.characters:
        lines.append("Relevant Characters:")
        lines.extend(
            f"- {r.name} (relevance: {r.score * 100:.0f}%)" for r in results.characters
        )
        lines.append("")

    if results.world_entries:
        lines.append("World Building:")
        lines.extend(
            f"- {r.name} ({r.metadata.get('category') or 'general'})"
            for r in results.world_entries
        )
        lines.append("")

    if results.plot_elements:
        lines.append("Plot Elements:")
        lines.extend(f"- {r.name} [{r.type}]" for r in results.plot_elements)
        lines.append("")

    if results.power_elements:
        lines.append("Techniques/Items:")
        lines.extend(f"- {r.name} ({r.type})" for r in results.power_elements)

    return "\n".join(lines)


class MemoryTierManager:
    """
    Gathers and assembles hierarchical memory for chapter generation.

    Usage:
        manager = MemoryTierManager(search_service, StateLoreBibleBuilder(), config)
        context = await manager.gather_memory_context(state)
        prompt_context = manager.assemble_context_with_budget(context, 12000)
    """

    def __init__(
        self,
        search_service: SemanticSearchService | None = None,
        lore_builder: LoreBibleBuilder | None = None,
        config: Config | None = None,
        tokenizer: Tokenizer | None = None,
    ):
        """
        Initialize tier manager.

        Args:
            search_service: Semantic search backend (None disables the long-term search)
            lore_builder: Lore bible synthesis (None yields an empty bible)
            config: Configuration object
            tokenizer: Token estimator shared by every count and budget check
        """
        self.search_service = search_service
        self.lore_builder = lore_builder
        self.config = config or Config()
        self.tokenizer = tokenizer or get_default_tokenizer()

    def default_options(self) -> MemoryGatherOptions:
        memory = self.config.memory
        return MemoryGatherOptions(
            recent_chapters_count=memory.recent_chapters_count,
            max_arc_memories=memory.max_arc_memories,
            max_search_results=memory.max_search_results,
            token_budget=memory.token_budget,
            compact_format=memory.compact_format,
        )

    # Tier gathering

    async def gather_short_term(
        self, state: NovelState, options: MemoryGatherOptions
    ) -> ShortTermContext:
        """Recent chapters, previous ending, continuity bridge and style profile."""
        if not state.chapters:
            return ShortTermContext.empty()

        count = options.recent_chapters_count
        chapters = state.chapters[-count:] if count > 0 else []
        recent_text = [ch.content for ch in chapters]

        latest = state.chapters[-1]
        ending_words = self.config.memory.previous_ending_words
        previous_ending = extract_chapter_ending(latest, ending_words)
        bridge = build_continuity_bridge(latest, latest.number + 1, state, ending_words)
        style_profile = format_style_profile(state.style_profile)

        all_text = "\n".join([*recent_text, bridge, previous_ending, style_profile])
        return ShortTermContext(
            recent_chapters_text=recent_text,
            chapter_numbers=[ch.number for ch in chapters],
            continuity_bridge=bridge,
            previous_ending=previous_ending,
            style_profile=style_profile,
            token_count=self.tokenizer.count_tokens(all_text),
        )

    async def gather_mid_term(
        self, state: NovelState, options: MemoryGatherOptions
    ) -> MidTermContext:
        """Relevant arc memories plus character and thread digests."""
        if not state.chapters and not state.arcs:
            return MidTermContext.empty()

        arc_memories = get_relevant_arc_memories(
            state, state.current_chapter_number, options.max_arc_memories
        )
        formatted = format_arc_memories_compact(arc_memories)
        active = next((m for m in arc_memories if m.status == ArcStatus.ACTIVE), None)
        character_states = build_character_states_summary(state)
        thread_status = build_thread_status_summary(state)

        return MidTermContext(
            arc_memories=arc_memories,
            formatted_context=formatted,
            active_arc_summary=active.summary if active else "No active arc.",
            character_states=character_states,
            thread_status=thread_status,
            token_count=self.tokenizer.count_tokens(
                "\n".join([formatted, character_states, thread_status])
            ),
        )

    async def gather_long_term(
        self, state: NovelState, options: MemoryGatherOptions
    ) -> LongTermContext:
        """Semantic search over the novel's indexed entities."""
        # An unwritten novel has nothing indexed to recall
        if not options.search_queries and not state.chapters and not state.arcs:
            return LongTermContext.empty()

        if self.search_service is None or not await self.search_service.is_ready():
            logger.warning(
                "Vector DB not available, using empty long-term context",
                extra={"novel_id": state.id},
            )
            return LongTermContext.empty()

        queries = options.search_queries or generate_default_queries(
            state, self.config.memory.max_default_queries
        )
        search = self.config.search
        results = await self.search_service.search(
            state.id,
            queries,
            SearchOptions(
                max_characters=options.max_search_results,
                max_world_entries=search.max_world_entries,
                max_plot_elements=search.max_plot_elements,
                max_power_elements=search.max_power_elements,
                min_score=search.min_score,
            ),
        )
        formatted = format_search_results(results)

        return LongTermContext(
            search_results=results,
            formatted_search_context=formatted,
            queries_used=queries,
            vector_db_available=True,
            token_count=self.tokenizer.count_tokens(formatted),
        )

    async def build_lore_bible(self, state: NovelState) -> LoreBible:
        if self.lore_builder is None:
            return LoreBible.empty()
        return await self.lore_builder.build(state, state.current_chapter_number)

    def format_lore_bible(self, bible: LoreBible, compact: bool) -> str:
        return format_lore_bible_compact(bible) if compact else format_lore_bible_for_prompt(bible)

    async def gather_memory_context(
        self, state: NovelState, options: MemoryGatherOptions | None = None
    ) -> MemoryContext:
        """
        Gather every memory tier concurrently.

        Never raises: a failed or timed-out tier falls back to its empty
        value and is listed in ``failed_tiers``; an unexpected orchestration
        failure yields an all-empty context.

        Args:
            state: Novel snapshot
            options: Gather knobs (defaults from config.memory)

        Returns:
            Memory context with per-tier token counts
        """
        opts = options or self.default_options()
        memory = self.config.memory
        start = time.time()

        logger.info(
            f"Gathering hierarchical memory context for chapter {state.current_chapter_number + 1}",
            extra={"novel_id": state.id},
        )

        try:
            results = await asyncio.gather(
                asyncio.wait_for(self.gather_short_term(state, opts), memory.tier_timeout_seconds),
                asyncio.wait_for(self.gather_mid_term(state, opts), memory.tier_timeout_seconds),
                asyncio.wait_for(self.gather_long_term(state, opts), memory.tier_timeout_seconds),
                asyncio.wait_for(self.build_lore_bible(state), memory.lore_timeout_seconds),
                return_exceptions=True,
            )

            fallbacks = (
                ShortTermContext.empty,
                MidTermContext.empty,
                LongTermContext.empty,
                LoreBible.empty,
            )
            values = []
            failed_tiers = []
            timeouts = 0
            for tier, result, fallback in zip(TIER_NAMES, results, fallbacks, strict=True):
                if isinstance(result, asyncio.TimeoutError):
                    timeouts += 1
                    logger.warning(f"{tier} memory timed out, using empty fallback")
                elif isinstance(result, BaseException):
                    logger.error(f"{tier} memory failed, using empty fallback: {result}")
                else:
                    values.append(result)
                    continue
                failed_tiers.append(tier)
                values.append(fallback())

            short_term, mid_term, long_term, lore_bible = values
            formatted_lore = self.format_lore_bible(lore_bible, opts.compact_format)
            lore_tokens = self.tokenizer.count_tokens(formatted_lore)
            total = short_term.token_count + mid_term.token_count + long_term.token_count + lore_tokens
            duration = (time.time() - start) * 1000

            logger.info(
                f"Memory context gathered in {duration:.0f}ms: "
                f"short={short_term.token_count}, mid={mid_term.token_count}, "
                f"long={long_term.token_count}, lore={lore_tokens}, total={total} tokens, "
                f"timeouts={timeouts}",
                extra={"novel_id": state.id},
            )

            return MemoryContext(
                short_term=short_term,
                mid_term=mid_term,
                long_term=long_term,
                lore_bible=lore_bible,
                formatted_lore_bible=formatted_lore,
                total_token_count=total,
                retrieval_duration_ms=duration,
                failed_tiers=failed_tiers,
            )

        except Exception as e:
            logger.error(f"Memory context gathering failed for novel {state.id}, using fallbacks: {e}")
            return MemoryContext(
                retrieval_duration_ms=(time.time() - start) * 1000,
                failed_tiers=list(TIER_NAMES),
            )

    # Assembly

    def truncate_lore_bible(self, formatted_lore: str) -> str:
        """First half of the bible's tokens plus a truncation marker."""
        half = self.tokenizer.count_tokens(formatted_lore) // 2
        return self.tokenizer.truncate_to_tokens(formatted_lore, half) + LORE_TRUNCATION_MARKER

    def fits_budget(self, sections: list[str], text: str, limit: float) -> bool:
        """Whether appending ``text`` keeps the joined sections within ``limit`` tokens."""
        return self.tokenizer.count_tokens(SECTION_SEPARATOR.join([*sections, text])) <= limit

    def assemble_context_with_budget(self, context: MemoryContext, token_budget: int) -> str:
        """
        Assemble prompt context in priority order within a token budget.

        Sections are added whole or not at all. The token count charged for
        a section is the growth of the joined output, so headers and
        separators count against the budget too.
        """
        short_term = context.short_term
        mid_term = context.mid_term
        long_term = context.long_term

        ordered = [
            short_term.continuity_bridge,
            context.formatted_lore_bible,
            f"[CURRENT ARC]\n{mid_term.active_arc_summary}" if mid_term.active_arc_summary else "",
            mid_term.character_states,
            mid_term.thread_status,
            long_term.formatted_search_context if long_term.vector_db_available else "",
            short_term.style_profile,
        ]

        sections: list[str] = []
        for index, text in enumerate(ordered):
            if not text:
                continue
            if self.fits_budget(sections, text, token_budget):
                sections.append(text)
                continue
            # A lore bible too large for half the budget gets truncated instead of dropped
            is_lore = index == 1
            if is_lore and self.tokenizer.count_tokens(text) > token_budget * 0.5:
                truncated = self.truncate_lore_bible(text)
                if self.fits_budget(sections, truncated, token_budget):
                    sections.append(truncated)

        ending = short_term.previous_ending
        if ending and not (sections and ending in sections[0]):
            ending_section = f"[PREVIOUS CHAPTER ENDING]\n{ending}"
            if self.fits_budget(sections, ending_section, token_budget * PREVIOUS_ENDING_BUDGET_RATIO):
                sections.append(ending_section)

        assembled = SECTION_SEPARATOR.join(sections)
        logger.debug(
            f"Context assembled: {len(sections)} sections, "
            f"{self.tokenizer.count_tokens(assembled)}/{token_budget} tokens"
        )
        return assembled

    async def get_quick_context(
        self, state: NovelState, search_queries: list[str] | None = None
    ) -> str:
        """Reduced gather and assembly for previews."""
        quick = self.config.quick_context
        context = await self.gather_memory_context(
            state,
            MemoryGatherOptions(
                recent_chapters_count=quick.recent_chapters_count,
                max_arc_memories=quick.max_arc_memories,
                search_queries=search_queries,
                max_search_results=self.config.memory.max_search_results,
                token_budget=quick.token_budget,
                compact_format=quick.compact_format,
            ),
        )
        return self.assemble_context_with_budget(context, quick.token_budget)
