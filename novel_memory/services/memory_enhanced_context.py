"""
Memory-Enhanced Context Service.

Integrates the hierarchical memory with chapter prompt building: lore bible,
episodic arc memory and semantic search are combined into a single memory
block placed ahead of the generator's system instruction.
"""

import asyncio
import time

from novel_memory.models.context import ContextItemType
from novel_memory.models.lore import LoreBible
from novel_memory.models.memory import (
    EnhancedContextOptions,
    GenerationPrompt,
    MemoryEnhancedContext,
    MemoryGatherOptions,
    MemoryPreview,
)
from novel_memory.models.novel import NovelState
from novel_memory.models.search import SearchOptions, SearchResults
from novel_memory.services.arc_memory import format_arc_memories_compact, get_relevant_arc_memories
from novel_memory.services.context_prioritizer import ContextPrioritizer
from novel_memory.services.memory_tier_manager import SECTION_SEPARATOR, MemoryTierManager
from novel_memory.services.query_analyzer import analyze_chapter_context
from novel_memory.utils.logger import get_logger

logger = get_logger(__name__)

MEMORY_BANNER = (
    "=== HIERARCHICAL MEMORY CONTEXT - SOURCE OF TRUTH FOR NARRATIVE CONSISTENCY ==="
)
MEMORY_FOOTER = "=" * len(MEMORY_BANNER)

# Search result categories and the item type their hits are scored as
SEARCH_CATEGORY_TYPES = {
    "characters": ContextItemType.CHARACTER,
    "world_entries": ContextItemType.WORLD,
    "plot_elements": ContextItemType.PLOT,
    "power_elements": ContextItemType.POWER,
}


def format_semantic_search_results(results: SearchResults | None) -> str:
    """Knowledge section for the prompt; empty when nothing was found."""
    if results is None or results.is_empty():
        return ""

    lines = [
        "[RELEVANT KNOWLEDGE FROM SECT LIBRARY]",
        "(Retrieved via semantic search for this chapter)",
        "",
    ]

    if results.characters:
        lines.append("Related Characters:")
        for r in results.characters:
            cultivation = r.metadata.get("cultivation")
            lines.append(f"- {r.name} ({cultivation})" if cultivation else f"- {r.name}")
        lines.append("")

    if results.world_entries:
        lines.append("World Knowledge:")
        lines.extend(
            f"- {r.name} [{r.metadata.get('category') or 'General'}]" for r in results.world_entries
        )
        lines.append("")

    if results.plot_elements:
        lines.append("Plot Elements:")
        lines.extend(f"- {r.name} ({r.type})" for r in results.plot_elements)
        lines.append("")

    if results.power_elements:
        lines.append("Techniques/Items:")
        lines.extend(f"- {r.name}" for r in results.power_elements)

    return "\n".join(lines).rstrip()


class MemoryEnhancedContextService:
    """
    Builds the memory block for a chapter generation request.

    Reuses the tier manager's search service, lore builder, tokenizer and
    config so both paths count tokens the same way.
    """

    def __init__(self, tier_manager: MemoryTierManager):
        self.tier_manager = tier_manager
        self.config = tier_manager.config
        self.tokenizer = tier_manager.tokenizer
        self.prioritizer = ContextPrioritizer(self.tokenizer, self.config.budget)

    @property
    def search_service(self):
        return self.tier_manager.search_service

    def default_options(self) -> EnhancedContextOptions:
        enhanced = self.config.enhanced_context
        return EnhancedContextOptions(
            token_budget=enhanced.token_budget,
            max_arc_memories=enhanced.max_arc_memories,
            max_search_queries=enhanced.max_search_queries,
        )

    async def _lore_bible_with_deadline(self, state: NovelState) -> LoreBible:
        try:
            return await asyncio.wait_for(
                self.tier_manager.build_lore_bible(state),
                self.config.enhanced_context.lore_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Lore bible synthesis timed out, using empty bible")
        except Exception as e:
            logger.warning(f"Lore bible synthesis failed, using empty bible: {e}")
        return LoreBible.empty()

    async def _vector_db_ready(self) -> bool:
        return self.search_service is not None and await self.search_service.is_ready()

    async def _search_with_deadline(
        self, state: NovelState, queries: list[str], opts: EnhancedContextOptions
    ) -> SearchResults | None:
        """Semantic search bounded by the tier deadline; None when skipped or failed."""
        if opts.skip_semantic_search or not queries or not await self._vector_db_ready():
            return None

        search = self.config.search
        try:
            results = await asyncio.wait_for(
                self.search_service.search(
                    state.id,
                    queries,
                    SearchOptions(
                        max_characters=search.max_characters,
                        max_world_entries=search.max_world_entries,
                        max_plot_elements=search.max_plot_elements,
                        max_power_elements=search.max_power_elements,
                        min_score=search.min_score,
                    ),
                ),
                self.config.memory.tier_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Semantic search timed out, continuing without vector results")
            return None
        except Exception as e:
            logger.warning(f"Semantic search failed, continuing without vector results: {e}")
            return None

        logger.debug(f"Semantic search completed: {results.total_results()} results")
        return results

    def select_search_results(
        self, results: SearchResults, state: NovelState, token_budget: int
    ) -> SearchResults:
        """
        Keep the highest-priority hits that fit the search share of the budget.

        The share is the sum of the character, plot, world and power
        allocations of ``token_budget``.
        """
        allocation = self.prioritizer.allocate_budget(token_budget)
        search_budget = (
            allocation.characters
            + allocation.plot_elements
            + allocation.world_building
            + allocation.power_elements
        )
        items = self.prioritizer.prioritize_search_results(results, state)
        selected_items = self.prioritizer.select_within_budget(items, search_budget)
        selected = {(item.type, item.id) for item in selected_items}

        logger.debug(
            f"Search results prioritized within {search_budget} tokens: "
            f"{self.prioritizer.get_priority_summary(selected_items)}"
        )

        return SearchResults(
            **{
                category: [
                    r for r in getattr(results, category) if (item_type, r.id) in selected
                ]
                for category, item_type in SEARCH_CATEGORY_TYPES.items()
            },
            total_duration_ms=results.total_duration_ms,
        )

    async def gather(
        self, state: NovelState, options: EnhancedContextOptions | None = None
    ) -> MemoryEnhancedContext:
        """
        Gather lore bible, arc memory and semantic search for the next chapter.

        Lore synthesis and semantic search run concurrently, each under its
        deadline. A failed or timed-out branch is logged and leaves its
        section empty. Search hits are ranked by the prioritizer and only
        those fitting the search share of the budget are kept.

        Args:
            state: Novel snapshot
            options: Budget, query and formatting knobs

        Returns:
            Formatted sections, their token counts and the combined block
        """
        opts = options or self.default_options()
        start = time.time()

        logger.info(
            f"Gathering memory-enhanced context (budget {opts.token_budget} tokens)",
            extra={"novel_id": state.id},
        )

        queries = list(opts.search_queries or [])
        if not queries:
            analysis = analyze_chapter_context(
                state,
                additional_context=opts.user_instruction,
                max_queries=opts.max_search_queries,
                window_chars=self.config.query_analyzer.window_chars,
            )
            queries = [q.query for q in analysis.queries]

        lore_bible, search_result = await asyncio.gather(
            self._lore_bible_with_deadline(state),
            self._search_with_deadline(state, queries, opts),
            return_exceptions=True,
        )
        if isinstance(lore_bible, BaseException):
            logger.error(f"Lore bible branch failed, using empty bible: {lore_bible}")
            lore_bible = LoreBible.empty()
        if isinstance(search_result, BaseException):
            logger.error(f"Semantic search branch failed: {search_result}")
            search_result = None

        formatted_lore = self.tier_manager.format_lore_bible(lore_bible, opts.compact_format)

        arc_memories = get_relevant_arc_memories(
            state, state.current_chapter_number, opts.max_arc_memories
        )
        formatted_arcs = format_arc_memories_compact(arc_memories)

        search_results = None
        formatted_search = ""
        vector_db_used = search_result is not None
        if search_result is not None:
            search_results = self.select_search_results(search_result, state, opts.token_budget)
            formatted_search = format_semantic_search_results(search_results)

        lore_tokens = self.tokenizer.count_tokens(formatted_lore)
        arc_tokens = self.tokenizer.count_tokens(formatted_arcs)
        search_tokens = self.tokenizer.count_tokens(formatted_search)
        combined = self.assemble_memory_context(
            formatted_lore, formatted_arcs, formatted_search, opts.token_budget
        )
        duration = (time.time() - start) * 1000

        logger.info(
            f"Memory-enhanced context gathered in {duration:.0f}ms: "
            f"lore={lore_tokens}, arcs={arc_tokens}, search={search_tokens} tokens, "
            f"{len(queries)} queries, vector_db_used={vector_db_used}",
            extra={"novel_id": state.id},
        )

        return MemoryEnhancedContext(
            lore_bible=lore_bible,
            formatted_lore_bible=formatted_lore,
            arc_memories=arc_memories,
            formatted_arc_memory=formatted_arcs,
            search_results=search_results,
            formatted_semantic_search=formatted_search,
            queries_used=queries,
            combined_context=combined,
            lore_bible_tokens=lore_tokens,
            arc_memory_tokens=arc_tokens,
            semantic_search_tokens=search_tokens,
            total_tokens=lore_tokens + arc_tokens + search_tokens,
            retrieval_duration_ms=duration,
            vector_db_used=vector_db_used,
        )

    def assemble_memory_context(
        self, lore_bible: str, arc_memory: str, semantic_search: str, token_budget: int
    ) -> str:
        """Lore bible, then arc memory, then search results, within the budget."""
        manager = self.tier_manager
        sections: list[str] = []

        if lore_bible:
            if manager.fits_budget(sections, lore_bible, token_budget):
                sections.append(lore_bible)
            elif self.tokenizer.count_tokens(lore_bible) > token_budget * 0.5:
                truncated = manager.truncate_lore_bible(lore_bible)
                if manager.fits_budget(sections, truncated, token_budget):
                    sections.append(truncated)

        for text in (arc_memory, semantic_search):
            if text and manager.fits_budget(sections, text, token_budget):
                sections.append(text)

        return SECTION_SEPARATOR.join(sections)

    async def gather_generation_context(
        self,
        state: NovelState,
        user_instruction: str | None = None,
        token_budget: int | None = None,
    ) -> str:
        """Full three-tier context for a generation request, assembled within budget."""
        budget = token_budget or self.config.memory.token_budget
        analysis = analyze_chapter_context(
            state,
            additional_context=user_instruction,
            max_queries=self.config.enhanced_context.max_search_queries,
            window_chars=self.config.query_analyzer.window_chars,
        )
        memory = self.config.memory
        context = await self.tier_manager.gather_memory_context(
            state,
            MemoryGatherOptions(
                recent_chapters_count=memory.recent_chapters_count,
                max_arc_memories=memory.max_arc_memories,
                search_queries=[q.query for q in analysis.queries],
                max_search_results=memory.max_search_results,
                token_budget=budget,
                compact_format=memory.compact_format,
            ),
        )
        return self.tier_manager.assemble_context_with_budget(context, budget)

    async def get_quick_memory_preview(self, state: NovelState) -> MemoryPreview:
        bible = await self._lore_bible_with_deadline(state)
        cultivation = bible.protagonist.cultivation
        lore_summary = (
            f"{bible.protagonist.identity.name} | {cultivation.realm}-{cultivation.stage} | "
            f"{len(bible.active_conflicts)} conflicts | {len(bible.karma_debts)} karma debts"
        )

        arc_memories = get_relevant_arc_memories(state, state.current_chapter_number, 2)
        arc_summary = (
            ", ".join(f"{m.arc_title} ({m.status.value})" for m in arc_memories)
            if arc_memories
            else "No arc memories"
        )

        return MemoryPreview(
            lore_bible_summary=lore_summary,
            arc_memory_summary=arc_summary,
            vector_db_status="Connected" if await self._vector_db_ready() else "Not configured",
        )

    @staticmethod
    def inject_memory_context(
        prompt: GenerationPrompt, context: MemoryEnhancedContext
    ) -> GenerationPrompt:
        """Prefix the combined memory block to the prompt's system instruction."""
        memory_section = (
            f"{MEMORY_BANNER}\n\n{context.combined_context}\n\n{MEMORY_FOOTER}\n\n"
        )
        return prompt.model_copy(
            update={"system_instruction": memory_section + prompt.system_instruction}
        )
