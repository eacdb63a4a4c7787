"""
Tests for MemoryEnhancedContextService.

Tests cover:
1. Semantic search formatting
2. Gathering with and without the vector database, deadlines included
3. Budgeted assembly of the memory block
4. Prioritized selection of search hits
5. Previews and prompt injection
"""

import pytest

from novel_memory.config import Config, EnhancedContextConfig, LoggingConfig, MemoryConfig
from novel_memory.core.lore import StateLoreBibleBuilder
from novel_memory.models import (
    EnhancedContextOptions,
    GenerationPrompt,
    MemoryEnhancedContext,
    SearchResults,
)
from novel_memory.services import MemoryEnhancedContextService, MemoryTierManager
from novel_memory.services.memory_enhanced_context import (
    MEMORY_BANNER,
    MEMORY_FOOTER,
    format_semantic_search_results,
)
from conftest import (
    FailingSearchService,
    FakeSearchService,
    SlowLoreBuilder,
    SlowSearchService,
    search_hit,
)


def make_service(search=None, lore_builder=None, config=None) -> MemoryEnhancedContextService:
    manager = MemoryTierManager(
        search_service=search,
        lore_builder=lore_builder or StateLoreBibleBuilder(),
        config=config or Config(logging=LoggingConfig(log_to_file=False)),
    )
    return MemoryEnhancedContextService(manager)


@pytest.mark.unit
class TestFormatSemanticSearchResults:
    """Tests for the knowledge section."""

    def test_none_and_empty(self):
        assert format_semantic_search_results(None) == ""
        assert format_semantic_search_results(SearchResults()) == ""

    def test_all_categories(self, search_results):
        assert format_semantic_search_results(search_results) == (
            "[RELEVANT KNOWLEDGE FROM SECT LIBRARY]\n"
            "(Retrieved via semantic search for this chapter)\n"
            "\n"
            "Related Characters:\n"
            "- Mei Lin (Qi Condensation - Peak)\n"
            "\n"
            "World Knowledge:\n"
            "- Cultivation Realms [PowerLevels]\n"
            "\n"
            "Plot Elements:\n"
            "- Blood Feud with the Wang Clan (story_thread)\n"
            "\n"
            "Techniques/Items:\n"
            "- Azure Flame Palm"
        )

    def test_missing_metadata_defaults(self):
        results = SearchResults(
            characters=[search_hit("c", "Bai Feng", "character", 0.6)],
            world_entries=[search_hit("w", "Old Ruins", "world_entry", 0.6)],
        )
        text = format_semantic_search_results(results)
        assert "- Bai Feng\n" in text
        assert text.endswith("- Old Ruins [General]")


@pytest.mark.unit
@pytest.mark.asyncio
class TestGather:
    """Tests for gathering the memory-enhanced context."""

    async def test_with_vector_db(self, novel_state, fake_search):
        service = make_service(fake_search)
        context = await service.gather(novel_state)

        assert context.vector_db_used is True
        assert len(fake_search.calls) == 1
        assert fake_search.calls[0][1] == context.queries_used
        assert 0 < len(context.queries_used) <= 5
        assert context.formatted_lore_bible.startswith("[LORE BIBLE Ch5]")
        assert context.formatted_arc_memory.startswith("[EPISODIC ARC MEMORY]")
        assert context.formatted_semantic_search.startswith("[RELEVANT KNOWLEDGE FROM SECT LIBRARY]")
        assert context.combined_context.startswith("[LORE BIBLE Ch5]")
        assert context.total_tokens == (
            context.lore_bible_tokens + context.arc_memory_tokens + context.semantic_search_tokens
        )

    async def test_explicit_queries(self, novel_state, fake_search):
        service = make_service(fake_search)
        context = await service.gather(
            novel_state, EnhancedContextOptions(search_queries=["Jade Sword origin"])
        )
        assert context.queries_used == ["Jade Sword origin"]
        assert fake_search.calls == [("novel-1", ["Jade Sword origin"])]

    async def test_user_instruction_shapes_queries(self, novel_state, fake_search):
        service = make_service(fake_search)
        context = await service.gather(
            novel_state,
            EnhancedContextOptions(user_instruction="Han Xiao breaks through tonight", max_search_queries=20),
        )
        assert any("breakthrough requirements" in q for q in context.queries_used)

    async def test_skip_semantic_search(self, novel_state, fake_search):
        service = make_service(fake_search)
        context = await service.gather(novel_state, EnhancedContextOptions(skip_semantic_search=True))

        assert fake_search.calls == []
        assert context.vector_db_used is False
        assert context.search_results is None
        assert context.formatted_semantic_search == ""

    async def test_without_vector_db(self, novel_state):
        context = await make_service().gather(novel_state)
        assert context.vector_db_used is False
        assert context.combined_context

    async def test_vector_db_not_ready(self, novel_state):
        search = FakeSearchService(ready=False)
        context = await make_service(search).gather(novel_state)
        assert search.calls == []
        assert context.vector_db_used is False

    async def test_search_failure_is_not_fatal(self, novel_state):
        context = await make_service(FailingSearchService()).gather(novel_state)

        assert context.vector_db_used is False
        assert context.formatted_semantic_search == ""
        assert context.formatted_lore_bible

    async def test_lore_timeout(self, novel_state):
        config = Config(
            enhanced_context=EnhancedContextConfig(lore_timeout_seconds=0.05),
            logging=LoggingConfig(log_to_file=False),
        )
        service = make_service(lore_builder=SlowLoreBuilder(), config=config)
        context = await service.gather(novel_state)

        assert context.lore_bible.is_empty()
        assert context.formatted_lore_bible == ""
        assert context.combined_context.startswith("[EPISODIC ARC MEMORY]")

    async def test_search_timeout(self, novel_state):
        config = Config(
            memory=MemoryConfig(tier_timeout_seconds=0.05),
            logging=LoggingConfig(log_to_file=False),
        )
        search = SlowSearchService(ready=True)
        context = await make_service(search, config=config).gather(novel_state)

        assert context.vector_db_used is False
        assert context.search_results is None
        assert context.formatted_semantic_search == ""
        assert context.formatted_lore_bible
        assert context.retrieval_duration_ms < 5000

    async def test_low_priority_hit_dropped_under_tight_budget(self, novel_state):
        search = FakeSearchService(
            SearchResults(
                world_entries=[
                    search_hit("wb-levels", "Cultivation Realms", "world_entry", 0.9, category="PowerLevels"),
                    search_hit("wb-ruins", "Old Ruins of the Forgotten Dynasty", "world_entry", 0.5),
                ]
            )
        )
        # 20 tokens leave a 10-token search share: the 4-token hit fits, the 8-token one does not
        context = await make_service(search).gather(
            novel_state,
            EnhancedContextOptions(search_queries=["realms"], token_budget=20),
        )

        assert context.vector_db_used is True
        assert [r.id for r in context.search_results.world_entries] == ["wb-levels"]
        assert "Cultivation Realms" in context.formatted_semantic_search
        assert "Old Ruins" not in context.formatted_semantic_search

    async def test_full_format(self, novel_state):
        context = await make_service().gather(novel_state, EnhancedContextOptions(compact_format=False))
        assert context.formatted_lore_bible.startswith("[CULTIVATION LORE BIBLE - SOURCE OF TRUTH]")

    @pytest.mark.parametrize("budget", [0, 50, 200, 4000])
    async def test_combined_within_budget(self, novel_state, fake_search, tokenizer, budget):
        context = await make_service(fake_search).gather(
            novel_state, EnhancedContextOptions(token_budget=budget)
        )
        assert tokenizer.count_tokens(context.combined_context) <= budget


@pytest.mark.unit
class TestSelectSearchResults:
    """Tests for budgeting search hits through the prioritizer."""

    def test_everything_kept_with_room(self, novel_state, search_results):
        selected = make_service().select_search_results(search_results, novel_state, 4000)
        assert selected.model_dump() == search_results.model_dump()

    def test_zero_budget_keeps_nothing_with_tokens(self, novel_state, search_results):
        selected = make_service().select_search_results(search_results, novel_state, 0)
        assert selected.is_empty()

    def test_higher_priority_plot_wins(self, novel_state):
        results = SearchResults(
            plot_elements=[
                search_hit("thread-minor", "A Merchant Owes Coins", "story_thread", 0.6),
                search_hit(
                    "thread-feud", "Blood Feud with the Wang Clan", "story_thread", 0.75,
                    status="active", priority="critical",
                ),
            ]
        )
        # 40 tokens give a 20-token search share, room for both threads
        selected = make_service().select_search_results(results, novel_state, 40)
        assert [r.id for r in selected.plot_elements] == ["thread-minor", "thread-feud"]

        # 20 tokens give a 10-token share: only the critical feud is taken
        selected = make_service().select_search_results(results, novel_state, 20)
        assert [r.id for r in selected.plot_elements] == ["thread-feud"]


@pytest.mark.unit
class TestAssembleMemoryContext:
    """Tests for the memory block assembly."""

    def test_order(self):
        service = make_service()
        assert service.assemble_memory_context("LORE", "ARCS", "SEARCH", 100) == (
            "LORE\n\nARCS\n\nSEARCH"
        )

    def test_empty_sections_skipped(self):
        assert make_service().assemble_memory_context("", "ARCS", "", 100) == "ARCS"

    def test_lore_truncated(self):
        service = make_service()
        result = service.assemble_memory_context("L" * 4000, "", "", 600)
        assert result == "L" * 2000 + "\n[...truncated...]"

    def test_section_dropped_when_over_budget(self):
        service = make_service()
        result = service.assemble_memory_context("L" * 40, "A" * 400, "S" * 40, 30)
        assert result == "L" * 40 + "\n\n" + "S" * 40


@pytest.mark.unit
@pytest.mark.asyncio
class TestGenerationContext:
    """Tests for the full generation context."""

    async def test_generation_context(self, novel_state, fake_search, tokenizer):
        service = make_service(fake_search)
        text = await service.gather_generation_context(
            novel_state, user_instruction="Mei Lin searches for the herb", token_budget=3000
        )

        assert text.startswith("[CHAPTER TRANSITION - CRITICAL CONTINUITY CONTEXT]")
        assert tokenizer.count_tokens(text) <= 3000
        assert len(fake_search.calls) == 1
        assert 0 < len(fake_search.calls[0][1]) <= 5

    async def test_empty_novel(self, empty_state):
        text = await make_service().gather_generation_context(empty_state)
        assert text == ""


@pytest.mark.unit
@pytest.mark.asyncio
class TestPreviewAndInjection:
    """Tests for previews and prompt injection."""

    async def test_preview(self, novel_state, fake_search):
        preview = await make_service(fake_search).get_quick_memory_preview(novel_state)

        assert preview.lore_bible_summary == (
            "Han Xiao | Foundation Establishment-Late | 2 conflicts | 1 karma debts"
        )
        assert preview.arc_memory_summary == "Crimson Valley (active), Outer Sect Trials (completed)"
        assert preview.vector_db_status == "Connected"

    async def test_preview_empty_novel(self, empty_state):
        preview = await make_service().get_quick_memory_preview(empty_state)

        assert preview.arc_memory_summary == "No arc memories"
        assert preview.vector_db_status == "Not configured"

    async def test_inject_memory_context(self):
        prompt = GenerationPrompt(system_instruction="You are a novelist.", user_prompt="Write")
        context = MemoryEnhancedContext(combined_context="MEMORY")

        injected = MemoryEnhancedContextService.inject_memory_context(prompt, context)

        assert injected.system_instruction == (
            f"{MEMORY_BANNER}\n\nMEMORY\n\n{MEMORY_FOOTER}\n\nYou are a novelist."
        )
        assert injected.user_prompt == "Write"
        assert prompt.system_instruction == "You are a novelist."
