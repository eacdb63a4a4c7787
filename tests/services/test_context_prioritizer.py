"""
Tests for the context prioritizer.

Tests cover:
1. Priority scoring per category
2. Section list construction
3. Budget selection, allocation and rebalancing
4. Rendering helpers
"""

import pytest

from novel_memory.config import BudgetConfig
from novel_memory.models import (
    BudgetAllocation,
    ContextItemType,
    PrioritizedItem,
    SearchResults,
)
from novel_memory.services.context_prioritizer import ContextPrioritizer
from conftest import search_hit


def item(item_id: str, tokens: int, priority: float = 1.0) -> PrioritizedItem:
    return PrioritizedItem(
        id=item_id,
        type=ContextItemType.PLOT,
        content=item_id,
        priority=priority,
        token_count=tokens,
        reason="test",
    )


@pytest.mark.unit
class TestScoring:
    """Tests for priority scoring."""

    def test_protagonist_priority(self, novel_state):
        han = novel_state.character_by_id("char-han")
        hit = search_hit("char-han", "Han Xiao", "character", 0.5)

        # 50 base + 100 protagonist + 5 relationship + 20 alive + 15 score
        # + 25 named in active thread + 15 linked to active antagonist
        assert ContextPrioritizer.character_priority(han, novel_state, hit) == pytest.approx(230)

    def test_deceased_character_priority(self, novel_state):
        zhao = novel_state.character_by_id("char-zhao")
        assert ContextPrioritizer.character_priority(zhao, novel_state) == pytest.approx(50)

    def test_unknown_character(self, novel_state, tokenizer):
        prioritizer = ContextPrioritizer(tokenizer=tokenizer)
        results = SearchResults(characters=[search_hit("ghost", "Ghost", "character", 1.0)])

        items = prioritizer.prioritize_search_results(results, novel_state)
        assert items[0].priority == pytest.approx(60)
        assert items[0].content == "Character: Ghost"
        assert items[0].reason == "Search score: 100%"

    def test_world_priority(self, novel_state):
        hit = search_hit("wb", "Realms", "world_entry", 0.5, category="PowerLevels", realm_id="realm-mortal")
        assert ContextPrioritizer.world_priority(hit, novel_state) == pytest.approx(30 + 20 + 20 + 15)

    def test_plot_priority_antagonist(self, novel_state):
        hit = search_hit("ant", "Patriarch Wang", "antagonist", 0.0, status="active", threat_level="extreme")
        assert ContextPrioritizer.plot_priority(hit, novel_state) == pytest.approx(40 + 25 + 25)

    def test_plot_priority_critical_thread(self, novel_state):
        hit = search_hit("t", "Feud", "story_thread", 1.0, status="active", priority="critical")
        assert ContextPrioritizer.plot_priority(hit, novel_state) == pytest.approx(40 + 35 + 25 + 30)

    def test_power_priority(self, novel_state):
        core = search_hit("p", "Palm", "technique", 0.0, category="Core")
        treasure = search_hit("i", "Bell", "item", 0.0, category="Treasure")
        assert ContextPrioritizer.power_priority(core, novel_state) == pytest.approx(55)
        assert ContextPrioritizer.power_priority(treasure, novel_state) == pytest.approx(50)

    def test_results_sorted_descending(self, novel_state, search_results, tokenizer):
        items = ContextPrioritizer(tokenizer=tokenizer).prioritize_search_results(
            search_results, novel_state
        )
        priorities = [i.priority for i in items]
        assert priorities == sorted(priorities, reverse=True)
        assert len(items) == 4


@pytest.mark.unit
class TestPrioritizedContextList:
    """Tests for whole-section items."""

    def test_fixed_priorities_and_order(self, tokenizer):
        items = ContextPrioritizer(tokenizer=tokenizer).build_prioritized_context_list(
            continuity_bridge="bridge",
            lore_bible="lore",
            character_context="chars",
            world_context="world",
            plot_context="plot",
            power_context="power",
            recent_chapters="chapters",
        )
        assert [(i.id, i.priority) for i in items] == [
            ("continuity", 1000),
            ("lore_bible", 900),
            ("characters", 700),
            ("plot", 650),
            ("world", 500),
            ("power", 400),
            ("chapters", 300),
        ]

    def test_empty_sections_omitted(self, tokenizer):
        items = ContextPrioritizer(tokenizer=tokenizer).build_prioritized_context_list(
            lore_bible="lore", style_profile="style"
        )
        assert [i.id for i in items] == ["lore_bible"]


@pytest.mark.unit
class TestSelectWithinBudget:
    """Tests for greedy budget selection."""

    def test_greedy_in_input_order(self):
        items = [item("a", 50), item("b", 60), item("c", 30)]
        selected = ContextPrioritizer().select_within_budget(items, 100)
        assert [i.id for i in selected] == ["a", "c"]

    def test_must_include_first(self):
        items = [item("a", 60), item("b", 40), item("c", 50)]
        selected = ContextPrioritizer().select_within_budget(items, 100, min_include_ids=["c"])
        assert [i.id for i in selected] == ["c", "b"]

    def test_must_include_that_does_not_fit(self):
        items = [item("big", 500), item("small", 10)]
        selected = ContextPrioritizer().select_within_budget(items, 100, min_include_ids=["big"])
        assert [i.id for i in selected] == ["small"]

    def test_never_exceeds_budget(self):
        items = [item(str(n), n * 7) for n in range(1, 12)]
        selected = ContextPrioritizer().select_within_budget(items, 100)
        assert sum(i.token_count for i in selected) <= 100


@pytest.mark.unit
class TestBudgetAllocation:
    """Tests for budget allocation and rebalancing."""

    def test_default_percentages(self):
        allocation = ContextPrioritizer().allocate_budget(1000)
        assert allocation == BudgetAllocation(
            continuity=200,
            lore_bible=150,
            characters=150,
            plot_elements=150,
            world_building=100,
            power_elements=100,
            recent_chapters=100,
            style_profile=50,
        )
        assert allocation.total() == 1000

    def test_floored_and_within_total(self):
        allocation = ContextPrioritizer().allocate_budget(333)
        assert allocation.continuity == 66
        assert allocation.total() <= 333

    def test_overrides(self):
        allocation = ContextPrioritizer().allocate_budget(1000, {"continuity": 40})
        assert allocation.continuity == 400
        assert allocation.lore_bible == 150

    def test_configured_percentages(self):
        prioritizer = ContextPrioritizer(budget=BudgetConfig(style_profile=0, continuity=25))
        allocation = prioritizer.allocate_budget(1000)
        assert allocation.style_profile == 0
        assert allocation.continuity == 250

    def test_rebalance_moves_surplus(self):
        prioritizer = ContextPrioritizer()
        allocation = prioritizer.allocate_budget(1000)
        usage = {
            "continuity": 200,
            "lore_bible": 150,
            "characters": 150,
            "plot_elements": 150,
            "world_building": 0,
            "power_elements": 100,
            "recent_chapters": 100,
            "style_profile": 50,
        }
        rebalanced = prioritizer.rebalance_budget(allocation, usage)

        # 100 surplus: continuity +100 (cap 100)
        assert rebalanced.continuity == 300
        assert rebalanced.world_building == 0
        assert rebalanced.lore_bible == 150

    def test_rebalance_caps_at_one_and_a_half(self):
        prioritizer = ContextPrioritizer()
        allocation = prioritizer.allocate_budget(1000)
        rebalanced = prioritizer.rebalance_budget(allocation, {"continuity": 200, "lore_bible": 150})

        original = allocation.model_dump()
        for category, value in rebalanced.model_dump().items():
            assert value <= original[category] * 1.5
        assert rebalanced.continuity == 300
        assert rebalanced.lore_bible == 225

    def test_rebalance_no_surplus(self):
        prioritizer = ContextPrioritizer()
        allocation = prioritizer.allocate_budget(1000)
        assert prioritizer.rebalance_budget(allocation, allocation.model_dump()) == allocation


@pytest.mark.unit
class TestRendering:
    """Tests for formatting helpers."""

    def test_format_plain(self):
        text = ContextPrioritizer.format_prioritized_context([item("a", 1), item("b", 1)])
        assert text == "a\n\nb\n"

    def test_format_debug(self):
        text = ContextPrioritizer.format_prioritized_context([item("a", 1, 700)], include_debug_info=True)
        assert text.startswith("<!-- Priority: 700, Reason: test -->\na")

    def test_priority_summary(self):
        items = [item("a", 10), item("b", 5)]
        assert ContextPrioritizer.get_priority_summary(items) == "Items: 2 (plot: 2), Tokens: 15"
