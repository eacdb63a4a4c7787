"""
Context Prioritizer: scores candidate context and fits it to a token budget.

Scores are additive heuristics. Higher means more important to keep in the
prompt; search relevance contributes but never dominates narrative role.
"""

from novel_memory.config import BudgetConfig
from novel_memory.core.tokenizer import Tokenizer, get_default_tokenizer
from novel_memory.models.context import BudgetAllocation, ContextItemType, PrioritizedItem
from novel_memory.models.novel import Character, CharacterStatus, NovelState, ThreadStatus
from novel_memory.models.search import SearchResults, SemanticSearchResult
from novel_memory.utils.logger import get_logger

logger = get_logger(__name__)

# Fixed priorities of whole context sections
SECTION_PRIORITIES = {
    "continuity": 1000,
    "lore_bible": 900,
    "characters": 700,
    "plot": 650,
    "world": 500,
    "power": 400,
    "chapters": 300,
}

# Categories that receive surplus budget, in order
REDISTRIBUTION_ORDER = (
    "continuity",
    "lore_bible",
    "characters",
    "plot_elements",
    "world_building",
    "power_elements",
    "recent_chapters",
)


class ContextPrioritizer:
    """
    Scores search results and context sections, then selects what fits.

    Usage:
        prioritizer = ContextPrioritizer()
        items = prioritizer.prioritize_search_results(results, state)
        chosen = prioritizer.select_within_budget(items, 2000, min_include_ids=["continuity"])
    """

    def __init__(self, tokenizer: Tokenizer | None = None, budget: BudgetConfig | None = None):
        self.tokenizer = tokenizer or get_default_tokenizer()
        self.budget = budget or BudgetConfig()

    # Scoring

    @staticmethod
    def character_priority(
        character: Character, state: NovelState, result: SemanticSearchResult | None = None
    ) -> float:
        priority = 50.0
        if character.is_protagonist:
            priority += 100
        priority += len(character.relationships) * 5
        if character.status == CharacterStatus.ALIVE:
            priority += 20
        if result is not None:
            priority += result.score * 30

        name = character.name.lower()
        if any(
            t.status == ThreadStatus.ACTIVE
            and (name in t.description.lower() or name in t.title.lower())
            for t in state.story_threads
        ):
            priority += 25

        if any(
            a.status == "active" and any(r.character_id == character.id for r in a.relationships)
            for a in state.antagonists
        ):
            priority += 15

        return priority

    @staticmethod
    def world_priority(result: SemanticSearchResult, state: NovelState) -> float:
        priority = 30 + result.score * 40
        if result.metadata.get("category") in ("PowerLevels", "Systems"):
            priority += 20
        realm_id = result.metadata.get("realm_id")
        if realm_id and realm_id == state.current_realm_id:
            priority += 15
        return priority

    @staticmethod
    def plot_priority(result: SemanticSearchResult, state: NovelState) -> float:
        priority = 40 + result.score * 35
        if result.metadata.get("status") == "active":
            priority += 25

        thread_priority = result.metadata.get("priority")
        if thread_priority == "critical":
            priority += 30
        elif thread_priority == "high":
            priority += 20

        if result.type == "antagonist":
            threat = result.metadata.get("threat_level")
            if threat == "extreme":
                priority += 25
            elif threat == "high":
                priority += 15
        return priority

    @staticmethod
    def power_priority(result: SemanticSearchResult, state: NovelState) -> float:
        priority = 35 + result.score * 35
        category = result.metadata.get("category")
        if category == "Core":
            priority += 20
        elif category == "Important":
            priority += 10
        if category == "Treasure":
            priority += 15
        return priority

    def prioritize_search_results(
        self, results: SearchResults, state: NovelState
    ) -> list[PrioritizedItem]:
        """Score every search hit; highest priority first."""
        items: list[PrioritizedItem] = []

        for result in results.characters:
            character = state.character_by_id(result.id)
            priority = (
                self.character_priority(character, state, result)
                if character is not None
                else 30 + result.score * 30
            )
            items.append(
                PrioritizedItem(
                    id=result.id,
                    type=ContextItemType.CHARACTER,
                    content=f"Character: {result.name}",
                    priority=priority,
                    token_count=self.tokenizer.count_tokens(
                        result.name + str(result.metadata.get("cultivation", ""))
                    ),
                    reason=f"Search score: {result.score * 100:.0f}%",
                )
            )

        for result in results.world_entries:
            items.append(
                PrioritizedItem(
                    id=result.id,
                    type=ContextItemType.WORLD,
                    content=result.name,
                    priority=self.world_priority(result, state),
                    token_count=self.tokenizer.count_tokens(result.name),
                    reason=f"Category: {result.metadata.get('category', 'general')}",
                )
            )

        for result in results.plot_elements:
            items.append(
                PrioritizedItem(
                    id=result.id,
                    type=ContextItemType.PLOT,
                    content=result.name,
                    priority=self.plot_priority(result, state),
                    token_count=self.tokenizer.count_tokens(result.name),
                    reason=f"Type: {result.type}, Status: {result.metadata.get('status', 'unknown')}",
                )
            )

        for result in results.power_elements:
            items.append(
                PrioritizedItem(
                    id=result.id,
                    type=ContextItemType.POWER,
                    content=result.name,
                    priority=self.power_priority(result, state),
                    token_count=self.tokenizer.count_tokens(result.name),
                    reason=f"Type: {result.type}",
                )
            )

        items.sort(key=lambda item: item.priority, reverse=True)
        return items

    def build_prioritized_context_list(
        self,
        continuity_bridge: str = "",
        lore_bible: str = "",
        character_context: str = "",
        world_context: str = "",
        plot_context: str = "",
        power_context: str = "",
        recent_chapters: str = "",
        style_profile: str = "",
    ) -> list[PrioritizedItem]:
        """
        Wrap whole context sections as items with fixed priorities.

        Empty sections are left out. The style profile is accepted for
        call-site symmetry but is budgeted separately and never listed.
        """
        sections = (
            ("continuity", ContextItemType.CONTINUITY, continuity_bridge, "Critical for chapter transition"),
            ("lore_bible", ContextItemType.LORE_BIBLE, lore_bible, "Source of truth for consistency"),
            ("characters", ContextItemType.CHARACTER, character_context, "Character states and relationships"),
            ("plot", ContextItemType.PLOT, plot_context, "Active threads and conflicts"),
            ("world", ContextItemType.WORLD, world_context, "World building and rules"),
            ("power", ContextItemType.POWER, power_context, "Techniques and items"),
            ("chapters", ContextItemType.CHAPTER, recent_chapters, "Recent narrative context"),
        )

        items = [
            PrioritizedItem(
                id=item_id,
                type=item_type,
                content=content,
                priority=SECTION_PRIORITIES[item_id],
                token_count=self.tokenizer.count_tokens(content),
                reason=reason,
            )
            for item_id, item_type, content, reason in sections
            if content
        ]
        items.sort(key=lambda item: item.priority, reverse=True)
        return items

    # Budgeting

    def select_within_budget(
        self,
        items: list[PrioritizedItem],
        token_budget: int,
        min_include_ids: list[str] | None = None,
    ) -> list[PrioritizedItem]:
        """
        Greedy selection in input order; never splits an item.

        Must-include items are taken first (in input order, while they fit),
        then every other item that still fits.
        """
        must_include = set(min_include_ids or [])
        selected: list[PrioritizedItem] = []
        selected_ids: set[str] = set()
        used = 0

        for item in items:
            if item.id in must_include and used + item.token_count <= token_budget:
                selected.append(item)
                selected_ids.add(item.id)
                used += item.token_count

        for item in items:
            if item.id in selected_ids:
                continue
            if used + item.token_count <= token_budget:
                selected.append(item)
                selected_ids.add(item.id)
                used += item.token_count

        logger.debug(
            f"Selected {len(selected)}/{len(items)} items, {used}/{token_budget} tokens"
        )
        return selected

    def allocate_budget(
        self, total_budget: int, overrides: dict[str, int] | None = None
    ) -> BudgetAllocation:
        """
        Split a budget by category percentages, flooring each share.

        Args:
            total_budget: Total tokens
            overrides: Percentages replacing the configured ones per category
        """
        percentages = {**self.budget.model_dump(), **(overrides or {})}
        return BudgetAllocation(
            **{category: total_budget * pct // 100 for category, pct in percentages.items()}
        )

    @staticmethod
    def rebalance_budget(
        allocation: BudgetAllocation, actual_usage: dict[str, int]
    ) -> BudgetAllocation:
        """
        Move budget from under-used categories to the ones that can use it.

        Each receiving category grows by at most half of its original
        allocation; surplus left after the last category is dropped.
        """
        original = allocation.model_dump()
        rebalanced = dict(original)
        surplus = 0

        for category, allocated in original.items():
            used = actual_usage.get(category, 0)
            if used < allocated:
                surplus += allocated - used
                rebalanced[category] = used

        for category in REDISTRIBUTION_ORDER:
            if surplus <= 0:
                break
            increase = min(surplus, original[category] // 2)
            rebalanced[category] += increase
            surplus -= increase

        return BudgetAllocation(**rebalanced)

    # Rendering

    @staticmethod
    def format_prioritized_context(
        items: list[PrioritizedItem], include_debug_info: bool = False
    ) -> str:
        lines: list[str] = []
        for item in items:
            if include_debug_info:
                lines.append(f"<!-- Priority: {item.priority:g}, Reason: {item.reason} -->")
            lines.append(item.content)
            lines.append("")
        return "\n".join(lines)

    @staticmethod
    def get_priority_summary(items: list[PrioritizedItem]) -> str:
        """One-line summary for logs."""
        by_type: dict[str, int] = {}
        for item in items:
            by_type[item.type.value] = by_type.get(item.type.value, 0) + 1
        parts = ", ".join(f"{item_type}: {count}" for item_type, count in by_type.items())
        total_tokens = sum(item.token_count for item in items)
        return f"Items: {len(items)} ({parts}), Tokens: {total_tokens}"
