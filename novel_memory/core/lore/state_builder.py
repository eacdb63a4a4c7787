"""
Lore bible derived directly from the novel state.

No model calls: every field is read from the character codex, world bible,
plot ledger, story threads and antagonists.
"""

import re

from novel_memory.core.lore.base import LoreBibleBuilder
from novel_memory.models.lore import (
    ActiveConflict,
    CharacterStateSnapshot,
    CultivationState,
    Inventory,
    ItemPossession,
    KarmaDebt,
    LoreBible,
    NarrativeAnchors,
    PendingPromise,
    PowerSystemState,
    ProtagonistIdentity,
    ProtagonistState,
    TechniqueMastery,
    WorldStateSnapshot,
)
from novel_memory.models.novel import (
    CharacterStatus,
    NovelState,
    ThreadPriority,
    ThreadStatus,
    WorldCategory,
)
from novel_memory.utils.exceptions import LoreSynthesisError
from novel_memory.utils.logger import get_logger

logger = get_logger(__name__)

CULTIVATION_STAGES = ("Early", "Middle", "Late", "Peak")

_SECT_NOTE_PATTERN = re.compile(r"sect[:\s]+([^,.\n]+)", re.IGNORECASE)
_ALIAS_PATTERN = re.compile(r"(?:also known as|alias|nicknamed?)\s*[:\s]\s*([^,.\n]+)", re.IGNORECASE)
_LEVEL_PATTERN = re.compile(r"\d+\.\s*([^:\n]+)")

_URGENCY = {ThreadPriority.CRITICAL: "critical", ThreadPriority.HIGH: "high"}
_KARMA_THREAT = {ThreadPriority.CRITICAL: "severe", ThreadPriority.HIGH: "moderate"}


def parse_cultivation(cultivation: str) -> CultivationState:
    """Split "Nascent Soul - Late" style strings into realm and stage."""
    if not cultivation:
        return CultivationState(realm="Unknown", stage="Unknown", foundation_quality="Unknown")

    stage = "Unknown"
    realm = cultivation
    for candidate in CULTIVATION_STAGES:
        if candidate.lower() in cultivation.lower():
            stage = candidate
            realm = re.sub(candidate, "", cultivation, count=1, flags=re.IGNORECASE)
            break

    realm = re.sub(r"[-–—]", "", realm).strip()
    return CultivationState(
        realm=realm or cultivation, stage=stage, foundation_quality="Unknown"
    )


class StateLoreBibleBuilder(LoreBibleBuilder):
    """Builds a lore bible from the novel state alone."""

    def __init__(self, max_characters: int = 10, max_conflicts: int = 5, max_karma_debts: int = 5):
        self.max_characters = max_characters
        self.max_conflicts = max_conflicts
        self.max_karma_debts = max_karma_debts

    async def build(self, state: NovelState, chapter_number: int) -> LoreBible:
        # Nothing has been written yet, so there is nothing to remember
        if not state.chapters:
            return LoreBible.empty()

        try:
            bible = self._build(state, chapter_number)
        except Exception as e:
            logger.error(f"Lore bible synthesis failed for novel {state.id}: {e}")
            raise LoreSynthesisError(
                f"Lore bible synthesis failed: {e}", context={"novel_id": state.id}
            ) from e

        logger.debug(
            f"Lore bible built for chapter {chapter_number}: "
            f"{len(bible.major_characters)} characters, "
            f"{len(bible.active_conflicts)} conflicts, {len(bible.karma_debts)} karma debts"
        )
        return bible

    def _build(self, state: NovelState, chapter_number: int) -> LoreBible:
        protagonist = self._protagonist_state(state, chapter_number)
        return LoreBible(
            novel_id=state.id,
            as_of_chapter=chapter_number,
            protagonist=protagonist,
            major_characters=self._major_characters(state),
            world_state=self._world_state(state, chapter_number),
            narrative_anchors=self._narrative_anchors(state, chapter_number),
            power_system=self._power_system(state),
            active_conflicts=self._active_conflicts(state),
            karma_debts=self._karma_debts(state),
            updated_at=state.updated_at,
        )

    def _protagonist_state(self, state: NovelState, chapter_number: int) -> ProtagonistState:
        protagonist = state.protagonist
        if protagonist is None:
            logger.warning(f"No protagonist in character codex of novel {state.id}")
            return ProtagonistState(
                identity=ProtagonistIdentity(name="Unknown Protagonist", sect="Unknown"),
                cultivation=parse_cultivation(""),
                last_updated_chapter=chapter_number,
            )

        techniques_by_name = {t.name.lower(): t for t in state.novel_techniques}
        techniques = []
        for skill in protagonist.skills:
            technique = techniques_by_name.get(skill.lower())
            techniques.append(
                TechniqueMastery(
                    name=technique.name if technique else skill,
                    description=technique.description[:100] if technique else "",
                )
            )

        items_by_name = {i.name.lower(): i for i in state.novel_items}
        inventory = Inventory()
        for item_name in protagonist.items:
            item = items_by_name.get(item_name.lower())
            category = item.category if item else ""
            possession = ItemPossession(
                name=item.name if item else item_name,
                category=category,
                description=item.description[:80] if item else "",
            )
            if category == "Equipment":
                inventory.equipped.append(possession)
            else:
                inventory.storage_ring.append(possession)

        return ProtagonistState(
            identity=ProtagonistIdentity(
                name=protagonist.name,
                aliases=[
                    alias.strip()
                    for alias in _ALIAS_PATTERN.findall(protagonist.notes)
                    if alias.strip() and alias.strip() != protagonist.name
                ],
                sect=self._sect_of(protagonist.name, protagonist.notes, state),
            ),
            cultivation=parse_cultivation(protagonist.current_cultivation),
            techniques=techniques,
            inventory=inventory,
            physical_state="Deceased" if protagonist.status == CharacterStatus.DECEASED else None,
            last_updated_chapter=chapter_number,
        )

    @staticmethod
    def _sect_of(name: str, notes: str, state: NovelState) -> str:
        match = _SECT_NOTE_PATTERN.search(notes)
        if match:
            return match.group(1).strip()
        for entry in state.world_bible:
            if entry.category == WorldCategory.SECTS and name.lower() in entry.content.lower():
                return entry.title
        return "Unknown"

    def _major_characters(self, state: NovelState) -> list[CharacterStateSnapshot]:
        protagonist = state.protagonist
        others = [c for c in state.characters if not c.is_protagonist]
        # Living characters first, then the most connected
        others.sort(key=lambda c: (c.status != CharacterStatus.ALIVE, -len(c.relationships)))

        snapshots = []
        for character in others[: self.max_characters]:
            relationship = None
            if protagonist is not None:
                relationship = next(
                    (r.type for r in character.relationships if r.character_id == protagonist.id),
                    None,
                )
            traits = [t.strip() for t in re.split(r"[,;]", character.personality) if t.strip()]
            snapshots.append(
                CharacterStateSnapshot(
                    id=character.id,
                    name=character.name,
                    status=character.status.value,
                    cultivation=character.current_cultivation,
                    relationship_to_protagonist=relationship,
                    key_traits=traits[:3],
                )
            )
        return snapshots

    @staticmethod
    def _chapter_at(state: NovelState, chapter_number: int):
        return next(
            (c for c in state.chapters if c.number == chapter_number), state.latest_chapter
        )

    def _world_state(self, state: NovelState, chapter_number: int) -> WorldStateSnapshot:
        realm = next((r for r in state.realms if r.id == state.current_realm_id), None)
        chapter = self._chapter_at(state, chapter_number)

        situation = "Story in progress"
        if chapter and chapter.summary:
            situation = chapter.summary[:200]
        if state.active_arc:
            situation = f"{state.active_arc.title}: {situation}"

        return WorldStateSnapshot(
            current_realm=realm.name if realm else "Unknown Realm",
            current_location="Unknown Location",
            current_situation=situation,
        )

    def _narrative_anchors(self, state: NovelState, chapter_number: int) -> NarrativeAnchors:
        chapter = self._chapter_at(state, chapter_number)
        active_arc = state.active_arc
        active_threads = [t for t in state.story_threads if t.status == ThreadStatus.ACTIVE]

        return NarrativeAnchors(
            last_major_event=(chapter.summary or chapter.title) if chapter else "Story beginning",
            last_major_event_chapter=chapter.number if chapter else 1,
            current_objective=(
                active_arc.description if active_arc and active_arc.description
                else "Continue the journey"
            ),
            active_quests=[t.title for t in active_threads if t.type == "quest"][:5],
            pending_promises=[
                PendingPromise(id=t.id, description=t.description, made_in_chapter=t.introduced_chapter)
                for t in active_threads
                if t.type == "promise"
            ][:5],
        )

    @staticmethod
    def _power_system(state: NovelState) -> PowerSystemState:
        protagonist = state.protagonist
        hierarchy: list[str] = []
        entry = next(
            (e for e in state.world_bible if e.category == WorldCategory.POWER_LEVELS), None
        )
        if entry:
            hierarchy = [level.strip() for level in _LEVEL_PATTERN.findall(entry.content)]

        return PowerSystemState(
            current_protagonist_rank=(
                protagonist.current_cultivation if protagonist and protagonist.current_cultivation
                else "Unknown"
            ),
            known_level_hierarchy=[level for level in hierarchy if level],
        )

    def _active_conflicts(self, state: NovelState) -> list[ActiveConflict]:
        conflicts = [
            ActiveConflict(
                id=t.id,
                description=t.description or t.title,
                urgency=_URGENCY.get(t.priority, "medium"),
                introduced_chapter=t.introduced_chapter,
            )
            for t in state.story_threads
            if t.type == "conflict" and t.status == ThreadStatus.ACTIVE
        ][: self.max_conflicts]

        for antagonist in state.antagonists:
            if len(conflicts) >= self.max_conflicts:
                break
            if antagonist.status != "active":
                continue
            conflicts.append(
                ActiveConflict(
                    id=f"antagonist_{antagonist.id}",
                    description=f"Conflict with {antagonist.name}: "
                    f"{antagonist.description or 'Unknown motivation'}",
                    parties=[antagonist.name],
                    urgency={"extreme": "critical", "high": "high"}.get(
                        antagonist.threat_level, "medium"
                    ),
                )
            )
        return conflicts

    def _karma_debts(self, state: NovelState) -> list[KarmaDebt]:
        karma_words = ("revenge", "debt", "karma")
        debts = []
        for thread in state.story_threads:
            description = thread.description.lower()
            if thread.type != "enemy" and not any(word in description for word in karma_words):
                continue
            debts.append(
                KarmaDebt(
                    id=thread.id,
                    target=thread.title,
                    action=thread.description,
                    consequence=(
                        thread.progression_notes[0].note
                        if thread.progression_notes
                        else "Consequences pending"
                    ),
                    threat_level=_KARMA_THREAT.get(thread.priority, "minor"),
                )
            )
        return debts[: self.max_karma_debts]
