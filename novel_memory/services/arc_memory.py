"""
Arc Memory Service: the episodic (mid-term) memory layer.

Derives per-arc summaries, character states and thread states from the
novel state. Every function here is pure and recomputes from scratch; the
same state always yields the same memories.
"""

import re

from novel_memory.models.arc import (
    ArcCharacterState,
    ArcMemorySummary,
    ArcRelationship,
    ArcThreadState,
    ConflictChanges,
)
from novel_memory.models.novel import (
    Arc,
    ArcStatus,
    Chapter,
    Character,
    NovelState,
    ThreadStatus,
)
from novel_memory.utils.logger import get_logger

logger = get_logger(__name__)

MAX_SUMMARY_WORDS = 500
MAX_KEY_EVENTS_IN_SUMMARY = 5
MAX_RELATED_CHARACTERS = 5
MAX_RELATIONSHIPS_PER_CHARACTER = 3
MAX_THREAD_STATES = 10
# Horizon used for threads of an arc that has not ended yet
OPEN_ARC_THREAD_HORIZON = 100

KEY_EVENT_PATTERN = re.compile(
    r"\b(discovered|revealed|defeated|escaped|arrived|met|learned|received|lost|gained|"
    r"broke through|confronted|allied|betrayed|rescued|destroyed)\b",
    re.IGNORECASE,
)
_SENTENCE_SPLIT = re.compile(r"[.!?]+")

# Changed-field markers in a character's update history
_CHANGE_LABELS = (
    (("cultivation",), "Cultivation breakthrough"),
    (("status",), "Status changed"),
    (("skills", "techniques"), "Learned new technique"),
)


def _in_arc(arc: Arc, chapter_number: int) -> bool:
    """Whether a chapter number falls inside an arc's range."""
    if not arc.started_at_chapter:
        return False
    if chapter_number < arc.started_at_chapter:
        return False
    return arc.ended_at_chapter is None or chapter_number <= arc.ended_at_chapter


def arc_chapters(arc: Arc, chapters: list[Chapter]) -> list[Chapter]:
    """Chapters inside the arc, in their original order."""
    return [ch for ch in chapters if _in_arc(arc, ch.number)]


def extract_key_events(summaries: list[str]) -> list[str]:
    """
    Pick action sentences out of chapter summaries.

    Sentences of 20-200 characters that contain an action verb are kept;
    a sentence is dropped when it shares its first 30 characters with an
    already kept event (case-insensitive, either direction).
    """
    events: list[str] = []
    for summary in summaries:
        for sentence in _SENTENCE_SPLIT.split(summary):
            trimmed = sentence.strip()
            if len(trimmed) < 20 or len(trimmed) > 200:
                continue
            if KEY_EVENT_PATTERN.search(trimmed):
                events.append(trimmed)

    unique: list[str] = []
    for event in events:
        lowered = event.lower()
        duplicate = any(
            lowered[:30] in kept.lower() or kept.lower()[:30] in lowered for kept in unique
        )
        if not duplicate:
            unique.append(event)
    return unique


def generate_arc_summary(arc: Arc, chapters: list[Chapter], state: NovelState) -> str:
    """
    Build a summary of an arc of at most 500 words.

    Falls back to the arc description when no chapter is in range.
    """
    in_range = arc_chapters(arc, chapters)
    if not in_range:
        return arc.description or f"Arc: {arc.title}"

    lines = [
        f'Arc: "{arc.title}"',
        f"Chapters {in_range[0].number}-{in_range[-1].number}",
        "",
    ]
    if arc.description:
        lines += [f"Goal: {arc.description}", ""]

    lines.append("Key Events:")
    chapter_summaries = [ch.summary or ch.title for ch in in_range if ch.summary or ch.title]
    for event in extract_key_events(chapter_summaries)[:MAX_KEY_EVENTS_IN_SUMMARY]:
        lines.append(f"- {event}")
    lines.append("")

    if arc.status == ArcStatus.COMPLETED:
        lines.append(f"Outcome: Arc completed at Chapter {arc.ended_at_chapter}.")
        completed = [item.label for item in arc.checklist if item.completed]
        if completed:
            lines.append(f"Completed objectives: {', '.join(completed)}")

    summary = "\n".join(lines)
    words = summary.split()
    if len(words) > MAX_SUMMARY_WORDS:
        summary = " ".join(words[:MAX_SUMMARY_WORDS]) + "..."
    return summary


def _character_arc_state(character: Character, arc: Arc, state: NovelState) -> ArcCharacterState:
    relationships = []
    for relationship in character.relationships[:MAX_RELATIONSHIPS_PER_CHARACTER]:
        target = state.character_by_id(relationship.character_id)
        if target is not None:
            relationships.append(ArcRelationship(target_name=target.name, type=relationship.type))

    major_changes = []
    for update in character.update_history:
        if not _in_arc(arc, update.chapter_number):
            continue
        for markers, label in _CHANGE_LABELS:
            if any(marker in change for change in update.changes for marker in markers):
                major_changes.append(label)

    return ArcCharacterState(
        character_id=character.id,
        character_name=character.name,
        cultivation=character.current_cultivation,
        status=character.status,
        major_changes=major_changes,
        relationships=relationships,
    )


def build_arc_character_states(
    arc: Arc, chapters: list[Chapter], state: NovelState
) -> list[ArcCharacterState]:
    """Protagonist first, then up to five characters mentioned in the arc's chapters."""
    states = []
    protagonist = state.protagonist
    if protagonist is not None:
        states.append(_character_arc_state(protagonist, arc, state))

    arc_text = " ".join(f"{ch.content} {ch.summary}" for ch in arc_chapters(arc, chapters)).lower()
    mentioned = [
        c for c in state.characters if not c.is_protagonist and c.name.lower() in arc_text
    ][:MAX_RELATED_CHARACTERS]

    states.extend(_character_arc_state(c, arc, state) for c in mentioned)
    return states


def build_arc_thread_states(arc: Arc, state: NovelState) -> list[ArcThreadState]:
    """States of the threads that were live during an arc (at most ten)."""
    if not arc.started_at_chapter:
        return []

    start = arc.started_at_chapter
    horizon = arc.ended_at_chapter or start + OPEN_ARC_THREAD_HORIZON

    live = [
        thread
        for thread in state.story_threads
        if thread.introduced_chapter <= horizon
        and (
            any(_in_arc(arc, ch) for ch in thread.chapters_involved)
            or thread.status == ThreadStatus.ACTIVE
        )
    ]

    thread_states = []
    for thread in live[:MAX_THREAD_STATES]:
        resolved = (
            thread.status == ThreadStatus.RESOLVED
            and thread.resolved_chapter is not None
            and (arc.ended_at_chapter is None or thread.resolved_chapter <= arc.ended_at_chapter)
        )
        thread_states.append(
            ArcThreadState(
                thread_id=thread.id,
                thread_title=thread.title,
                type=thread.type,
                status_at_arc_start="active" if thread.introduced_chapter < start else "introduced",
                status_at_arc_end=thread.status.value,
                progression_during_arc=[
                    note.note for note in thread.progression_notes
                    if _in_arc(arc, note.chapter_number)
                ],
                is_resolved=resolved,
            )
        )
    return thread_states


def build_arc_memory_summary(arc: Arc, state: NovelState) -> ArcMemorySummary:
    """Complete memory of a single arc."""
    logger.debug(f"Building arc memory for '{arc.title}'", extra={"arc_id": arc.id})

    thread_states = build_arc_thread_states(arc, state)
    # Only written summaries are events; titles fill in just for the prose summary
    key_events = extract_key_events([ch.summary for ch in arc_chapters(arc, state.chapters)])

    return ArcMemorySummary(
        arc_id=arc.id,
        arc_title=arc.title,
        novel_id=state.id,
        start_chapter=arc.started_at_chapter or 1,
        end_chapter=arc.ended_at_chapter,
        status=arc.status,
        summary=generate_arc_summary(arc, state.chapters, state),
        key_events=key_events,
        character_states=build_arc_character_states(arc, state.chapters, state),
        thread_states=thread_states,
        conflict_changes=ConflictChanges(
            introduced=[
                t.thread_title for t in thread_states
                if t.status_at_arc_start == "introduced" and t.type == "conflict"
            ],
            resolved=[t.thread_title for t in thread_states if t.is_resolved and t.type == "conflict"],
        ),
        unresolved_elements=[
            f"{t.thread_title} ({t.type})"
            for t in thread_states
            if not t.is_resolved and t.type != "conflict"
        ],
        created_at=state.updated_at,
        updated_at=state.updated_at,
    )


def build_all_arc_memories(state: NovelState) -> list[ArcMemorySummary]:
    """Memories for every arc in plot-ledger order."""
    return [build_arc_memory_summary(arc, state) for arc in state.arcs]


def get_relevant_arc_memories(
    state: NovelState, current_chapter: int, max_arcs: int = 3
) -> list[ArcMemorySummary]:
    """
    Arc memories most useful for writing the next chapter.

    The active arc comes first, the rest follow by most recent end chapter
    (an open arc counts as ending at ``current_chapter``). Ties keep ledger
    order.
    """
    if max_arcs <= 0:
        return []

    memories = build_all_arc_memories(state)
    ranked = sorted(
        memories,
        key=lambda m: (
            m.status != ArcStatus.ACTIVE,
            -(m.end_chapter or current_chapter),
        ),
    )
    return ranked[:max_arcs]


def format_arc_memory_for_prompt(memory: ArcMemorySummary) -> str:
    """Detailed prompt section for one arc."""
    end = f"-{memory.end_chapter}" if memory.end_chapter else "+"
    active = " (ACTIVE)" if memory.status == ArcStatus.ACTIVE else ""
    lines = [
        f'[ARC MEMORY: "{memory.arc_title}"]',
        f"Chapters {memory.start_chapter}{end}{active}",
        "",
        memory.summary,
        "",
    ]

    if memory.key_events:
        lines.append("Key Events:")
        lines.extend(f"- {event}" for event in memory.key_events[:3])
        lines.append("")

    if memory.unresolved_elements:
        lines.append("Unresolved from this arc:")
        lines.extend(f"- {element}" for element in memory.unresolved_elements[:3])

    return "\n".join(lines)


def format_arc_memories_compact(memories: list[ArcMemorySummary]) -> str:
    """Episodic memory block with each summary cut to 100 words. Empty for no arcs."""
    if not memories:
        return ""

    lines = ["[EPISODIC ARC MEMORY]", ""]
    for memory in memories:
        tag = " [ACTIVE]" if memory.status == ArcStatus.ACTIVE else ""
        lines.append(
            f"{memory.arc_title} (Ch {memory.start_chapter}-{memory.end_chapter or 'present'}){tag}"
        )
        lines.append(" ".join(memory.summary.split()[:100]))
        lines.append("")
    return "\n".join(lines).rstrip()
