"""
Query Analyzer: turns the end of the story so far into search queries.

Extraction is heuristic (regex and vocabulary matching over a short
window of text), cheap, and deterministic for a given novel state.
"""

import re

from novel_memory.models.novel import NovelState, WorldCategory
from novel_memory.models.query import (
    EntityType,
    ExtractedEntity,
    GeneratedQuery,
    QueryAnalysisResult,
    QueryPriority,
    QueryType,
)
from novel_memory.utils.logger import get_logger

logger = get_logger(__name__)

CULTIVATION_TERMS = (
    "cultivation", "realm", "stage", "breakthrough", "tribulation", "qi", "spirit",
    "foundation", "core", "nascent", "soul", "immortal", "mortal", "divine", "elder",
    "master", "disciple", "sect", "clan", "palace", "peak", "dao",
)

ACTION_VERBS = (
    "attacked", "defeated", "escaped", "discovered", "revealed", "learned", "met",
    "confronted", "allied", "betrayed", "rescued", "destroyed", "awakened", "achieved",
    "broke through", "comprehended", "refined",
)

RELATIONSHIP_TERMS = (
    "enemy", "ally", "friend", "rival", "master", "disciple", "father", "mother",
    "brother", "sister", "lover", "spouse", "servant", "lord", "subordinate",
)

# Inflected phrases folded onto a vocabulary term
KEYWORD_ALIASES = {
    "broke through": "breakthrough",
    "breaks through": "breakthrough",
    "break through": "breakthrough",
}

STOP_WORDS = frozenset({
    "The", "This", "That", "These", "Those", "What", "When", "Where", "Which",
    "Who", "Why", "How", "Chapter", "Part", "Section", "Book", "Volume",
})

DEFAULT_QUERY = "Main character background and current situation"

CONTEXT_CHARS = 50
LOCATION_CONTEXT_CHARS = 30

_TITLE_CASE = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\b")
_LIKELY_NAME_FOLLOWER = re.compile(
    r"\s+(said|spoke|asked|replied|nodded|smiled|frowned|was|had|could)\b"
)
_LOCATION_PHRASE = re.compile(
    r"\b(?:in|at|to|from|near|inside|outside)\s+(?:the\s+)?"
    r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*"
    r"(?:\s+(?:Sect|Clan|Palace|Peak|Mountain|Valley|City|Town|Village|Forest|Lake|River))?)"
)

_PRIORITY_ORDER = {QueryPriority.HIGH: 0, QueryPriority.MEDIUM: 1, QueryPriority.LOW: 2}


def _window(text: str, start: int, end: int, chars: int = CONTEXT_CHARS) -> str:
    return text[max(0, start - chars): min(len(text), end + chars)]


def _find_context(text: str, term: str, chars: int = CONTEXT_CHARS) -> tuple[bool, str]:
    """Case-insensitive first occurrence of a term with surrounding text."""
    index = text.lower().find(term.lower())
    if index == -1 or not term:
        return False, ""
    return True, _window(text, index, index + len(term), chars)


def extract_character_entities(text: str, state: NovelState) -> list[ExtractedEntity]:
    """Known characters (every occurrence) plus Title-Case sequences that look like names."""
    entities: list[ExtractedEntity] = []
    known_names = {c.name.lower() for c in state.characters}

    for character in state.characters:
        if not character.name:
            continue
        pattern = re.compile(rf"\b{re.escape(character.name)}\b", re.IGNORECASE)
        for match in pattern.finditer(text):
            entities.append(
                ExtractedEntity(
                    name=character.name,
                    type=EntityType.CHARACTER,
                    confidence=1.0,
                    context=_window(text, match.start(), match.end()),
                )
            )

    for match in _TITLE_CASE.finditer(text):
        name = match.group(1)
        lowered = name.lower()
        if (
            name in STOP_WORDS
            or lowered in known_names
            or len(name) <= 2
            or any(e.name.lower() == lowered for e in entities)
        ):
            continue

        likely_name = _LIKELY_NAME_FOLLOWER.match(text, match.end()) is not None
        entities.append(
            ExtractedEntity(
                name=name,
                type=EntityType.CHARACTER,
                confidence=0.7 if likely_name else 0.4,
                context=_window(text, match.start(), match.end()),
            )
        )

    return entities


def extract_location_entities(text: str, state: NovelState) -> list[ExtractedEntity]:
    """Known territories and world-bible places, then prepositional place phrases."""
    entities: list[ExtractedEntity] = []

    for territory in state.territories:
        found, context = _find_context(text, territory.name)
        if found:
            entities.append(
                ExtractedEntity(
                    name=territory.name, type=EntityType.LOCATION, confidence=1.0, context=context
                )
            )

    for entry in state.world_bible:
        if entry.category not in (WorldCategory.GEOGRAPHY, WorldCategory.SECTS):
            continue
        found, context = _find_context(text, entry.title)
        if found:
            entities.append(
                ExtractedEntity(
                    name=entry.title,
                    type=EntityType.SECT if entry.category == WorldCategory.SECTS else EntityType.LOCATION,
                    confidence=0.9,
                    context=context,
                )
            )

    for match in _LOCATION_PHRASE.finditer(text):
        name = match.group(1)
        if len(name) <= 3 or any(e.name == name for e in entities):
            continue
        entities.append(
            ExtractedEntity(
                name=name,
                type=EntityType.LOCATION,
                confidence=0.6,
                context=_window(text, match.start(), match.end(), LOCATION_CONTEXT_CHARS),
            )
        )

    return entities


def extract_power_entities(text: str, state: NovelState) -> list[ExtractedEntity]:
    """Techniques and items from the registries mentioned in the text."""
    entities: list[ExtractedEntity] = []
    registries = (
        (state.novel_techniques, EntityType.TECHNIQUE),
        (state.novel_items, EntityType.ITEM),
    )
    for registry, entity_type in registries:
        for element in registry:
            found, context = _find_context(text, element.name)
            if found:
                entities.append(
                    ExtractedEntity(
                        name=element.name, type=entity_type, confidence=1.0, context=context
                    )
                )
    return entities


def extract_keywords(text: str) -> list[str]:
    """Vocabulary terms present in the text, in vocabulary order, without repeats."""
    lowered = text.lower()
    keywords: list[str] = []

    def add(term: str) -> None:
        if term not in keywords:
            keywords.append(term)

    for vocabulary in (CULTIVATION_TERMS, ACTION_VERBS, RELATIONSHIP_TERMS):
        for term in vocabulary:
            if term in lowered:
                add(term)

    for phrase, term in KEYWORD_ALIASES.items():
        if phrase in lowered:
            add(term)

    return keywords


def analyze_text(text: str, state: NovelState) -> list[ExtractedEntity]:
    """All entities found in an arbitrary passage."""
    return (
        extract_character_entities(text, state)
        + extract_location_entities(text, state)
        + extract_power_entities(text, state)
    )


def generate_queries(
    entities: list[ExtractedEntity], keywords: list[str], state: NovelState
) -> list[GeneratedQuery]:
    """Turn entities and keywords into prioritized queries (not yet deduplicated)."""
    queries: list[GeneratedQuery] = []
    protagonist = state.protagonist
    protagonist_name = protagonist.name if protagonist else "protagonist"

    characters = [
        e for e in entities
        if e.type == EntityType.CHARACTER
        and e.confidence >= 0.6
        and e.name.lower() != protagonist_name.lower()
    ]
    for entity in characters[:3]:
        queries.append(
            GeneratedQuery(
                query=f"Who is {entity.name} and what is their background?",
                type=QueryType.CHARACTER,
                priority=QueryPriority.HIGH if entity.confidence >= 0.9 else QueryPriority.MEDIUM,
                reason=f'Character "{entity.name}" mentioned in context',
            )
        )
        if protagonist_name.lower() in entity.context.lower():
            queries.append(
                GeneratedQuery(
                    query=f"What is the relationship between {entity.name} and {protagonist_name}?",
                    type=QueryType.RELATIONSHIP,
                    priority=QueryPriority.HIGH,
                    reason=f"{entity.name} appears near {protagonist_name}",
                )
            )

    places = [e for e in entities if e.type in (EntityType.LOCATION, EntityType.SECT)]
    for entity in places[:2]:
        queries.append(
            GeneratedQuery(
                query=f"What is {entity.name} and what happens there?",
                type=QueryType.WORLD,
                priority=QueryPriority.MEDIUM if entity.confidence >= 0.9 else QueryPriority.LOW,
                reason=f'Location "{entity.name}" referenced',
            )
        )

    power = [e for e in entities if e.type in (EntityType.TECHNIQUE, EntityType.ITEM)]
    for entity in power[:2]:
        queries.append(
            GeneratedQuery(
                query=f"What are the abilities of {entity.name}?",
                type=QueryType.POWER,
                priority=QueryPriority.MEDIUM,
                reason=f'{entity.type.value} "{entity.name}" mentioned',
            )
        )

    if "breakthrough" in keywords or "tribulation" in keywords:
        queries.append(
            GeneratedQuery(
                query="What are the cultivation breakthrough requirements and tribulations?",
                type=QueryType.POWER,
                priority=QueryPriority.HIGH,
                reason="Breakthrough/tribulation keywords detected",
            )
        )

    if any(k in RELATIONSHIP_TERMS for k in keywords):
        queries.append(
            GeneratedQuery(
                query=f"Important relationships and alliances involving {protagonist_name}",
                type=QueryType.RELATIONSHIP,
                priority=QueryPriority.MEDIUM,
                reason="Relationship terms detected",
            )
        )

    if any(k in CULTIVATION_TERMS for k in keywords):
        queries.append(
            GeneratedQuery(
                query="Cultivation realms and power levels hierarchy",
                type=QueryType.POWER,
                priority=QueryPriority.LOW,
                reason="Cultivation context detected",
            )
        )

    return queries


def _analysis_window(state: NovelState, additional_context: str | None, window_chars: int) -> str:
    parts: list[str] = []
    latest = state.latest_chapter
    if latest is not None:
        parts.append(latest.content[-window_chars:] if window_chars > 0 else "")
        if latest.summary:
            parts.append(latest.summary)
    if additional_context:
        parts.append(additional_context)
    active_arc = state.active_arc
    if active_arc is not None:
        parts.append(f"{active_arc.title}: {active_arc.description}")
    return "\n".join(parts)


def analyze_chapter_context(
    state: NovelState,
    additional_context: str | None = None,
    max_queries: int = 8,
    window_chars: int = 1000,
) -> QueryAnalysisResult:
    """
    Analyze the end of the story so far and generate search queries.

    Args:
        state: Novel snapshot
        additional_context: Extra text to analyze, such as a user instruction
        max_queries: Maximum number of queries returned
        window_chars: Characters taken from the end of the latest chapter

    Returns:
        Entities, deduplicated queries sorted high to low priority, and keywords
    """
    text = _analysis_window(state, additional_context, window_chars)

    if not text.strip():
        return QueryAnalysisResult(
            queries=[
                GeneratedQuery(
                    query=DEFAULT_QUERY,
                    type=QueryType.GENERAL,
                    priority=QueryPriority.HIGH,
                    reason="No previous chapter context available",
                )
            ],
            source_description="No context available - using default queries",
        )

    entities = analyze_text(text, state)
    keywords = extract_keywords(text)

    seen: set[str] = set()
    queries: list[GeneratedQuery] = []
    for query in generate_queries(entities, keywords, state):
        key = query.query.lower()
        if key not in seen:
            seen.add(key)
            queries.append(query)

    # sorted() is stable, so equal priorities keep generation order
    queries = sorted(queries, key=lambda q: _PRIORITY_ORDER[q.priority])[:max_queries]

    latest = state.latest_chapter
    if latest is not None:
        arc_part = "active arc" if state.active_arc else "no active arc"
        source = f"Chapter {latest.number} ending + {arc_part}"
    else:
        source = "Initial context"

    logger.debug(
        f"Context analysis complete: {len(entities)} entities, "
        f"{len(queries)} queries, {len(keywords)} keywords",
        extra={"novel_id": state.id},
    )

    return QueryAnalysisResult(
        entities=entities, queries=queries, keywords=keywords, source_description=source
    )


def get_search_queries(
    state: NovelState, additional_context: str | None = None, max_queries: int = 8
) -> list[str]:
    """Query texts only."""
    analysis = analyze_chapter_context(state, additional_context, max_queries)
    return [q.query for q in analysis.queries]
