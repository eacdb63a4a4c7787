"""Shared fixtures for Novel Memory tests.

Novel states are built in memory; the search and lore seams are replaced
with small fakes so no Qdrant or embedding server is needed.
"""

import asyncio
import os
from datetime import datetime

import pytest

from novel_memory.config import Config, LoggingConfig
from novel_memory.core.lore import LoreBibleBuilder, StateLoreBibleBuilder
from novel_memory.core.tokenizer import Tokenizer
from novel_memory.core.vector_search import SemanticSearchService
from novel_memory.models import (
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
    SearchResults,
    SemanticSearchResult,
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

# Fakes


class FakeSearchService(SemanticSearchService):
    """In-memory search returning canned results and recording calls."""

    def __init__(self, results: SearchResults | None = None, ready: bool = True):
        self.results = results or SearchResults()
        self.ready = ready
        self.calls: list[tuple[str, list[str]]] = []
        self.closed = False

    async def is_ready(self) -> bool:
        return self.ready

    async def search(self, novel_id, queries, options=None) -> SearchResults:
        self.calls.append((novel_id, list(queries)))
        return self.results

    async def close(self) -> None:
        self.closed = True


class SlowSearchService(FakeSearchService):
    """Search that never answers within a test deadline."""

    async def search(self, novel_id, queries, options=None) -> SearchResults:
        await asyncio.sleep(5)
        return self.results


class FailingSearchService(FakeSearchService):
    async def search(self, novel_id, queries, options=None) -> SearchResults:
        raise RuntimeError("qdrant exploded")


class SlowLoreBuilder(LoreBibleBuilder):
    async def build(self, state, chapter_number):
        await asyncio.sleep(5)
        return await StateLoreBibleBuilder().build(state, chapter_number)


class FailingLoreBuilder(LoreBibleBuilder):
    async def build(self, state, chapter_number):
        raise RuntimeError("lore synthesis failed")


# Novel state builders

CHAPTER_FIVE_ENDING = (
    "Han Xiao stood at the edge of Crimson Valley as the mist thinned. "
    "Mei Lin said nothing to Han Xiao, her hand resting on the hilt of her sword. "
    "Somewhere below, the Wang clan's banners snapped in the wind, and Han Xiao "
    "knew the Blood Feud would not wait for him to heal."
)


def build_novel_state() -> NovelState:
    """A five-chapter novel with one completed and one active arc."""
    chapters = [
        Chapter(
            id="ch-1",
            number=1,
            title="The Outer Sect",
            content="Han Xiao arrived at the Azure Cloud Sect gates at dawn. " * 20,
            summary=(
                "Han Xiao arrived at the Azure Cloud Sect and met Mei Lin at the gates. "
                "The elders revealed the rules of the outer sect trials."
            ),
        ),
        Chapter(
            id="ch-2",
            number=2,
            title="First Trial",
            content="The first trial began in the bamboo forest. " * 20,
            summary=(
                "Han Xiao defeated Wang Tian in the first trial of the outer sect. "
                "The Wang clan swore revenge for the humiliation."
            ),
        ),
        Chapter(
            id="ch-3",
            number=3,
            title="The Missing Elder",
            content="Elder Zhao did not return from the valley. " * 20,
            summary=(
                "Han Xiao discovered that Elder Zhao had been killed near Crimson Valley. "
                "He broke through to Foundation Establishment after the trials ended."
            ),
            logic_audit=LogicAudit(
                starting_value="Safe within the sect",
                the_friction="The elder's death",
                the_choice="Investigate the valley",
                resulting_value="Marked by the killers",
                causality_type="Therefore",
            ),
        ),
        Chapter(
            id="ch-4",
            number=4,
            title="Into the Valley",
            content="The road into Crimson Valley was lined with bones. " * 20,
            summary="Han Xiao and Mei Lin escaped an ambush by the Wang clan outside Crimson Valley.",
        ),
        Chapter(
            id="ch-5",
            number=5,
            title="Mist and Banners",
            content=("Wind moved through the pines above the valley floor. " * 20)
            + CHAPTER_FIVE_ENDING,
            summary="Han Xiao confronted the Wang clan scouts and learned where their camp lies.",
            logic_audit=LogicAudit(
                starting_value="Hunted",
                the_friction="The Wang clan arrives in force",
                the_choice="Stand his ground",
                resulting_value="A confrontation is inevitable",
                causality_type="But",
            ),
        ),
    ]

    characters = [
        Character(
            id="char-han",
            name="Han Xiao",
            is_protagonist=True,
            personality="stubborn, patient, loyal",
            current_cultivation="Foundation Establishment - Late",
            relationships=[Relationship(character_id="char-mei", type="ally")],
            skills=["Azure Flame Palm"],
            items=["Jade Sword", "Spirit Gathering Pill"],
            notes="Sect: Azure Cloud Sect. Also known as: The Valley Ghost.",
            update_history=[
                CharacterUpdate(chapter_number=3, changes=["cultivation"]),
                CharacterUpdate(chapter_number=4, changes=["skills"]),
            ],
        ),
        Character(
            id="char-mei",
            name="Mei Lin",
            personality="calm; sharp-tongued",
            current_cultivation="Qi Condensation - Peak",
            relationships=[
                Relationship(character_id="char-han", type="ally"),
                Relationship(character_id="char-zhao", type="disciple"),
            ],
        ),
        Character(
            id="char-zhao",
            name="Elder Zhao",
            current_cultivation="Core Formation",
            status=CharacterStatus.DECEASED,
        ),
        Character(id="char-wang", name="Wang Tian", current_cultivation=""),
    ]

    arcs = [
        Arc(
            id="arc-1",
            title="Outer Sect Trials",
            description="Survive the outer sect trials and earn a place in the sect.",
            status=ArcStatus.COMPLETED,
            started_at_chapter=1,
            ended_at_chapter=3,
            checklist=[
                ArcChecklistItem(label="Pass the first trial", completed=True),
                ArcChecklistItem(label="Find a master", completed=False),
            ],
        ),
        Arc(
            id="arc-2",
            title="Crimson Valley",
            description="Uncover who killed Elder Zhao.",
            status=ArcStatus.ACTIVE,
            started_at_chapter=4,
        ),
    ]

    threads = [
        StoryThread(
            id="thread-feud",
            title="Blood Feud with the Wang Clan",
            type="conflict",
            priority=ThreadPriority.CRITICAL,
            description="The Wang clan seeks revenge on Han Xiao for humiliating Wang Tian.",
            introduced_chapter=2,
            chapters_involved=[2, 4, 5],
            progression_notes=[
                ThreadProgressionNote(chapter_number=4, note="Ambush outside the valley"),
            ],
        ),
        StoryThread(
            id="thread-herb",
            title="Find the Spirit Herb",
            type="quest",
            priority=ThreadPriority.HIGH,
            description="Mei Lin needs a spirit herb from the valley to heal her meridians.",
            introduced_chapter=4,
            chapters_involved=[4],
        ),
        StoryThread(
            id="thread-elder",
            title="The Missing Elder",
            type="mystery",
            status=ThreadStatus.RESOLVED,
            description="Where did Elder Zhao go?",
            introduced_chapter=1,
            resolved_chapter=3,
            chapters_involved=[1, 3],
        ),
        StoryThread(
            id="thread-jade",
            title="The Jade Sword's Voice",
            type="mystery",
            description="The sword whispers at night.",
            introduced_chapter=4,
            chapters_involved=[4],
        ),
    ]

    return NovelState(
        id="novel-1",
        title="Ascension of the Valley Ghost",
        genre="Xianxia",
        realms=[Realm(id="realm-mortal", name="Mortal Realm")],
        current_realm_id="realm-mortal",
        territories=[
            Territory(id="terr-valley", name="Crimson Valley", realm_id="realm-mortal"),
        ],
        world_bible=[
            WorldEntry(
                id="wb-sect",
                title="Azure Cloud Sect",
                category=WorldCategory.SECTS,
                content="A righteous sect. Han Xiao is an outer disciple.",
            ),
            WorldEntry(
                id="wb-levels",
                title="Cultivation Realms",
                category=WorldCategory.POWER_LEVELS,
                content="1. Qi Condensation\n2. Foundation Establishment\n3. Core Formation\n4. Nascent Soul",
            ),
        ],
        characters=characters,
        novel_items=[
            NovelItem(id="item-sword", name="Jade Sword", category="Equipment", description="A sword"),
            NovelItem(id="item-pill", name="Spirit Gathering Pill", category="Consumable"),
        ],
        novel_techniques=[
            NovelTechnique(
                id="tech-palm",
                name="Azure Flame Palm",
                category="Core",
                description="A palm strike wreathed in blue fire.",
            ),
        ],
        arcs=arcs,
        chapters=chapters,
        story_threads=threads,
        antagonists=[
            Antagonist(
                id="ant-wang",
                name="Patriarch Wang",
                description="Head of the Wang clan",
                threat_level="high",
                relationships=[AntagonistRelationship(character_id="char-han")],
            ),
        ],
        style_profile=StyleProfile(
            metrics=StyleMetrics(
                average_sentence_length=14.25,
                tone="grim",
                pacing_pattern="fast",
                dialogue_ratio=0.3,
            ),
            style_guidelines=["Short sentences in combat", "Sensory detail", "Sparse dialogue", "No"],
        ),
        updated_at=datetime(2024, 5, 1, 12, 0, 0),
    )


def search_hit(entity_id: str, name: str, entity_type: str, score: float, **metadata):
    return SemanticSearchResult(
        id=entity_id, name=name, type=entity_type, score=score, metadata=metadata
    )


# Fixtures


@pytest.fixture(autouse=True)
def _restore_environ():
    """Restore os.environ after each test (load_dotenv writes to it directly)."""
    saved = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def novel_state() -> NovelState:
    return build_novel_state()


@pytest.fixture
def empty_state() -> NovelState:
    return NovelState(id="novel-empty", title="Untitled")


@pytest.fixture
def config() -> Config:
    """Default config without file logging."""
    return Config(logging=LoggingConfig(log_to_file=False))


@pytest.fixture
def tokenizer() -> Tokenizer:
    return Tokenizer()


@pytest.fixture
def search_results() -> SearchResults:
    return SearchResults(
        characters=[
            search_hit("char-mei", "Mei Lin", "character", 0.9, cultivation="Qi Condensation - Peak"),
        ],
        world_entries=[
            search_hit("wb-levels", "Cultivation Realms", "world_entry", 0.8, category="PowerLevels"),
        ],
        plot_elements=[
            search_hit(
                "thread-feud", "Blood Feud with the Wang Clan", "story_thread", 0.75,
                status="active", priority="critical",
            ),
        ],
        power_elements=[
            search_hit("tech-palm", "Azure Flame Palm", "technique", 0.7, category="Core"),
        ],
    )


@pytest.fixture
def fake_search(search_results) -> FakeSearchService:
    return FakeSearchService(search_results)
