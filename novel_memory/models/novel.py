"""
Novel state snapshot consumed by the memory engine.

The engine only reads these records. Persistence, editing and the chapter
generation pipeline that produce them live outside this package.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class CharacterStatus(str, Enum):
    """Life status of a character."""

    ALIVE = "Alive"
    DECEASED = "Deceased"
    UNKNOWN = "Unknown"


class ArcStatus(str, Enum):
    """Plot ledger status of an arc."""

    ACTIVE = "active"
    COMPLETED = "completed"


class ThreadStatus(str, Enum):
    """Lifecycle status of a story thread."""

    ACTIVE = "active"
    PAUSED = "paused"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"


class ThreadPriority(str, Enum):
    """Narrative importance of a story thread."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class WorldCategory(str, Enum):
    """World bible categories."""

    GEOGRAPHY = "Geography"
    SECTS = "Sects"
    POWER_LEVELS = "PowerLevels"
    LAWS = "Laws"
    SYSTEMS = "Systems"
    TECHNIQUES = "Techniques"
    OTHER = "Other"


class LogicAudit(BaseModel):
    """Value shift recorded for a chapter."""

    starting_value: str = ""
    the_friction: str = ""
    the_choice: str = ""
    resulting_value: str = ""
    causality_type: str = "Therefore"  # Therefore, But


class Chapter(BaseModel):
    """A generated chapter."""

    id: str
    number: int
    title: str = ""
    content: str = ""
    summary: str = ""
    logic_audit: LogicAudit | None = None


class Relationship(BaseModel):
    """Directed relationship from one character to another."""

    character_id: str
    type: str
    history: str = ""
    impact: str = ""


class CharacterUpdate(BaseModel):
    """Fields of a character that changed in a chapter."""

    chapter_number: int
    changes: list[str] = Field(default_factory=list)


class Character(BaseModel):
    """Character codex entry."""

    id: str
    name: str
    is_protagonist: bool = False
    age: str = ""
    personality: str = ""
    current_cultivation: str = ""
    status: CharacterStatus = CharacterStatus.ALIVE
    relationships: list[Relationship] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    items: list[str] = Field(default_factory=list)
    notes: str = ""
    update_history: list[CharacterUpdate] = Field(default_factory=list)


class ArcChecklistItem(BaseModel):
    """Completion checkpoint of an arc."""

    label: str
    completed: bool = False


class Arc(BaseModel):
    """Plot ledger arc."""

    id: str
    title: str
    description: str = ""
    status: ArcStatus = ArcStatus.ACTIVE
    started_at_chapter: int | None = None
    ended_at_chapter: int | None = None
    checklist: list[ArcChecklistItem] = Field(default_factory=list)


class ThreadProgressionNote(BaseModel):
    """How a thread moved in a given chapter."""

    chapter_number: int
    note: str
    significance: str = "minor"  # minor, major


class StoryThread(BaseModel):
    """Narrative thread tracked across chapters."""

    id: str
    title: str
    type: str = "mystery"  # conflict, quest, enemy, mystery, relationship, promise, ...
    status: ThreadStatus = ThreadStatus.ACTIVE
    priority: ThreadPriority = ThreadPriority.MEDIUM
    description: str = ""
    introduced_chapter: int = 1
    last_updated_chapter: int | None = None
    resolved_chapter: int | None = None
    chapters_involved: list[int] = Field(default_factory=list)
    progression_notes: list[ThreadProgressionNote] = Field(default_factory=list)


class Realm(BaseModel):
    """A world realm the story moves through."""

    id: str
    name: str
    description: str = ""
    status: str = "current"  # current, archived, future


class Territory(BaseModel):
    """Named place inside a realm."""

    id: str
    name: str
    realm_id: str = ""
    type: str = "Neutral"
    description: str = ""


class WorldEntry(BaseModel):
    """World bible entry."""

    id: str
    title: str
    category: WorldCategory = WorldCategory.OTHER
    content: str = ""
    realm_id: str = ""


class NovelItem(BaseModel):
    """Item registry entry."""

    id: str
    name: str
    category: str = "Equipment"  # Treasure, Equipment, Consumable, Essential
    description: str = ""


class NovelTechnique(BaseModel):
    """Technique registry entry."""

    id: str
    name: str
    category: str = "Standard"  # Core, Important, Standard, Basic
    type: str = "Cultivation"
    description: str = ""


class AntagonistRelationship(BaseModel):
    """Link between an antagonist and a character."""

    character_id: str
    relationship_type: str = "enemy"


class Antagonist(BaseModel):
    """Opposing force tracked by the novel."""

    id: str
    name: str
    description: str = ""
    status: str = "active"  # active, defeated, transformed, dormant, hinted
    threat_level: str = "medium"  # low, medium, high, extreme
    relationships: list[AntagonistRelationship] = Field(default_factory=list)


class StyleMetrics(BaseModel):
    """Measured prose characteristics."""

    average_sentence_length: float | None = None
    tone: str = ""
    pacing_pattern: str = ""
    dialogue_ratio: float = 0.0


class StyleProfile(BaseModel):
    """Prose style profile produced by an external analyzer."""

    metrics: StyleMetrics | None = None
    style_guidelines: list[str] = Field(default_factory=list)


class NovelState(BaseModel):
    """Complete read-only snapshot of a novel."""

    id: str
    title: str = ""
    genre: str = ""
    realms: list[Realm] = Field(default_factory=list)
    current_realm_id: str = ""
    territories: list[Territory] = Field(default_factory=list)
    world_bible: list[WorldEntry] = Field(default_factory=list)
    characters: list[Character] = Field(default_factory=list)
    novel_items: list[NovelItem] = Field(default_factory=list)
    novel_techniques: list[NovelTechnique] = Field(default_factory=list)
    arcs: list[Arc] = Field(default_factory=list)
    chapters: list[Chapter] = Field(default_factory=list)
    story_threads: list[StoryThread] = Field(default_factory=list)
    antagonists: list[Antagonist] = Field(default_factory=list)
    style_profile: StyleProfile | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime(1970, 1, 1))

    @property
    def protagonist(self) -> Character | None:
        """First character flagged as protagonist."""
        return next((c for c in self.characters if c.is_protagonist), None)

    @property
    def active_arc(self) -> Arc | None:
        """First arc with active status."""
        return next((a for a in self.arcs if a.status == ArcStatus.ACTIVE), None)

    @property
    def latest_chapter(self) -> Chapter | None:
        return self.chapters[-1] if self.chapters else None

    @property
    def current_chapter_number(self) -> int:
        """Number of the latest chapter, 0 for a novel without chapters."""
        latest = self.latest_chapter
        return latest.number if latest else 0

    def character_by_id(self, character_id: str) -> Character | None:
        return next((c for c in self.characters if c.id == character_id), None)

    def character_by_name(self, name: str) -> Character | None:
        lowered = name.lower()
        return next((c for c in self.characters if c.name.lower() == lowered), None)
