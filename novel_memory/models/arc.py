"""Episodic arc memory records (mid-term tier)."""

from datetime import datetime

from pydantic import BaseModel, Field

from novel_memory.models.novel import ArcStatus, CharacterStatus


class ArcRelationship(BaseModel):
    """Relationship of a character as seen within an arc."""

    target_name: str
    type: str
    change: str | None = None


class ArcCharacterState(BaseModel):
    """Snapshot of a character over the span of an arc."""

    character_id: str
    character_name: str
    cultivation: str = ""
    status: CharacterStatus = CharacterStatus.ALIVE
    location: str | None = None
    emotional_state: str | None = None
    major_changes: list[str] = Field(default_factory=list)
    relationships: list[ArcRelationship] = Field(default_factory=list)


class ArcThreadState(BaseModel):
    """How a story thread moved during an arc."""

    thread_id: str
    thread_title: str
    type: str
    status_at_arc_start: str
    status_at_arc_end: str
    progression_during_arc: list[str] = Field(default_factory=list)
    is_resolved: bool = False


class ConflictChanges(BaseModel):
    introduced: list[str] = Field(default_factory=list)
    resolved: list[str] = Field(default_factory=list)
    escalated: list[str] = Field(default_factory=list)


class ArcMemorySummary(BaseModel):
    """
    Derived memory of one arc.

    Recomputed from the novel state on every request and never cached;
    timestamps mirror the state's own update time.
    """

    arc_id: str
    arc_title: str
    novel_id: str
    start_chapter: int
    end_chapter: int | None = None
    status: ArcStatus
    summary: str
    key_events: list[str] = Field(default_factory=list)
    character_states: list[ArcCharacterState] = Field(default_factory=list)
    thread_states: list[ArcThreadState] = Field(default_factory=list)
    conflict_changes: ConflictChanges = Field(default_factory=ConflictChanges)
    unresolved_elements: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
