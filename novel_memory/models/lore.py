"""
Lore bible: the synthesized source-of-truth snapshot of a novel.

Only the shape is owned here. Building one is delegated to a
LoreBibleBuilder implementation.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class ProtagonistIdentity(BaseModel):
    name: str = ""
    aliases: list[str] = Field(default_factory=list)
    sect: str = ""


class CultivationState(BaseModel):
    realm: str = ""
    stage: str = ""
    foundation_quality: str = ""
    physique: str | None = None


class TechniqueMastery(BaseModel):
    name: str
    mastery_level: str = "Known"
    description: str = ""


class ItemPossession(BaseModel):
    name: str
    category: str = ""
    description: str = ""


class Inventory(BaseModel):
    equipped: list[ItemPossession] = Field(default_factory=list)
    storage_ring: list[ItemPossession] = Field(default_factory=list)


class ProtagonistState(BaseModel):
    identity: ProtagonistIdentity = Field(default_factory=ProtagonistIdentity)
    cultivation: CultivationState = Field(default_factory=CultivationState)
    techniques: list[TechniqueMastery] = Field(default_factory=list)
    inventory: Inventory = Field(default_factory=Inventory)
    emotional_state: str | None = None
    physical_state: str | None = None
    location: str | None = None
    last_updated_chapter: int = 0


class CharacterStateSnapshot(BaseModel):
    id: str
    name: str
    status: str = "Alive"
    cultivation: str = ""
    relationship_to_protagonist: str | None = None
    key_traits: list[str] = Field(default_factory=list)


class WorldStateSnapshot(BaseModel):
    current_realm: str = ""
    current_location: str = ""
    current_situation: str = ""


class PendingPromise(BaseModel):
    id: str
    description: str
    made_in_chapter: int = 0


class NarrativeAnchors(BaseModel):
    last_major_event: str = ""
    last_major_event_chapter: int = 0
    current_objective: str = ""
    active_quests: list[str] = Field(default_factory=list)
    pending_promises: list[PendingPromise] = Field(default_factory=list)


class PowerSystemState(BaseModel):
    current_protagonist_rank: str = ""
    known_level_hierarchy: list[str] = Field(default_factory=list)
    power_gaps: list[str] = Field(default_factory=list)


class ActiveConflict(BaseModel):
    id: str
    description: str
    parties: list[str] = Field(default_factory=list)
    urgency: str = "medium"  # medium, high, critical
    introduced_chapter: int = 1


class KarmaDebt(BaseModel):
    id: str
    target: str
    action: str = ""
    target_status: str = "Unknown"
    consequence: str = ""
    threat_level: str = "minor"  # minor, moderate, severe, existential


class LoreBible(BaseModel):
    """Consolidated state of the story as of a chapter."""

    novel_id: str = ""
    as_of_chapter: int = 0
    protagonist: ProtagonistState = Field(default_factory=ProtagonistState)
    major_characters: list[CharacterStateSnapshot] = Field(default_factory=list)
    world_state: WorldStateSnapshot = Field(default_factory=WorldStateSnapshot)
    narrative_anchors: NarrativeAnchors = Field(default_factory=NarrativeAnchors)
    power_system: PowerSystemState = Field(default_factory=PowerSystemState)
    active_conflicts: list[ActiveConflict] = Field(default_factory=list)
    karma_debts: list[KarmaDebt] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=lambda: datetime(1970, 1, 1))
    version: int = 1

    @classmethod
    def empty(cls) -> "LoreBible":
        """Fallback bible used when synthesis fails or times out."""
        return cls()

    def is_empty(self) -> bool:
        return not self.protagonist.identity.name and self.as_of_chapter == 0
