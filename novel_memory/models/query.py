"""Results of analysing chapter text for retrieval queries."""

from enum import Enum

from pydantic import BaseModel, Field


class EntityType(str, Enum):
    CHARACTER = "character"
    LOCATION = "location"
    ITEM = "item"
    TECHNIQUE = "technique"
    SECT = "sect"
    EVENT = "event"
    UNKNOWN = "unknown"


class QueryType(str, Enum):
    CHARACTER = "character"
    RELATIONSHIP = "relationship"
    WORLD = "world"
    POWER = "power"
    PLOT = "plot"
    GENERAL = "general"


class QueryPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ExtractedEntity(BaseModel):
    """Named entity found in the analysis window."""

    name: str
    type: EntityType
    confidence: float = Field(ge=0.0, le=1.0)
    context: str = ""


class GeneratedQuery(BaseModel):
    """Natural-language query for semantic search."""

    query: str
    type: QueryType
    priority: QueryPriority
    reason: str = ""


class QueryAnalysisResult(BaseModel):
    """Entities, queries and keywords derived from recent chapter text."""

    entities: list[ExtractedEntity] = Field(default_factory=list)
    queries: list[GeneratedQuery] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    source_description: str = ""
