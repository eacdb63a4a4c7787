"""
Novel Memory FastAPI Application

A REST API server for the hierarchical novel memory engine.
Every request carries a full novel state snapshot; the server keeps no
novel data between requests.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from novel_memory.config import Config
from novel_memory.core.factory import VectorSearchFactory
from novel_memory.core.lore import StateLoreBibleBuilder
from novel_memory.core.tokenizer import Tokenizer
from novel_memory.models import (
    ArcMemorySummary,
    EnhancedContextOptions,
    MemoryContext,
    MemoryEnhancedContext,
    MemoryGatherOptions,
    NovelState,
    QueryAnalysisResult,
)
from novel_memory.services import MemoryEnhancedContextService, MemoryTierManager
from novel_memory.services.arc_memory import get_relevant_arc_memories
from novel_memory.services.query_analyzer import analyze_chapter_context
from novel_memory.utils.logger import get_logger, setup_logging

# Global service instances
tier_manager: MemoryTierManager | None = None
enhanced_service: MemoryEnhancedContextService | None = None
logger = get_logger(__name__)


# Pydantic models for API
class ContextRequest(BaseModel):
    """Request model for the full three-tier context."""

    state: NovelState
    options: MemoryGatherOptions | None = None
    token_budget: int | None = Field(default=None, ge=1, description="Assembly budget")


class ContextResponse(BaseModel):
    """Assembled context plus the gathered tiers."""

    context: str
    memory: MemoryContext


class QuickContextRequest(BaseModel):
    """Request model for the quick context."""

    state: NovelState
    search_queries: list[str] | None = None


class QuickContextResponse(BaseModel):
    context: str


class EnhancedContextRequest(BaseModel):
    """Request model for the memory-enhanced context."""

    state: NovelState
    options: EnhancedContextOptions | None = None


class AnalyzeQueriesRequest(BaseModel):
    """Request model for query analysis."""

    state: NovelState
    additional_context: str | None = None
    max_queries: int = Field(default=8, ge=1, le=50)


class RelevantArcsRequest(BaseModel):
    """Request model for relevant arc memories."""

    state: NovelState
    current_chapter: int | None = Field(default=None, description="Defaults to the latest chapter")
    max_arcs: int = Field(default=3, ge=0)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    engine_initialized: bool
    vector_search: str
    embedding_model: str
    tokenizer: str


def _require_services() -> tuple[MemoryTierManager, MemoryEnhancedContextService]:
    if tier_manager is None or enhanced_service is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return tier_manager, enhanced_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    global tier_manager, enhanced_service

    # Load configuration from environment or use defaults
    config = Config.from_env()

    setup_logging(
        level=config.logging.level,
        log_to_file=config.logging.log_to_file,
        log_dir=config.logging.log_dir,
        file_rotation=config.logging.file_rotation,
        file_retention=config.logging.file_retention,
        compression=config.logging.compression,
        serialize=config.logging.serialize,
    )

    logger.info("Starting Novel Memory server")
    logger.info(
        f"Configuration: Embedder={config.embedder.provider}/{config.embedder.model}, "
        f"Qdrant={config.qdrant.url}/{config.qdrant.collection_name}, "
        f"vector_search={config.vector_search_enabled}, tokenizer={config.tokenizer.provider}"
    )

    logger.info("Creating semantic search")
    search_service = VectorSearchFactory.create(config)

    tier_manager = MemoryTierManager(
        search_service=search_service,
        lore_builder=StateLoreBibleBuilder(),
        config=config,
        tokenizer=Tokenizer(config.tokenizer),
    )
    enhanced_service = MemoryEnhancedContextService(tier_manager)
    logger.info("Novel Memory engine initialized")

    yield

    logger.info("Shutting down Novel Memory server")
    if search_service is not None:
        await search_service.close()
    tier_manager = None
    enhanced_service = None
    logger.info("Cleanup complete")


# Create FastAPI app
app = FastAPI(
    title="Novel Memory API",
    description="Hierarchical memory retrieval and context budgeting for long-form novel generation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    if tier_manager is None:
        return HealthResponse(
            status="initializing",
            engine_initialized=False,
            vector_search="unknown",
            embedding_model="unknown",
            tokenizer="unknown",
        )

    config = tier_manager.config
    search = tier_manager.search_service
    if search is None:
        vector_search = "disabled"
    else:
        vector_search = "ready" if await search.is_ready() else "unavailable"

    return HealthResponse(
        status="healthy",
        engine_initialized=True,
        vector_search=vector_search,
        embedding_model=f"{config.embedder.model} ({config.embedder.provider})",
        tokenizer=config.tokenizer.provider,
    )


@app.post("/context", response_model=ContextResponse)
async def gather_context(request: ContextRequest):
    """
    Gather all three memory tiers and assemble them within a token budget.

    Tier failures degrade to empty tiers (listed in ``memory.failed_tiers``)
    rather than failing the request.
    """
    manager, _ = _require_services()

    try:
        options = request.options or manager.default_options()
        memory = await manager.gather_memory_context(request.state, options)
        budget = request.token_budget or options.token_budget
        context = manager.assemble_context_with_budget(memory, budget)
        return ContextResponse(context=context, memory=memory)
    except Exception as e:
        logger.error(f"Error gathering context: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.post("/context/quick", response_model=QuickContextResponse)
async def quick_context(request: QuickContextRequest):
    """Reduced context for previews (fewer chapters and arcs, compact lore bible)."""
    manager, _ = _require_services()

    try:
        context = await manager.get_quick_context(request.state, request.search_queries)
        return QuickContextResponse(context=context)
    except Exception as e:
        logger.error(f"Error gathering quick context: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.post("/context/enhanced", response_model=MemoryEnhancedContext)
async def enhanced_context(request: EnhancedContextRequest):
    """Lore bible, arc memory and semantic search combined into one memory block."""
    _, service = _require_services()

    try:
        return await service.gather(request.state, request.options)
    except Exception as e:
        logger.error(f"Error gathering enhanced context: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.post("/queries/analyze", response_model=QueryAnalysisResult)
async def analyze_queries(request: AnalyzeQueriesRequest):
    """Extract entities and keywords from the story's end and generate search queries."""
    manager, _ = _require_services()

    try:
        return analyze_chapter_context(
            request.state,
            additional_context=request.additional_context,
            max_queries=request.max_queries,
            window_chars=manager.config.query_analyzer.window_chars,
        )
    except Exception as e:
        logger.error(f"Error analyzing queries: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.post("/arcs/relevant", response_model=list[ArcMemorySummary])
async def relevant_arcs(request: RelevantArcsRequest):
    """Arc memories most useful for the next chapter, active arc first."""
    _require_services()

    try:
        current = request.current_chapter
        if current is None:
            current = request.state.current_chapter_number
        return get_relevant_arc_memories(request.state, current, request.max_arcs)
    except Exception as e:
        logger.error(f"Error building arc memories: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e
