"""
Configuration for Novel Memory.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

ENV_PREFIX = "NOVEL_MEMORY_"


class TokenizerConfig(BaseModel):
    """Token estimation configuration."""

    provider: str = "approximate"  # approximate, tiktoken
    encoding: str = "cl100k_base"
    chars_per_token: float = 4.0


class EmbedderConfig(BaseModel):
    """Query embedder configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "nomic-embed-text"
    base_url: str = "http://localhost:11434"
    api_key: str | None = None
    timeout: float = 60.0


class QdrantConfig(BaseModel):
    """Qdrant connection for the novel entity index."""

    url: str = "http://localhost:6333"
    collection_name: str = "novel_entities"
    use_grpc: bool = False
    timeout: int = 30


class SearchConfig(BaseModel):
    """Per-category limits for semantic search."""

    max_characters: int = 5
    max_world_entries: int = 3
    max_plot_elements: int = 3
    max_power_elements: int = 3
    min_score: float = 0.5


class MemoryConfig(BaseModel):
    """Defaults for the three-tier memory gather."""

    recent_chapters_count: int = 5
    max_arc_memories: int = 3
    max_search_results: int = 5
    token_budget: int = 12000
    compact_format: bool = False
    tier_timeout_seconds: float = 10.0
    lore_timeout_seconds: float = 5.0
    max_default_queries: int = 5
    previous_ending_words: int = 600


class QuickContextConfig(BaseModel):
    """Reduced gather used for previews."""

    recent_chapters_count: int = 3
    max_arc_memories: int = 2
    token_budget: int = 8000
    compact_format: bool = True


class EnhancedContextConfig(BaseModel):
    """Defaults for the memory-enhanced generation context."""

    token_budget: int = 4000
    max_arc_memories: int = 3
    max_search_queries: int = 5
    lore_timeout_seconds: float = 5.0


class QueryAnalyzerConfig(BaseModel):
    """Query analysis configuration."""

    max_queries: int = 8
    window_chars: int = 1000


class BudgetConfig(BaseModel):
    """Percentage of the total token budget per context category."""

    continuity: int = 20
    lore_bible: int = 15
    characters: int = 15
    plot_elements: int = 15
    world_building: int = 10
    power_elements: int = 10
    recent_chapters: int = 10
    style_profile: int = 5


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    tokenizer: TokenizerConfig = Field(default_factory=TokenizerConfig)
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    qdrant: QdrantConfig = Field(default_factory=QdrantConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    quick_context: QuickContextConfig = Field(default_factory=QuickContextConfig)
    enhanced_context: EnhancedContextConfig = Field(default_factory=EnhancedContextConfig)
    query_analyzer: QueryAnalyzerConfig = Field(default_factory=QueryAnalyzerConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Semantic search is optional; when disabled the long-term tier is always empty
    vector_search_enabled: bool = True

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            NOVEL_MEMORY_TOKENIZER_PROVIDER: approximate or tiktoken
            NOVEL_MEMORY_EMBEDDER_PROVIDER: Embedder provider (ollama, openai)
            NOVEL_MEMORY_EMBEDDER_MODEL: Embedder model name
            NOVEL_MEMORY_EMBEDDER_API_KEY: Embedder API key (for OpenAI)
            NOVEL_MEMORY_QDRANT_URL: Qdrant URL
            NOVEL_MEMORY_QDRANT_COLLECTION: Qdrant collection name
            NOVEL_MEMORY_VECTOR_SEARCH_ENABLED: Toggle semantic search
            NOVEL_MEMORY_TOKEN_BUDGET: Default gather budget
            NOVEL_MEMORY_TIER_TIMEOUT: Per-tier deadline in seconds
            NOVEL_MEMORY_LORE_TIMEOUT: Lore synthesis deadline in seconds
            NOVEL_MEMORY_LOG_LEVEL: Log level
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get NOVEL_MEMORY_ prefixed variable with type conversion."""
            value = os.getenv(ENV_PREFIX + key)
            if value is None or value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        memory_defaults = MemoryConfig()

        return cls(
            tokenizer=TokenizerConfig(
                provider=get_env("TOKENIZER_PROVIDER", "approximate"),
                encoding=get_env("TOKENIZER_ENCODING", "cl100k_base"),
                chars_per_token=get_env("TOKENIZER_CHARS_PER_TOKEN", 4.0),
            ),
            embedder=EmbedderConfig(
                provider=get_env("EMBEDDER_PROVIDER", "ollama"),
                model=get_env("EMBEDDER_MODEL", "nomic-embed-text"),
                base_url=get_env("EMBEDDER_BASE_URL", "http://localhost:11434"),
                api_key=get_env("EMBEDDER_API_KEY"),
                timeout=get_env("EMBEDDER_TIMEOUT", 60.0),
            ),
            qdrant=QdrantConfig(
                url=get_env("QDRANT_URL", "http://localhost:6333"),
                collection_name=get_env("QDRANT_COLLECTION", "novel_entities"),
                use_grpc=get_env("QDRANT_USE_GRPC", False),
                timeout=get_env("QDRANT_TIMEOUT", 30),
            ),
            memory=MemoryConfig(
                recent_chapters_count=get_env(
                    "RECENT_CHAPTERS", memory_defaults.recent_chapters_count
                ),
                max_arc_memories=get_env("MAX_ARC_MEMORIES", memory_defaults.max_arc_memories),
                max_search_results=get_env(
                    "MAX_SEARCH_RESULTS", memory_defaults.max_search_results
                ),
                token_budget=get_env("TOKEN_BUDGET", memory_defaults.token_budget),
                compact_format=get_env("COMPACT_FORMAT", memory_defaults.compact_format),
                tier_timeout_seconds=get_env("TIER_TIMEOUT", memory_defaults.tier_timeout_seconds),
                lore_timeout_seconds=get_env("LORE_TIMEOUT", memory_defaults.lore_timeout_seconds),
            ),
            vector_search_enabled=get_env("VECTOR_SEARCH_ENABLED", True),
            logging=LoggingConfig(
                level=get_env("LOG_LEVEL", "INFO"),
                log_to_file=get_env("LOG_TO_FILE", True),
                log_dir=get_env("LOG_DIR", "logs"),
                file_rotation=get_env("LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("LOG_FILE_RETENTION", "7 days"),
                compression=get_env("LOG_COMPRESSION", "zip"),
                serialize=get_env("LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Only sections whose environment values differ from the defaults
        replace the YAML sections.
        """
        config_dict: dict[str, Any] = {}
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}

        env_config = cls.from_env(env_file)
        default = cls()

        final_dict = {**config_dict}
        for section in ("tokenizer", "embedder", "qdrant", "memory", "logging"):
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        if env_config.vector_search_enabled != default.vector_search_enabled:
            final_dict["vector_search_enabled"] = env_config.vector_search_enabled

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()
