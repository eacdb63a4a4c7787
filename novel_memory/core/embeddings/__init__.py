"""
Query embedders for semantic search.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
"""

from novel_memory.core.embeddings.base import Embedder
from novel_memory.core.embeddings.ollama import OllamaEmbedder
from novel_memory.core.embeddings.openai import OpenAIEmbedder

__all__ = [
    "Embedder",
    "OllamaEmbedder",
    "OpenAIEmbedder",
]
