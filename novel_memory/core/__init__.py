"""Pluggable building blocks: token estimation, embeddings, vector search, lore synthesis."""
