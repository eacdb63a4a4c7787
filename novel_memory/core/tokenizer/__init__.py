"""
Token estimation shared by every memory component.

All token counts in a memory context come from one Tokenizer instance so
that tier totals and budget checks agree with each other.
"""

from novel_memory.config import TokenizerConfig
from novel_memory.core.tokenizer.tokenizer import Tokenizer, get_default_tokenizer

__all__ = ["Tokenizer", "TokenizerConfig", "get_default_tokenizer"]
