"""
Token counting for prompt budgeting.

The default provider is a character-ratio estimate (4 characters per token),
which is deterministic and needs no model files. The tiktoken provider gives
OpenAI-compatible counts when exact budgets matter.
"""

from functools import lru_cache

import tiktoken

from novel_memory.config import TokenizerConfig


class Tokenizer:
    """
    Token counter used for every budget decision.

    Usage:
        tokenizer = Tokenizer()
        count = tokenizer.count_tokens("Han Xiao stepped into the hall.")
        clipped = tokenizer.truncate_to_tokens(long_text, 500)
    """

    def __init__(self, config: TokenizerConfig | None = None):
        """
        Initialize tokenizer with configuration.

        Args:
            config: Optional tokenizer configuration. Uses defaults if not provided.
        """
        self.config = config or TokenizerConfig()
        self._encoder: tiktoken.Encoding | None = None

    @property
    def encoder(self) -> tiktoken.Encoding:
        """Lazy-load the tiktoken encoding."""
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding(self.config.encoding)
        return self._encoder

    def count_tokens(self, text: str) -> int:
        """
        Count tokens with the configured provider.

        Args:
            text: Text to count tokens for

        Returns:
            Token count, 0 for empty text
        """
        if not text:
            return 0

        if self.config.provider == "approximate":
            return self.estimate_tokens(text)

        return len(self.encoder.encode(text))

    def estimate_tokens(self, text: str) -> int:
        """
        Fast approximate token count using the configured character ratio.

        Args:
            text: Text to estimate tokens for

        Returns:
            Approximate token count
        """
        if not text:
            return 0
        return int(len(text) / self.config.chars_per_token)

    def truncate_to_tokens(self, text: str, max_tokens: int) -> str:
        """
        Cut text so that it counts at most ``max_tokens`` tokens.

        Args:
            text: Text to truncate
            max_tokens: Token limit

        Returns:
            Prefix of the text within the limit
        """
        if max_tokens <= 0 or not text:
            return ""
        if self.count_tokens(text) <= max_tokens:
            return text

        if self.config.provider == "approximate":
            return text[: int(max_tokens * self.config.chars_per_token)]

        return self.encoder.decode(self.encoder.encode(text)[:max_tokens])


@lru_cache(maxsize=1)
def get_default_tokenizer() -> Tokenizer:
    """Shared tokenizer used when a component is not given one."""
    return Tokenizer()
