"""Token counting for chunk budgets, backed by tiktoken."""

from typing import Callable, Optional

import tiktoken

from ..logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_ENCODING = "gpt2"

# Encoders are loaded once per encoding name
_encoders: dict[str, "tiktoken.Encoding"] = {}

TokenCounter = Callable[[str], int]


def get_encoder(encoding: str = DEFAULT_ENCODING) -> "tiktoken.Encoding":
    """Get or initialize the tiktoken encoder for ``encoding``."""
    encoder = _encoders.get(encoding)
    if encoder is None:
        logger.debug("Loading tiktoken encoding %s", encoding)
        encoder = tiktoken.get_encoding(encoding)
        _encoders[encoding] = encoder
    return encoder


def count_tokens(text: str, encoding: str = DEFAULT_ENCODING) -> int:
    """Count tokens in text.

    Raises whatever the encoder raises (e.g. ValueError for text containing
    special-token markers); callers decide on a fallback cost.
    """
    return len(get_encoder(encoding).encode(text))


def make_token_counter(encoding: Optional[str] = None) -> TokenCounter:
    """Return a single-argument counter bound to ``encoding``."""
    name = encoding or DEFAULT_ENCODING

    def _count(text: str) -> int:
        return count_tokens(text, name)

    return _count
