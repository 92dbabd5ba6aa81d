"""Size metrics used to keep a thread within the context budget.

The normal metric counts tokens with a tiktoken encoding. When no encoding
is configured, or it cannot be loaded, the metric degrades to character
length so the bot keeps answering with a cruder budget.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

SizeMetric = Callable[[str], int]


def char_length(text: str) -> int:
    """Degraded metric: raw content length."""
    return len(text)


def token_counter(encoding_name: str) -> SizeMetric:
    """Return a metric counting tokens under *encoding_name*.

    Args:
        encoding_name: tiktoken encoding (e.g. ``"cl100k_base"``). An empty
            name selects character length.

    Returns:
        A callable mapping text to its size. Special-token markers in the
        text are counted as ordinary text rather than rejected.
    """
    if not encoding_name:
        logger.info("No tokenizer configured, budgeting by character length")
        return char_length

    import tiktoken

    try:
        encoding = tiktoken.get_encoding(encoding_name)
    except (ValueError, OSError):
        logger.warning(
            "Tokenizer %r unavailable, budgeting by character length",
            encoding_name,
            exc_info=True,
        )
        return char_length

    def count(text: str) -> int:
        return len(encoding.encode(text, disallowed_special=()))

    return count
