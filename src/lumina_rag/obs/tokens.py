"""Character-based token estimation for usage accounting."""

from __future__ import annotations

import math

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token cost as one token per four characters, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)
