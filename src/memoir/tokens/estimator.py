"""Character-based token estimation for context budgeting."""

from __future__ import annotations

import math

from memoir.models.chunk import ChunkHeader

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Estimate tokens as ``ceil(len(text) / chars_per_token)``. Empty text is 0."""
    return math.ceil(len(text) / chars_per_token)


class TokenEstimator:
    """
    Size guidance for the query tools.

    Estimates are deliberately coarse: they only need to tell an agent whether
    an expansion is cheap or should be previewed or delegated first.
    """

    # A summary is taken to be about 5% of the content it stands for.
    SUMMARY_EXPANSION_FACTOR = 20
    MIN_EXPANDED_CHARS = 2_000

    def __init__(self, chars_per_token: int = CHARS_PER_TOKEN) -> None:
        self.chars_per_token = chars_per_token

    def estimate(self, text: str) -> int:
        return estimate_tokens(text, self.chars_per_token)

    def estimate_expansion(self, summary: str | None) -> int:
        """Guess the full-expansion size of a search hit from its summary alone."""
        full_chars = max(len(summary or "") * self.SUMMARY_EXPANSION_FACTOR, self.MIN_EXPANDED_CHARS)
        return math.ceil(full_chars / self.chars_per_token)

    def estimate_header(self, header: ChunkHeader) -> int:
        """Estimate the full-expansion size of a chunk from its header columns."""
        return math.ceil((header.content_chars + len(header.summary or "")) / self.chars_per_token)
