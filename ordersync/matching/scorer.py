"""
String similarity behind a small interface so the algorithm can be swapped
without touching the matchers.
"""
from typing import Iterable, Protocol

from rapidfuzz import fuzz
from rapidfuzz.utils import default_process


# Two tokens count as the same word at this fuzz.ratio or above
TOKEN_MATCH_CUTOFF = 80.0


class Scorer(Protocol):
    def score(self, query: str, text: str) -> float:
        """Similarity in [0, 1]; 1 means identical."""
        ...


class TokenSetScorer:
    """Order-insensitive token similarity; a query contained in the text scores 1."""

    def score(self, query: str, text: str) -> float:
        if not query or not text:
            return 0.0
        return fuzz.token_set_ratio(query, text, processor=default_process) / 100.0


def token_coverage(query: str, text: str, ignore: Iterable[str] = ()) -> float:
    """
    Share of query tokens that have a close counterpart among the text tokens.

    Tokens in ignore are left out of the count unless nothing else remains,
    so "red hoodie" fully covers "Hoodie" when "red" is ignored.
    """
    query_tokens = default_process(query or "").split()
    text_tokens = default_process(text or "").split()
    if not query_tokens or not text_tokens:
        return 0.0

    skipped = set(ignore)
    content = [t for t in query_tokens if t not in skipped] or query_tokens
    matched = sum(
        1 for token in content
        if any(fuzz.ratio(token, word) >= TOKEN_MATCH_CUTOFF for word in text_tokens)
    )
    return matched / len(content)


default_scorer = TokenSetScorer()
