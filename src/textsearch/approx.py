"""
Approximate token lookup through a small inverted file over character q-grams.

The index maps every padded q-gram to the ids of the tokens that contain it;
candidates for a query are the tokens sharing the most q-grams with it, and
the final answer is the nearest candidate under a string distance.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Callable, Sequence

from rapidfuzz.distance import Levenshtein

from textsearch.errors import InvalidParameter

# Number of best q-gram overlaps re-ranked with the exact distance
DEFAULT_CANDIDATES = 32


def padded_qgrams(token: str, q: int = 3) -> list[str]:
    """Character q-grams of token with start/end markers."""
    text = f"\x02{token}\x03"
    if len(text) <= q:
        return [text]
    return [text[i : i + q] for i in range(len(text) - q + 1)]


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insertion, deletion and substitution costs."""
    return Levenshtein.distance(a, b)


def levenshtein_distance(a: str, b: str) -> float:
    """Levenshtein distance normalized by the longest length, in [0, 1]."""
    return Levenshtein.normalized_distance(a, b)


def jaccard_distance(a: str, b: str) -> float:
    """1 - Jaccard similarity of the padded 3-gram sets of a and b."""
    qa, qb = set(padded_qgrams(a)), set(padded_qgrams(b))
    union = qa | qb
    if not union:
        return 0.0
    return 1.0 - len(qa & qb) / len(union)


class QgramIndex:
    """
    Inverted file from q-gram to token ids.

    Args:
        tokens: Tokens indexed by position (position == token id).
        q: q-gram size.
    """

    def __init__(self, tokens: Sequence[str], q: int = 3):
        if q < 1:
            raise InvalidParameter(f"q must be >= 1, got {q}")
        self.q = q
        self.tokens = list(tokens)
        self._postings: dict[str, list[int]] = defaultdict(list)
        for token_id, token in enumerate(self.tokens):
            for qgram in set(padded_qgrams(token, q)):
                self._postings[qgram].append(token_id)

    def __len__(self) -> int:
        return len(self.tokens)

    def candidates(self, token: str, limit: int = DEFAULT_CANDIDATES) -> list[int]:
        """Ids of the tokens sharing the most q-grams with token (ties by lower id)."""
        counts: Counter[int] = Counter()
        for qgram in set(padded_qgrams(token, self.q)):
            counts.update(self._postings.get(qgram, ()))
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [token_id for token_id, _ in ranked[:limit]]

    def nearest(
        self,
        token: str,
        max_distance: float,
        distance_fn: Callable[[str, str], float] = levenshtein_distance,
        limit: int = DEFAULT_CANDIDATES,
    ) -> int | None:
        """
        Id of the nearest indexed token within max_distance, or None.

        Ties in distance are broken by lower token id.
        """
        best_id: int | None = None
        best_distance = float("inf")
        for token_id in self.candidates(token, limit):
            d = distance_fn(token, self.tokens[token_id])
            if d <= max_distance and (d < best_distance or (d == best_distance and token_id < best_id)):
                best_id, best_distance = token_id, d
        return best_id


__all__ = [
    "QgramIndex",
    "padded_qgrams",
    "levenshtein",
    "levenshtein_distance",
    "jaccard_distance",
    "DEFAULT_CANDIDATES",
]
