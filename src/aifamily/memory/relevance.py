"""Relevance scoring for memory search.

Two strategies rank candidate memories against a query:

* cosine similarity between embeddings (primary, vector path)
* a token-overlap heuristic over raw text (keyword fallback)

Both produce scores where higher is more relevant. Thresholds and
weights come from RelevanceConfig.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import numpy as np

from aifamily.config import RelevanceConfig


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when the lengths differ or either vector has zero norm.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    # Rounding can push parallel vectors slightly past 1
    return max(-1.0, min(1.0, similarity))


def tokenize(text: str, min_length: int = 3) -> list[str]:
    """Lowercase, split on whitespace, keep tokens of at least min_length chars."""
    return [word for word in text.lower().split() if len(word) >= min_length]


def keyword_relevance(query: str, content: str, config: RelevanceConfig | None = None) -> float:
    """Score how well content matches query by token overlap.

    ``exact`` counts content tokens that are also query tokens; ``partial``
    counts the remaining content tokens that contain, or are contained in,
    some query token. Both are normalized by the number of distinct query
    tokens, and the combined score is capped at 1.0.
    """
    config = config or RelevanceConfig()

    query_words = set(tokenize(query, config.min_token_length))
    if not query_words:
        return 0.0

    exact = 0
    partial = 0
    for word in tokenize(content, config.min_token_length):
        if word in query_words:
            exact += 1
        elif any(word in q or q in word for q in query_words):
            partial += 1

    total = len(query_words)
    score = exact / total + config.partial_match_weight * (partial / total)
    return min(score, 1.0)


def rank(scored: Iterable[tuple[float, object]], threshold: float, limit: int) -> list[tuple[float, object]]:
    """Keep scores above threshold, sort descending, truncate to limit."""
    kept = [pair for pair in scored if pair[0] > threshold]
    kept.sort(key=lambda pair: pair[0], reverse=True)
    return kept[:limit]
