"""
Score Normalization

Min-max scaling that puts heterogeneous leg scores on a common [0, 1] band.
"""

from typing import Iterable

from historian.models import NormalizedScore, NormalizedScores


def normalize_scores(items: Iterable[tuple[str, float]], min_threshold: float = 0.0) -> NormalizedScores:
    """
    Min-max normalize (id, score) pairs and drop entries below a floor.

    When every score is equal each entry normalizes to 1, so a uniformly
    scored set is not collapsed to zero.

    Args:
        items: (id, raw score) pairs
        min_threshold: Normalized floor; entries below it are dropped

    Returns:
        NormalizedScores with surviving entries in input order and the raw min/max
    """
    items = list(items)
    if not items:
        return NormalizedScores(results=[], min=0.0, max=0.0)

    scores = [score for _, score in items]
    low, high = min(scores), max(scores)
    spread = high - low

    results = []
    for item_id, score in items:
        normalized = (score - low) / spread if spread > 0 else 1.0
        if normalized >= min_threshold:
            results.append(NormalizedScore(id=item_id, score=score, normalized_score=normalized))

    return NormalizedScores(results=results, min=low, max=high)
