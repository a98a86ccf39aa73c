"""
Hybrid Rank Fusion

Combines the vector and lexical rankings using weighted Reciprocal Rank
Fusion, with a consensus bonus for candidates both legs agree on.
"""

from typing import Optional

from historian.configs.constants import OVERLAP_BONUS, SEARCH_DEFAULTS
from historian.models import (
    HybridSearchParams,
    LexicalMatch,
    NormalizedScores,
    RankedCandidate,
    VectorSearchResult,
)


def overlap_boost(normalized_vector: float, normalized_keyword: float) -> float:
    """
    Multiplier for a candidate found by both legs, in [1.0, 1.0 + OVERLAP_BONUS].

    Scales with the product of the two normalized scores, so agreement on
    strong matches is rewarded more than mere presence in both lists.
    """
    agreement = max(0.0, min(1.0, normalized_vector * normalized_keyword))
    return 1.0 + OVERLAP_BONUS * agreement


def reciprocal_rank_fusion(
    vector_results: list[VectorSearchResult],
    keyword_results: list[LexicalMatch],
    params: HybridSearchParams,
    normalized_vector: Optional[NormalizedScores] = None,
    normalized_keyword: Optional[NormalizedScores] = None,
    k: int = SEARCH_DEFAULTS["rrf_k"],
) -> list[RankedCandidate]:
    """
    Fuse two rankings with weighted Reciprocal Rank Fusion.

    RRF score = sum(weight / (k + rank)) over the lists a candidate appears in

    Every retrieved candidate contributes by rank. Normalized scores only
    feed the overlap bonus; an entry dropped by the normalizer's floor
    counts as 0 there, so it earns no bonus.

    Args:
        vector_results: Vector leg, best first
        keyword_results: Lexical leg, best first
        params: Leg weights
        normalized_vector: Normalized vector scores after the floor
        normalized_keyword: Normalized lexical scores after the floor
        k: RRF smoothing constant (default 60)

    Returns:
        Candidates sorted by fused score, ties kept in first-seen order
    """
    vector_norm = normalized_vector.as_map() if normalized_vector else {}
    keyword_norm = normalized_keyword.as_map() if normalized_keyword else {}

    candidates: dict[str, RankedCandidate] = {}

    for rank, result in enumerate(vector_results, start=1):
        candidate = candidates.get(result.change_id)
        if candidate is None:
            candidate = candidates[result.change_id] = RankedCandidate(change_id=result.change_id)
        elif candidate.vector_rank is not None:
            continue
        candidate.vector_rank = rank
        candidate.vector_score = result.score
        candidate.normalized_vector_score = vector_norm.get(result.change_id, 0.0)
        candidate.fusion_score += params.vector_weight / (k + rank)

    for rank, match in enumerate(keyword_results, start=1):
        change_id = match.change.id
        candidate = candidates.get(change_id)
        if candidate is None:
            candidate = candidates[change_id] = RankedCandidate(change_id=change_id)
        elif candidate.keyword_rank is not None:
            continue
        candidate.keyword_rank = rank
        candidate.keyword_score = float(abs(match.rank))
        candidate.normalized_keyword_score = keyword_norm.get(change_id, 0.0)
        candidate.fusion_score += params.keyword_weight / (k + rank)

    for candidate in candidates.values():
        if candidate.in_both_legs:
            candidate.fusion_score *= overlap_boost(
                candidate.normalized_vector_score or 0.0,
                candidate.normalized_keyword_score or 0.0,
            )

    # sorted() is stable, so equal scores keep insertion order
    return sorted(candidates.values(), key=lambda c: c.fusion_score, reverse=True)
