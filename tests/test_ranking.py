"""
Tests for score normalization and weighted Reciprocal Rank Fusion.
"""

import pytest

from historian.configs.constants import OVERLAP_BONUS
from historian.models import HybridSearchParams, LexicalMatch, VectorSearchResult
from historian.search.fusion import overlap_boost, reciprocal_rank_fusion
from historian.search.normalize import normalize_scores


def vec(change_id: str, score: float) -> VectorSearchResult:
    return VectorSearchResult(id=f"emb-{change_id}", change_id=change_id, score=score, distance=1 - score)


def lex(change, rank: int) -> LexicalMatch:
    return LexicalMatch(change=change, rank=rank)


class TestNormalizeScores:
    """Tests for min-max normalization."""

    def test_min_max_scaling(self):
        result = normalize_scores([("a", 0.9), ("b", 0.5), ("c", 0.7)])

        assert [r.normalized_score for r in result.results] == pytest.approx([1.0, 0.0, 0.5])
        assert result.min == 0.5
        assert result.max == 0.9

    def test_bounds(self):
        """Every normalized score is within [0, 1]."""
        result = normalize_scores([("a", -3.0), ("b", 12.5), ("c", 4.2), ("d", 0.0)])

        assert all(0.0 <= r.normalized_score <= 1.0 for r in result.results)

    def test_equal_scores_all_one(self):
        """A single distinct score normalizes to 1 for every entry."""
        result = normalize_scores([("a", 0.4), ("b", 0.4)])

        assert [r.normalized_score for r in result.results] == [1.0, 1.0]

    def test_single_entry_is_one(self):
        assert normalize_scores([("a", 0.01)]).results[0].normalized_score == 1.0

    def test_threshold_drops_low_entries(self):
        """Entries below the floor are removed, order preserved."""
        result = normalize_scores([("a", 0.9), ("b", 0.5), ("c", 0.8)], min_threshold=0.3)

        assert [r.id for r in result.results] == ["a", "c"]

    def test_empty_input(self):
        result = normalize_scores([])

        assert result.results == []
        assert result.min == 0.0
        assert result.max == 0.0

    def test_raw_score_preserved(self):
        assert normalize_scores([("a", 2.0), ("b", 4.0)]).results[1].score == 4.0


class TestOverlapBoost:
    """Tests for the consensus bonus."""

    @pytest.mark.parametrize(
        "nv,nk",
        [(0.0, 0.0), (1.0, 1.0), (0.5, 0.5), (1.0, 0.0), (0.3, 0.9), (2.0, 3.0)],
    )
    def test_bounded(self, nv, nk):
        """The multiplier always lies in [1.0, 1.2]."""
        assert 1.0 <= overlap_boost(nv, nk) <= 1.0 + OVERLAP_BONUS

    def test_full_agreement_is_max(self):
        assert overlap_boost(1.0, 1.0) == pytest.approx(1.2)

    def test_scales_with_product(self):
        assert overlap_boost(0.5, 0.5) == pytest.approx(1.05)


class TestReciprocalRankFusion:
    """Tests for reciprocal_rank_fusion."""

    def test_dual_leg_candidate_ranks_first(self, make_change):
        """Scenario: b appears in both legs and beats a's higher raw vector score."""
        b, c = make_change("b"), make_change("c")
        vector = [vec("a", 0.9), vec("b", 0.5)]
        keyword = [lex(b, 1), lex(c, 2)]
        params = HybridSearchParams(vector_weight=0.6, keyword_weight=0.4)

        ranked = reciprocal_rank_fusion(
            vector,
            keyword,
            params,
            normalize_scores([("a", 0.9), ("b", 0.5)], 0.3),
            normalize_scores([("b", 1.0), ("c", 2.0)], 0.1),
            k=60,
        )

        assert [r.change_id for r in ranked] == ["b", "a", "c"]
        assert ranked[0].fusion_score == pytest.approx(0.6 / 62 + 0.4 / 61)
        assert ranked[1].fusion_score == pytest.approx(0.6 / 61)
        assert ranked[2].fusion_score == pytest.approx(0.4 / 62)

    def test_provenance_recorded(self, make_change):
        b = make_change("b")

        ranked = reciprocal_rank_fusion([vec("b", 0.7)], [lex(b, 1)], HybridSearchParams())

        candidate = ranked[0]
        assert candidate.vector_rank == 1
        assert candidate.keyword_rank == 1
        assert candidate.vector_score == 0.7
        assert candidate.keyword_score == 1.0
        assert candidate.in_both_legs

    def test_overlap_bonus_applied(self, make_change):
        """Strong agreement multiplies the fused score by up to 20%."""
        b = make_change("b")
        normalized = normalize_scores([("b", 0.9)])

        ranked = reciprocal_rank_fusion(
            [vec("b", 0.9)],
            [lex(b, 1)],
            HybridSearchParams(vector_weight=1.0, keyword_weight=1.0),
            normalized,
            normalize_scores([("b", 1.0)]),
            k=60,
        )

        assert ranked[0].fusion_score == pytest.approx((2 / 61) * 1.2)

    def test_single_leg_gets_only_its_contribution(self, make_change):
        ranked = reciprocal_rank_fusion([], [lex(make_change("c"), 1)], HybridSearchParams(keyword_weight=0.5))

        assert ranked[0].fusion_score == pytest.approx(0.5 / 61)
        assert ranked[0].vector_rank is None

    def test_vector_weight_monotonic(self):
        """Raising vector weight never lowers a vector-only candidate's score."""
        low = reciprocal_rank_fusion([vec("a", 0.8)], [], HybridSearchParams(vector_weight=0.2))
        high = reciprocal_rank_fusion([vec("a", 0.8)], [], HybridSearchParams(vector_weight=0.9))

        assert high[0].fusion_score >= low[0].fusion_score > 0

    def test_zero_weight_keeps_candidate(self):
        """A zero-weight leg still contributes candidates, with no score."""
        ranked = reciprocal_rank_fusion([vec("a", 0.8)], [], HybridSearchParams(vector_weight=0.0))

        assert ranked[0].change_id == "a"
        assert ranked[0].fusion_score == 0.0

    def test_ties_keep_insertion_order(self, make_change):
        """Equal scores keep first-seen order (stable sort)."""
        x, y = make_change("x"), make_change("y")
        params = HybridSearchParams(vector_weight=0.5, keyword_weight=0.5)

        ranked = reciprocal_rank_fusion([vec("x", 0.9)], [lex(y, 1)], params)

        assert [r.change_id for r in ranked] == ["x", "y"]

    def test_sorted_descending(self, make_change):
        changes = [make_change(f"k{i}") for i in range(5)]
        vector = [vec(f"v{i}", 1 - i / 10) for i in range(5)]

        ranked = reciprocal_rank_fusion(vector, [lex(c, i + 1) for i, c in enumerate(changes)], HybridSearchParams())

        scores = [r.fusion_score for r in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_deterministic(self, make_change):
        b, c = make_change("b"), make_change("c")
        args = ([vec("a", 0.9), vec("b", 0.5)], [lex(b, 1), lex(c, 2)], HybridSearchParams())

        first = [r.change_id for r in reciprocal_rank_fusion(*args)]
        second = [r.change_id for r in reciprocal_rank_fusion(*args)]

        assert first == second
