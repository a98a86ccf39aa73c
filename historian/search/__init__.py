"""
Historian Search Module

Hybrid retrieval over change history: query enrichment, vector and
lexical legs, normalization, RRF fusion, reranking, and highlighting.
"""

from historian.search.engine import SearchEngine, SearchSettings
from historian.search.fusion import overlap_boost, reciprocal_rank_fusion
from historian.search.highlights import extract_query_terms, generate_highlights
from historian.search.lexical import prepare_fts_query, symbol_query
from historian.search.normalize import normalize_scores
from historian.search.query_enrichment import (
    enrich_filters,
    extract_file_patterns,
    parse_time_expression,
)
from historian.search.reranker import (
    RerankedResult,
    RerankerDocument,
    RerankerService,
    prepare_document_for_reranking,
)
from historian.search.reranker_backends import (
    CohereReranker,
    HuggingFaceReranker,
    LocalReranker,
    RerankerBackend,
    create_reranker_backend,
    extract_relevance_score,
)

__all__ = [
    # Engine
    "SearchEngine",
    "SearchSettings",
    # Enrichment
    "enrich_filters",
    "extract_file_patterns",
    "parse_time_expression",
    # Ranking
    "normalize_scores",
    "reciprocal_rank_fusion",
    "overlap_boost",
    "prepare_fts_query",
    "symbol_query",
    # Highlights
    "extract_query_terms",
    "generate_highlights",
    # Reranking
    "RerankerService",
    "RerankerDocument",
    "RerankedResult",
    "prepare_document_for_reranking",
    "RerankerBackend",
    "HuggingFaceReranker",
    "CohereReranker",
    "LocalReranker",
    "create_reranker_backend",
    "extract_relevance_score",
]
