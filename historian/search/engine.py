"""
Hybrid Search Engine

Public entry point for change-history retrieval.

Pipeline:
    query -> enrichment -> (vector leg || lexical leg) -> normalization
          -> RRF fusion -> optional reranking -> hydration + highlights

Either retrieval leg may fail on its own; it degrades to an empty list and
the other leg carries the query. Failures after retrieval (storage faults
during hydration) propagate to the caller.
"""

import asyncio
import time
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from historian.configs import EVENTS, SEARCH_DEFAULTS, get_logger
from historian.configs.constants import PATTERN_SCAN_LIMIT, PATTERN_TOP_N
from historian.events import EventEmitter
from historian.exceptions import (
    ChangeNotFoundError,
    EmbeddingNotFoundError,
    SearchCancelledError,
    ValidationError,
)
from historian.models import (
    ChangeRecord,
    HybridSearchParams,
    LexicalMatch,
    PatternAnalysis,
    RankedCandidate,
    SearchFilters,
    SearchResult,
    TimeRange,
    VectorSearchResult,
)

from .fusion import reciprocal_rank_fusion
from .highlights import extract_query_terms, generate_highlights
from .lexical import prepare_fts_query, symbol_query
from .normalize import normalize_scores
from .query_enrichment import enrich_filters
from .reranker import RerankerDocument, RerankerService, prepare_document_for_reranking

if TYPE_CHECKING:
    from historian.embedding.service import EmbeddingService
    from historian.storage.metadata import MetadataStore
    from historian.storage.vector_store import ChromaVectorStore

logger = get_logger("search.engine")

# Extra lexical matches fetched when results are filtered after the query
FILTER_OVERFETCH = 4


@dataclass
class SearchSettings:
    """Engine-wide search tuning, read from the `search` config section."""

    vector_weight: float = SEARCH_DEFAULTS["vector_weight"]
    keyword_weight: float = SEARCH_DEFAULTS["keyword_weight"]
    rrf_k: int = SEARCH_DEFAULTS["rrf_k"]
    rerank_top_k: int = SEARCH_DEFAULTS["rerank_top_k"]
    max_results: int = SEARCH_DEFAULTS["max_results"]
    min_vector_score: float = SEARCH_DEFAULTS["min_vector_score"]
    min_keyword_score: float = SEARCH_DEFAULTS["min_keyword_score"]

    @classmethod
    def from_config(cls, search_config: Optional[dict] = None) -> "SearchSettings":
        search_config = search_config or {}
        known = {k: v for k, v in search_config.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def default_params(self) -> HybridSearchParams:
        return HybridSearchParams(
            vector_weight=self.vector_weight,
            keyword_weight=self.keyword_weight,
            rerank_top_k=self.rerank_top_k,
        )


class SearchEngine:
    """
    Hybrid vector + lexical search over one workspace's change history.

    All collaborators are injected; the engine holds no global state.
    """

    def __init__(
        self,
        metadata_store: "MetadataStore",
        vector_store: "ChromaVectorStore",
        embedding_service: "EmbeddingService",
        workspace_id: str,
        reranker: Optional[RerankerService] = None,
        emitter: Optional[EventEmitter] = None,
        settings: Optional[SearchSettings] = None,
    ):
        self.metadata_store = metadata_store
        self.vector_store = vector_store
        self.embedding_service = embedding_service
        self.workspace_id = workspace_id
        self.reranker = reranker or RerankerService()
        self.emitter = emitter or EventEmitter()
        self.settings = settings or SearchSettings()

    # --- Reranker control ---

    def set_reranker_enabled(self, enabled: bool, api_key: Optional[str] = None) -> None:
        if api_key:
            self.reranker.update_config(api_key=api_key)
        self.reranker.set_enabled(enabled)

    def update_reranker_config(self, **changes) -> None:
        self.reranker.update_config(**changes)

    # --- Search ---

    async def search(
        self,
        query: str,
        filters: Optional[SearchFilters] = None,
        hybrid_params: Optional[HybridSearchParams] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[SearchResult]:
        """
        Hybrid search for changes matching a natural-language query.

        Args:
            query: Free-text query; time and file hints are extracted from it
            filters: Explicit filters, merged with the extracted ones
            hybrid_params: Leg weights and candidate pool size
            cancel_event: Set to abandon the search between stages

        Returns:
            Results ordered by relevance, at most settings.max_results

        Raises:
            SearchCancelledError: cancel_event was set
            HistorianError: Storage failure after retrieval
        """
        start_time = time.time()
        try:
            enriched = enrich_filters(query, filters)
            params = hybrid_params or self.settings.default_params()

            logger.debug(
                f"Starting hybrid search: query='{query[:50]}', "
                f"vector_weight={params.vector_weight}, keyword_weight={params.keyword_weight}, "
                f"reranker={self.reranker.is_enabled()}"
            )

            vector_results, keyword_results = await asyncio.gather(
                self._vector_search(query, params.rerank_top_k, enriched),
                self._keyword_search(query, params.rerank_top_k, enriched),
            )
            logger.debug(f"Retrieved {len(vector_results)} vector, {len(keyword_results)} keyword candidates")
            self._check_cancelled(cancel_event)

            normalized_vector = normalize_scores(
                ((r.change_id, r.score) for r in vector_results),
                self.settings.min_vector_score,
            )
            # Lexical ranks are normalized as if they were scores
            normalized_keyword = normalize_scores(
                ((m.change.id, float(m.rank)) for m in keyword_results),
                self.settings.min_keyword_score,
            )

            ranked = reciprocal_rank_fusion(
                vector_results,
                keyword_results,
                params,
                normalized_vector,
                normalized_keyword,
                k=self.settings.rrf_k,
            )

            if ranked and self.reranker.is_enabled():
                ranked = await self._apply_reranking(query, ranked)
            self._check_cancelled(cancel_event)

            results = self._hydrate(ranked, query, self.settings.max_results)

            elapsed = (time.time() - start_time) * 1000
            logger.debug(f"Search completed in {elapsed:.1f}ms, found {len(results)} results")

            self.emitter.emit(EVENTS["search_completed"], results)
            return results

        except SearchCancelledError:
            logger.info("Search cancelled")
            raise
        except Exception as e:
            logger.error(f"Search failed: {e}")
            raise

    @staticmethod
    def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise SearchCancelledError("Search cancelled")

    async def _vector_search(
        self,
        query: str,
        top_k: int,
        filters: SearchFilters,
    ) -> list[VectorSearchResult]:
        try:
            vector = await self.embedding_service.embed_query(query)
            results = await self.vector_store.search(vector, top_k, filters, workspace_id=self.workspace_id)
            # Symbol and session facets are not stored on vectors
            if filters.symbols or filters.sessions:
                results = [r for r in results if self._record_matches(r.change_id, filters)]
            return results
        except Exception as e:
            logger.warning(f"Vector search failed, falling back to keyword only: {e}")
            return []

    async def _keyword_search(
        self,
        query: str,
        top_k: int,
        filters: SearchFilters,
    ) -> list[LexicalMatch]:
        try:
            expression = prepare_fts_query(query)
            if not expression:
                return []
            if filters.is_empty():
                return self.metadata_store.search_changes(self.workspace_id, expression, top_k)

            matches = self.metadata_store.search_changes(
                self.workspace_id, expression, top_k * FILTER_OVERFETCH
            )
            kept = [m.change for m in matches if filters.matches(m.change)][:top_k]
            # Re-number so ranks stay contiguous positions
            return [LexicalMatch(change=change, rank=i) for i, change in enumerate(kept, start=1)]
        except Exception as e:
            logger.warning(f"Keyword search failed: {e}")
            return []

    def _get_change(self, change_id: str) -> Optional[ChangeRecord]:
        """Look up a change, treating other workspaces' records as missing."""
        change = self.metadata_store.get_change(change_id)
        if change is None or change.workspace_id != self.workspace_id:
            return None
        return change

    def _record_matches(self, change_id: str, filters: SearchFilters) -> bool:
        change = self._get_change(change_id)
        return change is not None and filters.matches(change)

    async def _apply_reranking(self, query: str, ranked: list[RankedCandidate]) -> list[RankedCandidate]:
        """Rerank the head of the fused list; the tail keeps its fused order."""
        documents = []
        for candidate in ranked[: self.reranker.top_k]:
            change = self._get_change(candidate.change_id)
            if change is not None:
                documents.append(
                    RerankerDocument(
                        id=candidate.change_id,
                        text=prepare_document_for_reranking(change),
                        original_score=candidate.fusion_score,
                    )
                )
        if not documents:
            return ranked

        try:
            reranked = await self.reranker.rerank(query, documents, top_k=len(documents))
        except Exception as e:
            logger.warning(f"Reranking failed, using fused order: {e}")
            return ranked

        by_id = {c.change_id: c for c in ranked}
        head = []
        for result in reranked:
            candidate = by_id[result.id]
            if result.reranked:
                candidate.reranker_score = result.score
            head.append(candidate)

        head_ids = {c.change_id for c in head}
        tail = [c for c in ranked if c.change_id not in head_ids]

        if head and ranked[0].change_id != head[0].change_id:
            logger.debug(f"Reranking moved {head[0].change_id} ahead of {ranked[0].change_id}")
        return head + tail

    def _hydrate(self, ranked: list[RankedCandidate], query: str, limit: int) -> list[SearchResult]:
        terms = extract_query_terms(query)
        results: list[SearchResult] = []
        for candidate in ranked:
            if len(results) >= limit:
                break
            change = self._get_change(candidate.change_id)
            if change is None:
                # The vector index can outlive a swept record
                continue
            results.append(
                SearchResult(
                    change=change,
                    score=candidate.effective_score,
                    vector_score=candidate.vector_score,
                    keyword_score=candidate.keyword_score,
                    fusion_score=candidate.fusion_score,
                    reranker_score=candidate.reranker_score,
                    highlights=generate_highlights(change, terms),
                )
            )
        return results

    # --- Direct lookups ---

    async def find_similar(self, change_id: str, top_k: int = 10) -> list[SearchResult]:
        """
        Changes whose embeddings are nearest to a given change's.

        Raises:
            ValidationError: Empty id or non-positive top_k
            ChangeNotFoundError: No such change
            EmbeddingNotFoundError: The change has no stored embedding
        """
        if not change_id:
            raise ValidationError("change_id is required")
        if top_k < 1:
            raise ValidationError("top_k must be >= 1", {"top_k": top_k})

        if self._get_change(change_id) is None:
            raise ChangeNotFoundError(change_id)

        reference = await self.vector_store.get_vector_by_change_id(change_id)
        if reference is None:
            raise EmbeddingNotFoundError(change_id)

        similar = await self.vector_store.search(reference.vector, top_k + 1, workspace_id=self.workspace_id)

        results = []
        for match in similar:
            if match.change_id == change_id:
                continue
            related = self._get_change(match.change_id)
            if related is not None:
                results.append(SearchResult(change=related, score=match.score, vector_score=match.score))
            if len(results) >= top_k:
                break
        return results

    async def delete_history(self, before_timestamp: Optional[int] = None) -> int:
        """
        Remove this workspace's changes and their vectors.

        Args:
            before_timestamp: Only remove changes older than this (retention sweep)

        Returns:
            Number of deleted change records
        """
        if before_timestamp is None:
            deleted = self.metadata_store.clear_workspace(self.workspace_id)
        else:
            deleted = self.metadata_store.delete_changes_before(self.workspace_id, before_timestamp)
        await self.vector_store.delete_workspace_vectors(self.workspace_id, before_timestamp)
        return deleted

    async def get_file_timeline(self, file_path: str, limit: int = 100) -> list[ChangeRecord]:
        """Changes to one file, newest first."""
        return self.metadata_store.get_changes(
            self.workspace_id, SearchFilters(file_patterns=[file_path]), limit
        )

    async def get_symbol_timeline(self, symbol: str, limit: int = 100) -> list[ChangeRecord]:
        """Changes touching a symbol, newest first."""
        expression = symbol_query(symbol)
        if not expression:
            return []
        matches = self.metadata_store.search_changes(self.workspace_id, expression, limit)
        return sorted((m.change for m in matches), key=lambda c: c.timestamp, reverse=True)

    async def analyze_patterns(self, time_range: Optional[TimeRange] = None) -> PatternAnalysis:
        """Frequency tables over up to PATTERN_SCAN_LIMIT recent changes."""
        filters = SearchFilters(time_range=time_range) if time_range else None
        changes = self.metadata_store.get_changes(self.workspace_id, filters, PATTERN_SCAN_LIMIT)

        files: Counter[str] = Counter()
        symbols: Counter[str] = Counter()
        hours: Counter[int] = Counter()
        types: Counter[str] = Counter()

        for change in changes:
            files[change.file_path] += 1
            symbols.update(change.symbols)
            hours[datetime.fromtimestamp(change.timestamp / 1000).hour] += 1
            types[change.event_type] += 1

        return PatternAnalysis(
            frequent_files=[{"path": p, "count": n} for p, n in files.most_common(PATTERN_TOP_N)],
            frequent_symbols=[{"symbol": s, "count": n} for s, n in symbols.most_common(PATTERN_TOP_N)],
            activity_by_hour=[{"hour": h, "count": hours[h]} for h in sorted(hours)],
            change_types=[{"type": t, "count": n} for t, n in types.most_common()],
        )
