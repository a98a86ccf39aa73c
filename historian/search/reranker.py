"""
Cross-Encoder Reranking

Refines the head of the fused ranking with a pairwise relevance scorer.

Documents are scored one at a time. A document whose request fails or
whose response cannot be parsed keeps its original (fusion) score; it is
never dropped and never fails the query.
"""

import time
from dataclasses import dataclass
from typing import Optional

from historian.configs import RERANKER_DEFAULTS, get_logger
from historian.configs.constants import RERANK_DIFF_PREVIEW_CHARS
from historian.exceptions import ClientError
from historian.models import ChangeRecord

from .reranker_backends import RerankerBackend, create_reranker_backend

logger = get_logger("search.reranker")


@dataclass(frozen=True)
class RerankerDocument:
    id: str
    text: str
    original_score: float = 0.0


@dataclass(frozen=True)
class RerankedResult:
    id: str
    score: float
    original_score: float
    reranked: bool = False  # False when the original score was kept


def prepare_document_for_reranking(change: ChangeRecord) -> str:
    """Compact text form of a change: path, symbols, summary, diff preview."""
    parts = [f"File: {change.file_path}"]
    if change.symbols:
        parts.append(f"Symbols: {', '.join(change.symbols)}")
    if change.summary:
        parts.append(f"Summary: {change.summary}")
    preview = change.diff[:RERANK_DIFF_PREVIEW_CHARS]
    if preview:
        parts.append(f"Changes: {preview}")
    return "\n".join(parts)


def normalize_scores(results: list[RerankedResult]) -> list[RerankedResult]:
    """Min-max scale reranked scores into [0, 1]; equal scores all become 1."""
    if not results:
        return []
    scores = [r.score for r in results]
    low, high = min(scores), max(scores)
    spread = high - low
    return [
        RerankedResult(
            id=r.id,
            score=(r.score - low) / spread if spread > 0 else 1.0,
            original_score=r.original_score,
            reranked=r.reranked,
        )
        for r in results
    ]


def _passthrough(documents: list[RerankerDocument], top_k: int) -> list[RerankedResult]:
    results = [RerankedResult(d.id, d.original_score, d.original_score) for d in documents]
    return sorted(results, key=lambda r: r.score, reverse=True)[:top_k]


class RerankerService:
    """
    Optional reranking stage.

    Disabled by default. Active only when enabled and the backend has what
    it needs (an API key for hosted providers). State changes happen only
    through set_enabled() and update_config().
    """

    def __init__(self, config: Optional[dict] = None, backend: Optional[RerankerBackend] = None):
        self.config = {**RERANKER_DEFAULTS, "api_key": None, **(config or {})}
        self.enabled = bool(self.config.get("enabled"))
        self._backend_injected = backend is not None
        self.backend = backend if backend is not None else create_reranker_backend(self.config)

    @property
    def top_k(self) -> int:
        return int(self.config.get("top_k") or RERANKER_DEFAULTS["top_k"])

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        logger.info(f"Reranker {'enabled' if enabled else 'disabled'}")

    def update_config(self, **changes) -> None:
        """Apply provider/model/api_key/top_k changes and rebuild the backend."""
        self.config.update(changes)
        if not self._backend_injected:
            self.backend = create_reranker_backend(self.config)
        logger.info(f"Reranker config updated: {self.config.get('provider')}/{self.config.get('model')}")

    def is_enabled(self) -> bool:
        if not self.enabled or self.backend is None:
            return False
        return bool(self.config.get("api_key")) or not self.backend.requires_api_key

    async def _score_document(self, query: str, document: RerankerDocument) -> Optional[float]:
        try:
            return await self.backend.score(query, document.text)
        except ClientError as e:
            logger.debug(f"Reranker request failed for {document.id}: {e}")
            return None
        except Exception as e:
            # Any backend failure costs only this document's score
            logger.debug(f"Error scoring document {document.id}: {type(e).__name__}: {e}")
            return None

    async def rerank(
        self,
        query: str,
        documents: list[RerankerDocument],
        top_k: Optional[int] = None,
    ) -> list[RerankedResult]:
        """
        Rescore documents and return the best top_k.

        Args:
            query: The search query
            documents: Candidates with their pre-rerank scores
            top_k: Results to keep (default: configured top_k)

        Returns:
            Results sorted by effective score (reranker score, else original)
        """
        limit = top_k if top_k is not None else self.top_k
        if not documents:
            return []
        if not self.is_enabled():
            return _passthrough(documents, limit)

        start_time = time.time()
        results = []
        # Sequential: one pairwise request per document
        for document in documents:
            score = await self._score_document(query, document)
            if score is None:
                results.append(RerankedResult(document.id, document.original_score, document.original_score))
            else:
                results.append(RerankedResult(document.id, score, document.original_score, reranked=True))

        results = sorted(results, key=lambda r: r.score, reverse=True)[:limit]

        elapsed = time.time() - start_time
        logger.debug(f"Reranking: {len(documents)} docs -> top {len(results)} in {elapsed * 1000:.1f}ms")
        return results
