"""
Data Model for Historian

Change records captured from file edits, search filters and parameters,
and the transient / output types produced by the search engine.

Record Categories:
- Persistent: ChangeRecord, VectorRecord
- Query input: SearchFilters, TimeRange, HybridSearchParams
- Per-query transient: RankedCandidate, NormalizedScore
- Output: SearchResult, SearchHighlight, PatternAnalysis
"""

import fnmatch
from dataclasses import dataclass, field, replace
from typing import Any, Literal, Optional, get_args

from historian.exceptions import ValidationError

# =============================================================================
# Change Records
# =============================================================================

ChangeEventType = Literal["create", "modify", "delete", "rename"]

ALL_EVENT_TYPES: tuple[str, ...] = get_args(ChangeEventType)


@dataclass(frozen=True)
class ChangeRecord:
    """One captured file mutation.

    Immutable once created; the capture pipeline only ever attaches an
    embedding id or a summary afterwards, which produces a new record.
    """

    id: str  # ULID, sortable
    timestamp: int  # Unix ms
    workspace_id: str
    file_path: str  # Relative to workspace root
    absolute_path: str
    language: str
    event_type: ChangeEventType
    diff: str  # Unified diff
    session_id: str = ""
    lines_added: int = 0
    lines_deleted: int = 0
    total_lines: int = 0
    content_before: Optional[str] = None
    content_after: Optional[str] = None
    symbols: tuple[str, ...] = ()
    imports: tuple[str, ...] = ()
    git_branch: Optional[str] = None
    git_commit: Optional[str] = None
    git_author: Optional[str] = None
    embedding_id: Optional[str] = None
    summary: Optional[str] = None
    searchable_text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if self.event_type not in ALL_EVENT_TYPES:
            raise ValidationError(f"Unknown event type: {self.event_type}")
        # Accept lists from callers, store tuples
        object.__setattr__(self, "symbols", tuple(self.symbols))
        object.__setattr__(self, "imports", tuple(self.imports))

    @property
    def file_extension(self) -> str:
        name = self.file_path.rsplit("/", 1)[-1]
        return name.rsplit(".", 1)[-1] if "." in name else ""

    def with_embedding_id(self, embedding_id: str) -> "ChangeRecord":
        return replace(self, embedding_id=embedding_id)

    def with_summary(self, summary: str) -> "ChangeRecord":
        return replace(self, summary=summary)


# =============================================================================
# Query Input
# =============================================================================


@dataclass(frozen=True)
class TimeRange:
    """Inclusive millisecond range."""

    start: int
    end: int

    def contains(self, timestamp: int) -> bool:
        return self.start <= timestamp <= self.end


@dataclass
class SearchFilters:
    """Structured filters, supplied explicitly or extracted from the query."""

    time_range: Optional[TimeRange] = None
    file_patterns: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)
    event_types: list[str] = field(default_factory=list)
    symbols: list[str] = field(default_factory=list)
    branches: list[str] = field(default_factory=list)
    sessions: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.time_range
            or self.file_patterns
            or self.languages
            or self.event_types
            or self.symbols
            or self.branches
            or self.sessions
        )

    def matches_path(self, file_path: str) -> bool:
        """Glob match with SQLite GLOB semantics (case-sensitive, * crosses /)."""
        if not self.file_patterns:
            return True
        return any(fnmatch.fnmatchcase(file_path, pattern) for pattern in self.file_patterns)

    def matches(self, change: ChangeRecord) -> bool:
        """Check a hydrated record against every populated facet."""
        if self.time_range and not self.time_range.contains(change.timestamp):
            return False
        if not self.matches_path(change.file_path):
            return False
        if self.languages and change.language not in self.languages:
            return False
        if self.event_types and change.event_type not in self.event_types:
            return False
        if self.branches and change.git_branch not in self.branches:
            return False
        if self.sessions and change.session_id not in self.sessions:
            return False
        if self.symbols and not set(self.symbols) & set(change.symbols):
            return False
        return True


@dataclass(frozen=True)
class HybridSearchParams:
    """Per-query fusion configuration.

    Weights are relative; a weight of 0 keeps the leg running for
    candidate coverage but removes its contribution to the fused score.
    """

    vector_weight: float = 0.6
    keyword_weight: float = 0.4
    rerank_top_k: int = 50

    def __post_init__(self) -> None:
        if self.vector_weight < 0 or self.keyword_weight < 0:
            raise ValidationError(
                "Hybrid weights must be >= 0",
                {"vector_weight": self.vector_weight, "keyword_weight": self.keyword_weight},
            )
        if self.rerank_top_k < 1:
            raise ValidationError("rerank_top_k must be >= 1", {"rerank_top_k": self.rerank_top_k})


# =============================================================================
# Adapter Result Shapes
# =============================================================================


@dataclass
class VectorRecord:
    """Embedding plus the metadata the vector index filters on."""

    id: str
    change_id: str
    vector: list[float]
    timestamp: int
    file_path: str
    event_type: str
    language: str
    symbols: list[str] = field(default_factory=list)
    git_branch: Optional[str] = None
    searchable_text: str = ""
    summary: Optional[str] = None
    workspace_id: Optional[str] = None


@dataclass(frozen=True)
class VectorSearchResult:
    id: str
    change_id: str
    score: float  # Similarity, higher is better
    distance: float


@dataclass(frozen=True)
class LexicalMatch:
    change: ChangeRecord
    rank: int  # 1-based position, not a score


# =============================================================================
# Per-Query Ranking
# =============================================================================


@dataclass(frozen=True)
class NormalizedScore:
    id: str
    score: float
    normalized_score: float


@dataclass
class NormalizedScores:
    results: list[NormalizedScore]
    min: float
    max: float

    def as_map(self) -> dict[str, float]:
        return {r.id: r.normalized_score for r in self.results}


@dataclass
class RankedCandidate:
    """A change id with its provenance in each retrieval leg."""

    change_id: str
    fusion_score: float = 0.0
    vector_rank: Optional[int] = None
    vector_score: Optional[float] = None
    normalized_vector_score: Optional[float] = None
    keyword_rank: Optional[int] = None
    keyword_score: Optional[float] = None
    normalized_keyword_score: Optional[float] = None
    reranker_score: Optional[float] = None

    @property
    def in_both_legs(self) -> bool:
        return self.vector_rank is not None and self.keyword_rank is not None

    @property
    def effective_score(self) -> float:
        if self.reranker_score is not None:
            return self.reranker_score
        return self.fusion_score


# =============================================================================
# Output
# =============================================================================


@dataclass(frozen=True)
class SearchHighlight:
    field: str
    snippet: str
    matched_terms: list[str]


@dataclass
class SearchResult:
    change: ChangeRecord
    score: float
    vector_score: Optional[float] = None
    keyword_score: Optional[float] = None
    fusion_score: Optional[float] = None
    reranker_score: Optional[float] = None
    highlights: list[SearchHighlight] = field(default_factory=list)


@dataclass
class PatternAnalysis:
    frequent_files: list[dict[str, Any]]
    frequent_symbols: list[dict[str, Any]]
    activity_by_hour: list[dict[str, int]]
    change_types: list[dict[str, Any]]
