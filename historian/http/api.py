"""
Search API Endpoints

HTTP endpoints exposing search, similar-change lookup, timelines, and
pattern analysis to the UI and chat layers.
"""

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from historian.configs import SEARCH_DEFAULTS, get_logger
from historian.exceptions import ChangeNotFoundError, EmbeddingNotFoundError, ValidationError
from historian.models import ChangeRecord, HybridSearchParams, SearchFilters, SearchResult, TimeRange
from historian.services import get_engine

logger = get_logger("http.api")

router = APIRouter()


# --- Request Models ---


class TimeRangeModel(BaseModel):
    """Inclusive range in Unix milliseconds."""
    start: int
    end: int


class FiltersModel(BaseModel):
    time_range: Optional[TimeRangeModel] = None
    file_patterns: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    event_types: list[str] = Field(default_factory=list)
    symbols: list[str] = Field(default_factory=list)
    branches: list[str] = Field(default_factory=list)
    sessions: list[str] = Field(default_factory=list)

    def to_filters(self) -> SearchFilters:
        time_range = None
        if self.time_range:
            time_range = TimeRange(self.time_range.start, self.time_range.end)
        return SearchFilters(
            time_range=time_range,
            file_patterns=self.file_patterns,
            languages=self.languages,
            event_types=self.event_types,
            symbols=self.symbols,
            branches=self.branches,
            sessions=self.sessions,
        )


class HybridParamsModel(BaseModel):
    vector_weight: float = Field(SEARCH_DEFAULTS["vector_weight"], ge=0)
    keyword_weight: float = Field(SEARCH_DEFAULTS["keyword_weight"], ge=0)
    rerank_top_k: int = Field(SEARCH_DEFAULTS["rerank_top_k"], ge=1)


class SearchRequest(BaseModel):
    """Request body for hybrid search."""
    query: str = Field(..., min_length=1)
    filters: Optional[FiltersModel] = None
    hybrid_params: Optional[HybridParamsModel] = None


# --- Serialization ---


def change_to_dict(change: ChangeRecord) -> dict[str, Any]:
    data = asdict(change)
    data["symbols"] = list(change.symbols)
    data["imports"] = list(change.imports)
    return data


def result_to_dict(result: SearchResult) -> dict[str, Any]:
    return {
        "change": change_to_dict(result.change),
        "score": result.score,
        "vector_score": result.vector_score,
        "keyword_score": result.keyword_score,
        "fusion_score": result.fusion_score,
        "reranker_score": result.reranker_score,
        "highlights": [asdict(h) for h in result.highlights],
    }


# --- Endpoints ---


@router.post("/search")
async def search(request: SearchRequest) -> dict[str, Any]:
    """Hybrid vector + keyword search over change history."""
    engine = get_engine()
    filters = request.filters.to_filters() if request.filters else None
    params = None
    if request.hybrid_params:
        params = HybridSearchParams(**request.hybrid_params.model_dump())

    try:
        results = await engine.search(request.query, filters, params)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {
        "query": request.query,
        "count": len(results),
        "results": [result_to_dict(r) for r in results],
    }


@router.get("/similar/{change_id}")
async def similar(change_id: str, top_k: int = Query(10, ge=1, le=100)) -> dict[str, Any]:
    """Changes nearest to a given change in embedding space."""
    engine = get_engine()
    try:
        results = await engine.find_similar(change_id, top_k)
    except (ChangeNotFoundError, EmbeddingNotFoundError) as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {
        "change_id": change_id,
        "count": len(results),
        "results": [result_to_dict(r) for r in results],
    }


@router.get("/timeline/file")
async def file_timeline(
    file_path: str = Query(..., min_length=1),
    limit: int = Query(100, ge=1, le=1000),
) -> dict[str, Any]:
    """Changes to one file, newest first."""
    changes = await get_engine().get_file_timeline(file_path, limit)
    return {"file_path": file_path, "count": len(changes), "changes": [change_to_dict(c) for c in changes]}


@router.get("/timeline/symbol")
async def symbol_timeline(
    symbol: str = Query(..., min_length=1),
    limit: int = Query(100, ge=1, le=1000),
) -> dict[str, Any]:
    """Changes touching a symbol, newest first."""
    changes = await get_engine().get_symbol_timeline(symbol, limit)
    return {"symbol": symbol, "count": len(changes), "changes": [change_to_dict(c) for c in changes]}


@router.get("/patterns")
async def patterns(start: Optional[int] = None, end: Optional[int] = None) -> dict[str, Any]:
    """File, symbol, hour-of-day, and event-type frequencies."""
    if (start is None) != (end is None):
        raise HTTPException(status_code=422, detail="start and end must be given together")
    time_range = None
    if start is not None and end is not None:
        if start > end:
            raise HTTPException(status_code=422, detail="start must not be after end")
        time_range = TimeRange(start, end)

    analysis = await get_engine().analyze_patterns(time_range)
    return asdict(analysis)
