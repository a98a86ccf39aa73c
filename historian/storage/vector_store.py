"""
ChromaDB Vector Store

Embedding index for change records. The chromadb client is synchronous,
so every public method hands its work to a thread to keep the event loop
free while the index is queried.
"""

import asyncio
import os
from typing import Any, Optional

import chromadb
from chromadb.api import ClientAPI
from chromadb.config import Settings

from historian.configs import get_logger, get_vector_db_path
from historian.models import SearchFilters, VectorRecord, VectorSearchResult

logger = get_logger("storage.vectors")

COLLECTION_NAME = "change_embeddings"

# Extra neighbours fetched when file globs are applied after the query
GLOB_OVERFETCH = 4


def get_chroma_client(persist_dir: Optional[str] = None) -> chromadb.PersistentClient:
    """
    Initialize persistent ChromaDB client.

    Args:
        persist_dir: Directory for persistence (defaults to the data dir)

    Returns:
        ChromaDB PersistentClient instance
    """
    path = os.path.expanduser(persist_dir or str(get_vector_db_path()))
    os.makedirs(path, exist_ok=True)
    return chromadb.PersistentClient(
        path=path,
        settings=Settings(anonymized_telemetry=False),
    )


def build_where_clause(
    filters: Optional[SearchFilters],
    workspace_id: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    """
    Translate the metadata-level facets of SearchFilters into a chroma where clause.

    File globs are not expressible in chroma's filter language and are
    applied to the returned metadata instead.
    """
    clauses: list[dict[str, Any]] = []
    if workspace_id:
        clauses.append({"workspace_id": workspace_id})
    if filters is None:
        return _combine(clauses)

    if filters.time_range:
        clauses.append({"timestamp": {"$gte": filters.time_range.start}})
        clauses.append({"timestamp": {"$lte": filters.time_range.end}})
    if filters.languages:
        clauses.append({"language": {"$in": list(filters.languages)}})
    if filters.event_types:
        clauses.append({"event_type": {"$in": list(filters.event_types)}})
    if filters.branches:
        clauses.append({"git_branch": {"$in": list(filters.branches)}})
    return _combine(clauses)


def _combine(clauses: list[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaVectorStore:
    """Cosine-space nearest-neighbour index keyed by change id."""

    def __init__(self, client: ClientAPI, collection_name: str = COLLECTION_NAME):
        self.client = client
        self.collection = client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    @staticmethod
    def _metadata(record: VectorRecord) -> dict[str, Any]:
        # Chroma metadata values must be scalars
        metadata: dict[str, Any] = {
            "change_id": record.change_id,
            "timestamp": record.timestamp,
            "file_path": record.file_path,
            "event_type": record.event_type,
            "language": record.language,
            "symbols": ",".join(record.symbols),
        }
        if record.workspace_id:
            metadata["workspace_id"] = record.workspace_id
        if record.git_branch:
            metadata["git_branch"] = record.git_branch
        if record.summary:
            metadata["summary"] = record.summary
        return metadata

    def _upsert(self, records: list[VectorRecord]) -> None:
        self.collection.upsert(
            ids=[r.id for r in records],
            embeddings=[list(r.vector) for r in records],
            metadatas=[self._metadata(r) for r in records],
            documents=[r.searchable_text for r in records],
        )

    async def add_vector(self, record: VectorRecord) -> None:
        await asyncio.to_thread(self._upsert, [record])

    async def add_vectors(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        await asyncio.to_thread(self._upsert, records)
        logger.debug(f"Indexed {len(records)} vectors")

    def _query(
        self,
        vector: list[float],
        top_k: int,
        filters: Optional[SearchFilters],
        workspace_id: Optional[str],
    ) -> list[VectorSearchResult]:
        total = self.collection.count()
        if total == 0 or top_k < 1:
            return []

        apply_globs = bool(filters and filters.file_patterns)
        n_results = top_k * GLOB_OVERFETCH if apply_globs else top_k

        results = self.collection.query(
            query_embeddings=[list(vector)],
            n_results=min(n_results, total),
            where=build_where_clause(filters, workspace_id),
            include=["metadatas", "distances"],
        )

        ids = results["ids"][0] if results["ids"] else []
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [0.0] * len(ids)

        matches: list[VectorSearchResult] = []
        for doc_id, meta, distance in zip(ids, metadatas, distances):
            meta = meta or {}
            if apply_globs and not filters.matches_path(meta.get("file_path", "")):
                continue
            matches.append(
                VectorSearchResult(
                    id=doc_id,
                    change_id=meta.get("change_id", doc_id),
                    score=1.0 - float(distance),
                    distance=float(distance),
                )
            )
            if len(matches) >= top_k:
                break
        return matches

    async def search(
        self,
        vector: list[float],
        top_k: int,
        filters: Optional[SearchFilters] = None,
        workspace_id: Optional[str] = None,
    ) -> list[VectorSearchResult]:
        """
        Nearest neighbours of a query vector.

        Args:
            vector: Query embedding
            top_k: Maximum neighbours to return
            filters: Optional facets (time, language, event type, branch, file globs)
            workspace_id: Restrict matches to one workspace's vectors

        Returns:
            Matches ordered by similarity (1 - cosine distance), best first
        """
        return await asyncio.to_thread(self._query, vector, top_k, filters, workspace_id)

    def _get_by_change_id(self, change_id: str) -> Optional[VectorRecord]:
        results = self.collection.get(
            where={"change_id": change_id},
            limit=1,
            include=["embeddings", "metadatas", "documents"],
        )
        if not results["ids"]:
            return None

        embeddings = results.get("embeddings")
        if embeddings is None or len(embeddings) == 0:
            return None

        meta = (results.get("metadatas") or [{}])[0] or {}
        documents = results.get("documents") or [""]
        symbols = meta.get("symbols", "")
        return VectorRecord(
            id=results["ids"][0],
            change_id=change_id,
            vector=[float(x) for x in embeddings[0]],
            timestamp=int(meta.get("timestamp", 0)),
            file_path=meta.get("file_path", ""),
            event_type=meta.get("event_type", "modify"),
            language=meta.get("language", ""),
            symbols=symbols.split(",") if symbols else [],
            git_branch=meta.get("git_branch"),
            searchable_text=documents[0] or "",
            summary=meta.get("summary"),
            workspace_id=meta.get("workspace_id"),
        )

    async def get_vector_by_change_id(self, change_id: str) -> Optional[VectorRecord]:
        return await asyncio.to_thread(self._get_by_change_id, change_id)

    def _delete(self, change_ids: list[str]) -> None:
        self.collection.delete(where={"change_id": {"$in": change_ids}})

    async def delete_vectors_by_change_ids(self, change_ids: list[str]) -> None:
        if not change_ids:
            return
        await asyncio.to_thread(self._delete, list(change_ids))
        logger.info(f"Deleted vectors for {len(change_ids)} changes")

    def _delete_workspace(self, workspace_id: str, before_timestamp: Optional[int]) -> None:
        where: dict[str, Any] = {"workspace_id": workspace_id}
        if before_timestamp is not None:
            where = {"$and": [where, {"timestamp": {"$lt": before_timestamp}}]}
        self.collection.delete(where=where)

    async def delete_workspace_vectors(self, workspace_id: str, before_timestamp: Optional[int] = None) -> None:
        """Drop a workspace's vectors, or only those older than before_timestamp."""
        await asyncio.to_thread(self._delete_workspace, workspace_id, before_timestamp)
        logger.debug(f"Deleted vectors for workspace {workspace_id}")

    async def count(self) -> int:
        return await asyncio.to_thread(self.collection.count)
