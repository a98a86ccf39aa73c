"""
Pytest fixtures for Historian tests.
"""

import os
import sys
import tempfile
import time
from pathlib import Path
from typing import Generator, Optional

import pytest

# Add project root to path for historian imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Keep tests away from the user's ~/.historian
os.environ["HISTORIAN_DATA_PATH"] = tempfile.mkdtemp(prefix="historian_test_")

from historian.models import ChangeRecord, LexicalMatch, VectorRecord, VectorSearchResult  # noqa: E402

WORKSPACE_ID = "ws-test"


def build_change(change_id: str, **overrides) -> ChangeRecord:
    """ChangeRecord with sensible defaults for tests."""
    file_path = overrides.pop("file_path", f"src/{change_id}.py")
    fields = {
        "id": change_id,
        "timestamp": int(time.time() * 1000),
        "workspace_id": WORKSPACE_ID,
        "file_path": file_path,
        "absolute_path": f"/repo/{file_path}",
        "language": "python",
        "event_type": "modify",
        "diff": f"@@ -1 +1 @@\n-old line\n+new line in {change_id}",
        "lines_added": 1,
        "lines_deleted": 1,
        "total_lines": 10,
    }
    fields.update(overrides)
    return ChangeRecord(**fields)


@pytest.fixture
def make_change():
    """Factory for ChangeRecords: make_change("id", file_path=..., ...)."""
    return build_change


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def metadata_store(temp_dir: Path):
    """Initialized SQLite metadata store in a temp directory."""
    from historian.storage import MetadataStore

    store = MetadataStore(temp_dir / "metadata.db")
    store.initialize()
    return store


@pytest.fixture
def temp_chroma_client():
    """Create a temporary ChromaDB client for testing."""
    import chromadb
    from chromadb.config import Settings

    with tempfile.TemporaryDirectory() as tmpdir:
        client = chromadb.PersistentClient(
            path=tmpdir,
            settings=Settings(anonymized_telemetry=False),
        )
        yield client


@pytest.fixture
def vector_store(temp_chroma_client):
    """ChromaVectorStore backed by a temporary client."""
    from historian.storage import ChromaVectorStore

    return ChromaVectorStore(temp_chroma_client)


# --- Fake collaborators ---


class FakeEmbeddingService:
    """Returns a fixed query vector, or raises the configured error."""

    def __init__(self, vector: Optional[list[float]] = None, error: Optional[Exception] = None):
        self.vector = vector or [0.1, 0.2, 0.3]
        self.error = error
        self.queries: list[str] = []

    async def embed_query(self, query: str) -> list[float]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.vector


class FakeVectorStore:
    """Returns canned neighbours and records the filters it was given."""

    def __init__(self, results: Optional[list[VectorSearchResult]] = None, error: Optional[Exception] = None):
        self.results = results or []
        self.error = error
        self.vectors: dict[str, VectorRecord] = {}
        self.last_filters = None
        self.last_top_k = None
        self.last_workspace_id = None
        self.deleted: list[tuple] = []

    async def search(self, vector, top_k, filters=None, workspace_id=None):
        self.last_filters = filters
        self.last_top_k = top_k
        self.last_workspace_id = workspace_id
        if self.error is not None:
            raise self.error
        return self.results[:top_k]

    async def get_vector_by_change_id(self, change_id):
        return self.vectors.get(change_id)

    async def delete_workspace_vectors(self, workspace_id, before_timestamp=None):
        self.deleted.append((workspace_id, before_timestamp))


class FakeMetadataStore:
    """In-memory record store with canned lexical results."""

    def __init__(self, changes: Optional[list[ChangeRecord]] = None, lexical: Optional[list[str]] = None):
        self.changes = {c.id: c for c in changes or []}
        self.lexical_ids = lexical or []
        self.error: Optional[Exception] = None
        self.expressions: list[str] = []

    def get_change(self, change_id):
        return self.changes.get(change_id)

    def search_changes(self, workspace_id, expression, limit=50):
        self.expressions.append(expression)
        if self.error is not None:
            raise self.error
        ids = self.lexical_ids[:limit]
        return [LexicalMatch(change=self.changes[i], rank=pos) for pos, i in enumerate(ids, start=1)]

    def get_changes(self, workspace_id, filters=None, limit=100, offset=0):
        changes = sorted(self.changes.values(), key=lambda c: c.timestamp, reverse=True)
        if filters is not None:
            changes = [c for c in changes if filters.matches(c)]
        return changes[offset : offset + limit]


def vector_hit(change_id: str, score: float) -> VectorSearchResult:
    return VectorSearchResult(id=f"emb-{change_id}", change_id=change_id, score=score, distance=1 - score)


@pytest.fixture
def build_engine():
    """
    Factory for a SearchEngine wired to fakes.

    build_engine(changes, vector=[(id, score)], lexical=[id, ...], embedding_error=None, **engine_kwargs)
    """
    from historian.search import SearchEngine

    def _build(changes, vector=(), lexical=(), embedding_error=None, **kwargs):
        metadata = FakeMetadataStore(changes, list(lexical))
        vectors = FakeVectorStore([vector_hit(cid, score) for cid, score in vector])
        engine = SearchEngine(
            metadata_store=metadata,
            vector_store=vectors,
            embedding_service=FakeEmbeddingService(error=embedding_error),
            workspace_id=WORKSPACE_ID,
            **kwargs,
        )
        return engine, metadata, vectors

    return _build
