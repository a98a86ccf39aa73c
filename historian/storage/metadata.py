"""
SQLite Metadata Store

Relational store for change records with an FTS5 index that serves the
lexical search leg. Each operation opens its own connection, so the store
can be shared across threads and event-loop callbacks.
"""

import json
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from historian.configs import get_logger
from historian.exceptions import StorageError
from historian.models import ChangeRecord, LexicalMatch, SearchFilters

logger = get_logger("storage.metadata")

_CHANGE_COLUMNS = (
    "id",
    "timestamp",
    "workspace_id",
    "session_id",
    "file_path",
    "absolute_path",
    "language",
    "event_type",
    "diff",
    "lines_added",
    "lines_deleted",
    "total_lines",
    "content_before",
    "content_after",
    "symbols",
    "imports",
    "git_branch",
    "git_commit",
    "git_author",
    "embedding_id",
    "summary",
    "searchable_text",
    "metadata",
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS changes (
    id TEXT PRIMARY KEY,
    timestamp INTEGER NOT NULL,
    workspace_id TEXT NOT NULL,
    session_id TEXT NOT NULL DEFAULT '',
    file_path TEXT NOT NULL,
    absolute_path TEXT NOT NULL,
    language TEXT NOT NULL,
    event_type TEXT NOT NULL,
    diff TEXT NOT NULL,
    lines_added INTEGER NOT NULL DEFAULT 0,
    lines_deleted INTEGER NOT NULL DEFAULT 0,
    total_lines INTEGER NOT NULL DEFAULT 0,
    content_before TEXT,
    content_after TEXT,
    symbols TEXT,
    imports TEXT,
    git_branch TEXT,
    git_commit TEXT,
    git_author TEXT,
    embedding_id TEXT,
    summary TEXT,
    searchable_text TEXT,
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_changes_timestamp ON changes(timestamp);
CREATE INDEX IF NOT EXISTS idx_changes_workspace ON changes(workspace_id);
CREATE INDEX IF NOT EXISTS idx_changes_file_path ON changes(file_path);
CREATE INDEX IF NOT EXISTS idx_changes_embedding ON changes(embedding_id);

CREATE VIRTUAL TABLE IF NOT EXISTS changes_fts USING fts5(
    change_id UNINDEXED,
    workspace_id UNINDEXED,
    file_path,
    symbols,
    summary,
    diff,
    searchable_text
);
"""


class MetadataStore:
    """Change records in SQLite, searchable through FTS5."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create tables and indexes if missing."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(_SCHEMA)
        logger.info(f"Metadata store initialized at {self.db_path}")

    # --- Writes ---

    def insert_change(self, change: ChangeRecord) -> None:
        row = self._change_to_row(change)
        placeholders = ", ".join("?" for _ in _CHANGE_COLUMNS)
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO changes ({', '.join(_CHANGE_COLUMNS)}, created_at) "
                f"VALUES ({placeholders}, ?)",
                (*row, int(time.time() * 1000)),
            )
            self._index_fts(conn, change)

    def update_embedding_id(self, change_id: str, embedding_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE changes SET embedding_id = ? WHERE id = ?",
                (embedding_id, change_id),
            )

    def update_summary(self, change_id: str, summary: str) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE changes SET summary = ? WHERE id = ?", (summary, change_id))
            row = conn.execute("SELECT * FROM changes WHERE id = ?", (change_id,)).fetchone()
            if row is not None:
                conn.execute("DELETE FROM changes_fts WHERE change_id = ?", (change_id,))
                self._index_fts(conn, self._row_to_change(row))

    def delete_changes_before(self, workspace_id: str, before_timestamp: int) -> int:
        """Retention sweep. Returns the number of deleted records."""
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM changes_fts WHERE change_id IN "
                "(SELECT id FROM changes WHERE workspace_id = ? AND timestamp < ?)",
                (workspace_id, before_timestamp),
            )
            cursor = conn.execute(
                "DELETE FROM changes WHERE workspace_id = ? AND timestamp < ?",
                (workspace_id, before_timestamp),
            )
            deleted = cursor.rowcount
        logger.info(f"Retention sweep removed {deleted} changes")
        return deleted

    def clear_workspace(self, workspace_id: str) -> int:
        """Explicit history clear for one workspace."""
        with self._connect() as conn:
            conn.execute("DELETE FROM changes_fts WHERE workspace_id = ?", (workspace_id,))
            cursor = conn.execute("DELETE FROM changes WHERE workspace_id = ?", (workspace_id,))
            return cursor.rowcount

    # --- Reads ---

    def get_change(self, change_id: str) -> Optional[ChangeRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM changes WHERE id = ?", (change_id,)).fetchone()
        return self._row_to_change(row) if row is not None else None

    def count_changes(self, workspace_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM changes WHERE workspace_id = ?", (workspace_id,)
            ).fetchone()
        return row[0]

    def get_changes(
        self,
        workspace_id: str,
        filters: Optional[SearchFilters] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ChangeRecord]:
        """Filtered listing, newest first."""
        query = "SELECT * FROM changes WHERE workspace_id = ?"
        params: list = [workspace_id]

        if filters:
            if filters.time_range:
                query += " AND timestamp >= ? AND timestamp <= ?"
                params.extend([filters.time_range.start, filters.time_range.end])

            if filters.file_patterns:
                globs = " OR ".join("file_path GLOB ?" for _ in filters.file_patterns)
                query += f" AND ({globs})"
                params.extend(filters.file_patterns)

            for column, values in (
                ("language", filters.languages),
                ("event_type", filters.event_types),
                ("git_branch", filters.branches),
                ("session_id", filters.sessions),
            ):
                if values:
                    placeholders = ",".join("?" for _ in values)
                    query += f" AND {column} IN ({placeholders})"
                    params.extend(values)

        query += " ORDER BY timestamp DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_change(row) for row in rows]

    def get_changes_without_embeddings(self, workspace_id: str, limit: int = 100) -> list[ChangeRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM changes WHERE workspace_id = ? AND embedding_id IS NULL "
                "ORDER BY timestamp DESC LIMIT ?",
                (workspace_id, limit),
            ).fetchall()
        return [self._row_to_change(row) for row in rows]

    def search_changes(self, workspace_id: str, expression: str, limit: int = 50) -> list[LexicalMatch]:
        """
        Full-text search over path, symbols, summary, diff, and searchable text.

        Args:
            workspace_id: Workspace to search
            expression: FTS5 match expression (token-OR, prefix terms)
            limit: Maximum matches

        Returns:
            Matches ordered by FTS relevance with 1-based rank positions

        Raises:
            StorageError: The expression is not valid FTS5 syntax
        """
        if not expression.strip():
            return []

        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT c.* FROM changes_fts "
                    "JOIN changes c ON c.id = changes_fts.change_id "
                    "WHERE changes_fts MATCH ? AND changes_fts.workspace_id = ? "
                    "ORDER BY bm25(changes_fts), c.timestamp DESC LIMIT ?",
                    (expression, workspace_id, limit),
                ).fetchall()
        except sqlite3.OperationalError as e:
            raise StorageError(f"Full-text query failed: {e}", {"expression": expression}) from e

        return [
            LexicalMatch(change=self._row_to_change(row), rank=position)
            for position, row in enumerate(rows, start=1)
        ]

    # --- Row mapping ---

    @staticmethod
    def _index_fts(conn: sqlite3.Connection, change: ChangeRecord) -> None:
        conn.execute(
            "INSERT INTO changes_fts "
            "(change_id, workspace_id, file_path, symbols, summary, diff, searchable_text) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                change.id,
                change.workspace_id,
                change.file_path,
                " ".join(change.symbols),
                change.summary or "",
                change.diff,
                change.searchable_text,
            ),
        )

    @staticmethod
    def _change_to_row(change: ChangeRecord) -> tuple:
        return (
            change.id,
            change.timestamp,
            change.workspace_id,
            change.session_id,
            change.file_path,
            change.absolute_path,
            change.language,
            change.event_type,
            change.diff,
            change.lines_added,
            change.lines_deleted,
            change.total_lines,
            change.content_before,
            change.content_after,
            json.dumps(list(change.symbols)),
            json.dumps(list(change.imports)),
            change.git_branch,
            change.git_commit,
            change.git_author,
            change.embedding_id,
            change.summary,
            change.searchable_text,
            json.dumps(change.metadata),
        )

    @staticmethod
    def _row_to_change(row: sqlite3.Row) -> ChangeRecord:
        return ChangeRecord(
            id=row["id"],
            timestamp=row["timestamp"],
            workspace_id=row["workspace_id"],
            session_id=row["session_id"] or "",
            file_path=row["file_path"],
            absolute_path=row["absolute_path"],
            language=row["language"],
            event_type=row["event_type"],
            diff=row["diff"],
            lines_added=row["lines_added"],
            lines_deleted=row["lines_deleted"],
            total_lines=row["total_lines"],
            content_before=row["content_before"],
            content_after=row["content_after"],
            symbols=tuple(json.loads(row["symbols"] or "[]")),
            imports=tuple(json.loads(row["imports"] or "[]")),
            git_branch=row["git_branch"],
            git_commit=row["git_commit"],
            git_author=row["git_author"],
            embedding_id=row["embedding_id"],
            summary=row["summary"],
            searchable_text=row["searchable_text"] or "",
            metadata=json.loads(row["metadata"] or "{}"),
        )
