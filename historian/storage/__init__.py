"""
Historian Storage Module

SQLite metadata with FTS5 lexical search, and the ChromaDB vector index.
"""

from historian.storage.metadata import MetadataStore
from historian.storage.vector_store import (
    COLLECTION_NAME,
    ChromaVectorStore,
    build_where_clause,
    get_chroma_client,
)

__all__ = [
    "MetadataStore",
    "ChromaVectorStore",
    "COLLECTION_NAME",
    "build_where_clause",
    "get_chroma_client",
]
