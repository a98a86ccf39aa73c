"""
Shared Services

Thread-safe lazy-initialized services used by the HTTP surface.
The search engine itself takes every collaborator explicitly; this module
is the one place that builds them from configuration.
"""

import os
from threading import RLock
from typing import Optional

from historian.configs import get_full_config, get_logger, get_metadata_db_path
from historian.embedding import EmbeddingService
from historian.events import EventEmitter
from historian.search import RerankerService, SearchEngine, SearchSettings
from historian.storage import ChromaVectorStore, MetadataStore, get_chroma_client
from historian.utils import LRUCache, workspace_id_for

logger = get_logger("services")


class ServiceManager:
    """
    Thread-safe singleton manager for all shared services.

    Provides lazy initialization of the stores, embedding service,
    reranker, and search engine, each created only once even under
    concurrent access.
    """

    _instance: Optional["ServiceManager"] = None
    _lock = RLock()

    def __new__(cls) -> "ServiceManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return

        self._config: Optional[dict] = None
        self._metadata_store: Optional[MetadataStore] = None
        self._vector_store: Optional[ChromaVectorStore] = None
        self._embedding_service: Optional[EmbeddingService] = None
        self._reranker: Optional[RerankerService] = None
        self._emitter: Optional[EventEmitter] = None
        self._engine: Optional[SearchEngine] = None
        self._resource_lock = RLock()
        self._initialized = True

    @property
    def config(self) -> dict:
        if self._config is None:
            with self._resource_lock:
                if self._config is None:
                    self._config = get_full_config()
        return self._config

    @property
    def workspace_id(self) -> str:
        return workspace_id_for(self.config.get("workspace_path") or os.getcwd())

    @property
    def metadata_store(self) -> MetadataStore:
        if self._metadata_store is None:
            with self._resource_lock:
                if self._metadata_store is None:
                    store = MetadataStore(get_metadata_db_path())
                    store.initialize()
                    self._metadata_store = store
        return self._metadata_store

    @property
    def vector_store(self) -> ChromaVectorStore:
        if self._vector_store is None:
            with self._resource_lock:
                if self._vector_store is None:
                    self._vector_store = ChromaVectorStore(get_chroma_client())
        return self._vector_store

    @property
    def emitter(self) -> EventEmitter:
        if self._emitter is None:
            with self._resource_lock:
                if self._emitter is None:
                    self._emitter = EventEmitter()
        return self._emitter

    @property
    def embedding_service(self) -> EmbeddingService:
        if self._embedding_service is None:
            with self._resource_lock:
                if self._embedding_service is None:
                    embedding_config = self.config["embedding"]
                    self._embedding_service = EmbeddingService(
                        embedding_config,
                        cache=LRUCache(embedding_config["cache_size"]),
                        emitter=self.emitter,
                    )
        return self._embedding_service

    @property
    def reranker(self) -> RerankerService:
        if self._reranker is None:
            with self._resource_lock:
                if self._reranker is None:
                    self._reranker = RerankerService(self.config["reranker"])
        return self._reranker

    @property
    def engine(self) -> SearchEngine:
        if self._engine is None:
            with self._resource_lock:
                if self._engine is None:
                    self._engine = SearchEngine(
                        metadata_store=self.metadata_store,
                        vector_store=self.vector_store,
                        embedding_service=self.embedding_service,
                        workspace_id=self.workspace_id,
                        reranker=self.reranker,
                        emitter=self.emitter,
                        settings=SearchSettings.from_config(self.config["search"]),
                    )
                    logger.info(f"Search engine ready for workspace {self._engine.workspace_id}")
        return self._engine

    def reset(self) -> None:
        """Reset all services (for testing)."""
        with self._resource_lock:
            self._config = None
            self._metadata_store = None
            self._vector_store = None
            self._embedding_service = None
            self._reranker = None
            self._emitter = None
            self._engine = None

    def set_engine(self, engine: SearchEngine) -> None:
        """Set the engine directly (for testing)."""
        with self._resource_lock:
            self._engine = engine


# Module-level singleton instance
_services = ServiceManager()


# --- Public API ---


def get_engine() -> SearchEngine:
    """Get the search engine."""
    return _services.engine


def reset_services() -> None:
    """Reset all lazy-initialized services (for testing)."""
    _services.reset()


def set_engine(engine: SearchEngine) -> None:
    """Set the search engine directly (for testing)."""
    _services.set_engine(engine)
