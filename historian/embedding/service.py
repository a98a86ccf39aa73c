"""
Embedding Service

Wraps the configured provider with a bounded content-hash cache, retry on
transient transport failures, the query prefix for asymmetric models, and
the indexing path that turns change records into stored vectors.
"""

import time
from typing import TYPE_CHECKING, Any, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from historian.configs import EVENTS, get_logger
from historian.configs.constants import EMBEDDING_CACHE_SIZE, QUERY_PREFIX
from historian.events import EventEmitter
from historian.exceptions import (
    EmbeddingUnavailableError,
    HistorianError,
    HTTPConnectionError,
    HTTPTimeoutError,
    MissingConfigError,
)
from historian.models import ChangeRecord, VectorRecord
from historian.utils.cache import LRUCache
from historian.utils.hashing import content_hash

from .huggingface_provider import HuggingFaceEmbeddingProvider
from .ollama_provider import OllamaEmbeddingProvider
from .openai_provider import OpenAIEmbeddingProvider
from .provider import EmbeddingProvider, ModelInfo

if TYPE_CHECKING:
    from historian.storage.metadata import MetadataStore
    from historian.storage.vector_store import ChromaVectorStore

logger = get_logger("embedding")

# Slack left in the character budget after the header lines
_DIFF_BUDGET_MARGIN = 100
_CHARS_PER_TOKEN = 4


def create_provider(config: dict) -> EmbeddingProvider:
    """
    Create the provider named by an embedding config section.

    Raises:
        MissingConfigError: The provider needs an API key and none is set
    """
    provider = (config.get("provider") or "ollama").lower()
    model = config.get("model") or "nomic-embed-text"

    if provider == "ollama":
        return OllamaEmbeddingProvider(config.get("endpoint"), model)
    elif provider == "openai":
        if not config.get("api_key"):
            raise MissingConfigError("OpenAI API key required for embeddings")
        return OpenAIEmbeddingProvider(config["api_key"], model)
    elif provider == "huggingface":
        if not config.get("api_key"):
            raise MissingConfigError("HuggingFace API key required for embeddings")
        return HuggingFaceEmbeddingProvider(config["api_key"], model)
    else:
        logger.warning(f"Unknown embedding provider '{provider}', falling back to Ollama")
        return OllamaEmbeddingProvider(config.get("endpoint"), "nomic-embed-text")


class EmbeddingService:
    """
    Embedding front door used by search and indexing.

    The provider is None while unconfigured (e.g. a hosted provider with no
    API key). In that state embed() raises EmbeddingUnavailableError, which
    the search engine treats as a degraded vector leg.
    """

    def __init__(
        self,
        config: dict,
        cache: Optional[LRUCache[list[float]]] = None,
        emitter: Optional[EventEmitter] = None,
    ):
        self.config = dict(config)
        if cache is None:
            cache = LRUCache(self.config.get("cache_size", EMBEDDING_CACHE_SIZE))
        self.cache: LRUCache[list[float]] = cache
        self.emitter = emitter
        self.provider: Optional[EmbeddingProvider] = None
        self._init_provider()

    def _init_provider(self) -> None:
        try:
            self.provider = create_provider(self.config)
            logger.info(f"Embedding service using {self.provider.name}/{self.provider.model}")
        except MissingConfigError as e:
            logger.warning(f"Embedding provider not configured: {e}")
            self.provider = None

    def is_configured(self) -> bool:
        return self.provider is not None

    def update_config(self, **changes: Any) -> None:
        """Apply config changes and rebuild the provider."""
        self.config.update(changes)
        self._init_provider()

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            wait=wait_exponential(multiplier=1, min=1, max=10),
            stop=stop_after_attempt(max(1, int(self.config.get("retry_attempts", 3)))),
            retry=retry_if_exception_type((HTTPConnectionError, HTTPTimeoutError)),
            reraise=True,
        )

    def _require_provider(self) -> EmbeddingProvider:
        if self.provider is None:
            raise EmbeddingUnavailableError(
                f"Embedding provider not configured: {self.config.get('provider')}",
                {"provider": self.config.get("provider")},
            )
        return self.provider

    async def embed(self, text: str) -> list[float]:
        """
        Embed text, serving repeats from the cache.

        Raises:
            EmbeddingUnavailableError: No provider is configured
            ClientError: The provider could not be reached after retries
        """
        provider = self._require_provider()

        key = content_hash(text)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        async for attempt in self._retrying():
            with attempt:
                embedding = await provider.embed(text)

        self.cache.set(key, embedding)
        return embedding

    async def embed_query(self, query: str) -> list[float]:
        return await self.embed(f"{QUERY_PREFIX}{query}")

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        provider = self._require_provider()
        if not texts:
            return []
        async for attempt in self._retrying():
            with attempt:
                embeddings = await provider.embed_batch(texts)
        return embeddings

    def get_model_info(self) -> ModelInfo:
        if self.provider is None:
            return ModelInfo(dimensions=self.config.get("dimensions", 768), max_tokens=512)
        return self.provider.get_model_info()

    async def check_availability(self) -> bool:
        """Probe the provider with a tiny request."""
        try:
            await self.embed("test")
            return True
        except HistorianError as e:
            logger.debug(f"Embedding provider unavailable: {e}")
            return False

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.debug("Embedding cache cleared")

    def get_cache_stats(self) -> dict[str, int]:
        return self.cache.stats()

    # --- Indexing ---

    def create_embedding_text(self, change: ChangeRecord) -> str:
        """Serialize a change for embedding, truncating the diff to the model's budget."""
        parts = [
            f"File: {change.file_path}",
            f"Language: {change.language}",
            f"Event: {change.event_type}",
        ]
        if change.symbols:
            parts.append(f"Symbols: {', '.join(change.symbols)}")
        if change.summary:
            parts.append(f"Summary: {change.summary}")

        max_tokens = self.config.get("max_tokens") or self.get_model_info().max_tokens
        max_diff = max(0, max_tokens * _CHARS_PER_TOKEN - len("\n".join(parts)) - _DIFF_BUDGET_MARGIN)
        diff = change.diff
        if len(diff) > max_diff:
            diff = diff[:max_diff] + "\n... [truncated]"
        parts.append(f"Changes:\n{diff}")

        return "\n".join(parts)

    @staticmethod
    def _vector_record(change: ChangeRecord, vector: list[float]) -> VectorRecord:
        return VectorRecord(
            id=f"emb-{change.id}",
            change_id=change.id,
            vector=vector,
            timestamp=change.timestamp,
            file_path=change.file_path,
            event_type=change.event_type,
            language=change.language,
            symbols=list(change.symbols),
            git_branch=change.git_branch,
            searchable_text=change.searchable_text,
            summary=change.summary,
            workspace_id=change.workspace_id,
        )

    async def index_change(
        self,
        change: ChangeRecord,
        vector_store: "ChromaVectorStore",
        metadata_store: "MetadataStore",
    ) -> str:
        """
        Embed a change, store its vector, and record the embedding id.

        Returns:
            The embedding id
        """
        vector = await self.embed(self.create_embedding_text(change))
        record = self._vector_record(change, vector)
        await vector_store.add_vector(record)
        metadata_store.update_embedding_id(change.id, record.id)

        if self.emitter:
            self.emitter.emit(
                EVENTS["embedding_completed"],
                {"change_id": change.id, "embedding_id": record.id},
            )
        return record.id

    async def index_changes(
        self,
        changes: list[ChangeRecord],
        vector_store: "ChromaVectorStore",
        metadata_store: "MetadataStore",
        batch_size: int = 32,
    ) -> int:
        """Batch variant of index_change. Returns the number of indexed changes."""
        start = time.time()
        processed = 0
        for offset in range(0, len(changes), batch_size):
            batch = changes[offset : offset + batch_size]
            vectors = await self.embed_batch([self.create_embedding_text(c) for c in batch])
            records = [self._vector_record(c, v) for c, v in zip(batch, vectors)]
            await vector_store.add_vectors(records)
            for record in records:
                metadata_store.update_embedding_id(record.change_id, record.id)
            processed += len(batch)
            logger.debug(f"Indexed {processed}/{len(changes)} changes")

        if processed:
            logger.info(f"Indexed {processed} changes in {(time.time() - start) * 1000:.0f}ms")
        return processed

    async def index_pending_changes(
        self,
        workspace_id: str,
        vector_store: "ChromaVectorStore",
        metadata_store: "MetadataStore",
        limit: int = 100,
    ) -> int:
        """Index changes that have no embedding yet."""
        pending = metadata_store.get_changes_without_embeddings(workspace_id, limit)
        if not pending:
            return 0
        return await self.index_changes(pending, vector_store, metadata_store)
