"""
Ollama Embedding Provider

Uses a local Ollama server. No API key required.
"""

import asyncio

from historian.configs import get_logger, get_timeout
from historian.exceptions import EmbeddingError
from historian.utils.http_client import http_json_post

from .provider import EmbeddingProvider, ModelInfo, lookup_model_info

logger = get_logger("embedding.ollama")

DEFAULT_ENDPOINT = "http://localhost:11434"


class OllamaEmbeddingProvider(EmbeddingProvider):
    """
    Embedding provider backed by Ollama's /api/embeddings route.

    Configuration:
        endpoint: Ollama server URL (default: http://localhost:11434)
        model: Embedding model (default: nomic-embed-text)
    """

    def __init__(self, endpoint: str = DEFAULT_ENDPOINT, model: str = "nomic-embed-text"):
        self._endpoint = (endpoint or DEFAULT_ENDPOINT).rstrip("/")
        self._model = model
        self._info = lookup_model_info("ollama", model, ModelInfo(dimensions=768, max_tokens=8192))

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model

    async def embed(self, text: str) -> list[float]:
        data = await http_json_post(
            f"{self._endpoint}/api/embeddings",
            json={"model": self._model, "prompt": text},
            timeout=get_timeout("embedding_request"),
        )
        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not embedding:
            raise EmbeddingError("Ollama returned no embedding", {"model": self._model})
        return embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        # No batch route, so requests are issued concurrently
        return list(await asyncio.gather(*(self.embed(text) for text in texts)))

    def get_model_info(self) -> ModelInfo:
        return self._info
