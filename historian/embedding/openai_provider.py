"""
OpenAI Embedding Provider

Uses the OpenAI embeddings API. Requires an API key.
"""

from historian.configs import get_timeout
from historian.exceptions import EmbeddingError
from historian.utils.http_client import bearer_headers, http_json_post

from .provider import EmbeddingProvider, ModelInfo, lookup_model_info

OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embedding provider for OpenAI models (text-embedding-3-*)."""

    def __init__(self, api_key: str, model: str = "text-embedding-3-small"):
        self._api_key = api_key
        self._model = model
        self._info = lookup_model_info("openai", model, ModelInfo(dimensions=1536, max_tokens=8191))

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return self._model

    async def embed(self, text: str) -> list[float]:
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        data = await http_json_post(
            OPENAI_EMBEDDINGS_URL,
            json={"model": self._model, "input": texts},
            headers=bearer_headers(self._api_key),
            timeout=get_timeout("embedding_request"),
        )
        items = data.get("data") if isinstance(data, dict) else None
        if not items or len(items) != len(texts):
            raise EmbeddingError("OpenAI returned an unexpected embedding payload", {"model": self._model})
        # The API may return items out of order; "index" restores input order
        items = sorted(items, key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in items]

    def get_model_info(self) -> ModelInfo:
        return self._info
