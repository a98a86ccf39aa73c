"""
HuggingFace Embedding Provider

Uses the HuggingFace inference router. Feature-extraction models may
return one vector per token, which is mean-pooled into a single vector.
"""

from typing import Any

from historian.configs import get_logger, get_timeout
from historian.exceptions import EmbeddingError
from historian.utils.http_client import bearer_headers, http_json_post

from .provider import EmbeddingProvider, ModelInfo, lookup_model_info

logger = get_logger("embedding.huggingface")

HF_INFERENCE_URL = "https://router.huggingface.co/hf-inference/models"


def mean_pool(embedding: list[Any]) -> list[float]:
    """
    Collapse a token matrix into one vector by averaging each dimension.

    A flat vector is returned unchanged.
    """
    if not embedding:
        raise EmbeddingError("Empty embedding returned")
    if not isinstance(embedding[0], list):
        return [float(v) for v in embedding]

    tokens = embedding
    dimensions = len(tokens[0])
    totals = [0.0] * dimensions
    for token in tokens:
        for i in range(dimensions):
            totals[i] += token[i]
    return [v / len(tokens) for v in totals]


class HuggingFaceEmbeddingProvider(EmbeddingProvider):
    """Embedding provider for sentence-transformer models hosted on HuggingFace."""

    def __init__(self, api_key: str, model: str = "BAAI/bge-base-en-v1.5"):
        self._api_key = api_key
        self._model = model
        self._info = lookup_model_info("huggingface", model, ModelInfo(dimensions=768, max_tokens=512))

    @property
    def name(self) -> str:
        return "huggingface"

    @property
    def model(self) -> str:
        return self._model

    async def _post(self, inputs: str | list[str]) -> Any:
        url = f"{HF_INFERENCE_URL}/{self._model}"
        logger.debug(f"HuggingFace embed request to {url}")
        return await http_json_post(
            url,
            json={"inputs": inputs, "options": {"wait_for_model": True}},
            headers=bearer_headers(self._api_key),
            timeout=get_timeout("embedding_request"),
        )

    async def embed(self, text: str) -> list[float]:
        data = await self._post(text)
        if not isinstance(data, list):
            raise EmbeddingError("HuggingFace returned an unexpected embedding payload", {"model": self._model})
        return mean_pool(data)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        data = await self._post(texts)
        if not isinstance(data, list) or len(data) != len(texts):
            raise EmbeddingError("HuggingFace returned an unexpected embedding payload", {"model": self._model})
        return [mean_pool(item) for item in data]

    def get_model_info(self) -> ModelInfo:
        return self._info
