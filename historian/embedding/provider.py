"""
Base Embedding Provider Interface

Defines the capability interface every embedding backend implements.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from historian.configs.constants import EMBEDDING_MODELS


@dataclass(frozen=True)
class ModelInfo:
    """Vector size and input budget of an embedding model."""

    dimensions: int
    max_tokens: int


def lookup_model_info(provider: str, model: str, default: ModelInfo) -> ModelInfo:
    """Known model table entry, or the provider default for unlisted models."""
    entry = EMBEDDING_MODELS.get(provider, {}).get(model)
    if entry is None:
        return default
    return ModelInfo(dimensions=entry["dimensions"], max_tokens=entry["max_tokens"])


class EmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.

    Implementations map text to a fixed-length vector. Transport failures
    surface as the ClientError family from historian.utils.http_client so
    the service can decide what to retry.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging and identification."""
        pass

    @property
    @abstractmethod
    def model(self) -> str:
        pass

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """
        Embed one text.

        Args:
            text: Input text

        Returns:
            Embedding vector
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        pass

    @abstractmethod
    def get_model_info(self) -> ModelInfo:
        pass
