"""
Embedding Provider Abstraction

One capability interface with a variant per backend, selected by config.
"""

from .huggingface_provider import HuggingFaceEmbeddingProvider, mean_pool
from .ollama_provider import OllamaEmbeddingProvider
from .openai_provider import OpenAIEmbeddingProvider
from .provider import EmbeddingProvider, ModelInfo
from .service import EmbeddingService, create_provider

__all__ = [
    "EmbeddingProvider",
    "ModelInfo",
    "OllamaEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "HuggingFaceEmbeddingProvider",
    "EmbeddingService",
    "create_provider",
    "mean_pool",
]
