"""
Reranker Backends

Pairwise relevance scorers behind one interface: the HuggingFace inference
router, Cohere rerank, and a local FlashRank cross-encoder.

Each backend scores one (query, document) pair per call. A response that
cannot be turned into a number yields None; transport failures raise the
ClientError family and local model failures raise RerankError.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional

from flashrank import Ranker, RerankRequest

from historian.configs import get_logger, get_timeout
from historian.configs.constants import RERANK_MAX_DOCUMENT_CHARS
from historian.exceptions import RerankError
from historian.utils.http_client import bearer_headers, http_json_post, http_post

logger = get_logger("search.reranker")

HF_INFERENCE_URL = "https://router.huggingface.co/hf-inference/models"
COHERE_RERANK_URL = "https://api.cohere.ai/v1/rerank"

DEFAULT_COHERE_MODEL = "rerank-english-v3.0"
DEFAULT_LOCAL_MODEL = "ms-marco-MiniLM-L-12-v2"

# Labels cross-encoders use for the "relevant" class
POSITIVE_LABELS = ("LABEL_1", "entailment", "1")


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def extract_relevance_score(payload: Any) -> Optional[float]:
    """
    Pull a relevance score out of a cross-encoder response.

    Accepted shapes:
        0.93
        [0.93, ...]
        [[{"label": "LABEL_0", "score": 0.1}, {"label": "LABEL_1", "score": 0.9}]]
        [{"label": ..., "score": 0.9}]
        {"score": 0.9}

    For label lists the positive label wins, else the first item's score.

    Returns:
        The score, or None for unrecognised shapes
    """
    number = _as_number(payload)
    if number is not None:
        return number

    if isinstance(payload, list):
        if not payload:
            return None
        first = payload[0]

        number = _as_number(first)
        if number is not None:
            return number

        if isinstance(first, list):
            for item in first:
                if isinstance(item, dict) and item.get("label") in POSITIVE_LABELS:
                    score = _as_number(item.get("score"))
                    if score is not None:
                        return score
            if first and isinstance(first[0], dict):
                return _as_number(first[0].get("score"))
            return None

        if isinstance(first, dict):
            return _as_number(first.get("score"))
        return None

    if isinstance(payload, dict):
        return _as_number(payload.get("score"))

    return None


class RerankerBackend(ABC):
    """Scores one query/document pair."""

    requires_api_key = True

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def score(self, query: str, text: str) -> Optional[float]:
        """
        Relevance of text to query.

        Returns:
            Score (higher is more relevant), or None if the response was unusable

        Raises:
            ClientError: The scoring request failed
            RerankError: The scoring model failed
        """
        pass


class HuggingFaceReranker(RerankerBackend):
    """Cross-encoder hosted on the HuggingFace inference router."""

    def __init__(self, api_key: str, model: str):
        self._api_key = api_key
        self._model = model

    @property
    def name(self) -> str:
        return "huggingface"

    async def score(self, query: str, text: str) -> Optional[float]:
        url = f"{HF_INFERENCE_URL}/{self._model}"
        document = text[:RERANK_MAX_DOCUMENT_CHARS]
        headers = bearer_headers(self._api_key)
        timeout = get_timeout("rerank_request")

        response = await http_post(
            url,
            json={"inputs": {"text": query, "text_pair": document}},
            headers=headers,
            timeout=timeout,
            raise_for_status=False,
        )
        if not response.is_success:
            # Some models only accept a single sequence with a separator
            response = await http_post(
                url,
                json={"inputs": f"{query} [SEP] {document}"},
                headers=headers,
                timeout=timeout,
                raise_for_status=False,
            )
            if not response.is_success:
                logger.debug(f"Reranker API error: {response.status_code} - {response.text[:200]}")
                return None

        try:
            payload = response.json()
        except ValueError:
            return None
        return extract_relevance_score(payload)


class CohereReranker(RerankerBackend):
    """Cohere rerank API, one document per request."""

    def __init__(self, api_key: str, model: str):
        self._api_key = api_key
        self._model = model if model and "/" not in model else DEFAULT_COHERE_MODEL

    @property
    def name(self) -> str:
        return "cohere"

    async def score(self, query: str, text: str) -> Optional[float]:
        data = await http_json_post(
            COHERE_RERANK_URL,
            json={
                "model": self._model,
                "query": query,
                "documents": [text[:RERANK_MAX_DOCUMENT_CHARS]],
                "top_n": 1,
                "return_documents": False,
            },
            headers=bearer_headers(self._api_key),
            timeout=get_timeout("rerank_request"),
        )
        results = data.get("results") if isinstance(data, dict) else None
        if not results or not isinstance(results[0], dict):
            return None
        return _as_number(results[0].get("relevance_score"))


class LocalReranker(RerankerBackend):
    """FlashRank cross-encoder running in-process; needs no credential."""

    requires_api_key = False

    def __init__(self, model: str = DEFAULT_LOCAL_MODEL, max_length: int = RERANK_MAX_DOCUMENT_CHARS):
        # Hub-style ids ("org/model") are not FlashRank model names
        self._model = model if model and "/" not in model else DEFAULT_LOCAL_MODEL
        self._max_length = max_length
        self._ranker: Optional[Ranker] = None

    @property
    def name(self) -> str:
        return "local"

    def _get_ranker(self) -> Ranker:
        if self._ranker is None:
            logger.info(f"Loading FlashRank model {self._model}")
            self._ranker = Ranker(model_name=self._model, max_length=self._max_length)
        return self._ranker

    def _score_sync(self, query: str, text: str) -> Optional[float]:
        request = RerankRequest(query=query, passages=[{"id": "0", "text": text}])
        try:
            ranked = self._get_ranker().rerank(request)
        except (OSError, RuntimeError, ValueError) as e:
            raise RerankError(f"FlashRank error: {e}", {"model": self._model}) from e
        if not ranked:
            return None
        return float(ranked[0]["score"])

    async def score(self, query: str, text: str) -> Optional[float]:
        return await asyncio.to_thread(self._score_sync, query, text[:RERANK_MAX_DOCUMENT_CHARS])


def create_reranker_backend(config: dict) -> Optional[RerankerBackend]:
    """
    Backend for a reranker config section.

    Returns None when a hosted provider has no API key.
    """
    provider = (config.get("provider") or "huggingface").lower()
    model = config.get("model") or ""
    api_key = config.get("api_key")

    if provider == "local":
        return LocalReranker(model)
    if not api_key:
        return None
    if provider == "cohere":
        return CohereReranker(api_key, model)
    if provider != "huggingface":
        logger.warning(f"Unknown reranker provider '{provider}', using huggingface")
    return HuggingFaceReranker(api_key, model)
