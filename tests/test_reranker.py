"""
Tests for cross-encoder reranking: score extraction, per-document
fallback, enablement, and the HTTP-backed backends.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from historian.exceptions import HTTPConnectionError, HTTPRequestError, RerankError
from historian.search.reranker import (
    RerankedResult,
    RerankerDocument,
    RerankerService,
    normalize_scores,
    prepare_document_for_reranking,
)
from historian.search.reranker_backends import (
    CohereReranker,
    HuggingFaceReranker,
    LocalReranker,
    RerankerBackend,
    create_reranker_backend,
    extract_relevance_score,
)


class ScriptedBackend(RerankerBackend):
    """Backend returning canned scores keyed by document text."""

    def __init__(self, scores, requires_api_key=True):
        self.scores = scores
        self.requires_api_key = requires_api_key
        self.calls = []

    @property
    def name(self) -> str:
        return "scripted"

    async def score(self, query, text):
        self.calls.append(text)
        value = self.scores[text]
        if isinstance(value, Exception):
            raise value
        return value


def docs(*pairs):
    return [RerankerDocument(id=text, text=text, original_score=score) for text, score in pairs]


def enabled_service(backend, **config):
    return RerankerService({"enabled": True, "api_key": "key", **config}, backend=backend)


class TestExtractRelevanceScore:
    """Tests for extract_relevance_score."""

    def test_bare_number(self):
        assert extract_relevance_score(0.87) == 0.87

    def test_number_list(self):
        assert extract_relevance_score([0.42, 0.1]) == 0.42

    def test_label_array_prefers_positive(self):
        payload = [[{"label": "LABEL_0", "score": 0.2}, {"label": "LABEL_1", "score": 0.8}]]

        assert extract_relevance_score(payload) == 0.8

    def test_entailment_label(self):
        payload = [[{"label": "contradiction", "score": 0.1}, {"label": "entailment", "score": 0.7}]]

        assert extract_relevance_score(payload) == 0.7

    def test_label_array_falls_back_to_first(self):
        payload = [[{"label": "neutral", "score": 0.3}, {"label": "other", "score": 0.6}]]

        assert extract_relevance_score(payload) == 0.3

    def test_flat_dict_list(self):
        assert extract_relevance_score([{"label": "x", "score": 0.55}]) == 0.55

    def test_object_with_score(self):
        assert extract_relevance_score({"score": 0.9}) == 0.9

    @pytest.mark.parametrize(
        "payload",
        [None, "high", [], [[]], {"error": "loading"}, [{"label": "x"}], True, [["a"]]],
    )
    def test_unrecognised_shapes(self, payload):
        assert extract_relevance_score(payload) is None


class TestPrepareDocument:
    """Tests for prepare_document_for_reranking."""

    def test_all_parts(self, make_change):
        change = make_change("c1", file_path="src/auth.py", symbols=["login", "logout"], summary="Fix auth")

        text = prepare_document_for_reranking(change)

        assert text.split("\n")[:3] == ["File: src/auth.py", "Symbols: login, logout", "Summary: Fix auth"]
        assert "Changes: @@" in text

    def test_diff_preview_truncated(self, make_change):
        change = make_change("c1", diff="x" * 2000)

        text = prepare_document_for_reranking(change)

        assert text.endswith("Changes: " + "x" * 500)

    def test_optional_parts_omitted(self, make_change):
        text = prepare_document_for_reranking(make_change("c1", diff=""))

        assert text == "File: src/c1.py"


class TestRerankerEnablement:
    """Tests for the enable/configure state machine."""

    def test_disabled_by_default(self):
        assert RerankerService().is_enabled() is False

    def test_enabled_without_key_is_not_active(self):
        """Enabled with an empty API key is still inactive."""
        service = RerankerService({"enabled": True, "api_key": ""})

        assert service.is_enabled() is False

    def test_enabled_with_key(self):
        service = RerankerService({"enabled": True, "api_key": "hf_x"})

        assert service.is_enabled() is True
        assert isinstance(service.backend, HuggingFaceReranker)

    def test_local_needs_no_key(self):
        service = RerankerService({"enabled": True, "provider": "local"})

        assert service.is_enabled() is True
        assert isinstance(service.backend, LocalReranker)

    def test_update_config_rebuilds_backend(self):
        service = RerankerService({"enabled": True})
        assert service.is_enabled() is False

        service.update_config(api_key="co_key", provider="cohere")

        assert service.is_enabled() is True
        assert isinstance(service.backend, CohereReranker)

    def test_set_enabled_toggles(self):
        service = RerankerService({"api_key": "k"})

        service.set_enabled(True)
        assert service.is_enabled() is True
        service.set_enabled(False)
        assert service.is_enabled() is False


class TestRerank:
    """Tests for RerankerService.rerank."""

    def test_disabled_passthrough_sorted_by_original(self):
        """Inactive reranker returns documents by original score, truncated."""
        backend = ScriptedBackend({})
        service = RerankerService({"enabled": True, "api_key": ""}, backend=backend)

        results = asyncio.run(service.rerank("q", docs(("a", 0.1), ("b", 0.9), ("c", 0.5)), top_k=2))

        assert [r.id for r in results] == ["b", "c"]
        assert [r.score for r in results] == [0.9, 0.5]
        assert backend.calls == []

    def test_scores_and_resorts(self):
        backend = ScriptedBackend({"a": 0.2, "b": 0.95, "c": 0.6})
        service = enabled_service(backend)

        results = asyncio.run(service.rerank("q", docs(("a", 0.9), ("b", 0.1), ("c", 0.5))))

        assert [r.id for r in results] == ["b", "c", "a"]
        assert all(r.reranked for r in results)
        assert results[0].original_score == 0.1

    def test_unparseable_document_falls_back(self):
        """Exactly the unparseable document keeps its original score."""
        backend = ScriptedBackend({"a": 0.7, "b": None, "c": 0.4})
        service = enabled_service(backend)

        results = {r.id: r for r in asyncio.run(service.rerank("q", docs(("a", 0.01), ("b", 0.03), ("c", 0.02))))}

        assert results["b"].score == 0.03
        assert results["b"].reranked is False
        assert results["a"].score == 0.7
        assert results["c"].score == 0.4

    def test_failing_document_falls_back(self):
        """A transport error on one document does not affect the others."""
        backend = ScriptedBackend({"a": HTTPConnectionError("refused"), "b": 0.5})
        service = enabled_service(backend)

        results = asyncio.run(service.rerank("q", docs(("a", 0.02), ("b", 0.01))))

        assert [(r.id, r.score) for r in results] == [("b", 0.5), ("a", 0.02)]

    def test_unexpected_backend_error_falls_back_per_document(self):
        """Only the document whose scoring crashed keeps its original score."""
        backend = ScriptedBackend({"a": 0.9, "b": RuntimeError("model crashed on this document"), "c": 0.7})
        service = enabled_service(backend)

        results = asyncio.run(service.rerank("q", docs(("a", 0.01), ("b", 0.02), ("c", 0.03)), top_k=3))

        assert [(r.id, r.score, r.reranked) for r in results] == [
            ("a", 0.9, True),
            ("c", 0.7, True),
            ("b", 0.02, False),
        ]
        assert backend.calls == ["a", "b", "c"]

    @pytest.mark.parametrize("error", [KeyError("score"), httpx.DecodingError("bad gzip"), OSError("no model")])
    def test_any_exception_type_falls_back(self, error):
        backend = ScriptedBackend({"a": error, "b": 0.5})

        results = asyncio.run(enabled_service(backend).rerank("q", docs(("a", 0.02), ("b", 0.01))))

        assert [(r.id, r.score) for r in results] == [("b", 0.5), ("a", 0.02)]

    def test_documents_scored_sequentially_in_order(self):
        backend = ScriptedBackend({"a": 1.0, "b": 2.0, "c": 3.0})

        asyncio.run(enabled_service(backend).rerank("q", docs(("a", 0), ("b", 0), ("c", 0))))

        assert backend.calls == ["a", "b", "c"]

    def test_truncates_to_configured_top_k(self):
        backend = ScriptedBackend({t: float(i) for i, t in enumerate("abcdef")})
        service = enabled_service(backend, top_k=3)

        results = asyncio.run(service.rerank("q", docs(*[(t, 0.0) for t in "abcdef"])))

        assert [r.id for r in results] == ["f", "e", "d"]

    def test_empty_documents(self):
        assert asyncio.run(enabled_service(ScriptedBackend({})).rerank("q", [])) == []


class TestNormalizeRerankedScores:
    """Tests for the reranker's normalize_scores utility."""

    def test_scaled(self):
        results = [RerankedResult("a", 2.0, 0.1), RerankedResult("b", 4.0, 0.2), RerankedResult("c", 3.0, 0.3)]

        assert [r.score for r in normalize_scores(results)] == [0.0, 1.0, 0.5]

    def test_equal_scores_become_one(self):
        results = [RerankedResult("a", 0.3, 0.1), RerankedResult("b", 0.3, 0.2)]

        assert [r.score for r in normalize_scores(results)] == [1.0, 1.0]

    def test_empty(self):
        assert normalize_scores([]) == []


class TestBackendFactory:
    """Tests for create_reranker_backend."""

    def test_hosted_without_key_is_none(self):
        assert create_reranker_backend({"provider": "cohere"}) is None

    def test_unknown_provider_uses_huggingface(self):
        backend = create_reranker_backend({"provider": "mystery", "api_key": "k", "model": "m"})

        assert isinstance(backend, HuggingFaceReranker)

    def test_local_ignores_hub_model_ids(self):
        backend = create_reranker_backend({"provider": "local", "model": "BAAI/bge-reranker-base"})

        assert backend._model == "ms-marco-MiniLM-L-12-v2"


def response(status: int, payload=None, text: str = "") -> httpx.Response:
    if payload is not None:
        return httpx.Response(status, json=payload)
    return httpx.Response(status, text=text)


class TestHuggingFaceReranker:
    """Tests for the HuggingFace backend."""

    def test_pair_input(self):
        """The first request sends a text/text_pair input."""
        post = AsyncMock(return_value=response(200, [[{"label": "LABEL_1", "score": 0.81}]]))
        backend = HuggingFaceReranker("hf_key", "BAAI/bge-reranker-base")

        with patch("historian.search.reranker_backends.http_post", post):
            score = asyncio.run(backend.score("auth bug", "File: auth.py"))

        assert score == 0.81
        body = post.call_args.kwargs["json"]
        assert body == {"inputs": {"text": "auth bug", "text_pair": "File: auth.py"}}
        assert post.call_args.args[0].endswith("/models/BAAI/bge-reranker-base")

    def test_falls_back_to_sep_input(self):
        """A non-2xx response triggers a single-sequence retry."""
        post = AsyncMock(side_effect=[response(400, text="bad input"), response(200, [0.33])])
        backend = HuggingFaceReranker("hf_key", "model")

        with patch("historian.search.reranker_backends.http_post", post):
            score = asyncio.run(backend.score("q", "doc"))

        assert score == 0.33
        assert post.call_args_list[1].kwargs["json"] == {"inputs": "q [SEP] doc"}

    def test_both_requests_fail_returns_none(self):
        post = AsyncMock(side_effect=[response(503, text="loading"), response(503, text="loading")])

        with patch("historian.search.reranker_backends.http_post", post):
            assert asyncio.run(HuggingFaceReranker("k", "m").score("q", "doc")) is None

    def test_document_truncated(self):
        post = AsyncMock(return_value=response(200, 0.5))

        with patch("historian.search.reranker_backends.http_post", post):
            asyncio.run(HuggingFaceReranker("k", "m").score("q", "y" * 2000))

        assert len(post.call_args.kwargs["json"]["inputs"]["text_pair"]) == 512


class TestCohereReranker:
    """Tests for the Cohere backend."""

    def test_relevance_score(self):
        post = AsyncMock(return_value={"results": [{"index": 0, "relevance_score": 0.64}]})

        with patch("historian.search.reranker_backends.http_json_post", post):
            score = asyncio.run(CohereReranker("co", "rerank-english-v3.0").score("q", "doc"))

        assert score == 0.64
        body = post.call_args.kwargs["json"]
        assert body["documents"] == ["doc"]
        assert body["top_n"] == 1

    def test_http_error_propagates(self):
        """Transport failures surface for the service's per-document fallback."""
        post = AsyncMock(side_effect=HTTPRequestError("HTTP 401", status_code=401))

        with patch("historian.search.reranker_backends.http_json_post", post):
            with pytest.raises(HTTPRequestError):
                asyncio.run(CohereReranker("bad", "m").score("q", "doc"))

    def test_empty_results_is_none(self):
        post = AsyncMock(return_value={"results": []})

        with patch("historian.search.reranker_backends.http_json_post", post):
            assert asyncio.run(CohereReranker("co", "m").score("q", "doc")) is None


class TestLocalReranker:
    """Tests for the FlashRank backend."""

    def test_scores_with_flashrank(self):
        ranker = MagicMock()
        ranker.rerank.return_value = [{"id": "0", "text": "doc", "score": 0.91}]

        with patch("historian.search.reranker_backends.Ranker", return_value=ranker) as ranker_cls:
            score = asyncio.run(LocalReranker().score("q", "doc"))

        assert score == pytest.approx(0.91)
        ranker_cls.assert_called_once_with(model_name="ms-marco-MiniLM-L-12-v2", max_length=512)

    def test_model_loaded_once(self):
        ranker = MagicMock()
        ranker.rerank.return_value = [{"id": "0", "score": 0.5}]
        backend = LocalReranker()

        with patch("historian.search.reranker_backends.Ranker", return_value=ranker) as ranker_cls:
            asyncio.run(backend.score("q", "a"))
            asyncio.run(backend.score("q", "b"))

        assert ranker_cls.call_count == 1

    def test_model_failure_raises_rerank_error(self):
        ranker = MagicMock()
        ranker.rerank.side_effect = RuntimeError("onnx session failed")

        with patch("historian.search.reranker_backends.Ranker", return_value=ranker):
            with pytest.raises(RerankError) as exc_info:
                asyncio.run(LocalReranker().score("q", "doc"))

        assert exc_info.value.details == {"model": "ms-marco-MiniLM-L-12-v2"}

    def test_model_load_failure_degrades_through_service(self):
        """A model that cannot load leaves every document at its original score."""
        with patch("historian.search.reranker_backends.Ranker", side_effect=OSError("model files missing")):
            service = RerankerService({"enabled": True, "provider": "local"})
            results = asyncio.run(service.rerank("q", docs(("a", 0.2), ("b", 0.4))))

        assert [(r.id, r.score, r.reranked) for r in results] == [("b", 0.4, False), ("a", 0.2, False)]
