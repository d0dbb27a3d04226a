import asyncio

import numpy as np
import pytest

from jina_mcp.tools.backend import (
    API_KEY_URL,
    BackendError,
    JinaBackend,
    api_error_message,
    maybe_truncate,
    with_retries,
)


class RecordingPost:
    """Stands in for JinaBackend._post and remembers what it was asked."""

    def __init__(self, response):
        self.response = response
        self.calls = []

    async def __call__(self, session, url, payload, headers, action):
        self.calls.append({"url": url, "payload": payload, "headers": headers, "action": action})
        return self.response


@pytest.fixture(autouse=True)
def no_env_key(monkeypatch):
    monkeypatch.delenv("JINA_API_KEY", raising=False)


def test_api_error_messages():
    assert "401" in api_error_message(401, "", "Web search")
    assert API_KEY_URL in api_error_message(401, "", "Web search")
    assert "balance" in api_error_message(402, "", "Web search")
    assert "rate limit" in api_error_message(429, "", "Web search")
    assert api_error_message(500, "", "Reranking") == "Reranking failed with status 500"
    message = api_error_message(503, "x" * 5000, "Reranking")
    assert message.startswith("Reranking failed with status 503: ")
    assert message.endswith("...")
    assert len(message) < 1100


def test_maybe_truncate():
    assert maybe_truncate("short") == "short"
    assert maybe_truncate("abcdefgh", num_chars=6) == "abc..."


def test_with_retries_disabled_returns_function():
    async def func():
        return 1

    assert with_retries(func, 0, 1.0) is func


def test_resolve_token_order(monkeypatch):
    backend = JinaBackend(api_key="server-key")
    assert backend.resolve_token("client-key") == "client-key"
    assert backend.resolve_token(None) == "server-key"

    monkeypatch.setenv("JINA_API_KEY", "env-key")
    assert JinaBackend().resolve_token(None) == "env-key"
    monkeypatch.delenv("JINA_API_KEY")
    assert JinaBackend().resolve_token(None) is None


def test_search_requires_token(monkeypatch):
    post = RecordingPost({"results": []})
    monkeypatch.setattr(JinaBackend, "_post", post)
    with pytest.raises(BackendError, match="requires a Jina API key"):
        asyncio.run(JinaBackend().search(None, "query", None))
    assert post.calls == []


def test_search_payload(monkeypatch):
    post = RecordingPost({"results": [{"title": "Attention"}]})
    monkeypatch.setattr(JinaBackend, "_post", post)
    results = asyncio.run(
        JinaBackend().search(None, "attention", "tok", num=5, domain="arxiv", action="arXiv search")
    )
    assert results == [{"title": "Attention"}]
    call = post.calls[0]
    assert call["url"] == "https://svip.jina.ai/"
    assert call["payload"] == {"q": "attention", "domain": "arxiv", "num": 5}
    assert call["headers"]["Authorization"] == "Bearer tok"
    assert call["action"] == "arXiv search"


def test_read_headers(monkeypatch):
    post = RecordingPost({"data": {"title": "T", "content": "body"}})
    monkeypatch.setattr(JinaBackend, "_post", post)
    data = asyncio.run(JinaBackend().read(None, "https://example.com/", None, with_links=True))
    assert data == {"title": "T", "content": "body"}
    headers = post.calls[0]["headers"]
    assert "Authorization" not in headers
    assert headers["X-Md-Link-Style"] == "discarded"
    assert headers["X-With-Links-Summary"] == "all"
    assert headers["X-Retain-Images"] == "none"
    assert "X-With-Images-Summary" not in headers


def test_read_rejects_missing_data(monkeypatch):
    monkeypatch.setattr(JinaBackend, "_post", RecordingPost({"code": 200}))
    with pytest.raises(BackendError, match="Invalid response data"):
        asyncio.run(JinaBackend().read(None, "https://example.com/", None))


def test_screenshot_without_url(monkeypatch):
    monkeypatch.setattr(JinaBackend, "_post", RecordingPost({"data": {}}))
    with pytest.raises(BackendError, match="No screenshot URL"):
        asyncio.run(JinaBackend().screenshot(None, "https://example.com/", None))


def test_embeddings_are_ordered_by_index(monkeypatch):
    post = RecordingPost(
        {
            "data": [
                {"index": 1, "embedding": [0.0, 1.0]},
                {"index": 0, "embedding": [1.0, 0.0]},
            ]
        }
    )
    monkeypatch.setattr(JinaBackend, "_post", post)
    vectors = asyncio.run(JinaBackend().embed_texts(None, ["a", "b"], "tok"))
    assert isinstance(vectors, np.ndarray)
    assert vectors.tolist() == [[1.0, 0.0], [0.0, 1.0]]
    assert post.calls[0]["payload"] == {
        "model": "jina-embeddings-v3",
        "input": ["a", "b"],
        "task": "text-matching",
    }


def test_image_embeddings_payload(monkeypatch):
    post = RecordingPost({"data": [{"index": 0, "embedding": [1.0]}]})
    monkeypatch.setattr(JinaBackend, "_post", post)
    asyncio.run(JinaBackend().embed_images(None, ["https://example.com/a.png"], "tok"))
    assert post.calls[0]["payload"] == {
        "model": "jina-clip-v2",
        "input": [{"image": "https://example.com/a.png"}],
    }


def test_embedding_count_mismatch(monkeypatch):
    monkeypatch.setattr(JinaBackend, "_post", RecordingPost({"data": []}))
    with pytest.raises(BackendError, match="returned 0 embeddings for 2 inputs"):
        asyncio.run(JinaBackend().embed_texts(None, ["a", "b"], "tok"))
