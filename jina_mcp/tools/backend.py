"""
Backend for the Jina AI APIs

This module owns every outbound HTTP call the tools make. Each tool call
opens one aiohttp session, hands it to the backend, and gets back plain
Python data (dicts, lists, bytes, numpy arrays) that the tool layer reshapes
into MCP content blocks.

Endpoints:
----------
- Reader (https://r.jina.ai/): page to markdown, screenshots
- Search (https://svip.jina.ai/): web, arXiv and image search
- Embeddings (https://api.jina.ai/v1/embeddings): text and image vectors for
  deduplication
- Rerank (https://api.jina.ai/v1/rerank): relevance ordering of documents

API Keys:
---------
The bearer token of the calling MCP client is used when present, then the
backend's own `api_key`, then the JINA_API_KEY environment variable. The
reader works without a key at a lower rate limit; search, rerank and
embeddings require one.

Error Handling:
---------------
- BackendError is raised for missing keys, non-2xx responses and malformed
  payloads, with a message meant to be shown to the model
- Optional retries with exponential backoff on connection errors and
  timeouts (off unless `num_retries` is set)
"""

import asyncio
import logging
import os
from typing import Any, Callable, ParamSpec, TypeVar

import chz
import numpy as np
from aiohttp import ClientError, ClientSession, ClientTimeout
from tenacity import (
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

API_KEY_URL = "https://jina.ai/?sui=apikey"


class BackendError(Exception):
    """
    Raised when a backend operation fails.

    This includes:
    - Missing API key for endpoints that require one
    - Authentication, balance and rate-limit failures
    - Other non-2xx responses
    - Responses without the expected fields
    """
    pass


P = ParamSpec("P")
R = TypeVar("R")


def with_retries(
    func: Callable[P, R],
    num_retries: int,
    max_wait_time: float,
) -> Callable[P, R]:
    """
    Add retry logic with exponential backoff to a coroutine function.

    Only transport failures (connection errors and timeouts) are retried;
    a BackendError from an HTTP error status is final.

    Args:
        func: The function to wrap
        num_retries: Maximum number of attempts
        max_wait_time: Maximum seconds to wait between attempts

    Returns:
        Wrapped function with retry logic (or original if num_retries=0)
    """
    if num_retries > 0:
        retry_decorator = retry(
            stop=stop_after_attempt(num_retries),
            wait=wait_exponential(
                multiplier=1,
                min=2,
                max=max_wait_time,
            ),
            before_sleep=before_sleep_log(logger, logging.INFO),
            after=after_log(logger, logging.INFO),
            retry=retry_if_exception_type((ClientError, asyncio.TimeoutError)),
            reraise=True,
        )
        return retry_decorator(func)
    else:
        return func


def maybe_truncate(text: str, num_chars: int = 1024) -> str:
    """
    Truncate text to a maximum length, adding ellipsis if truncated.

    Used to limit error message lengths when reporting back to the model.
    """
    if len(text) > num_chars:
        text = text[: (num_chars - 3)] + "..."
    return text


def api_error_message(status: int, body: str, action: str) -> str:
    """
    Describe a failed API response in words the model can act on.

    Args:
        status: HTTP status code
        body: Response body text
        action: What was being attempted, e.g. "Web search"
    """
    if status == 401:
        return (
            f"{action} failed: invalid or missing API key (401). "
            f"Get a Jina API key at {API_KEY_URL}"
        )
    if status == 402:
        return f"{action} failed: insufficient balance on the API key (402)"
    if status == 429:
        return f"{action} failed: rate limit exceeded (429), try again later"
    body = maybe_truncate(body.strip())
    if body:
        return f"{action} failed with status {status}: {body}"
    return f"{action} failed with status {status}"


@chz.chz(typecheck=True)
class JinaBackend:
    """
    Client configuration for the Jina AI APIs.

    Attributes:
        api_key: Fallback key when the MCP client sends no bearer token
        timeout: Total seconds allowed for one tool call's HTTP traffic
        num_retries: Attempts for transport failures (0 disables retries)
    """

    api_key: str | None = chz.field(
        doc="Jina API key. Uses JINA_API_KEY environment variable if not provided.",
        default=None,
    )
    reader_url: str = chz.field(doc="Reader endpoint", default="https://r.jina.ai/")
    search_url: str = chz.field(doc="Search endpoint", default="https://svip.jina.ai/")
    embeddings_url: str = chz.field(
        doc="Embeddings endpoint", default="https://api.jina.ai/v1/embeddings"
    )
    rerank_url: str = chz.field(doc="Rerank endpoint", default="https://api.jina.ai/v1/rerank")
    text_embedding_model: str = chz.field(
        doc="Embedding model for strings", default="jina-embeddings-v3"
    )
    image_embedding_model: str = chz.field(
        doc="Embedding model for images", default="jina-clip-v2"
    )
    rerank_model: str = chz.field(
        doc="Reranker model", default="jina-reranker-v2-base-multilingual"
    )
    timeout: float = chz.field(doc="Seconds per tool call", default=60.0)
    num_retries: int = chz.field(doc="Attempts on transport errors", default=0)
    max_wait_time: float = chz.field(doc="Maximum backoff in seconds", default=30.0)

    def session(self) -> ClientSession:
        return ClientSession(timeout=ClientTimeout(total=self.timeout))

    def resolve_token(self, token: str | None) -> str | None:
        return token or self.api_key or os.environ.get("JINA_API_KEY") or None

    def _headers(
        self, token: str | None, action: str, require_token: bool = False
    ) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        token = self.resolve_token(token)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        elif require_token:
            raise BackendError(
                f"{action} requires a Jina API key. Pass it as a bearer token "
                f"in the Authorization header or set JINA_API_KEY. Get one at {API_KEY_URL}"
            )
        return headers

    async def _post_once(
        self,
        session: ClientSession,
        url: str,
        payload: dict,
        headers: dict[str, str],
        action: str,
    ) -> Any:
        async with session.post(url, json=payload, headers=headers) as resp:
            if not 200 <= resp.status < 300:
                raise BackendError(api_error_message(resp.status, await resp.text(), action))
            return await resp.json(content_type=None)

    async def _post(
        self,
        session: ClientSession,
        url: str,
        payload: dict,
        headers: dict[str, str],
        action: str,
    ) -> Any:
        post = with_retries(self._post_once, self.num_retries, self.max_wait_time)
        logger.debug("POST %s (%s)", url, action)
        return await post(session, url, payload, headers, action)

    async def _download(self, session: ClientSession, url: str) -> bytes:
        async with session.get(url) as resp:
            if not 200 <= resp.status < 300:
                raise BackendError(f"Failed to download screenshot from {url}")
            return await resp.read()

    async def read(
        self,
        session: ClientSession,
        url: str,
        token: str | None,
        *,
        with_links: bool = False,
        with_images: bool = False,
    ) -> dict:
        """
        Convert a page (HTML or PDF) to markdown through the reader.

        Returns:
            The reader's `data` object: `url`, `title`, `content`, and
            `links`/`images` when requested
        """
        headers = self._headers(token, "URL conversion")
        headers["X-Md-Link-Style"] = "discarded"
        if with_links:
            headers["X-With-Links-Summary"] = "all"
        if with_images:
            headers["X-With-Images-Summary"] = "true"
        else:
            headers["X-Retain-Images"] = "none"

        data = await self._post(session, self.reader_url, {"url": url}, headers, "URL conversion")
        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            raise BackendError("Invalid response data from r.jina.ai")
        return data["data"]

    async def screenshot(
        self,
        session: ClientSession,
        url: str,
        token: str | None,
        *,
        first_screen_only: bool = False,
    ) -> bytes:
        """
        Capture a page and download the resulting PNG.

        Args:
            first_screen_only: One viewport ("screenshot") instead of the full
                page ("pageshot")

        Returns:
            Raw PNG bytes
        """
        headers = self._headers(token, "Screenshot capture")
        headers["X-Return-Format"] = "screenshot" if first_screen_only else "pageshot"

        data = await self._post(
            session, self.reader_url, {"url": url}, headers, "Screenshot capture"
        )
        payload = data.get("data") if isinstance(data, dict) else None
        image_url = None
        if isinstance(payload, dict):
            image_url = payload.get("screenshotUrl") or payload.get("pageshotUrl")
        if not image_url:
            raise BackendError("No screenshot URL received from API")
        return await self._download(session, image_url)

    async def search(
        self,
        session: ClientSession,
        query: str,
        token: str | None,
        *,
        num: int | None = None,
        domain: str | None = None,
        result_type: str | None = None,
        action: str = "Web search",
    ) -> list:
        """
        Query the search endpoint.

        Args:
            num: Maximum number of results
            domain: Restrict to a vertical, e.g. "arxiv"
            result_type: Result type, e.g. "images"

        Returns:
            The `results` list of the response
        """
        headers = self._headers(token, action, require_token=True)
        payload: dict[str, Any] = {"q": query}
        if domain is not None:
            payload["domain"] = domain
        if result_type is not None:
            payload["type"] = result_type
        if num is not None:
            payload["num"] = num

        data = await self._post(session, self.search_url, payload, headers, action)
        if not isinstance(data, dict):
            raise BackendError(f"{action} returned an invalid response")
        return data.get("results") or []

    async def rerank(
        self,
        session: ClientSession,
        query: str,
        documents: list[str],
        token: str | None,
        *,
        top_n: int | None = None,
    ) -> list[dict]:
        """
        Order documents by relevance to a query.

        Returns:
            List of `{index, relevance_score, document}` dicts, most relevant
            first
        """
        headers = self._headers(token, "Reranking", require_token=True)
        payload: dict[str, Any] = {
            "model": self.rerank_model,
            "query": query,
            "documents": documents,
            "return_documents": True,
        }
        if top_n is not None:
            payload["top_n"] = top_n

        data = await self._post(session, self.rerank_url, payload, headers, "Reranking")
        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise BackendError("Reranking returned an invalid response")
        return data["results"]

    async def _embed(
        self,
        session: ClientSession,
        inputs: list,
        token: str | None,
        model: str,
        action: str,
        task: str | None = None,
    ) -> np.ndarray:
        headers = self._headers(token, action, require_token=True)
        payload: dict[str, Any] = {"model": model, "input": inputs}
        if task is not None:
            payload["task"] = task

        data = await self._post(session, self.embeddings_url, payload, headers, action)
        rows = data.get("data") if isinstance(data, dict) else None
        count = len(rows) if isinstance(rows, list) else 0
        if count != len(inputs):
            raise BackendError(f"{action} returned {count} embeddings for {len(inputs)} inputs")
        try:
            rows = sorted(rows, key=lambda row: row["index"])
            return np.array([row["embedding"] for row in rows], dtype=np.float32)
        except (KeyError, TypeError, ValueError) as e:
            raise BackendError(f"{action} returned malformed embeddings: {e}") from e

    async def embed_texts(
        self, session: ClientSession, texts: list[str], token: str | None
    ) -> np.ndarray:
        return await self._embed(
            session,
            texts,
            token,
            self.text_embedding_model,
            "Text embedding",
            task="text-matching",
        )

    async def embed_images(
        self, session: ClientSession, images: list[str], token: str | None
    ) -> np.ndarray:
        """
        Embed images given as URLs or base64 strings.

        Images are forwarded as-is; the embedding service fetches and decodes
        them.
        """
        return await self._embed(
            session,
            [{"image": image} for image in images],
            token,
            self.image_embedding_model,
            "Image embedding",
        )
