"""
Jina AI Tool Implementations

Each tool forwards one call to a Jina AI API through the backend and reshapes
the answer into MCP content blocks: markdown or YAML text, or a base64 PNG
image. The deduplication tools additionally run the diverse-subset selection
engine on the embeddings they get back.

Tools:
------
- show_api_key: echo the caller's bearer token (debugging)
- capture_screenshot_url: screenshot of a page as a PNG image
- read_url: page content as markdown, with optional links and images
- search_web / search_arxiv / search_image: search results as YAML
- sort_by_relevance: rerank documents against a query
- deduplicate_strings / deduplicate_images: keep a diverse, non-redundant
  subset, either of a given size or sized automatically

Errors:
-------
BackendError and SelectionError are turned into ToolError by handle_errors,
which the MCP server reports to the client as an error result. The model
sees the message and can correct the call.
"""

import base64
import functools
from typing import Any, Awaitable, Callable, ParamSpec, TypeVar

import numpy as np
import pydantic
import structlog
import yaml
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import ImageContent, TextContent

from ..selection import SaturationRule, SelectionError, SelectionResult, select_auto, select_fixed
from .backend import BackendError, JinaBackend
from .urls import normalize_url

logger = structlog.stdlib.get_logger(component=__name__)

Content = TextContent | ImageContent

MAX_SEARCH_RESULTS = 100
DEFAULT_SEARCH_RESULTS = 30

CallParams = ParamSpec("CallParams")
T = TypeVar("T")


def handle_errors(
    func: Callable[CallParams, Awaitable[T]],
) -> Callable[CallParams, Awaitable[T]]:
    @functools.wraps(func)
    async def inner(*args: CallParams.args, **kwargs: CallParams.kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except (BackendError, SelectionError) as e:
            logger.warning("tool failed", tool=func.__name__, error=str(e))
            raise ToolError(f"Error: {e}") from e

    return inner


def text_block(text: str) -> TextContent:
    return TextContent(type="text", text=text)


def yaml_block(data: Any) -> TextContent:
    return text_block(yaml.safe_dump(data, sort_keys=False, allow_unicode=True))


class Link(pydantic.BaseModel):
    anchorText: str
    url: str


class PageSummary(pydantic.BaseModel):
    """Structured part of a read_url answer, shown as YAML above the content."""
    url: str | None = None
    title: str | None = None
    links: list[Link] | None = None
    images: Any = None


class KeptItem(pydantic.BaseModel):
    index: int
    item: str
    coverage: float


class DeduplicationReport(pydantic.BaseModel):
    """
    Outcome of a deduplication call.

    Attributes:
        total: Number of input items
        kept: Items kept, in selection order (most informative first)
        stop_gain: Marginal gain that ended automatic sizing, if any
    """
    total: int
    kept: list[KeptItem]
    stop_gain: float | None = None


def describe_image(image: str) -> str:
    if image.startswith(("http://", "https://")):
        return image
    return f"<base64 image, {len(image)} chars>"


class JinaTools:
    """
    The tool set of the server.

    Every method takes the caller's bearer token first (None when the
    client sent none) followed by the tool arguments, and returns a list of
    content blocks.
    """

    def __init__(self, backend: JinaBackend, saturation_rule: SaturationRule | None = None):
        self.backend = backend
        self.saturation_rule = saturation_rule or SaturationRule()

    async def show_api_key(self, token: str | None) -> list[Content]:
        if not token:
            raise ToolError("No bearer token found in request")
        return [text_block(token)]

    @handle_errors
    async def capture_screenshot_url(
        self, token: str | None, url: str, first_screen_only: bool = False
    ) -> list[Content]:
        normalized = normalize_url(url)
        if not normalized:
            raise ToolError("Error: Invalid or unsupported URL")
        async with self.backend.session() as session:
            image = await self.backend.screenshot(
                session, normalized, token, first_screen_only=first_screen_only
            )
        logger.info("captured screenshot", url=normalized, size=len(image))
        return [
            ImageContent(
                type="image",
                data=base64.b64encode(image).decode("ascii"),
                mimeType="image/png",
            )
        ]

    @handle_errors
    async def read_url(
        self,
        token: str | None,
        url: str,
        with_all_links: bool = False,
        with_all_images: bool = False,
    ) -> list[Content]:
        normalized = normalize_url(url)
        if not normalized:
            raise ToolError("Error: Invalid or unsupported URL")
        async with self.backend.session() as session:
            data = await self.backend.read(
                session,
                normalized,
                token,
                with_links=with_all_links,
                with_images=with_all_images,
            )

        summary = PageSummary(url=data.get("url") or None, title=data.get("title") or None)
        if with_all_links and data.get("links"):
            # the reader returns links as [anchorText, url] pairs
            summary.links = [
                Link(anchorText=str(link[0]), url=str(link[1]))
                for link in data["links"]
                if isinstance(link, (list, tuple)) and len(link) >= 2
            ]
        if with_all_images and data.get("images"):
            summary.images = data["images"]

        blocks: list[Content] = []
        structured = summary.model_dump(exclude_none=True)
        if structured:
            blocks.append(yaml_block(structured))
        if data.get("content"):
            blocks.append(text_block(str(data["content"])))
        return blocks or [text_block("No content available")]

    async def _search(
        self, token: str | None, query: str, action: str, **params: Any
    ) -> list[Content]:
        num = params.get("num")
        if num is not None and not 1 <= num <= MAX_SEARCH_RESULTS:
            raise ToolError(f"Error: num must be between 1 and {MAX_SEARCH_RESULTS}, got {num}")
        async with self.backend.session() as session:
            results = await self.backend.search(session, query, token, action=action, **params)
        logger.info("search finished", action=action, query=query, results=len(results))
        return [yaml_block(results)]

    @handle_errors
    async def search_web(
        self, token: str | None, query: str, num: int = DEFAULT_SEARCH_RESULTS
    ) -> list[Content]:
        return await self._search(token, query, "Web search", num=num)

    @handle_errors
    async def search_arxiv(
        self, token: str | None, query: str, num: int = DEFAULT_SEARCH_RESULTS
    ) -> list[Content]:
        return await self._search(token, query, "arXiv search", num=num, domain="arxiv")

    @handle_errors
    async def search_image(self, token: str | None, query: str) -> list[Content]:
        return await self._search(token, query, "Image search", result_type="images")

    @handle_errors
    async def sort_by_relevance(
        self,
        token: str | None,
        query: str,
        documents: list[str],
        top_n: int | None = None,
    ) -> list[Content]:
        if not documents:
            raise ToolError("Error: No documents provided")
        if top_n is not None and not 1 <= top_n <= len(documents):
            raise ToolError(f"Error: top_n must be between 1 and {len(documents)}, got {top_n}")
        async with self.backend.session() as session:
            results = await self.backend.rerank(session, query, documents, token, top_n=top_n)

        ranked = []
        for result in results:
            index = int(result["index"])
            document = result.get("document")
            if isinstance(document, dict):
                document = document.get("text")
            ranked.append(
                {
                    "index": index,
                    "relevance_score": float(result["relevance_score"]),
                    "document": document if document is not None else documents[index],
                }
            )
        return [yaml_block(ranked)]

    def _select(self, embeddings: np.ndarray, k: int | None) -> SelectionResult:
        if k is None:
            return select_auto(embeddings, self.saturation_rule)
        # more than n means "keep everything"
        return select_fixed(embeddings, min(k, len(embeddings)))

    def _report(
        self, items: list[str], result: SelectionResult, describe: Callable[[str], str]
    ) -> list[Content]:
        report = DeduplicationReport(
            total=len(items),
            kept=[
                KeptItem(index=index, item=describe(items[index]), coverage=round(value, 6))
                for index, value in zip(result.indices, result.values)
            ],
            stop_gain=None if result.stop_gain is None else round(result.stop_gain, 6),
        )
        logger.info("deduplicated", total=report.total, kept=len(report.kept))
        return [yaml_block(report.model_dump(exclude_none=True))]

    @handle_errors
    async def deduplicate_strings(
        self, token: str | None, strings: list[str], k: int | None = None
    ) -> list[Content]:
        if not strings:
            raise ToolError("Error: No strings provided")
        async with self.backend.session() as session:
            embeddings = await self.backend.embed_texts(session, strings, token)
        return self._report(strings, self._select(embeddings, k), str)

    @handle_errors
    async def deduplicate_images(
        self, token: str | None, images: list[str], k: int | None = None
    ) -> list[Content]:
        if not images:
            raise ToolError("Error: No images provided")
        async with self.backend.session() as session:
            embeddings = await self.backend.embed_images(session, images, token)
        return self._report(images, self._select(embeddings, k), describe_image)
