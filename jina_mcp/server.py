"""
Jina AI MCP Server

This module provides a Model Context Protocol (MCP) server exposing the Jina
AI APIs as tools: reading pages, taking screenshots, searching the web, arXiv
and images, reranking, and deduplicating strings or images.

Dependencies:
    - mcp: Model Context Protocol library
    - aiohttp: HTTP client used by the backend
    - numpy: selection engine behind the deduplication tools

Setup:
    1. Install the package:
       pip install -e .

    2. Optionally set a server-side API key (clients can send their own):
       export JINA_API_KEY=your_key

    3. Run the server:
       python -m jina_mcp
       (Server runs on port 8001 by default, streamable HTTP at /mcp)

Authentication:
    Each client passes its Jina API key as `Authorization: Bearer <key>` on
    the HTTP transport. The token is read per request, so clients never see
    each other's keys. Without a header the server falls back to
    JINA_API_KEY.

Environment:
    - JINA_API_KEY: fallback API key
    - JINA_TIMEOUT: seconds allowed per tool call (default 60)
    - JINA_NUM_RETRIES: attempts on transport errors (default 0)
"""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Annotated

from mcp.server.fastmcp import Context, FastMCP
from mcp.types import ImageContent, TextContent
from pydantic import Field

from .tools import JinaBackend, JinaTools

BEARER_PREFIX = "Bearer "


def backend_from_env() -> JinaBackend:
    """
    Build the backend configuration from environment variables.

    Raises:
        ValueError: If JINA_TIMEOUT or JINA_NUM_RETRIES is not a number
    """
    return JinaBackend(
        api_key=os.environ.get("JINA_API_KEY") or None,
        timeout=float(os.environ.get("JINA_TIMEOUT", "60")),
        num_retries=int(os.environ.get("JINA_NUM_RETRIES", "0")),
    )


@dataclass
class AppContext:
    """
    Application context shared by all tool calls.

    Holds no per-client state: the bearer token is read from each request.
    """
    tools: JinaTools


@asynccontextmanager
async def app_lifespan(_server: FastMCP) -> AsyncIterator[AppContext]:
    yield AppContext(tools=JinaTools(backend_from_env()))


def bearer_token(ctx: Context) -> str | None:
    """
    Return the bearer token of the current request.

    Over stdio there is no HTTP request, so only JINA_API_KEY applies.
    """
    request = getattr(ctx.request_context, "request", None)
    headers = getattr(request, "headers", None)
    if headers is not None:
        auth = headers.get("authorization") or ""
        if auth.startswith(BEARER_PREFIX):
            token = auth[len(BEARER_PREFIX):].strip()
            if token:
                return token
    return os.environ.get("JINA_API_KEY") or None


def _tools(ctx: Context) -> JinaTools:
    return ctx.request_context.lifespan_context.tools


mcp = FastMCP(
    name="Jina AI Official MCP Server",
    instructions=r"""
Tools for the Jina AI APIs.
Use read_url to read a page as markdown and capture_screenshot_url to see it.
Use search_web, search_arxiv and search_image to find content.
Use sort_by_relevance to rank documents against a query, and
deduplicate_strings or deduplicate_images to drop near-duplicates while
keeping the most informative items first.
""".strip(),
    lifespan=app_lifespan,
    port=8001,
)


@mcp.tool(
    name="show_api_key",
    title="Show API key",
    description="Return the bearer token from the Authorization header of the MCP settings, which is used to debug.",
    structured_output=False,
)
async def show_api_key(ctx: Context) -> list[TextContent | ImageContent]:
    """
    Echo the bearer token the server will use for this client.

    Args:
        ctx (Context): MCP context carrying the current request

    Returns:
        list[TextContent | ImageContent]: One text block with the token
    """
    return await _tools(ctx).show_api_key(bearer_token(ctx))


@mcp.tool(
    name="capture_screenshot_url",
    title="Capture a screenshot of a web page",
    description="""
Capture high-quality screenshots of web pages. Use this tool when you need to visually inspect a website, take a snapshot for analysis, or show users what a webpage looks like.
Returns the screenshot as a base64-encoded PNG image that can be displayed directly.
""".strip(),
    structured_output=False,
)
async def capture_screenshot_url(
    ctx: Context,
    url: Annotated[str, Field(description="The complete HTTP/HTTPS URL of the webpage to capture (e.g., 'https://example.com')")],
    firstScreenOnly: Annotated[bool, Field(description="Set to true for a single screen capture (faster), false for full page capture including content below the fold")] = False,
) -> list[TextContent | ImageContent]:
    """
    Capture a screenshot of a web page through the Jina reader.

    Args:
        ctx (Context): MCP context carrying the current request
        url (str): Page to capture; a missing scheme defaults to https
        firstScreenOnly (bool, optional): Capture only the first screen. Defaults to False.

    Returns:
        list[TextContent | ImageContent]: One base64 PNG image block
    """
    return await _tools(ctx).capture_screenshot_url(
        bearer_token(ctx), url, first_screen_only=firstScreenOnly
    )


@mcp.tool(
    name="read_url",
    title="Read a web page as markdown",
    description="""
Extract and convert web page content to clean, readable markdown format. Perfect for reading articles, documentation, blog posts, or any web content.
Returns clean markdown text plus optional metadata like links and images.
""".strip(),
    structured_output=False,
)
async def read_url(
    ctx: Context,
    url: Annotated[str, Field(description="The complete URL of the webpage or PDF file to read and convert (e.g., 'https://example.com/article')")],
    withAllLinks: Annotated[bool, Field(description="Set to true to extract and return all hyperlinks found on the page as structured data")] = False,
    withAllImages: Annotated[bool, Field(description="Set to true to extract and return all images found on the page as structured data")] = False,
) -> list[TextContent | ImageContent]:
    """
    Read a web page or PDF as markdown.

    Args:
        ctx (Context): MCP context carrying the current request
        url (str): Page to read; a missing scheme defaults to https
        withAllLinks (bool, optional): Include the page's links. Defaults to False.
        withAllImages (bool, optional): Include the page's images. Defaults to False.

    Returns:
        list[TextContent | ImageContent]: A YAML metadata block followed by
        the markdown content
    """
    return await _tools(ctx).read_url(
        bearer_token(ctx), url, with_all_links=withAllLinks, with_all_images=withAllImages
    )


@mcp.tool(
    name="search_web",
    title="Search the web",
    description="""
Search the entire web for current information, news, articles, and websites. Use this when you need up-to-date information or want to find specific websites.
Returns structured search results with URLs, titles, and content snippets.
""".strip(),
    structured_output=False,
)
async def search_web(
    ctx: Context,
    query: Annotated[str, Field(description="Search terms or keywords to find relevant web content (e.g., 'climate change news 2024')")],
    num: Annotated[int, Field(description="Maximum number of search results to return, between 1-100")] = 30,
) -> list[TextContent | ImageContent]:
    """
    Search the web.

    Args:
        ctx (Context): MCP context carrying the current request
        query (str): Search terms
        num (int, optional): Maximum number of results, 1 to 100. Defaults to 30.

    Returns:
        list[TextContent | ImageContent]: One YAML block listing the results
    """
    return await _tools(ctx).search_web(bearer_token(ctx), query, num=num)


@mcp.tool(
    name="search_arxiv",
    title="Search arXiv papers",
    description="""
Search academic papers and preprints on arXiv repository. Use this when researching scientific topics, looking for papers by specific authors, or finding the latest research.
Returns academic papers with URLs, titles, abstracts, and metadata.
""".strip(),
    structured_output=False,
)
async def search_arxiv(
    ctx: Context,
    query: Annotated[str, Field(description="Academic search terms, author names, or research topics (e.g., 'transformer neural networks')")],
    num: Annotated[int, Field(description="Maximum number of academic papers to return, between 1-100")] = 30,
) -> list[TextContent | ImageContent]:
    """
    Search arXiv papers.

    Args:
        ctx (Context): MCP context carrying the current request
        query (str): Search terms, author names or topics
        num (int, optional): Maximum number of papers, 1 to 100. Defaults to 30.

    Returns:
        list[TextContent | ImageContent]: One YAML block listing the papers
    """
    return await _tools(ctx).search_arxiv(bearer_token(ctx), query, num=num)


@mcp.tool(
    name="search_image",
    title="Search for images",
    description="""
Search for images across the web, similar to Google Images. Use this when you need to find photos, illustrations, diagrams, charts, logos, or any visual content.
Returns image search results with URLs, titles, descriptions, and image metadata.
""".strip(),
    structured_output=False,
)
async def search_image(
    ctx: Context,
    query: Annotated[str, Field(description="Image search terms describing what you want to find (e.g., 'sunset over mountains')")],
) -> list[TextContent | ImageContent]:
    """
    Search for images.

    Args:
        ctx (Context): MCP context carrying the current request
        query (str): Description of the images to find

    Returns:
        list[TextContent | ImageContent]: One YAML block listing the images
    """
    return await _tools(ctx).search_image(bearer_token(ctx), query)


@mcp.tool(
    name="sort_by_relevance",
    title="Rerank documents by relevance",
    description="""
Rerank a list of documents by their relevance to a query using the Jina reranker.
Returns the documents with their original index and relevance score, most relevant first.
""".strip(),
    structured_output=False,
)
async def sort_by_relevance(
    ctx: Context,
    query: Annotated[str, Field(description="The query to rank documents against")],
    documents: Annotated[list[str], Field(description="Texts to rerank")],
    top_n: Annotated[int | None, Field(description="Number of most relevant documents to return (default: all)")] = None,
) -> list[TextContent | ImageContent]:
    """
    Rerank documents against a query.

    Args:
        ctx (Context): MCP context carrying the current request
        query (str): Query to rank against
        documents (list[str]): Texts to rerank
        top_n (Optional[int], optional): Number of documents to return. Defaults to None (all).

    Returns:
        list[TextContent | ImageContent]: One YAML block with index, score and
        document, most relevant first
    """
    return await _tools(ctx).sort_by_relevance(bearer_token(ctx), query, documents, top_n=top_n)


@mcp.tool(
    name="deduplicate_strings",
    title="Deduplicate strings",
    description="""
Get the top-k semantically unique strings from a list, using embeddings and submodular optimization to maximize coverage while dropping near-duplicates.
Leave k empty to let the tool find the point where more strings stop adding new information.
Returns the kept strings in order of informativeness with their original indices.
""".strip(),
    structured_output=False,
)
async def deduplicate_strings(
    ctx: Context,
    strings: Annotated[list[str], Field(description="Strings to deduplicate")],
    k: Annotated[int | None, Field(description="Number of unique strings to return; omit to determine it automatically")] = None,
) -> list[TextContent | ImageContent]:
    """
    Keep the most informative, least redundant strings.

    Args:
        ctx (Context): MCP context carrying the current request
        strings (list[str]): Strings to deduplicate
        k (Optional[int], optional): Number to keep. Defaults to None (decided
            by where coverage saturates).

    Returns:
        list[TextContent | ImageContent]: One YAML block with the kept strings
        in pick order, their original indices and coverage values
    """
    return await _tools(ctx).deduplicate_strings(bearer_token(ctx), strings, k=k)


@mcp.tool(
    name="deduplicate_images",
    title="Deduplicate images",
    description="""
Get the top-k semantically unique images from a list of image URLs or base64-encoded images, using image embeddings and submodular optimization.
Leave k empty to let the tool find the point where more images stop adding new information.
Returns the kept images in order of informativeness with their original indices.
""".strip(),
    structured_output=False,
)
async def deduplicate_images(
    ctx: Context,
    images: Annotated[list[str], Field(description="Image URLs or base64-encoded images to deduplicate")],
    k: Annotated[int | None, Field(description="Number of unique images to return; omit to determine it automatically")] = None,
) -> list[TextContent | ImageContent]:
    """
    Keep the most informative, least redundant images.

    Args:
        ctx (Context): MCP context carrying the current request
        images (list[str]): Image URLs or base64 strings
        k (Optional[int], optional): Number to keep. Defaults to None (decided
            by where coverage saturates).

    Returns:
        list[TextContent | ImageContent]: One YAML block with the kept images
        in pick order, their original indices and coverage values
    """
    return await _tools(ctx).deduplicate_images(bearer_token(ctx), images, k=k)
