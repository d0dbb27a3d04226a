"""
Tool layer of the Jina AI MCP server.

- backend.py: HTTP calls to the Jina reader, search, rerank and embedding APIs
- urls.py: URL normalization for the reader tools
- jina_tools.py: tool implementations returning MCP content blocks
"""

from .backend import BackendError, JinaBackend
from .jina_tools import JinaTools

__all__ = [
    "BackendError",
    "JinaBackend",
    "JinaTools",
]
