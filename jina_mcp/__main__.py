"""
Jina MCP server entry point.

Usage:
    # Streamable HTTP on port 8001 (default), endpoint /mcp
    python -m jina_mcp

    # Server-sent events
    python -m jina_mcp --transport sse --port 9000

    # stdio, for clients that spawn the server themselves
    python -m jina_mcp --transport stdio
"""

import argparse
import logging

from .server import mcp

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Jina AI MCP server")
    parser.add_argument(
        "--transport",
        metavar="TRANSPORT",
        type=str,
        choices=["stdio", "sse", "streamable-http"],
        default="streamable-http",
        help="MCP transport (stdio, sse, streamable-http)",
    )
    parser.add_argument(
        "--port",
        metavar="PORT",
        type=int,
        default=8001,
        help="Port to run the server on (HTTP transports only)",
    )
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        type=str,
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper())

    mcp.settings.port = args.port
    mcp.run(transport=args.transport)
