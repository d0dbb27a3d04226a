"""
Jina MCP: Jina AI APIs as Model Context Protocol tools

This package exposes Jina AI's reader, search, rerank and embedding APIs to
MCP clients, plus deduplication tools built on a diverse-subset selection
engine.

Key Features:
- Page reading and screenshots through r.jina.ai
- Web, arXiv and image search
- Reranking of documents against a query
- Deduplication of strings and images by facility-location coverage with
  lazy greedy selection and automatic subset sizing
"""
