"""
Code Historian - hybrid search over a workspace's recorded code changes.

Combines ChromaDB vector similarity with SQLite FTS5 keyword matching,
fused by weighted Reciprocal Rank Fusion, with optional cross-encoder
reranking.
"""

__version__ = "0.1.0"
