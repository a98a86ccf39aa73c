"""
Historian Utilities

HTTP helpers, the bounded embedding cache, and hashing.
"""

from historian.utils.cache import LRUCache
from historian.utils.hashing import content_hash, workspace_id_for
from historian.utils.http_client import bearer_headers, http_json_post, http_post

__all__ = [
    "LRUCache",
    "content_hash",
    "workspace_id_for",
    "bearer_headers",
    "http_json_post",
    "http_post",
]
