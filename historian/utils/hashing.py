"""Content and workspace hashing helpers."""

import hashlib
from pathlib import Path


def content_hash(text: str) -> str:
    """SHA-256 hex digest of text, used as the embedding cache key."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def workspace_id_for(path: str | Path) -> str:
    """Stable workspace id derived from the resolved workspace root."""
    resolved = str(Path(path).expanduser().resolve())
    return hashlib.sha256(resolved.encode("utf-8")).hexdigest()[:16]
