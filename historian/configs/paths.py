"""
Historian Data Paths

Manages the data directory and storage locations for Historian.
"""

import os
from pathlib import Path

DEFAULT_DATA_PATH = Path.home() / ".historian"


def get_data_path() -> Path:
    """Get the Historian data directory path.

    Honors HISTORIAN_DATA_PATH, otherwise ~/.historian.

    Returns:
        Path to the data directory
    """
    data_path = os.environ.get("HISTORIAN_DATA_PATH")
    if data_path:
        return Path(data_path).expanduser()
    return DEFAULT_DATA_PATH


def ensure_data_dir() -> Path:
    """Ensure the data directory exists and return it."""
    data_path = get_data_path()
    data_path.mkdir(parents=True, exist_ok=True)
    return data_path


def get_metadata_db_path() -> Path:
    """Path to the SQLite metadata database."""
    return get_data_path() / "metadata.db"


def get_vector_db_path() -> Path:
    """Path to the ChromaDB persistence directory."""
    return get_data_path() / "vectors"
