"""
Historian Configuration Module

Re-exports commonly used functions for cleaner imports across the codebase.
"""

# Logging (most commonly used)
from historian.configs.logging import get_logger, setup_logging

# Paths
from historian.configs.paths import (
    ensure_data_dir,
    get_data_path,
    get_metadata_db_path,
    get_vector_db_path,
)

# Constants
from historian.configs.constants import (
    EVENTS,
    RERANKER_DEFAULTS,
    SEARCH_DEFAULTS,
    TIMEOUTS,
    get_timeout,
)

# YAML config
from historian.configs.yaml_config import (
    DEFAULT_CONFIG_YAML,
    create_default_config,
    get_config_path,
    load_yaml_config,
    save_yaml_config,
)

# Runtime
from historian.configs.runtime import DEFAULT_CONFIG, get_full_config

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Paths
    "get_data_path",
    "ensure_data_dir",
    "get_metadata_db_path",
    "get_vector_db_path",
    # Constants
    "EVENTS",
    "RERANKER_DEFAULTS",
    "SEARCH_DEFAULTS",
    "TIMEOUTS",
    "get_timeout",
    # YAML config
    "DEFAULT_CONFIG_YAML",
    "get_config_path",
    "load_yaml_config",
    "save_yaml_config",
    "create_default_config",
    # Runtime
    "DEFAULT_CONFIG",
    "get_full_config",
]
