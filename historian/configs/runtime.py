"""
Historian Runtime Configuration

Runtime defaults and configuration merging logic.
Combines defaults, YAML config, and environment variables.
"""

import copy
import os

from historian.configs.constants import (
    EMBEDDING_CACHE_SIZE,
    RERANKER_DEFAULTS,
    SEARCH_DEFAULTS,
    TIMEOUTS,
)
from historian.configs.yaml_config import load_yaml_config

# --- Default Runtime Configuration ---

DEFAULT_CONFIG = {
    "workspace_path": None,  # Resolved to cwd when unset
    "search": dict(SEARCH_DEFAULTS),
    "embedding": {
        "provider": "ollama",
        "model": "nomic-embed-text",
        "endpoint": "http://localhost:11434",
        "api_key": None,
        "cache_size": EMBEDDING_CACHE_SIZE,
        "retry_attempts": 3,
        "max_tokens": 8192,
    },
    "reranker": {
        **RERANKER_DEFAULTS,
        "api_key": None,
    },
    "timeouts": dict(TIMEOUTS),
}

# Provider-specific fallbacks for the embedding credential
_EMBEDDING_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "huggingface": "HF_TOKEN",
}

_SECTIONS = ("search", "embedding", "reranker", "timeouts")


def _env_float(name: str) -> float | None:
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def get_full_config() -> dict:
    """
    Get full configuration merged from defaults, YAML, and environment.

    Priority (highest wins):
    1. Environment variables
    2. YAML config file
    3. DEFAULT_CONFIG

    Returns:
        Merged configuration dictionary
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    yaml_config = load_yaml_config()

    # Only known keys are merged from each YAML section
    for section in _SECTIONS:
        overrides = yaml_config.get(section)
        if isinstance(overrides, dict):
            for key, value in overrides.items():
                if key in config[section]:
                    config[section][key] = value

    if yaml_config.get("workspace_path"):
        config["workspace_path"] = yaml_config["workspace_path"]

    config["_yaml"] = yaml_config

    # --- Environment overrides ---

    if os.environ.get("HISTORIAN_WORKSPACE_PATH"):
        config["workspace_path"] = os.environ["HISTORIAN_WORKSPACE_PATH"]

    embedding = config["embedding"]
    if os.environ.get("HISTORIAN_EMBEDDING_PROVIDER"):
        embedding["provider"] = os.environ["HISTORIAN_EMBEDDING_PROVIDER"].lower()
    if os.environ.get("HISTORIAN_EMBEDDING_MODEL"):
        embedding["model"] = os.environ["HISTORIAN_EMBEDDING_MODEL"]
    if os.environ.get("HISTORIAN_EMBEDDING_ENDPOINT"):
        embedding["endpoint"] = os.environ["HISTORIAN_EMBEDDING_ENDPOINT"]
    if os.environ.get("HISTORIAN_EMBEDDING_API_KEY"):
        embedding["api_key"] = os.environ["HISTORIAN_EMBEDDING_API_KEY"]
    elif not embedding["api_key"]:
        fallback_env = _EMBEDDING_KEY_ENV.get(embedding["provider"])
        if fallback_env and os.environ.get(fallback_env):
            embedding["api_key"] = os.environ[fallback_env]

    reranker = config["reranker"]
    if os.environ.get("HISTORIAN_RERANKER_API_KEY"):
        reranker["api_key"] = os.environ["HISTORIAN_RERANKER_API_KEY"]
    if os.environ.get("HISTORIAN_RERANKER_ENABLED"):
        reranker["enabled"] = os.environ["HISTORIAN_RERANKER_ENABLED"].lower() in ("true", "1", "yes")

    vector_weight = _env_float("HISTORIAN_VECTOR_WEIGHT")
    if vector_weight is not None:
        config["search"]["vector_weight"] = vector_weight
    keyword_weight = _env_float("HISTORIAN_KEYWORD_WEIGHT")
    if keyword_weight is not None:
        config["search"]["keyword_weight"] = keyword_weight

    return config
