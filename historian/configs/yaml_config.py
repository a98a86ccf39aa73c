"""
Historian YAML Configuration

Loading, saving, and defaults for ~/.historian/config.yaml.
"""

from pathlib import Path

import yaml

from historian.configs.logging import get_logger
from historian.configs.paths import ensure_data_dir, get_data_path

logger = get_logger("configs.yaml")

# --- Default Config Template ---

DEFAULT_CONFIG_YAML = """\
# Historian Configuration
# Edit this file to customize search behavior.

# Workspace whose history is searched (defaults to the current directory)
# workspace_path: ~/Projects/my-app

# Hybrid search tuning
search:
  vector_weight: 0.6
  keyword_weight: 0.4
  rrf_k: 60
  rerank_top_k: 50
  max_results: 20
  min_vector_score: 0.3
  min_keyword_score: 0.1

# Embedding provider: ollama, openai, huggingface
embedding:
  provider: "ollama"
  model: "nomic-embed-text"
  endpoint: "http://localhost:11434"
  # API key read from HISTORIAN_EMBEDDING_API_KEY (or OPENAI_API_KEY / HF_TOKEN)
  cache_size: 1000

# Cross-encoder reranking (off unless enabled with a credential)
reranker:
  enabled: false
  # Provider: huggingface, cohere, local
  provider: "huggingface"
  model: "BAAI/bge-reranker-base"
  top_k: 10
  # API key read from HISTORIAN_RERANKER_API_KEY
"""


def get_config_path() -> Path:
    """Get the path to config.yaml."""
    return get_data_path() / "config.yaml"


def load_yaml_config() -> dict:
    """
    Load configuration from ~/.historian/config.yaml.

    Returns:
        Configuration dictionary (empty if file doesn't exist or is unreadable)
    """
    config_path = get_config_path()
    if not config_path.exists():
        return {}

    try:
        content = config_path.read_text()
        loaded = yaml.safe_load(content) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable config {config_path}: {e}")
        return {}

    if not isinstance(loaded, dict):
        logger.warning(f"Ignoring config {config_path}: top level is not a mapping")
        return {}
    return loaded


def save_yaml_config(config: dict) -> bool:
    """
    Save configuration to ~/.historian/config.yaml.

    Args:
        config: Configuration dictionary to save

    Returns:
        True if successful
    """
    config_path = get_config_path()
    ensure_data_dir()

    try:
        content = yaml.safe_dump(config, default_flow_style=False, sort_keys=False)
        config_path.write_text(content)
        return True
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to save config {config_path}: {e}")
        return False


def create_default_config() -> bool:
    """
    Create default config.yaml if it doesn't exist.

    Returns:
        True if file was created, False if it already exists
    """
    config_path = get_config_path()
    if config_path.exists():
        return False

    ensure_data_dir()
    config_path.write_text(DEFAULT_CONFIG_YAML)
    return True
