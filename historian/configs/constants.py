"""
Historian Constants

Static configuration values that rarely change: search defaults,
model tables, event names, and timeout configuration.
"""

# --- Search Defaults ---
# Hybrid search weights are relative, they need not sum to 1.0

SEARCH_DEFAULTS = {
    "vector_weight": 0.6,  # Semantic similarity weight
    "keyword_weight": 0.4,  # Exact match weight
    "rrf_k": 60,  # RRF smoothing constant
    "rerank_top_k": 50,  # Candidates pulled from each leg before fusion
    "max_results": 20,  # Final results to return
    "min_vector_score": 0.3,  # Normalized vector floor
    "min_keyword_score": 0.1,  # Normalized lexical floor
}

# Maximum bonus for candidates found by both legs (20%)
OVERLAP_BONUS = 0.2

# Prefix for asymmetric embedding models
QUERY_PREFIX = "search query: "

# --- Reranker Defaults ---

RERANKER_DEFAULTS = {
    "enabled": False,
    "provider": "huggingface",
    "model": "BAAI/bge-reranker-base",
    "top_k": 10,
}

RERANKER_MODELS = {
    "huggingface": [
        "BAAI/bge-reranker-base",
        "BAAI/bge-reranker-large",
        "cross-encoder/ms-marco-MiniLM-L-6-v2",
    ],
    "cohere": ["rerank-english-v3.0", "rerank-multilingual-v3.0"],
    "local": ["ms-marco-MiniLM-L-12-v2", "ms-marco-TinyBERT-L-2-v2"],
}

# Characters of diff included in reranker documents
RERANK_DIFF_PREVIEW_CHARS = 500
# Characters of document text sent to the scorer
RERANK_MAX_DOCUMENT_CHARS = 512

# --- Embedding Models ---

EMBEDDING_MODELS = {
    "ollama": {
        "nomic-embed-text": {"dimensions": 768, "max_tokens": 8192},
        "mxbai-embed-large": {"dimensions": 1024, "max_tokens": 512},
        "all-minilm": {"dimensions": 384, "max_tokens": 256},
        "snowflake-arctic-embed": {"dimensions": 1024, "max_tokens": 512},
        "bge-large": {"dimensions": 1024, "max_tokens": 512},
    },
    "openai": {
        "text-embedding-3-small": {"dimensions": 1536, "max_tokens": 8191},
        "text-embedding-3-large": {"dimensions": 3072, "max_tokens": 8191},
        "text-embedding-ada-002": {"dimensions": 1536, "max_tokens": 8191},
    },
    "huggingface": {
        "BAAI/bge-large-en-v1.5": {"dimensions": 1024, "max_tokens": 512},
        "BAAI/bge-base-en-v1.5": {"dimensions": 768, "max_tokens": 512},
        "sentence-transformers/all-MiniLM-L6-v2": {"dimensions": 384, "max_tokens": 256},
    },
}

EMBEDDING_CACHE_SIZE = 1000

# --- Analysis ---

PATTERN_SCAN_LIMIT = 10_000
PATTERN_TOP_N = 10

# --- Events ---

EVENTS = {
    "search_completed": "search:completed",
    "embedding_completed": "embedding:completed",
}

# --- Timeout Configuration ---
# Seconds

TIMEOUTS = {
    "http_default": 10,
    "http_health_check": 5,
    "embedding_request": 30,
    "rerank_request": 30,
}


def get_timeout(key: str, default: int | float | None = None) -> int | float:
    """
    Get a timeout value by key.

    Args:
        key: Timeout key from TIMEOUTS dict
        default: Default value if key not found

    Returns:
        Timeout value in seconds
    """
    if default is None:
        default = TIMEOUTS.get("http_default", 10)
    return TIMEOUTS.get(key, default)
