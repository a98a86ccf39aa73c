"""
Historian Exception Hierarchy

Centralized exception classes for structured error handling across the codebase.
All Historian-specific exceptions inherit from HistorianError.

Usage:
    from historian.exceptions import HistorianError, ChangeNotFoundError

    try:
        await engine.find_similar(change_id)
    except ChangeNotFoundError as e:
        logger.error(f"Lookup failed: {e}")
"""


class HistorianError(Exception):
    """Base exception for all Historian errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(HistorianError):
    """Error in Historian configuration."""

    pass


class MissingConfigError(ConfigurationError):
    """Required configuration value is missing."""

    pass


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(HistorianError):
    """Base class for storage-related errors."""

    pass


class ChangeNotFoundError(StorageError):
    """No change record exists for the given id."""

    def __init__(self, change_id: str):
        super().__init__(f"Change not found: {change_id}", {"change_id": change_id})
        self.change_id = change_id


class EmbeddingNotFoundError(StorageError):
    """The change exists but has no stored embedding."""

    def __init__(self, change_id: str):
        super().__init__(f"No embedding found for change: {change_id}", {"change_id": change_id})
        self.change_id = change_id


# =============================================================================
# Embedding Errors
# =============================================================================


class EmbeddingError(HistorianError):
    """Base class for embedding provider errors."""

    pass


class EmbeddingUnavailableError(EmbeddingError):
    """Provider is not configured or could not be reached."""

    pass


# =============================================================================
# Search Errors
# =============================================================================


class SearchError(HistorianError):
    """Base class for search-related errors."""

    pass


class SearchCancelledError(SearchError):
    """Search was cancelled by the caller."""

    pass


class RerankError(SearchError):
    """Error during result reranking."""

    pass


# =============================================================================
# HTTP/Client Errors
# =============================================================================


class ClientError(HistorianError):
    """Base class for HTTP client errors."""

    pass


class HTTPRequestError(ClientError):
    """HTTP request failed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ):
        details = {}
        if status_code is not None:
            details["status_code"] = status_code
        if response_text:
            details["response_text"] = response_text[:200]
        super().__init__(message, details)
        self.status_code = status_code
        self.response_text = response_text


class HTTPConnectionError(ClientError):
    """Failed to connect to HTTP endpoint."""

    pass


class HTTPTimeoutError(ClientError):
    """HTTP request timed out."""

    pass


# =============================================================================
# Caller Errors
# =============================================================================


class ValidationError(HistorianError):
    """Input validation failed."""

    pass
