"""
Standardized HTTP Client Utilities

Provides a consistent interface for making provider requests across Historian.
Uses `httpx.AsyncClient` so embedding and reranker calls never block the event loop.

Usage:
    from historian.utils.http_client import http_json_post

    data = await http_json_post(
        "http://localhost:11434/api/embeddings",
        json={"model": "nomic-embed-text", "prompt": "hello"},
        timeout=30,
    )
"""

from typing import Any

import httpx

from historian.configs.constants import get_timeout
from historian.exceptions import HTTPConnectionError, HTTPRequestError, HTTPTimeoutError

# Default timeout for HTTP requests (seconds)
DEFAULT_TIMEOUT = get_timeout("http_default", 10)


async def http_post(
    url: str,
    json: Any = None,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    raise_for_status: bool = True,
) -> httpx.Response:
    """
    Make a POST request with standardized error handling.

    Args:
        url: Request URL
        json: JSON body (will set Content-Type automatically)
        headers: Optional headers dict
        timeout: Request timeout in seconds
        raise_for_status: Raise HTTPRequestError on 4xx/5xx responses

    Returns:
        httpx.Response object

    Raises:
        HTTPConnectionError: Connection failed
        HTTPTimeoutError: Request timed out
        HTTPRequestError: Bad status code (if raise_for_status=True)
    """
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, json=json, headers=headers)
            if raise_for_status:
                response.raise_for_status()
            return response
    except httpx.ConnectError as e:
        raise HTTPConnectionError(f"Connection failed: {url}") from e
    except httpx.TimeoutException as e:
        raise HTTPTimeoutError(f"Request timed out: {url}") from e
    except httpx.HTTPStatusError as e:
        raise HTTPRequestError(
            f"HTTP {e.response.status_code}: {url}",
            status_code=e.response.status_code,
            response_text=e.response.text[:500] if e.response.text else None,
        ) from e
    except httpx.TransportError as e:
        raise HTTPConnectionError(f"Transport error: {url}") from e


async def http_json_post(
    url: str,
    json: Any,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Any:
    """
    POST request with JSON body that returns parsed JSON.

    Args:
        url: Request URL
        json: JSON body to send
        headers: Optional headers dict
        timeout: Request timeout in seconds

    Returns:
        Parsed JSON (dict, list, or scalar depending on the endpoint)

    Raises:
        HTTPConnectionError: Connection failed
        HTTPTimeoutError: Request timed out
        HTTPRequestError: Bad status code or invalid JSON
    """
    response = await http_post(url, json=json, headers=headers, timeout=timeout)
    try:
        return response.json()
    except ValueError as e:
        raise HTTPRequestError(f"Invalid JSON response from {url}") from e


def bearer_headers(api_key: str) -> dict[str, str]:
    """Authorization + JSON content headers for token-authenticated APIs."""
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
