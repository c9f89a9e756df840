# backend/app/services/gateway/http.py
"""
Shared httpx plumbing for the gateway adapters.

Translates transport errors and HTTP status codes into the service
exception hierarchy so callers never see httpx types:

    timeout / connection error  -> ProviderUnavailableError (retryable)
    429                         -> RateLimitError
    5xx                         -> ProviderUnavailableError (retryable)
    other non-2xx               -> ExternalServiceError
    non-JSON body               -> MalformedResponseError
"""

import logging
from typing import Any

import httpx

from app.services.exceptions import (
    ExternalServiceError,
    MalformedResponseError,
    ProviderUnavailableError,
    RateLimitError,
)

logger = logging.getLogger(__name__)


def build_client(timeout_seconds: float) -> httpx.Client:
    """Create an httpx client with a bounded timeout on every phase."""
    return httpx.Client(
        timeout=httpx.Timeout(timeout_seconds),
        headers={"Accept": "application/json"},
        follow_redirects=True,
    )


def _retry_after(response: httpx.Response) -> int | None:
    value = response.headers.get("Retry-After")
    if value and value.isdigit():
        return int(value)
    return None


def get_json(
        client: httpx.Client,
        provider: str,
        url: str,
        params: dict[str, Any] | None = None,
) -> Any:
    """
    GET a URL and decode its JSON body.

    Args:
        client: httpx client (owns timeout configuration)
        provider: Provider name for error messages
        url: Absolute URL
        params: Query parameters

    Returns:
        Decoded JSON value

    Raises:
        ProviderUnavailableError: Timeout, network error or 5xx
        RateLimitError: HTTP 429
        ExternalServiceError: Any other non-success status
        MalformedResponseError: Body is not JSON
    """
    try:
        response = client.get(url, params=params)
    except httpx.TimeoutException as e:
        raise ProviderUnavailableError(provider, f"timeout: {e}") from e
    except httpx.RequestError as e:
        raise ProviderUnavailableError(provider, f"network error: {e}") from e

    if response.status_code == 429:
        raise RateLimitError(provider, retry_after=_retry_after(response))
    if response.status_code >= 500:
        raise ProviderUnavailableError(provider, f"HTTP {response.status_code}")
    if not response.is_success:
        raise ExternalServiceError(
            f"Provider '{provider}' returned HTTP {response.status_code} for {response.url.path}",
            provider=provider,
        )

    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(provider, "response body is not JSON") from e
