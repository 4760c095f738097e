"""HTTP helpers that turn httpx outcomes into classified remote errors.

Only status codes and body well-formedness are observed here; request
construction belongs to the capability clients.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from gemini_batch.utils.errors import (
    ClientRequestError,
    InvalidResponseError,
    PayloadTooLargeError,
    RateLimitedError,
    ServerError,
    TransportError,
)

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 30.0
ERROR_BODY_SNIPPET = 500


def build_http_client(timeout: float) -> httpx.AsyncClient:
    """Create the HTTP client shared by every job of a batch run.

    Args:
        timeout: Per-request timeout in seconds.

    Returns:
        An httpx.AsyncClient; the caller owns and closes it.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=CONNECT_TIMEOUT_SECONDS)
    )


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    operation: str,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, mapping transport failures to TransportError."""
    try:
        return await client.request(method, url, **kwargs)
    except httpx.TransportError as exc:
        raise TransportError(
            f"{operation} failed: {exc.__class__.__name__}: {exc}",
            operation=operation,
        ) from exc


def raise_for_remote_status(response: httpx.Response, operation: str) -> None:
    """Raise a classified RemoteError for a non-2xx response.

    Raises:
        RateLimitedError: On HTTP 429.
        ServerError: On any 5xx status.
        PayloadTooLargeError: On HTTP 413.
        ClientRequestError: On any other non-2xx status.
    """
    if response.is_success:
        return

    status = response.status_code
    body = response.text[:ERROR_BODY_SNIPPET]
    message = f"{operation} failed with status {status}: {body}"
    logger.debug("Remote error during %s: HTTP %d", operation, status)

    if status == 429:
        raise RateLimitedError(message, status=status, operation=operation)
    if status >= 500:
        raise ServerError(message, status=status, operation=operation)
    if status == 413:
        raise PayloadTooLargeError(message, status=status, operation=operation)
    raise ClientRequestError(message, status=status, operation=operation)


def parse_json(response: httpx.Response, operation: str) -> dict:
    """Decode a JSON object body or raise InvalidResponseError."""
    try:
        body = response.json()
    except ValueError as exc:
        raise InvalidResponseError(
            f"{operation} returned a non-JSON body", operation=operation
        ) from exc
    if not isinstance(body, dict):
        raise InvalidResponseError(
            f"{operation} returned {type(body).__name__}, expected an object",
            operation=operation,
        )
    return body
