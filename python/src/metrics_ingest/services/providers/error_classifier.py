"""
Provider error classification.

Maps an HTTP status, the provider's error message and an optional
retry-after hint onto the closed ``ErrorKind`` taxonomy.
"""

from typing import Optional

import httpx

from .exceptions import (
    AuthenticationFailedError,
    InvalidRequestError,
    NetworkOrTimeoutError,
    PermissionDeniedError,
    ProviderError,
    QuotaExceededError,
    RateLimitExceededError,
    TransientServerError,
    UnknownProviderError,
)


TRANSIENT_STATUSES = frozenset({500, 502, 503})


def classify_error(
    status_code: int,
    message: str,
    retry_after: Optional[float] = None,
) -> ProviderError:
    """
    Classify a failed provider response.

    Args:
        status_code: HTTP status code
        message: Provider error message
        retry_after: Optional retry-after hint in seconds

    Returns:
        ProviderError subclass instance (not raised)
    """
    if status_code == 401:
        return AuthenticationFailedError(
            f"Authentication failed: {message}", status_code
        )

    if status_code == 403:
        lower_message = message.lower()
        if "quota" in lower_message:
            return QuotaExceededError(
                f"Quota exceeded: {message}", status_code, retry_after
            )
        if "permission" in lower_message:
            return PermissionDeniedError(
                f"Permission denied: {message}", status_code
            )
        return InvalidRequestError(
            f"Invalid account or insufficient permissions: {message}", status_code
        )

    if status_code == 400:
        return InvalidRequestError(f"Invalid request: {message}", status_code)

    if status_code == 429:
        return RateLimitExceededError(
            f"Rate limit exceeded: {message}", status_code, retry_after
        )

    if status_code in TRANSIENT_STATUSES:
        return TransientServerError(
            f"Provider internal error: {message}", status_code, retry_after
        )

    return UnknownProviderError(f"Unknown error: {message}", status_code)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a ``Retry-After`` header given in whole seconds."""
    if not value:
        return None
    value = value.strip()
    if not value.isdigit():
        return None
    return float(int(value))


def classify_response(response: httpx.Response) -> ProviderError:
    """
    Classify a non-2xx httpx response.

    The message comes from the JSON body's ``error.message`` when present,
    otherwise from the HTTP reason phrase.
    """
    message = response.reason_phrase or f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            message = str(error["message"])

    retry_after = parse_retry_after(response.headers.get("Retry-After"))
    return classify_error(response.status_code, message, retry_after)


def classify_transport_error(error: httpx.TransportError) -> ProviderError:
    """Map an httpx transport failure (connect, read, timeout) to NETWORK_OR_TIMEOUT."""
    if isinstance(error, httpx.TimeoutException):
        return NetworkOrTimeoutError(f"Request timed out: {error}")
    return NetworkOrTimeoutError(f"Network error: {error}")
