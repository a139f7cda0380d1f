"""
Exception hierarchy for reporting provider calls.

Every failure on the read path is expressed as a ``ProviderError`` whose
``kind`` drives retry and rate-limit handling:

- AUTHENTICATION_FAILED, PERMISSION_DENIED, INVALID_REQUEST, QUOTA_EXCEEDED:
  surface immediately, never retried
- RATE_LIMIT_EXCEEDED: absorbed by the rate governor
- TRANSIENT_SERVER_ERROR, NETWORK_OR_TIMEOUT: retried with backoff
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed error taxonomy for provider failures."""
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    INVALID_REQUEST = "INVALID_REQUEST"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TRANSIENT_SERVER_ERROR = "TRANSIENT_SERVER_ERROR"
    NETWORK_OR_TIMEOUT = "NETWORK_OR_TIMEOUT"
    UNKNOWN = "UNKNOWN"


RETRYABLE_KINDS = frozenset({
    ErrorKind.TRANSIENT_SERVER_ERROR,
    ErrorKind.NETWORK_OR_TIMEOUT,
})


class ProviderError(Exception):
    """Base exception for all provider errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        self.status_code = status_code
        self.retry_after = retry_after  # Seconds
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether the executor may retry this error with backoff."""
        return self.kind in RETRYABLE_KINDS

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value}, "
            f"status_code={self.status_code}, retry_after={self.retry_after})"
        )


class AuthenticationFailedError(ProviderError):
    """
    Raised when the bearer credential is invalid or expired (401).

    The credential manager must refresh before retrying.
    """
    kind = ErrorKind.AUTHENTICATION_FAILED


class PermissionDeniedError(ProviderError):
    """Raised when the credential lacks access to the account (403)."""
    kind = ErrorKind.PERMISSION_DENIED


class QuotaExceededError(ProviderError):
    """
    Raised when the provider's long-window quota is exhausted (403 + quota).

    Cannot be retried until the provider resets the quota.
    """
    kind = ErrorKind.QUOTA_EXCEEDED


class InvalidRequestError(ProviderError):
    """Raised for malformed requests or unknown accounts (400, other 403)."""
    kind = ErrorKind.INVALID_REQUEST


class RateLimitExceededError(ProviderError):
    """
    Raised when the provider rate limit is hit (429).

    Handled by the rate governor; only surfaces when requeues are exhausted.
    """
    kind = ErrorKind.RATE_LIMIT_EXCEEDED


class TransientServerError(ProviderError):
    """Raised for 500/502/503 responses. Retryable."""
    kind = ErrorKind.TRANSIENT_SERVER_ERROR


class NetworkOrTimeoutError(ProviderError):
    """Raised when the transport fails or times out. Retryable."""
    kind = ErrorKind.NETWORK_OR_TIMEOUT


class UnknownProviderError(ProviderError):
    """Raised for any response that does not fit the taxonomy."""
    kind = ErrorKind.UNKNOWN

