"""
Standardized provider error classification system.

Every failure talking to an external provider is classified exactly once, at
the point it is first observed, into an APIError subclass carrying an
ErrorCode. Retry and circuit-breaker decisions are made from the code, never
from the message text.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Closed taxonomy of errors surfaced to callers."""

    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    PARSING_ERROR = "PARSING_ERROR"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    API_ERROR = "API_ERROR"

    @property
    def retryable(self) -> bool:
        """Transient transport and server-side failures are retried."""
        return self in _RETRYABLE_CODES

    @property
    def counts_against_circuit(self) -> bool:
        """Only failures that say the provider itself is unhealthy trip the breaker."""
        return self in _CIRCUIT_FAILURE_CODES


_RETRYABLE_CODES = frozenset(
    {ErrorCode.SERVER_ERROR, ErrorCode.NETWORK_ERROR, ErrorCode.TIMEOUT}
)
_CIRCUIT_FAILURE_CODES = _RETRYABLE_CODES

# User-facing messages per code
ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.RATE_LIMIT_EXCEEDED: "API rate limit exceeded. Please try again later.",
    ErrorCode.UNAUTHORIZED: "Unauthorized access. Please check your credentials.",
    ErrorCode.NOT_FOUND: "Requested resource not found.",
    ErrorCode.SERVER_ERROR: "Server error. Please try again later.",
    ErrorCode.NETWORK_ERROR: "Network error. Please check your connection.",
    ErrorCode.TIMEOUT: "Request timed out.",
    ErrorCode.PARSING_ERROR: "Error parsing API response.",
    ErrorCode.CIRCUIT_OPEN: "Service temporarily unavailable (circuit open).",
    ErrorCode.API_ERROR: "API error.",
}


class APIError(Exception):
    """
    Base exception for all provider-related errors.

    Attributes:
        message: Human-readable error description
        service: Provider name (e.g., 'listings', 'valuation')
        status_code: HTTP status code if applicable
        response_data: Raw response data for debugging
        code: ErrorCode assigned at classification time
    """

    code: ErrorCode = ErrorCode.API_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
        code: Optional[ErrorCode] = None,
    ):
        if code is not None:
            self.code = code
        message = message or ERROR_MESSAGES[self.code]
        super().__init__(message)
        self.message = message
        self.service = service
        self.status_code = status_code
        self.response_data = response_data

    @property
    def retryable(self) -> bool:
        return self.code.retryable

    @property
    def counts_against_circuit(self) -> bool:
        return self.code.counts_against_circuit

    def __str__(self) -> str:
        parts = [self.message]
        if self.service:
            parts.insert(0, f"[{self.service}]")
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "service": self.service,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "response_data": self.response_data,
        }


class RateLimitError(APIError):
    """
    Rate limit exceeded, either by the local limiter or an HTTP 429.

    Terminal for the current call: the caller decides whether to queue it.
    """

    code = ErrorCode.RATE_LIMIT_EXCEEDED

    def __init__(
        self,
        message: Optional[str] = None,
        service: Optional[str] = None,
        retry_after: Optional[int] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            service=service,
            status_code=status_code,
            response_data=response_data,
        )
        self.retry_after = retry_after


class AuthenticationError(APIError):
    """
    Authentication failed - invalid or missing credential.

    HTTP 401/403.
    """

    code = ErrorCode.UNAUTHORIZED

    def __init__(
        self,
        message: Optional[str] = None,
        service: Optional[str] = None,
        status_code: int = 401,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            service=service,
            status_code=status_code,
            response_data=response_data,
        )


class NotFoundError(APIError):
    """
    Requested resource not found.

    HTTP 404 or an empty provider result for the requested address.
    """

    code = ErrorCode.NOT_FOUND

    def __init__(
        self,
        message: Optional[str] = None,
        service: Optional[str] = None,
        resource_id: Optional[str] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        message = message or ERROR_MESSAGES[ErrorCode.NOT_FOUND]
        if resource_id:
            message = f"{message}: {resource_id}"
        super().__init__(
            message=message,
            service=service,
            status_code=404,
            response_data=response_data,
        )
        self.resource_id = resource_id


class ServerError(APIError):
    """HTTP 5xx from the provider."""

    code = ErrorCode.SERVER_ERROR


class NetworkError(APIError):
    """Connection refused, reset, DNS failure and other transport errors."""

    code = ErrorCode.NETWORK_ERROR


class RequestTimeoutError(APIError):
    """The transport gave up waiting, or the per-call deadline elapsed."""

    code = ErrorCode.TIMEOUT


class ParsingError(APIError):
    """Provider returned a payload that could not be decoded or translated."""

    code = ErrorCode.PARSING_ERROR


class CircuitOpenError(APIError):
    """The circuit breaker refused the call; no request was attempted."""

    code = ErrorCode.CIRCUIT_OPEN

    def __init__(self, service: Optional[str] = None):
        super().__init__(
            message=f"Circuit breaker is open for {service}",
            service=service,
        )


class ConfigurationError(APIError):
    """
    Configuration error - missing required settings.

    Raised when a provider is used without its base URL or credential.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        missing_config: Optional[str] = None,
    ):
        super().__init__(message=message, service=service)
        self.missing_config = missing_config


def classify_http_error(
    status_code: int,
    response_text: str = "",
    service: Optional[str] = None,
    retry_after: Optional[str] = None,
) -> APIError:
    """
    Classify an HTTP error into the appropriate APIError subclass.

    Args:
        status_code: HTTP status code
        response_text: Response body text
        service: Provider name
        retry_after: Value of the Retry-After header, if any

    Returns:
        Appropriate APIError subclass instance
    """
    snippet = response_text[:200]
    if status_code == 429:
        return RateLimitError(
            message=f"Rate limited: {snippet}",
            service=service,
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else 60,
            status_code=429,
        )
    elif status_code in (401, 403):
        return AuthenticationError(
            message=f"Authentication failed: {snippet}",
            service=service,
            status_code=status_code,
        )
    elif status_code == 404:
        return NotFoundError(message=f"Not found: {snippet}", service=service)
    elif 500 <= status_code < 600:
        return ServerError(
            message=f"Server error: {snippet}",
            service=service,
            status_code=status_code,
        )
    else:
        return APIError(
            message=f"HTTP error {status_code}: {snippet}",
            service=service,
            status_code=status_code,
        )
