"""Exception hierarchy for the VMware Cloud Director client.

Errors fall into a few groups:

- Local precondition failures (``ValidationError``), raised before any
  network call is made.
- Transport failures (``ConnectionError``), raised once retries are
  exhausted.
- Decoded vendor error bodies (``VcdApiError`` for the XML API,
  ``OpenApiError`` for CloudAPI), both ``APIResponseError`` subclasses.
- Contextual errors (``VcdError``) that wrap a lower-level error with a
  message describing the failed operation.

A sentinel string, ``ENTITY_NOT_FOUND``, is embedded in error messages when
a lookup finds nothing, so callers can use :func:`contains_not_found` on any
error raised by the client.

Example:
    >>> try:
    ...     await client.get_edge_gateway_by_name("missing")
    ... except VcdClientError as e:
    ...     if contains_not_found(e):
    ...         print("no such gateway")
"""

from __future__ import annotations

from typing import Any

ENTITY_NOT_FOUND = "[ENF] entity not found"


class VcdClientError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(VcdClientError):
    """Invalid or missing configuration."""


class EnvironmentVariableError(ConfigurationError):
    """A required environment variable is missing or invalid.

    Attributes:
        var: Name of the environment variable.
    """

    def __init__(self, var: str, message: str | None = None) -> None:
        self.var = var
        super().__init__(message or f"Environment variable {var} is not set")


class ValidationError(VcdClientError):
    """Local validation of arguments failed. No request was sent."""


class ConnectionError(VcdClientError):
    """Connection to the VCD host failed.

    Attributes:
        host: Host the client tried to reach.
        original_error: The underlying transport exception.
    """

    def __init__(self, host: str, original_error: Exception | None = None) -> None:
        self.host = host
        self.original_error = original_error
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"Failed to connect to {host}{detail}")


class APIResponseError(VcdClientError):
    """The API answered with an unexpected status code.

    Attributes:
        status_code: HTTP status code of the response.
        response_body: Raw text of the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class AuthenticationError(APIResponseError):
    """Authentication failed (HTTP 401)."""

    def __init__(self, message: str = "Authentication failed", status_code: int = 401, **kwargs: Any) -> None:
        super().__init__(message, status_code=status_code, **kwargs)


class AuthorizationError(APIResponseError):
    """Insufficient permissions (HTTP 403)."""

    def __init__(self, message: str = "Access denied", status_code: int = 403, **kwargs: Any) -> None:
        super().__init__(message, status_code=status_code, **kwargs)


class ResourceNotFoundError(APIResponseError):
    """The requested path does not exist (HTTP 404)."""

    def __init__(self, path: str, message: str | None = None, **kwargs: Any) -> None:
        self.path = path
        kwargs.setdefault("status_code", 404)
        super().__init__(message or f"Resource not found: {path}", **kwargs)


class RateLimitError(APIResponseError):
    """Too many requests (HTTP 429).

    Attributes:
        retry_after: Seconds suggested by the ``Retry-After`` header.
    """

    def __init__(self, retry_after: int | None = None, **kwargs: Any) -> None:
        self.retry_after = retry_after
        kwargs.setdefault("status_code", 429)
        super().__init__("Rate limit exceeded", **kwargs)


class VcdApiError(APIResponseError):
    """Decoded ``Error`` element from the legacy XML API.

    Attributes:
        major_error_code: ``majorErrorCode`` attribute (mirrors HTTP status).
        minor_error_code: ``minorErrorCode`` attribute.
        vendor_specific_error_code: ``vendorSpecificErrorCode`` attribute.
        stack_trace: ``stackTrace`` attribute, when the server sends one.
    """

    def __init__(
        self,
        message: str,
        major_error_code: int = 0,
        minor_error_code: str = "",
        vendor_specific_error_code: str = "",
        stack_trace: str = "",
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        self.major_error_code = major_error_code
        self.minor_error_code = minor_error_code
        self.vendor_specific_error_code = vendor_specific_error_code
        self.stack_trace = stack_trace
        super().__init__(
            f"API Error: {major_error_code}: {message}",
            status_code=status_code,
            response_body=response_body,
        )


class OpenApiError(APIResponseError):
    """Decoded JSON error body returned by CloudAPI endpoints."""

    def __init__(
        self,
        message: str,
        minor_error_code: str = "",
        stack_trace: str = "",
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        self.minor_error_code = minor_error_code
        self.stack_trace = stack_trace
        self.api_message = message
        super().__init__(
            f"{minor_error_code} - {message}",
            status_code=status_code,
            response_body=response_body,
        )

    def error_with_stack(self) -> str:
        """Return the error message followed by the server-side stack trace."""
        return f"{self.minor_error_code} - {self.api_message}. Stack: {self.stack_trace}"


class VcdError(VcdClientError):
    """An operation failed. The message describes the operation."""


class EntityNotFoundError(VcdError):
    """A lookup returned nothing. The message always holds ``ENTITY_NOT_FOUND``."""

    def __init__(self, detail: str = "") -> None:
        message = f"{ENTITY_NOT_FOUND}: {detail}" if detail else ENTITY_NOT_FOUND
        super().__init__(message)


class TaskError(VcdError):
    """A server-side task finished unsuccessfully.

    Attributes:
        task: The task model in its final state.
    """

    def __init__(self, message: str, task: Any = None) -> None:
        self.task = task
        super().__init__(message)


def contains_not_found(err: BaseException | None) -> bool:
    """Check whether an error message holds the not-found sentinel.

    Args:
        err: Any exception, or None.

    Returns:
        True when ``ENTITY_NOT_FOUND`` occurs anywhere in the message.
    """
    return err is not None and ENTITY_NOT_FOUND in str(err)


def is_not_found(err: BaseException | None) -> bool:
    """Check whether an error is exactly the bare not-found sentinel."""
    return err is not None and str(err) == ENTITY_NOT_FOUND
