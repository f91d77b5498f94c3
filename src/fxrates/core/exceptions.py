"""Centralized exception hierarchy and handlers for the application.

This module provides a unified exception system that maps all application errors
to appropriate HTTP status codes and response formats. Services and routes
raise exceptions from this hierarchy rather than generic exceptions or
HTTPException directly.

Exception Hierarchy:
    AppException (base)
    ├── ValidationError (400)
    │   ├── InvalidRate
    │   └── InvalidRateSource
    ├── NotFoundError (404)
    │   ├── RateUnavailable
    │   └── UnknownCurrency
    ├── ConflictError (409)
    └── ExternalAPIError (503, retryable)
        ├── ProviderUnavailable
        ├── InvalidProviderPayload (502, not retryable)
        └── RateTableUnavailable

Retryability:
    Every exception carries a ``retryable`` flag. Upstream failures (network
    errors, timeouts) are retryable; validation and lookup failures are not,
    because repeating the same call yields the same result.

Usage in Services:
    from fxrates.core.exceptions import InvalidRate, ProviderUnavailable

    def validate(value: Decimal) -> Decimal:
        if value <= 0:
            raise InvalidRate(f"Rate must be positive, got {value}")
        return value

The exception handler automatically converts these to HTTP responses.
"""

import logging
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """
    Base exception class for all application errors.

    Attributes:
        status_code: HTTP status code for this error type
        detail: User-facing error message
        error_code: Machine-readable error code (optional)
        retryable: Whether repeating the operation may succeed
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "Internal server error"
    error_code: str | None = None
    retryable: bool = False

    def __init__(
        self,
        detail: str | None = None,
        *,
        error_code: str | None = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            detail: Custom error message (overrides class default)
            error_code: Machine-readable error identifier
        """
        self.detail = detail or self.__class__.detail
        self.error_code = error_code or self.__class__.error_code
        super().__init__(self.detail)


class ValidationError(AppException):
    """
    Raised when input validation fails.

    Maps to HTTP 400 Bad Request.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Validation error"
    error_code = "VALIDATION_ERROR"


class InvalidRate(ValidationError):
    """
    Raised for a non-numeric, non-finite, zero or negative rate.

    Rejected before anything reaches the database. Fatal to a single upsert,
    never to a whole refresh batch.
    """

    detail = "Invalid exchange rate"
    error_code = "INVALID_RATE"


class InvalidRateSource(ValidationError):
    """Raised when a rate is written with a source outside RateSource."""

    detail = "Invalid exchange rate source"
    error_code = "INVALID_RATE_SOURCE"


class NotFoundError(AppException):
    """
    Raised when a requested resource is not found.

    Maps to HTTP 404 Not Found.
    """

    status_code = status.HTTP_404_NOT_FOUND
    detail = "Resource not found"
    error_code = "NOT_FOUND"


class RateUnavailable(NotFoundError):
    """
    Raised when neither a direct nor a base-composed rate exists for a pair.

    Conversion aborts; there is no fallback to a rate of 1.
    """

    detail = "Exchange rate unavailable"
    error_code = "RATE_UNAVAILABLE"


class UnknownCurrency(NotFoundError):
    """Raised when a currency code is missing or inactive."""

    detail = "Unknown currency"
    error_code = "UNKNOWN_CURRENCY"


class ConflictError(AppException):
    """
    Raised when there's a conflict in the operation.

    Used for duplicate currencies and base-currency invariant violations.
    Maps to HTTP 409 Conflict.
    """

    status_code = status.HTTP_409_CONFLICT
    detail = "Resource conflict"
    error_code = "CONFLICT"


class ExternalAPIError(AppException):
    """
    Raised when an upstream call fails or times out.

    Maps to HTTP 503 Service Unavailable.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "External service unavailable"
    error_code = "EXTERNAL_API_ERROR"
    retryable = True


class ProviderUnavailable(ExternalAPIError):
    """Raised when the external rate provider fails, times out or reports an error."""

    detail = "Exchange rate provider unavailable"
    error_code = "PROVIDER_UNAVAILABLE"


class InvalidProviderPayload(ExternalAPIError):
    """
    Raised when the provider answers with a body that cannot be interpreted.

    Not retryable: the same request is expected to yield the same payload.
    Maps to HTTP 502 Bad Gateway.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    detail = "Exchange rate provider returned an invalid payload"
    error_code = "INVALID_PROVIDER_PAYLOAD"
    retryable = False


class RateTableUnavailable(ExternalAPIError):
    """Raised when the client cache cannot fetch the rate table."""

    detail = "Exchange rate table unavailable"
    error_code = "RATE_TABLE_UNAVAILABLE"


async def app_exception_handler(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    """
    Handle application exceptions and convert to HTTP responses.

    Response Format:
        {
            "detail": "User-facing error message",
            "error_code": "MACHINE_READABLE_CODE",
            "retryable": false
        }

    Logging:
        - Server errors (5xx): full stack trace
        - Client errors (4xx): message only
    """
    extra = {
        "status_code": exc.status_code,
        "error_code": exc.error_code,
        "request_path": request.url.path,
    }
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc.detail}", exc_info=True, extra=extra)
    else:
        logger.warning(f"{exc.__class__.__name__}: {exc.detail}", extra=extra)

    response_body: dict[str, Any] = {"detail": exc.detail, "retryable": exc.retryable}
    if exc.error_code:
        response_body["error_code"] = exc.error_code

    return JSONResponse(
        status_code=exc.status_code,
        content=response_body,
    )
