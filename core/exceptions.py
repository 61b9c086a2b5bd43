"""
Custom exceptions for Moto Shop Web.

Exception Hierarchy:
    ShopApiError (base)
    ├── ConfigurationError      - API key / store id missing (fail fast, 500)
    ├── RequestValidationError  - Caller payload incomplete (400)
    ├── OrderPreparationError   - No placement/layer combination derivable
    ├── PrintfulAPIError        - Upstream returned non-2xx (status mirrored)
    └── PollingError            - Async completion did not succeed
        ├── PollingFailedError     - Upstream reported "failed" (non-retryable)
        ├── PollingTimeoutError    - No resolution within the budget (retryable)
        └── PollingCancelledError  - Caller cancelled the wait

Usage:
    Route handlers catch ShopApiError and render {error, details} with
    the exception's http_status. Anything else is a 500.
"""

from typing import Optional, Dict, Any


class ShopApiError(Exception):
    """
    Base exception for all Moto Shop Web errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
            http_status: Overrides the class-level HTTP status
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if http_status is not None:
            self.http_status = http_status

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# STARTUP / REQUEST ERRORS - No upstream call is attempted
# =============================================================================

class ConfigurationError(ShopApiError):
    """
    A required setting (Printful API key, store id) is missing.

    Raised before any upstream call so a misconfigured deployment never
    sends half-authenticated requests.
    """

    http_status = 500

    def __init__(self, setting: str, message: Optional[str] = None):
        message = message or f"{setting} is not configured"
        details = {
            "setting": setting,
            "resolution": f"Set {setting} in the environment or .env file"
        }
        super().__init__(message, details)
        self.setting = setting


class RequestValidationError(ShopApiError):
    """Inbound request body is missing required fields."""

    http_status = 400


class OrderPreparationError(ShopApiError):
    """
    No usable placement/layer combination could be built for an order item.

    The whole order fails; partial orders are never submitted upstream.
    """

    http_status = 500

    def __init__(self, message: str, variant_id: Optional[int] = None):
        details = {}
        if variant_id is not None:
            details["variant_id"] = variant_id
        super().__init__(message, details)
        self.variant_id = variant_id


# =============================================================================
# UPSTREAM ERRORS
# =============================================================================

class PrintfulAPIError(ShopApiError):
    """
    Printful answered with a non-success status (or could not be reached).

    The original status code and parsed response body are preserved so the
    caller can mirror them back to the client.
    """

    def __init__(
        self,
        message: str = "Printful API request failed",
        status: int = 502,
        body: Any = None,
        url: Optional[str] = None
    ):
        details = {"status": status}
        if url:
            details["url"] = url
        super().__init__(message, details, http_status=status)
        self.status = status
        self.body = body
        self.url = url


class PollingError(ShopApiError):
    """Base class for async completion polling failures."""

    http_status = 502

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if job_id:
            error_details["job_id"] = job_id
        super().__init__(message, error_details)
        self.job_id = job_id


class PollingFailedError(PollingError):
    """
    Upstream reported the calculation as failed.

    This is terminal - resubmitting the same payload will fail the same way.
    """

    http_status = 502

    def __init__(self, message: str, job_id: Optional[str] = None, body: Any = None):
        super().__init__(message, job_id)
        self.body = body


class PollingTimeoutError(PollingError):
    """
    Upstream did not reach a terminal state within the polling budget.

    The job may still complete later - callers may resubmit.
    """

    http_status = 504

    def __init__(
        self,
        operation: str,
        timeout_ms: int,
        attempts: int,
        job_id: Optional[str] = None
    ):
        message = f"Timed out waiting for {operation} after {timeout_ms / 1000:.1f}s ({attempts} attempts)"
        details = {
            "operation": operation,
            "timeout_ms": timeout_ms,
            "attempts": attempts,
            "resolution": "Printful may be busy. Resubmit the request to try again."
        }
        super().__init__(message, job_id, details)
        self.operation = operation
        self.timeout_ms = timeout_ms
        self.attempts = attempts


class PollingCancelledError(PollingError):
    """The caller cancelled the wait before a terminal state was reached."""

    http_status = 504

    def __init__(self, operation: str, attempts: int, job_id: Optional[str] = None):
        message = f"Cancelled while waiting for {operation} after {attempts} attempts"
        super().__init__(message, job_id, {"operation": operation, "attempts": attempts})
        self.operation = operation
        self.attempts = attempts
