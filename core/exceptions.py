"""
Custom exceptions for the Growi sync pipeline with structured error context.

Every error raised by the pipeline carries a message, a context dictionary
and (optionally) the exception it wraps, so that operators can see the
failing page, status code or database operation without re-running the sync.

Exception Hierarchy:
    SyncException (base)
    ├── ConfigurationError
    ├── ExtractionError
    │   ├── GrowiApiError
    │   │   ├── TransportError
    │   │   ├── UpstreamStatusError
    │   │   └── UpstreamShapeError
    │   └── RetriesExhaustedError
    ├── LoadError
    │   └── PersistenceError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone

RESPONSE_BODY_LIMIT = 500


class SyncException(Exception):
    """
    Base exception for all sync-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (page, url, operation, ...)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        self.message = message
        self.context = dict(context or {})
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += (
                f" | Caused by: {type(self.original_exception).__name__}: "
                f"{self.original_exception}"
            )

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(SyncException):
    """
    Mixin for errors that are always worth another attempt.

    Use this for transient errors like:
    - DNS / connect failures
    - Read timeouts
    """
    pass


class NonRetryableError(SyncException):
    """
    Mixin for errors that must never be retried.

    Use this for permanent errors like:
    - Response bodies that fail the page schema
    - Envelopes reporting success=false
    """
    pass


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(NonRetryableError):
    """
    Raised for a missing/blank credential or malformed run parameters.

    Always surfaced before the first page is requested.
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(SyncException):
    """Base exception for partner API failures."""
    pass


class GrowiApiError(ExtractionError):
    """
    A single failed request against the Growi API.

    ``status_code`` is 0 when no HTTP response was received.

    Context should include:
        - api_url: The endpoint that failed
        - page: The requested page number
        - response_body: Response body (truncated)
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        response_body: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        context = dict(context or {})
        context["status_code"] = status_code
        if response_body is not None:
            response_body = response_body[:RESPONSE_BODY_LIMIT]
            context["response_body"] = response_body
        super().__init__(message, context, original_exception)
        self.status_code = status_code
        self.response_body = response_body


class TransportError(RetryableError, GrowiApiError):
    """The request could not complete at all (DNS, connect, timeout)."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        GrowiApiError.__init__(
            self,
            message,
            status_code=0,
            context=context,
            original_exception=original_exception,
        )


class UpstreamStatusError(GrowiApiError):
    """Non-2xx response. Retryability depends on the status and message."""
    pass


class UpstreamShapeError(NonRetryableError, GrowiApiError):
    """
    2xx response whose body failed validation against the page schema,
    or whose envelope reported success=false.

    ``path`` names the first failing location (e.g. ``data.0.share_url``).
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        context = dict(context or {})
        if path is not None:
            context["path"] = path
        GrowiApiError.__init__(
            self,
            message,
            status_code=502,
            context=context,
            original_exception=original_exception,
        )
        self.path = path


class RetriesExhaustedError(ExtractionError):
    """
    The retry budget ran out on a retryable error.

    ``last_error`` is the error of the final attempt.
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: BaseException,
        context: Optional[Dict[str, Any]] = None
    ):
        context = dict(context or {})
        context["attempts"] = attempts
        super().__init__(message, context, original_exception=last_error)
        self.attempts = attempts
        self.last_error = last_error

    @property
    def status_code(self) -> int:
        return getattr(self.last_error, "status_code", 0)


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(SyncException):
    """Base exception for data loading failures."""
    pass


class PersistenceError(LoadError):
    """
    Any failure of an upsert transaction (constraint violation, lost
    connection, serialization failure).

    Context should include:
        - operation: Logical operation name, e.g. "upsert growi page"
        - rows: Number of rows in the failed batch
    """

    def __init__(
        self,
        operation: str,
        original_exception: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        context = dict(context or {})
        context["operation"] = operation
        detail = str(original_exception) if original_exception else "unknown error"
        super().__init__(
            f"Database query failed during {operation}: {detail}",
            context,
            original_exception,
        )
        self.operation = operation
