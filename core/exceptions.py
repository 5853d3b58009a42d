"""
Custom exceptions for the crawler with structured error context.

Every exception carries a context dictionary so failures can be logged
with enough detail to tell which endpoint, batch or table was involved.

Exception Hierarchy:
    CrawlerException (base)
    ├── ExtractionError
    │   └── APIExtractionError
    │       ├── TransportError (retryable)
    │       ├── PayloadError (retryable)
    │       └── RequestFailed
    ├── LoadError
    │   └── PersistenceError
    ├── CheckpointError
    ├── CollectionError
    ├── InvalidTransition
    └── RetryableError (mixin)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class CrawlerException(Exception):
    """
    Base exception for all crawler errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (endpoint, state, table, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        self.message = message
        self.context = context or {}
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
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


class RetryableError(CrawlerException):
    """
    Mixin for failures the request client retries with backoff.

    Covers connection errors, non-success HTTP statuses, unparseable
    bodies and error objects embedded in an otherwise valid response.
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(CrawlerException):
    """Base exception for data extraction failures."""
    pass


class APIExtractionError(ExtractionError):
    """
    Exception raised when a Stack Exchange API call fails.

    Context should include:
        - api_url: The API endpoint that failed
        - status_code: HTTP status code (if applicable)
        - attempt: Attempt number the failure happened on
    """
    pass


class TransportError(RetryableError, APIExtractionError):
    """Connection failure or non-success HTTP status."""
    pass


class PayloadError(RetryableError, APIExtractionError):
    """Body is not a JSON object, or it carries an embedded error object."""
    pass


class RequestFailed(APIExtractionError):
    """
    Raised once every attempt of a request has failed.

    The last underlying failure is chained as the cause.
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        super().__init__(message, context, original_exception)
        self.attempts = attempts
        self.context["attempts"] = attempts


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(CrawlerException):
    """Base exception for data loading failures."""
    pass


class PersistenceError(LoadError):
    """
    Exception raised when a storage statement fails.

    The active transaction has already been rolled back when this is raised.

    Context should include:
        - operation: INSERT or UPSERT
        - kind: Record kind being written (questions, answers, comments)
        - records_committed: Records already committed before the failure
    """
    pass


# ============================================================================
# Collection Errors
# ============================================================================

class CheckpointError(CrawlerException):
    """
    Checkpoint file could not be read or written.

    Never raised out of load/save; used to log the failure with context.
    """
    pass


class CollectionError(CrawlerException):
    """A collection phase failed."""
    pass


class InvalidTransition(CrawlerException):
    """Requested state change is not allowed by the collection state machine."""

    def __init__(self, current, target, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Cannot transition from {current.name} to {target.name}",
            context=context
        )
        self.current = current
        self.target = target
