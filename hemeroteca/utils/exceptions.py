"""
Hemeroteca Custom Exceptions
============================

Exception hierarchy for the ingestion pipeline with error codes, context
information and user-friendly messages.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"
    CONFIG_PARSE_ERROR = "C003"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_SCHEMA = "D002"
    DATABASE_CONSTRAINT = "D003"
    DATABASE_TRANSACTION = "D004"
    DATABASE_ERROR = "D006"

    # Fetch errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_HTTP_STATUS = "F005"

    # Extraction errors (P001-P099)
    CONTENT_EMPTY = "P001"
    CONTENT_UNSUPPORTED = "P002"
    CONTENT_EXTRACTION_FAILED = "P003"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_OUT_OF_RANGE = "V003"


class HemerotecaError(Exception):
    """Base exception for all Hemeroteca errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize Hemeroteca error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(HemerotecaError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            user_message=kwargs.pop("user_message", f"Configuration error: {message}"),
            **kwargs,
        )


class DatabaseError(HemerotecaError):
    """Database-related errors."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        """Initialize database error.

        Args:
            message: Error message
            query: SQL query that caused the error
            **kwargs: Additional arguments for HemerotecaError
        """
        context = kwargs.pop("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.DATABASE_CONNECTION),
            context=context,
            user_message=kwargs.pop("user_message", "Database operation failed"),
            recoverable=kwargs.pop("recoverable", False),
            **kwargs,
        )


class PersistError(DatabaseError):
    """Failure to write an accepted article to the archive.

    Anything other than a uniqueness violation is fatal for the pass.
    """

    def __init__(self, message: str, canonical_url: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if canonical_url:
            context["canonical_url"] = canonical_url

        super().__init__(
            message,
            error_code=kwargs.pop("error_code", ErrorCode.DATABASE_TRANSACTION),
            context=context,
            user_message=kwargs.pop("user_message", "Archive write failed"),
            **kwargs,
        )
        self.canonical_url = canonical_url


class DuplicateArticleError(PersistError):
    """Unique constraint on canonical_url rejected the write."""

    def __init__(self, message: str, canonical_url: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            canonical_url=canonical_url,
            error_code=ErrorCode.DATABASE_CONSTRAINT,
            user_message="Article already archived",
            recoverable=True,
            **kwargs,
        )


class FetchError(HemerotecaError):
    """Network retrieval errors for feeds and article pages."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        cause: Optional[str] = None,
        **kwargs,
    ):
        """Initialize fetch error.

        Args:
            message: Error message
            url: URL that could not be fetched
            cause: Short description of the underlying failure
            **kwargs: Additional arguments for HemerotecaError
        """
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url
        if cause:
            context["cause"] = cause

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.FEED_NETWORK_ERROR),
            context=context,
            user_message=kwargs.pop("user_message", f"Fetch failed: {message}"),
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )
        self.url = url
        self.cause = cause


class FetchTimeout(FetchError):
    """A request stalled past the per-request timeout and was aborted."""

    def __init__(self, message: str, url: Optional[str] = None, timeout: Optional[float] = None, **kwargs):
        context = kwargs.pop("context", {})
        if timeout is not None:
            context["timeout_seconds"] = timeout

        super().__init__(
            message,
            url=url,
            cause="timeout",
            error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            context=context,
            **kwargs,
        )
        self.timeout = timeout


class FetchFailed(FetchError):
    """Network or HTTP status failure."""

    def __init__(self, message: str, url: Optional[str] = None, cause: Optional[str] = None,
                 status: Optional[int] = None, **kwargs):
        context = kwargs.pop("context", {})
        if status is not None:
            context["status"] = status

        super().__init__(
            message,
            url=url,
            cause=cause,
            error_code=kwargs.pop(
                "error_code",
                ErrorCode.FEED_HTTP_STATUS if status is not None else ErrorCode.FEED_NETWORK_ERROR,
            ),
            context=context,
            **kwargs,
        )
        self.status = status


class ExtractionError(HemerotecaError):
    """Per-entry extraction failure. The entry is dropped, the pass continues."""

    def __init__(self, reason: str, url: Optional[str] = None, **kwargs):
        """Initialize extraction error.

        Args:
            reason: Why no candidate could be produced
            url: Document or entry URL
            **kwargs: Additional arguments for HemerotecaError
        """
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url

        super().__init__(
            message=reason,
            error_code=kwargs.pop("error_code", ErrorCode.CONTENT_EXTRACTION_FAILED),
            context=context,
            user_message=kwargs.pop("user_message", f"Extraction failed: {reason}"),
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )
        self.reason = reason
        self.url = url


class ValidationError(HemerotecaError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            user_message=kwargs.pop(
                "user_message", f"Invalid {field_name or 'input'}: {message}"
            ),
            recoverable=kwargs.pop("recoverable", False),
            **kwargs,
        )


# Exception handling utilities


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> HemerotecaError:
    """Convert generic exceptions to Hemeroteca exceptions with proper logging.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information

    Returns:
        Hemeroteca exception with proper categorization
    """
    context = context or {}
    context["operation"] = operation
    context["original_exception_type"] = type(exception).__name__

    if isinstance(exception, HemerotecaError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    elif isinstance(exception, PermissionError):
        error = HemerotecaError(
            message=f"Permission denied during {operation}: {exception}",
            context=context,
            user_message="Access denied",
        )

    elif isinstance(exception, FileNotFoundError):
        error = ConfigurationError(
            message=f"Required file not found during {operation}: {exception}",
            error_code=ErrorCode.CONFIG_MISSING,
            context=context,
            user_message="Configuration file missing",
        )

    else:
        error = HemerotecaError(
            message=f"Unexpected error during {operation}: {exception}",
            context=context,
            user_message="An unexpected error occurred",
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def is_retryable_error(exception: Exception) -> bool:
    """Check if an error is worth retrying.

    Args:
        exception: Exception to check

    Returns:
        True if the error is potentially retryable
    """
    if not isinstance(exception, HemerotecaError) or not exception.recoverable:
        return False

    retryable_codes = {
        ErrorCode.FEED_NETWORK_ERROR,
        ErrorCode.FEED_FETCH_TIMEOUT,
        ErrorCode.FEED_HTTP_STATUS,
        ErrorCode.DATABASE_CONNECTION,
    }

    return exception.error_code in retryable_codes
