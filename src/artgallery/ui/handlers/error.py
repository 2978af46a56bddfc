"""
Error types and classification for artgallery.

Services raise ``GalleryError`` subclasses. The UI turns any exception into
an ``ErrorInfo`` through ``handle_error`` and shows its ``user_message``;
the technical message only goes to the log and the details expander.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from artgallery.logging_config import get_logger, log_error

logger = get_logger(__name__)


class ErrorCategory(Enum):
    UPLOAD = "upload"
    DATABASE = "database"
    STORAGE = "storage"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    NETWORK = "network"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


USER_MESSAGES = {
    ErrorCategory.UPLOAD: "The file could not be uploaded.",
    ErrorCategory.DATABASE: "A database error occurred. Please try again shortly.",
    ErrorCategory.STORAGE: "A storage error occurred. Please try again shortly.",
    ErrorCategory.VALIDATION: "Some of the input is invalid. Please check it and try again.",
    ErrorCategory.NOT_FOUND: "The requested item no longer exists.",
    ErrorCategory.NETWORK: "A network error occurred. Please check the connection.",
    ErrorCategory.UNKNOWN: "An unexpected error occurred.",
}


@dataclass
class ErrorInfo:
    """Snapshot of an error for display and statistics."""

    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    message: str
    user_message: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    recoverable: bool = True
    retry_suggested: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "retry_suggested": self.retry_suggested,
        }


class GalleryError(Exception):
    """
    Base exception for artgallery.

    Subclasses set the class attributes below; instances may override the
    category and retry hint (the classifier does this for network errors).
    Every error is logged once when it is created.
    """

    category = ErrorCategory.UNKNOWN
    severity = ErrorSeverity.MEDIUM
    default_code: str | None = None
    retry_suggested = False
    recoverable = True
    # Show the technical message to the user instead of the category text
    message_is_user_facing = False

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
        category: ErrorCategory | None = None,
        retry_suggested: bool | None = None,
    ):
        super().__init__(message)
        if category is not None:
            self.category = category
        if retry_suggested is not None:
            self.retry_suggested = retry_suggested

        self.code = code or self.default_code or f"{self.category.value}_error"
        if user_message is None:
            user_message = message if self.message_is_user_facing else USER_MESSAGES[self.category]
        self.user_message = user_message
        self.details = details or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        log_error(self, self._log_context())

    def _log_context(self) -> dict[str, Any]:
        context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "retry_suggested": self.retry_suggested,
            **self.details,
        }
        if self.original_exception is not None:
            context["original_exception"] = repr(self.original_exception)
        return context

    def get_error_info(self) -> ErrorInfo:
        return ErrorInfo(
            category=self.category,
            severity=self.severity,
            code=self.code,
            message=str(self),
            user_message=self.user_message,
            details=self.details,
            timestamp=self.timestamp,
            recoverable=self.recoverable,
            retry_suggested=self.retry_suggested,
        )


class UploadError(GalleryError):
    category = ErrorCategory.UPLOAD
    default_code = "upload_failed"
    retry_suggested = True


class DatabaseError(GalleryError):
    """Metadata store failures (DuckDB or its GCS backup)."""

    category = ErrorCategory.DATABASE
    severity = ErrorSeverity.HIGH
    retry_suggested = True


class StorageError(GalleryError):
    """Images bucket failures."""

    category = ErrorCategory.STORAGE
    severity = ErrorSeverity.HIGH
    retry_suggested = True


class ValidationError(GalleryError):
    """Rejected input; the message is written for the user."""

    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.LOW
    default_code = "validation_failed"
    message_is_user_facing = True


class NotFoundError(GalleryError):
    """An image, category or tag that does not exist."""

    category = ErrorCategory.NOT_FOUND
    severity = ErrorSeverity.LOW
    default_code = "not_found"


# Checked in order against the lowercased message of a foreign exception
_CLASSIFICATION_RULES: list[tuple[tuple[str, ...], type[GalleryError]]] = [
    (("upload", "file size", "too large"), UploadError),
    (("database", "duckdb", "sql", "constraint"), DatabaseError),
    (("storage", "gcs", "bucket", "blob"), StorageError),
    (("validation", "invalid", "required", "missing"), ValidationError),
    (("not found", "does not exist"), NotFoundError),
]

_NETWORK_ERROR_TYPES = (TimeoutError, ConnectionError)


class ErrorHandler:
    """Turns exceptions into ``ErrorInfo`` and counts them by code."""

    # Warn every time a code reaches another multiple of this
    FREQUENT_ERROR_THRESHOLD = 10

    def __init__(self) -> None:
        self.error_counts: dict[str, int] = {}

    def handle_error(self, error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
        """
        Classify ``error`` and record it.

        Args:
            error: Any exception; a ``GalleryError`` keeps its own classification
            context: Extra fields stored in the details of a classified error

        Returns:
            ErrorInfo: Display-ready description of the error
        """
        gallery_error = error if isinstance(error, GalleryError) else self._classify_error(error, context or {})
        error_info = gallery_error.get_error_info()
        self._track_error(error_info.code)
        return error_info

    def _classify_error(self, error: Exception, context: dict[str, Any]) -> GalleryError:
        message = str(error)
        lowered = message.lower()
        details = {"original_type": type(error).__name__, **context}

        for keywords, error_class in _CLASSIFICATION_RULES:
            if any(keyword in lowered for keyword in keywords):
                return error_class(message, details=details, original_exception=error)

        if isinstance(error, _NETWORK_ERROR_TYPES):
            return GalleryError(
                message,
                details=details,
                original_exception=error,
                category=ErrorCategory.NETWORK,
                retry_suggested=True,
            )
        return GalleryError(message, details=details, original_exception=error)

    def _track_error(self, error_code: str) -> None:
        count = self.error_counts.get(error_code, 0) + 1
        self.error_counts[error_code] = count
        if count % self.FREQUENT_ERROR_THRESHOLD == 0:
            logger.warning("frequent_error_detected", error_code=error_code, count=count)


error_handler = ErrorHandler()


def handle_error(error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
    """Classify ``error`` with the application-wide handler."""
    return error_handler.handle_error(error, context)
