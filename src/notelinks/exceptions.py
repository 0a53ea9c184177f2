"""Custom exceptions for the notelinks engine.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from notelinks.models.schema import RenameResult


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTE_VALIDATION_FAILED = 1002
    NOTE_TITLE_REQUIRED = 1004

    # Link errors (2xxx)
    RENAME_CASCADE_PARTIAL = 2101
    RENAME_CASCADE_FAILED = 2102

    # Store errors (4xxx)
    STORE_READ_FAILED = 4001
    STORE_WRITE_FAILED = 4002
    STORE_CONNECTION_FAILED = 4004

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001


class NoteLinksError(Exception):
    """Base exception for all notelinks errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NoteNotFoundError(NoteLinksError):
    """Raised when a note cannot be found."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note with ID '{note_id}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id}
        )
        self.note_id = note_id


class NoteValidationError(NoteLinksError):
    """Raised when note data fails validation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.NOTE_VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]  # Truncate for safety

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class StoreError(NoteLinksError):
    """Raised when the note store fails (connectivity, auth, validation).

    Stores raise it directly; the link service re-raises it wrapped with
    the name of the operation that was running.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class RenameCascadeError(NoteLinksError):
    """Raised when a rename cascade could not update every referencing note.

    The cascade has no cross-note transaction, so some notes may already
    reference the new title. ``result`` lists exactly which notes were
    updated, which failed and which were skipped; re-running the cascade
    only touches notes still referencing the old title.

    Note:
        The `details` dict contains `failed_ids` truncated to 10 items for
        safe serialization. Use `self.failed_ids` for the complete list.
    """

    def __init__(
        self,
        message: str,
        result: "RenameResult",
        original_error: Optional[Exception] = None
    ):
        code = (
            ErrorCode.RENAME_CASCADE_PARTIAL
            if result.succeeded_ids
            else ErrorCode.RENAME_CASCADE_FAILED
        )
        failed_ids = list(result.failed)
        details = {
            "old_title": result.old_title,
            "new_title": result.new_title,
            "total_count": len(result.planned_ids),
            "success_count": len(result.succeeded_ids),
            "failed_count": len(failed_ids),
            "skipped_count": len(result.skipped_ids),
            "failed_ids": failed_ids[:10],
        }
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.result = result
        self.original_error = original_error

    @property
    def succeeded_ids(self) -> List[str]:
        return list(self.result.succeeded_ids)

    @property
    def failed_ids(self) -> List[str]:
        return list(self.result.failed)


class ConfigurationError(NoteLinksError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key
