"""
Structured error types for the spine-jobs runner.

Every error raised by the runner extends :class:`SpineError` and carries a
category, a retry hint and structured context, so a trigger source can decide
what to do with it without parsing messages.

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different failure classes
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry job/farm metadata for logging and alerting
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       SpineError                                 │
        │  (category, retryable, retry_after, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ValidationError        ConfigError        OrchestrationError   │
        │  (VALIDATION)           (CONFIG)           (ORCHESTRATION)      │
        │       │                      │                    │              │
        │  ItemValidationError    InvalidConfigError   ScheduleError      │
        │  InvalidScheduleError                             │              │
        │                                          JobNotFoundError       │
        │                                          JobAlreadyRunningError │
        └─────────────────────────────────────────────────────────────────┘

Propagation:
    - ``JobNotFoundError`` and ``JobAlreadyRunningError`` are raised
      synchronously from ``execute``. Read paths return ``None``/``False``.
    - ``ItemValidationError`` never escapes a batch; the engine counts it
      into ``failed_tasks``.
    - The runner never retries anything itself. ``retryable`` is a hint for
      the trigger source.

Examples:
    >>> error = JobAlreadyRunningError("job-1")
    >>> error.retryable
    True
    >>> error.to_dict()["category"]
    'ORCHESTRATION'

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context, spine-jobs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"     # Malformed items, invalid schedule values
    CONFIG = "CONFIG"             # Invalid settings or bounds
    ORCHESTRATION = "ORCHESTRATION"  # Job lookup, execution guard
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover the identifiers the runner deals with; anything else
    goes into ``metadata``. ``to_dict()`` serializes only the fields that are
    set, which keeps log lines short.

    Attributes:
        job_id: Identifier of the job involved
        farm_id: Owning farm scope
        schedule: Schedule kind value
        item_index: Position of the offending item in a batch
        metadata: Additional key-value pairs
    """

    job_id: str | None = None
    farm_id: Any = None
    schedule: str | None = None
    item_index: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["job_id", "farm_id", "schedule", "item_index"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SpineError(Exception):
    """
    Base exception for all spine-jobs errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    get sensible defaults without passing them every time.

    Args:
        message: Human-readable description
        category: Override the class default category
        retryable: Override the class default retry hint
        retry_after: Seconds to wait before retrying, if known
        context: Structured metadata
        cause: Underlying exception, chained as ``__cause__``
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise JobNotFoundError(job_id).with_context(farm_id=3)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS (Never Retryable)
# =============================================================================


class ValidationError(SpineError):
    """Data failed validation."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class ItemValidationError(ValidationError):
    """A single work item is structurally invalid.

    Raised by item transforms and absorbed by the engine into the run's
    ``failed_tasks`` count.
    """

    def __init__(
        self,
        message: str,
        *,
        missing_fields: list[str] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.missing_fields = missing_fields or []

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.missing_fields:
            result["missing_fields"] = self.missing_fields
        return result


class InvalidScheduleError(ValidationError):
    """Unknown schedule kind, strategy, or status value."""

    def __init__(self, kind: str, value: Any, allowed: list[str] | None = None):
        self.kind = kind
        self.value = value
        self.allowed = allowed or []
        message = f"Invalid {kind}: {value!r}"
        if self.allowed:
            message = f"{message} (expected one of: {', '.join(self.allowed)})"
        super().__init__(message)


# =============================================================================
# CONFIG ERRORS (Never Retryable)
# =============================================================================


class ConfigError(SpineError):
    """Configuration error."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration or bound value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid value for {key}: {value!r}")


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================


class OrchestrationError(SpineError):
    """Job runner orchestration error."""

    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False


class ScheduleError(OrchestrationError):
    """Scheduled job lookup or execution error."""

    pass


class JobNotFoundError(ScheduleError):
    """Job id is unknown to the store."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(
            f"Scheduled job not found: {job_id}",
            context=ErrorContext(job_id=job_id),
        )


class JobAlreadyRunningError(ScheduleError):
    """An execution of this job is already in flight.

    Distinct from any run classification: nothing was recorded, and the
    caller may retry once the current execution finishes.
    """

    default_retryable = True

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(
            f"Job {job_id} is already running",
            context=ErrorContext(job_id=job_id),
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, SpineError):
        return error.retryable
    return False


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, SpineError):
        return error.category
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SpineError",
    "ValidationError",
    "ItemValidationError",
    "InvalidScheduleError",
    "ConfigError",
    "InvalidConfigError",
    "OrchestrationError",
    "ScheduleError",
    "JobNotFoundError",
    "JobAlreadyRunningError",
    "is_retryable",
    "categorize_error",
]
