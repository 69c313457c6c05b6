"""
classtrack exception hierarchy

Every error carries a machine-readable ``error_code``, a retry classification
and a context dict, so the HTTP layer and the logs can report it uniformly.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class RetryPolicy(Enum):
    """Retry policy classification for exceptions."""

    NEVER = "never"  # caller must change the request
    BACKOFF = "backoff"  # safe to retry the same request later


class ClasstrackError(Exception):
    """
    Base exception class for all classtrack errors.

    Attributes
    ----------
    message : str
        Human-readable error message
    error_code : str
        Machine-readable error code for categorization
    retry_policy : RetryPolicy
        Retry classification for this error type
    context : Dict[str, Any]
        Additional error context
    cause : Optional[Exception]
        Original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        retry_policy: RetryPolicy = RetryPolicy.NEVER,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.retry_policy = retry_policy
        self.context = dict(context or {})  # Create a copy to avoid mutation
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and API responses."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "retry_policy": self.retry_policy.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
            "exception_type": self.__class__.__name__,
        }

    def is_retryable(self) -> bool:
        return self.retry_policy is RetryPolicy.BACKOFF

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"retry_policy={self.retry_policy.value}"
            f")"
        )


class ValidationError(ClasstrackError):
    """
    Malformed input: a rule with no weekdays, an unknown weekday tag, a bad
    HH:MM string, end not after start, an illegal status transition, an
    unknown time zone.

    Always raised before any store mutation.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        error_code: str = "validation_error",
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if field is not None:
            context["field"] = field
        if value is not None:
            context["value"] = value if isinstance(value, (str, int, float, bool)) else repr(value)
        super().__init__(message=message, error_code=error_code, context=context)
        self.field = field


class NotFoundError(ClasstrackError):
    """
    A referenced subject, rule or occurrence does not exist, or belongs to
    another user. The message never says which.
    """

    def __init__(
        self,
        entity: str,
        entity_id: Any = None,
        message: Optional[str] = None,
    ) -> None:
        message = message or f"{entity.capitalize()} not found"
        context: Dict[str, Any] = {"entity": entity}
        if entity_id is not None:
            context["entity_id"] = str(entity_id)
        super().__init__(message=message, error_code=f"{entity}_not_found", context=context)
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(ClasstrackError):
    """
    Unique-constraint violation.

    Inside the materialization engine this is the expected idempotence signal
    and is swallowed. A duplicate rule slot is caught by the schedule service,
    which falls back to updating the existing rule; only user-facing
    uniqueness such as subject names reaches callers.
    """

    def __init__(
        self,
        message: str,
        constraint: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        context = {"constraint": constraint} if constraint else {}
        super().__init__(message=message, error_code="conflict", context=context, cause=cause)
        self.constraint = constraint


class StoreUnavailableError(ClasstrackError):
    """
    Transport or store failure. Retryable: every engine operation is
    idempotent, so the caller can repeat the whole request.
    """

    def __init__(
        self,
        operation: str,
        cause: Optional[Exception] = None,
        message: Optional[str] = None,
    ) -> None:
        message = message or f"Store unavailable during {operation}; retry the request"
        super().__init__(
            message=message,
            error_code="store_unavailable",
            retry_policy=RetryPolicy.BACKOFF,
            context={"operation": operation},
            cause=cause,
        )
        self.operation = operation


__all__ = [
    "RetryPolicy",
    "ClasstrackError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "StoreUnavailableError",
]
