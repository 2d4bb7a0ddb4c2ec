"""
Exception hierarchy for the progress service.

Every error carries structured context and logs itself on creation, so
callers only need to raise. The HTTP layer maps each family to a status
code in ``app.main``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger()


class ProgressServiceError(Exception):
    """
    Base exception for all progress service errors.

    Example:
        raise ProgressServiceError(
            message="Failed to persist progress",
            user_id="learner-1",
            operation="add_points",
            context={"amount": 20}
        )
    """

    log_level = "error"

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        self._log_error()

    def _log_error(self) -> None:
        log = getattr(logger, self.log_level)
        log(
            self.message,
            error_type=self.__class__.__name__,
            user_id=self.user_id,
            operation=self.operation,
            error_context=self.context,
            cause=str(self.cause) if self.cause else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (caller input)
# ==========================================

class ValidationError(ProgressServiceError):
    """
    Raised when input fails validation. Never retried.

    Example:
        raise ValidationError(
            message="Points must be a positive integer",
            field="points",
            value=-5,
            user_id="learner-1"
        )
    """

    log_level = "warning"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        kwargs.setdefault("user_message", f"Invalid {field}: {message}" if field else message)
        super().__init__(
            message=message,
            context={"field": field, "value": value},
            **kwargs
        )


class InvalidAmount(ValidationError):
    """Points amount is not a positive integer within the per-award limit."""

    def __init__(self, value: Any, limit: Optional[int] = None, **kwargs):
        self.limit = limit
        if limit is None:
            message = "Points must be a positive integer"
        else:
            message = f"Points must be a positive integer no greater than {limit}"
        super().__init__(
            message=message,
            field="points",
            value=value,
            **kwargs
        )


class PointsLimitReached(ValidationError):
    """Awarding would push the learner's total past the storable maximum."""

    def __init__(self, current: int, amount: int, limit: int, **kwargs):
        self.current = current
        self.amount = amount
        self.limit = limit
        super().__init__(
            message=f"Point total {current} + {amount} would exceed {limit}",
            field="points",
            value=amount,
            **kwargs
        )


class InvalidGameType(ValidationError):
    """Game category is not one of the known categories."""

    def __init__(self, value: Any, **kwargs):
        super().__init__(
            message=f"Unknown game type: {value}",
            field="game_type",
            value=value,
            **kwargs
        )


class UnknownCatalogEntry(ValidationError):
    """Badge or achievement id is not in its catalog."""

    def __init__(self, catalog: str, entry_id: str, **kwargs):
        self.catalog = catalog
        self.entry_id = entry_id
        super().__init__(
            message=f"Unknown {catalog} id: {entry_id}",
            field=f"{catalog}_id",
            value=entry_id,
            **kwargs
        )


# ==========================================
# Lookup Errors
# ==========================================

class NotFoundError(ProgressServiceError):
    """Requested record does not exist and is not auto-created."""

    log_level = "info"

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


# ==========================================
# Storage Errors
# ==========================================

class StorageError(ProgressServiceError):
    """The store rejected a write for a reason other than a concurrent writer. Not retryable."""

    def __init__(self, message: str = "Failed to persist progress", **kwargs):
        kwargs.setdefault("user_message", "Your progress could not be saved.")
        super().__init__(message=message, **kwargs)


class ConcurrencyConflict(ProgressServiceError):
    """Write contention outlasted the retry budget. Safe to retry the whole operation."""

    log_level = "warning"

    def __init__(
        self,
        message: str = "Concurrent update conflict",
        attempts: Optional[int] = None,
        **kwargs
    ):
        self.attempts = attempts
        kwargs.setdefault("context", {"attempts": attempts})
        super().__init__(
            message=message,
            user_message="Your progress was being updated elsewhere. Please try again.",
            **kwargs
        )


# ==========================================
# Authorization
# ==========================================

class AuthorizationError(ProgressServiceError):
    """Caller lacks permission for the requested resource."""

    log_level = "warning"

    def __init__(
        self,
        message: str = "Insufficient permissions",
        resource: Optional[str] = None,
        **kwargs
    ):
        self.resource = resource
        super().__init__(
            message=message,
            user_message=f"You don't have permission to access {resource or 'this resource'}.",
            context={"resource": resource},
            **kwargs
        )
