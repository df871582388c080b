"""Error Hierarchy — typed, categorized exceptions for every LeaveFlow failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Lifecycle errors (400-level) abort the operation with no partial state change
    - Delivery errors never escape the delivery subsystem
    - to_response() produces the REST envelope used by the global handlers

Design Decisions:
    - Single hierarchy with LeaveFlowError base: FastAPI global handler catches all
    - ErrorContext as dataclass: observability fields without coupling to logging
    - ValidationError carries a field -> message map so several problems surface at once
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    UNAVAILABLE = "unavailable"
    INTERNAL = "internal"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Context attached to an error for logs and responses."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: str | None = None
    notification_id: str | None = None
    employee_id: str | None = None
    debug_info: dict[str, Any] | None = None


class LeaveFlowError(Exception):
    """Base exception for all LeaveFlow errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "request_id": self.context.request_id,
                    "notification_id": self.context.notification_id,
                    "employee_id": self.context.employee_id,
                },
            }
        }


# ─── Lifecycle Errors (400-level) ───────────────────────────────

class ValidationError(LeaveFlowError):
    """One or more fields failed validation (bad dates, ineligible leave type, low balance)."""
    def __init__(
        self, fields: dict[str, str], context: ErrorContext | None = None,
    ):
        super().__init__(
            "; ".join(f"{name}: {msg}" for name, msg in fields.items()),
            "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.fields = dict(fields)

    @classmethod
    def single(
        cls, field_name: str, message: str, context: ErrorContext | None = None,
    ) -> "ValidationError":
        return cls({field_name: message}, context)

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["details"] = [
            {"field": name, "message": msg} for name, msg in self.fields.items()
        ]
        return response


class ResourceNotFoundError(LeaveFlowError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ForbiddenError(LeaveFlowError):
    """Caller does not own the resource it tried to modify."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "FORBIDDEN", ErrorCategory.FORBIDDEN,
            ErrorSeverity.WARNING, context, 403,
        )


class ConflictError(LeaveFlowError):
    """A guarded transition found the row in an unexpected state."""
    def __init__(
        self,
        message: str,
        current_status: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )
        self.current_status = current_status


# ─── Delivery Errors ────────────────────────────────────────────

class TransientDeliveryError(LeaveFlowError):
    """A send attempt failed in a way worth retrying (network, SMTP, timeout)."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "DELIVERY_TRANSIENT", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.WARNING, context, 503,
        )


class PermanentDeliveryError(LeaveFlowError):
    """Retries exhausted; the notification is terminally FAILED."""
    def __init__(
        self, message: str, attempts: int, context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "DELIVERY_FAILED", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 502,
        )
        self.attempts = attempts


class TemplateFieldMissingError(LeaveFlowError):
    """A notification template referenced a field the caller did not supply."""
    def __init__(self, template_name: str, detail: str):
        super().__init__(
            f"Template '{template_name}' could not be rendered: {detail}",
            "TEMPLATE_FIELD_MISSING", ErrorCategory.INTERNAL,
            ErrorSeverity.ERROR, None, 500,
        )
        self.template_name = template_name


class QueueNotRunningError(LeaveFlowError):
    """Enqueue attempted while the delivery queue is stopped."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Delivery queue is not running",
            "QUEUE_NOT_RUNNING", ErrorCategory.UNAVAILABLE,
            ErrorSeverity.WARNING, context, 503,
        )


class QueueFullError(LeaveFlowError):
    """Delivery queue reached its capacity."""
    def __init__(self, capacity: int, context: ErrorContext | None = None):
        super().__init__(
            f"Delivery queue is full ({capacity} tasks)",
            "QUEUE_FULL", ErrorCategory.UNAVAILABLE,
            ErrorSeverity.WARNING, context, 503,
        )
        self.capacity = capacity


class ShutdownTimeoutError(LeaveFlowError):
    """Delivery queue did not drain within the shutdown grace period."""
    def __init__(self, undrained: int, timeout: float):
        super().__init__(
            f"Delivery queue stopped with {undrained} task(s) undrained "
            f"after {timeout:g}s",
            "SHUTDOWN_TIMEOUT", ErrorCategory.TIMEOUT,
            ErrorSeverity.ERROR, None, 500,
        )
        self.undrained = undrained


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(LeaveFlowError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
