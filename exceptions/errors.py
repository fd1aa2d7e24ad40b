"""
Custom exception classes for the application.

Every error carries a stable code, a human-readable message and an HTTP
status so the API and the import scripts report failures the same way.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "ORDER_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None,
        status_code: int = 422
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# IMPORT ERRORS
# ===================

class ImportFileError(ValidationError):
    """An import file could not be read."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            code="IMPORT_FILE_ERROR",
            message=f"Cannot read import file: {reason}",
            details={"path": path}
        )


class EntityWriteError(DatabaseError):
    """Inserting an imported entity failed."""

    def __init__(self, entity_type: str, key: str, message: str):
        super().__init__(
            operation="insert",
            message=message,
            details={"entity_type": entity_type, "key": key}
        )


# ===================
# ORDER / SHIPPING ERRORS
# ===================

class TrackingImportError(ValidationError):
    """Tracking CSV is unusable as a whole."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="TRACKING_IMPORT_FAILED",
            message=message,
            details=details,
            status_code=400
        )


class NoOrdersToExportError(ValidationError):
    """Nothing matched the export filter."""

    def __init__(self, order_ids: Optional[list[str]] = None):
        super().__init__(
            code="NO_ORDERS_TO_EXPORT",
            message="No orders to export",
            details={"order_ids": order_ids or []},
            status_code=400
        )
