"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,
    DatabaseError,

    # Import pipeline
    ImportFileError,
    EntityWriteError,

    # Orders / shipping
    TrackingImportError,
    NoOrdersToExportError,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",
    "DatabaseError",

    # Import pipeline
    "ImportFileError",
    "EntityWriteError",

    # Orders / shipping
    "TrackingImportError",
    "NoOrdersToExportError",
]
