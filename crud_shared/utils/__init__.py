"""
Utilities: exceptions and date helpers.
"""

from crud_shared.utils.exceptions import (
    AppException,
    NotFoundError,
    ValidationError,
    InvalidFilterError,
    DuplicateEntityError,
    ImportFormatError,
    InternalError,
    DatabaseError,
    ExportIOError,
)
from crud_shared.utils.dates import DayBoundaryClock, get_clock, to_epoch_millis

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "InvalidFilterError",
    "DuplicateEntityError",
    "ImportFormatError",
    "InternalError",
    "DatabaseError",
    "ExportIOError",
    "DayBoundaryClock",
    "get_clock",
    "to_epoch_millis",
]
