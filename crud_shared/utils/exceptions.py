"""
HTTP exceptions raised by the CRUD layer.

Each exception logs itself once, at a level tied to its status, and keeps
its keyword context on ``exc.context`` (the offending column, id, slug...).

Usage:
    from crud_shared.utils.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Article", slug="art-42")
    raise ValidationError("Page size must be positive", size=0)
"""

from typing import Any, ClassVar

from fastapi import HTTPException, status

from crud_shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base of every CRUD error.

    Subclasses pick ``status_code_default`` and ``log_level``; the detail
    becomes both the response body and the log message.
    """

    status_code_default: ClassVar[int] = status.HTTP_500_INTERNAL_SERVER_ERROR
    log_level: ClassVar[str] = "error"

    def __init__(
        self,
        detail: str,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
        **context: Any,
    ):
        code = status_code or self.status_code_default
        getattr(logger, self.log_level)(detail, status_code=code, exception=type(self).__name__, **context)
        self.context = context
        super().__init__(status_code=code, detail=detail, headers=headers)

    def __str__(self) -> str:
        return str(self.detail)


# --- 404 ---------------------------------------------------------------------


class NotFoundError(AppException):
    """
    No entity matches the lookup.

    Usage:
        raise NotFoundError("Article", 123)
        raise NotFoundError("Article", slug="art-42")
    """

    status_code_default = status.HTTP_404_NOT_FOUND
    log_level = "warning"

    def __init__(self, entity: str, entity_id: int | str | None = None, **lookup: Any):
        if entity_id is not None:
            what = f"id {entity_id}"
        else:
            what = ", ".join(f"{key}={value}" for key, value in lookup.items())
        detail = f"{entity} with {what} not found" if what else f"{entity} not found"
        super().__init__(detail, entity=entity, entity_id=entity_id, **lookup)


# --- 400 ---------------------------------------------------------------------


class ValidationError(AppException):
    """Request or entity is invalid."""

    status_code_default = status.HTTP_400_BAD_REQUEST
    log_level = "warning"

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail, **context)


class InvalidFilterError(ValidationError):
    """A column filter cannot be compiled into a query condition."""

    def __init__(self, column: str, reason: str, filter_type: str | None = None, **context: Any):
        super().__init__(
            f"Invalid filter for column '{column}': {reason}",
            column=column,
            filter_type=filter_type,
            **context,
        )


class DuplicateEntityError(ValidationError):
    """Another entity already holds the identifier."""

    def __init__(self, entity: str, identifier: str | None = None, **context: Any):
        suffix = f" with identifier '{identifier}'" if identifier else ""
        super().__init__(f"{entity}{suffix} already exists", entity=entity, identifier=identifier, **context)


class ImportFormatError(ValidationError):
    """Uploaded file cannot be read as a table of the entity's fields."""

    def __init__(self, reason: str, **context: Any):
        super().__init__(f"Unable to import file: {reason}", **context)


# --- 500 ---------------------------------------------------------------------


class InternalError(AppException):
    """Unexpected server-side failure."""

    def __init__(self, detail: str = "Internal server error", **context: Any):
        super().__init__(detail, **context)


class DatabaseError(InternalError):
    """A commit or query failed; the session was rolled back."""

    def __init__(self, operation: str, **context: Any):
        super().__init__(f"Database error during {operation}. Please try again.", operation=operation, **context)


class ExportIOError(InternalError):
    """Writing to the export sink failed; the export was aborted."""

    def __init__(self, entity: str, reason: str, **context: Any):
        super().__init__(f"Export of {entity} aborted: {reason}", entity=entity, **context)
