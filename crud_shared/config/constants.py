"""
Centralized constants for the CRUD layer.
Avoids magic strings in the filter compiler, the export engine and the router.

Usage:
    from crud_shared.config.constants import FilterTypes, Operators

    if filter_type == FilterTypes.IN_RANGE:
        ...
"""

from enum import Enum
from typing import Final


# =============================================================================
# Filter model vocabulary (wire values)
# =============================================================================


class FilterTypes:
    """Comparison types accepted in column filters."""

    EQUALS: Final[str] = "equals"
    NOT_EQUAL: Final[str] = "notEqual"
    LESS_THAN: Final[str] = "lessThan"
    LESS_THAN_OR_EQUAL: Final[str] = "lessThanOrEqual"
    GREATER_THAN: Final[str] = "greaterThan"
    GREATER_THAN_OR_EQUAL: Final[str] = "greaterThanOrEqual"
    IN_RANGE: Final[str] = "inRange"
    EXISTS: Final[str] = "exists"
    DOES_NOT_EXIST: Final[str] = "doesNotExist"

    RELATIONAL: Final[frozenset[str]] = frozenset({
        EQUALS,
        NOT_EQUAL,
        LESS_THAN,
        LESS_THAN_OR_EQUAL,
        GREATER_THAN,
        GREATER_THAN_OR_EQUAL,
        IN_RANGE,
    })


class Operators:
    """Join operators for dual-condition number filters."""

    AND: Final[str] = "AND"
    OR: Final[str] = "OR"

    ALL: Final[frozenset[str]] = frozenset({AND, OR})


class SortDirection(str, Enum):
    """Sort direction as sent by clients."""

    ASC = "asc"
    DESC = "desc"


# =============================================================================
# Entity conventions
# =============================================================================

# Business identifier column shared by every entity
SLUG: Final[str] = "slug"

# Blank option in set filters and distinct-value lists
BLANK_STRING: Final[str] = ""


class AccessPermission(str, Enum):
    """Access levels a router asks the authorization hook for."""

    READ = "READ"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class Limits:
    """Validation limits and batch sizes."""

    DEFAULT_EXPORT_BATCH_SIZE: Final[int] = 750
    SLUG_SUFFIX_LENGTH: Final[int] = 12
