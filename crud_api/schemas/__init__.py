"""
Wire schemas: filter requests, pages, distinct values and import logs.
"""

from crud_api.schemas.filters import (
    BooleanColumnFilter,
    ColumnFilter,
    DateColumnFilter,
    ExactMatchColumnFilter,
    FilterModel,
    FilterRequest,
    NumberColumnFilter,
    NumberCondition,
    SearchColumnFilter,
    SetColumnFilter,
    SortModel,
)
from crud_api.schemas.common import (
    FieldDto,
    ImportLogDetails,
    ImportRowError,
    KeyLabel,
    PageDto,
)

__all__ = [
    "BooleanColumnFilter",
    "ColumnFilter",
    "DateColumnFilter",
    "ExactMatchColumnFilter",
    "FilterModel",
    "FilterRequest",
    "NumberColumnFilter",
    "NumberCondition",
    "SearchColumnFilter",
    "SetColumnFilter",
    "SortModel",
    "FieldDto",
    "ImportLogDetails",
    "ImportRowError",
    "KeyLabel",
    "PageDto",
]
