"""
Response schemas shared by every CRUD router.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

DTO = TypeVar("DTO")


class KeyLabel(BaseModel):
    """Option for distinct-value pickers."""

    key: Any
    label: Any


class PageDto(BaseModel, Generic[DTO]):
    """A page of DTOs as returned to clients."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[DTO]
    page: int
    size: int
    total_elements: int = Field(alias="totalElements")
    total_pages: int = Field(alias="totalPages")


class FieldDto(BaseModel):
    """Localized description of one entity field."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    label: str
    data_type: str = Field(alias="dataType")
    searchable: bool
    sequence: int
    join_collection: str | None = Field(default=None, alias="joinCollection")
    join_column_name: str | None = Field(default=None, alias="joinColumnName")


class ImportRowError(BaseModel):
    row: int
    message: str


class ImportLogDetails(BaseModel):
    """Outcome of a CSV import."""

    model_config = ConfigDict(populate_by_name=True)

    total_row_count: int = Field(default=0, alias="totalRowCount")
    success_row_count: int = Field(default=0, alias="successRowCount")
    error_row_count: int = Field(default=0, alias="errorRowCount")
    errors: list[ImportRowError] = Field(default_factory=list)
