"""
Filter request wire schema.

The JSON shape is shared with existing grid clients and must round-trip
unchanged:

    {
      "page": 0,
      "size": 25,
      "filterModel": {
        "status": {"filterType": "set", "values": ["DRAFT", ""]},
        "price": {"filterType": "number", "operator": "OR",
                  "condition1": {"type": "greaterThan", "filter": 10},
                  "condition2": {"type": "lessThan", "filter": 5}},
        "q": {"filterType": "search", "filter": "a.b*"}
      },
      "sortModel": [{"colId": "title", "sort": "desc"}]
    }
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from crud_shared.config.constants import SortDirection

Scalar = Union[str, int, float, bool, None]

RelationalType = Literal[
    "equals",
    "notEqual",
    "lessThan",
    "lessThanOrEqual",
    "greaterThan",
    "greaterThanOrEqual",
    "inRange",
]


class WireModel(BaseModel):
    """Base for camelCase wire models that also accept snake_case names."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Column filters
# =============================================================================


class SetColumnFilter(WireModel):
    """Column value must be one of ``values``; a blank entry also matches NULL."""

    filter_type: Literal["set"] = Field(default="set", alias="filterType")
    values: list[Scalar] = Field(default_factory=list)


class NumberCondition(WireModel):
    type: RelationalType
    filter: int | float | None = None
    filter_to: int | float | None = Field(default=None, alias="filterTo")


class NumberColumnFilter(WireModel):
    """
    Either a single condition (``type``/``filter``/``filterTo``) or two
    conditions joined by ``operator``.
    """

    filter_type: Literal["number"] = Field(default="number", alias="filterType")
    type: RelationalType | None = None
    filter: int | float | None = None
    filter_to: int | float | None = Field(default=None, alias="filterTo")
    operator: Literal["AND", "OR"] | None = None
    condition1: NumberCondition | None = None
    condition2: NumberCondition | None = None


class BooleanColumnFilter(WireModel):
    filter_type: Literal["boolean"] = Field(default="boolean", alias="filterType")
    value: bool


class DateColumnFilter(WireModel):
    """Epoch-millisecond comparison; day granularity unless ``exactMatch``."""

    filter_type: Literal["date"] = Field(default="date", alias="filterType")
    type: RelationalType
    filter: int
    filter_to: int | None = Field(default=None, alias="filterTo")
    exact_match: bool = Field(default=False, alias="exactMatch")


class SearchColumnFilter(WireModel):
    """Free text matched as a literal, case-insensitive substring."""

    filter_type: Literal["search"] = Field(default="search", alias="filterType")
    filter: str = ""
    fields: list[str] | None = None
    slug_excluded_from_search: bool = Field(default=False, alias="slugExcludedFromSearch")


class ExactMatchColumnFilter(WireModel):
    """Equality or existence check; unknown ``type`` means equals."""

    filter_type: Literal["exact"] = Field(default="exact", alias="filterType")
    type: str | None = None
    filter: Scalar = None


ColumnFilter = Annotated[
    Union[
        SetColumnFilter,
        NumberColumnFilter,
        BooleanColumnFilter,
        DateColumnFilter,
        SearchColumnFilter,
        ExactMatchColumnFilter,
    ],
    Field(discriminator="filter_type"),
]

FilterModel = dict[str, ColumnFilter]


# =============================================================================
# Sorting and the request envelope
# =============================================================================


class SortModel(WireModel):
    col_id: str = Field(alias="colId")
    sort: SortDirection = SortDirection.ASC


class FilterRequest(WireModel):
    """
    Page/size are validated by the read service rather than here so that a
    request without them can still drive ``filter_all`` and exports.
    """

    page: int | None = None
    size: int | None = None
    filter_model: FilterModel | None = Field(default=None, alias="filterModel")
    sort_model: list[SortModel] | None = Field(default=None, alias="sortModel")

    def for_page(self, page: int, size: int) -> "FilterRequest":
        """Copy of this request pointing at another page."""
        return self.model_copy(update={"page": page, "size": size})
