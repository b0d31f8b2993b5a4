"""
Tests for the filter request wire schema.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from crud_api.schemas.filters import (
    DateColumnFilter,
    FilterRequest,
    NumberColumnFilter,
    SearchColumnFilter,
    SetColumnFilter,
)
from crud_shared.config.constants import SortDirection

GRID_REQUEST = {
    "page": 0,
    "size": 25,
    "filterModel": {
        "status": {"filterType": "set", "values": ["DRAFT", ""]},
        "price": {
            "filterType": "number",
            "operator": "OR",
            "condition1": {"type": "greaterThan", "filter": 10},
            "condition2": {"type": "lessThan", "filter": 5},
        },
        "quantity": {"filterType": "number", "type": "inRange", "filter": 1, "filterTo": 9},
        "published": {"filterType": "boolean", "value": True},
        "published_at": {
            "filterType": "date",
            "type": "equals",
            "filter": 1710072000000,
            "exactMatch": False,
        },
        "q": {
            "filterType": "search",
            "filter": "a.b*",
            "fields": ["title"],
            "slugExcludedFromSearch": True,
        },
        "category": {"filterType": "exact", "type": "exists"},
    },
    "sortModel": [{"colId": "title", "sort": "desc"}, {"colId": "price", "sort": "asc"}],
}


class TestFilterRequestWire:
    """Tests for parsing and serializing grid requests."""

    def test_round_trip_is_unchanged(self):
        request = FilterRequest.model_validate(GRID_REQUEST)
        assert request.to_wire() == GRID_REQUEST

    def test_variants_are_discriminated(self):
        request = FilterRequest.model_validate(GRID_REQUEST)
        filters = request.filter_model
        assert isinstance(filters["status"], SetColumnFilter)
        assert isinstance(filters["price"], NumberColumnFilter)
        assert isinstance(filters["published_at"], DateColumnFilter)
        assert isinstance(filters["q"], SearchColumnFilter)
        assert filters["q"].slug_excluded_from_search is True
        assert request.sort_model[0].sort == SortDirection.DESC

    def test_snake_case_names_are_accepted(self):
        request = FilterRequest(
            page=1,
            size=10,
            filter_model={"price": NumberColumnFilter(type="inRange", filter=1, filter_to=2)},
        )
        assert request.to_wire()["filterModel"]["price"]["filterTo"] == 2

    def test_unknown_filter_type_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            FilterRequest.model_validate({"filterModel": {"x": {"filterType": "regex"}}})

    def test_unknown_sort_direction_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            FilterRequest.model_validate({"sortModel": [{"colId": "title", "sort": "up"}]})

    def test_for_page_returns_a_copy(self):
        request = FilterRequest.model_validate(GRID_REQUEST)
        second = request.for_page(3, 750)

        assert (second.page, second.size) == (3, 750)
        assert (request.page, request.size) == (0, 25)
        assert second.filter_model == request.filter_model
