"""
Criteria compiler: filter model -> one SQLAlchemy predicate.

Each entry of the filter model becomes one condition; all conditions and the
optional inheritance discriminator are ANDed together. Entries naming columns
that are not in the entity's catalog are ignored.
"""

from __future__ import annotations

from typing import Any, Callable

from sqlalchemy import String, and_, cast, or_, true

from crud_api.schemas.filters import (
    BooleanColumnFilter,
    DateColumnFilter,
    ExactMatchColumnFilter,
    FilterModel,
    NumberColumnFilter,
    NumberCondition,
    SearchColumnFilter,
    SetColumnFilter,
)
from crud_api.services.crud.executor import Predicate, resolve_column
from crud_api.services.crud.metadata import DataType, EntityMetadata, FieldDescriptor
from crud_shared.config.constants import BLANK_STRING, SLUG, FilterTypes, Operators
from crud_shared.config.logging import get_logger
from crud_shared.utils.dates import DayBoundaryClock
from crud_shared.utils.exceptions import InvalidFilterError

logger = get_logger(__name__)

LIKE_ESCAPE = "\\"

_RELATIONAL: dict[str, Callable[[Any, Any], Predicate]] = {
    FilterTypes.EQUALS: lambda col, value: col == value,
    FilterTypes.NOT_EQUAL: lambda col, value: or_(col != value, col.is_(None)),
    FilterTypes.LESS_THAN: lambda col, value: col < value,
    FilterTypes.LESS_THAN_OR_EQUAL: lambda col, value: col <= value,
    FilterTypes.GREATER_THAN: lambda col, value: col > value,
    FilterTypes.GREATER_THAN_OR_EQUAL: lambda col, value: col >= value,
}


def escape_like(value: str) -> str:
    """Escape LIKE metacharacters so ``value`` matches literally."""
    return (
        value
        .replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and value.strip() == BLANK_STRING


class CriteriaCompiler:
    """
    Compiles a client filter model against an entity catalog.

    Usage:
        compiler = CriteriaCompiler(get_clock())
        predicate = compiler.compile(request.filter_model, ARTICLE_METADATA)
    """

    def __init__(self, clock: DayBoundaryClock):
        self._clock = clock

    def compile(
        self,
        filter_model: FilterModel | None,
        metadata: EntityMetadata,
        discriminator: Predicate | None = None,
    ) -> Predicate:
        criteria: list[Predicate] = []
        if discriminator is not None:
            criteria.append(discriminator)

        for key, column_filter in (filter_model or {}).items():
            condition = self.compile_entry(key, column_filter, metadata)
            if condition is not None:
                criteria.append(condition)

        if not criteria:
            return true()
        if len(criteria) == 1:
            return criteria[0]
        return and_(*criteria)

    def compile_entry(self, key: str, column_filter: Any, metadata: EntityMetadata) -> Predicate | None:
        """Condition for one filter model entry, or None when it adds nothing."""
        if isinstance(column_filter, SearchColumnFilter):
            return self._search(column_filter, metadata)

        descriptor = metadata.find_field(key)
        if descriptor is None:
            logger.debug("Ignoring filter on unknown column", entity=metadata.entity_name, column=key)
            return None
        column = resolve_column(metadata.model, key)
        if column is None:
            logger.debug("Ignoring filter on unmapped column", entity=metadata.entity_name, column=key)
            return None

        match column_filter:
            case SetColumnFilter():
                return self._set(column, column_filter, descriptor)
            case NumberColumnFilter():
                return self._number(key, column, column_filter)
            case BooleanColumnFilter():
                return column.is_(column_filter.value)
            case DateColumnFilter():
                return self._date(key, column, column_filter)
            case ExactMatchColumnFilter():
                return self._exact(column, column_filter)
            case _:
                raise InvalidFilterError(
                    key,
                    f"unsupported filter {type(column_filter).__name__}",
                )

    # =========================================================================
    # Set
    # =========================================================================

    def _set(self, column: Any, column_filter: SetColumnFilter, descriptor: FieldDescriptor) -> Predicate | None:
        if not column_filter.values:
            return None

        values = [v for v in column_filter.values if not is_blank(v)]
        if len(values) == len(column_filter.values):
            return column.in_(values)
        # A blank selection matches missing values, and empty strings on text columns
        if descriptor.data_type is None or descriptor.data_type.is_textual:
            values = [BLANK_STRING, *values]
        if not values:
            return column.is_(None)
        return or_(column.in_(values), column.is_(None))

    # =========================================================================
    # Number
    # =========================================================================

    def _number(self, key: str, column: Any, column_filter: NumberColumnFilter) -> Predicate:
        if column_filter.type:
            return self._relational(key, column, column_filter.type, column_filter.filter, column_filter.filter_to)

        first, second = column_filter.condition1, column_filter.condition2
        if first is None or second is None:
            raise InvalidFilterError(
                key,
                "number filter needs either 'type' or both 'condition1' and 'condition2'",
                filter_type="number",
            )
        if column_filter.operator not in Operators.ALL:
            raise InvalidFilterError(
                key,
                f"operator must be one of {sorted(Operators.ALL)}",
                filter_type="number",
                operator=column_filter.operator,
            )

        left = self._condition(key, column, first)
        right = self._condition(key, column, second)
        if column_filter.operator == Operators.AND:
            return and_(left, right)
        return or_(left, right)

    def _condition(self, key: str, column: Any, condition: NumberCondition) -> Predicate:
        return self._relational(key, column, condition.type, condition.filter, condition.filter_to)

    def _relational(self, key: str, column: Any, filter_type: str, value: Any, value_to: Any) -> Predicate:
        if filter_type == FilterTypes.IN_RANGE:
            if value is None or value_to is None:
                raise InvalidFilterError(key, "inRange needs 'filter' and 'filterTo'", filter_type=filter_type)
            return and_(column >= value, column <= value_to)

        build = _RELATIONAL.get(filter_type)
        if build is None:
            raise InvalidFilterError(key, f"unsupported comparison '{filter_type}'", filter_type=filter_type)
        if value is None:
            raise InvalidFilterError(key, f"'{filter_type}' needs a 'filter' value", filter_type=filter_type)
        return build(column, value)

    # =========================================================================
    # Date
    # =========================================================================

    def _date(self, key: str, column: Any, column_filter: DateColumnFilter) -> Predicate:
        filter_type = column_filter.type
        if column_filter.exact_match:
            return self._relational(key, column, filter_type, column_filter.filter, column_filter.filter_to)

        sod = self._clock.start_of_day(column_filter.filter)
        eod = self._clock.end_of_day(column_filter.filter)

        if filter_type == FilterTypes.EQUALS:
            return and_(column >= sod, column <= eod)
        if filter_type == FilterTypes.NOT_EQUAL:
            return or_(column < sod, column > eod)
        if filter_type == FilterTypes.LESS_THAN:
            return column < sod
        if filter_type == FilterTypes.LESS_THAN_OR_EQUAL:
            return column <= eod
        if filter_type == FilterTypes.GREATER_THAN:
            return column > eod
        if filter_type == FilterTypes.GREATER_THAN_OR_EQUAL:
            return column >= sod
        if filter_type == FilterTypes.IN_RANGE:
            if column_filter.filter_to is None:
                raise InvalidFilterError(key, "inRange needs 'filterTo'", filter_type=filter_type)
            return and_(column >= sod, column <= self._clock.end_of_day(column_filter.filter_to))

        raise InvalidFilterError(key, f"unsupported comparison '{filter_type}'", filter_type=filter_type)

    # =========================================================================
    # Search
    # =========================================================================

    def _search(self, column_filter: SearchColumnFilter, metadata: EntityMetadata) -> Predicate | None:
        text = column_filter.filter or ""
        candidates = self._search_fields(column_filter, metadata)
        if not candidates:
            return None

        pattern = f"%{escape_like(text)}%"
        conditions = []
        for descriptor in candidates:
            column = resolve_column(metadata.model, descriptor.name)
            if column is None:
                continue
            if descriptor.data_type is None or not descriptor.data_type.is_textual:
                column = cast(column, String)
            conditions.append(column.ilike(pattern, escape=LIKE_ESCAPE))

        if not conditions:
            return None
        return or_(*conditions)

    def _search_fields(self, column_filter: SearchColumnFilter, metadata: EntityMetadata) -> list[FieldDescriptor]:
        if column_filter.fields:
            fields = [
                metadata.find_field(name) or FieldDescriptor(name, DataType.TEXT)
                for name in column_filter.fields
            ]
        else:
            fields = list(metadata.searchable_fields())

        names = {f.name for f in fields}
        if not column_filter.slug_excluded_from_search and SLUG not in names:
            if resolve_column(metadata.model, SLUG) is not None:
                fields.append(FieldDescriptor(SLUG, DataType.TEXT))
        return fields

    # =========================================================================
    # Exact match
    # =========================================================================

    def _exact(self, column: Any, column_filter: ExactMatchColumnFilter) -> Predicate:
        filter_type = column_filter.type
        if filter_type == FilterTypes.NOT_EQUAL:
            return or_(column != column_filter.filter, column.is_(None))
        if filter_type == FilterTypes.EXISTS:
            return column.is_not(None)
        if filter_type == FilterTypes.DOES_NOT_EXIST:
            return column.is_(None)
        return column == column_filter.filter
