"""
Generic read service.

Architecture:
    Router (thin) → ReadService (compile + orchestrate) → QueryExecutor → Model

A concrete service only has to describe its entity:

    class ArticleService(AbstractReadService[Article]):
        def metadata(self) -> EntityMetadata:
            return ARTICLE_METADATA

    service = ArticleService(db)
    page = service.filter(FilterRequest(page=0, size=25, filter_model={...}))
    options = service.distinct_column_values("status", request)
    service.export_data(transformer, request, CsvRowSink(stream), locale="es")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, Mapping, Sequence, TypeVar

from sqlalchemy import and_, inspect, true
from sqlalchemy.orm import Session

from crud_api.schemas.common import FieldDto, KeyLabel
from crud_api.schemas.filters import FilterRequest
from crud_api.services.crud.criteria import CriteriaCompiler, is_blank
from crud_api.services.crud.executor import (
    InheritanceDiscriminator,
    Ordering,
    Predicate,
    QueryExecutor,
    SqlAlchemyQueryExecutor,
    resolve_column,
)
from crud_api.services.crud.export import (
    CellFormatter,
    ExportState,
    RowSink,
    default_formatters,
    generic_mappings,
)
from crud_api.services.crud.metadata import (
    EntityMetadata,
    FieldDescriptor,
    FieldLabeler,
    LocalizedFieldLabeler,
    Page,
    to_field_dto,
)
from crud_api.services.crud.sorting import SortCompiler
from crud_api.services.crud.transformer import GenericTransformer
from crud_shared.config.constants import BLANK_STRING, SLUG
from crud_shared.config.logging import get_logger
from crud_shared.config.settings import settings
from crud_shared.utils.dates import DayBoundaryClock, get_clock
from crud_shared.utils.exceptions import ExportIOError, NotFoundError, ValidationError

logger = get_logger(__name__)

ModelT = TypeVar("ModelT")


class AbstractReadService(ABC, Generic[ModelT]):
    """
    Abstract base for services that read one entity type.

    Subclasses implement ``metadata()``; everything else works from the
    catalog. Export hooks (``default_batch_size``, ``export_mappings``,
    ``write_header``, ``export_cell_formatters``) can be overridden.
    """

    def __init__(
        self,
        db: Session,
        *,
        executor: QueryExecutor | None = None,
        clock: DayBoundaryClock | None = None,
        labeler: FieldLabeler | None = None,
    ):
        self._db = db
        self._executor = executor or SqlAlchemyQueryExecutor(db)
        self._clock = clock or get_clock()
        self._labeler = labeler or LocalizedFieldLabeler()
        self._criteria = CriteriaCompiler(self._clock)
        self._sorting = SortCompiler()
        self._discriminator = InheritanceDiscriminator()

    @abstractmethod
    def metadata(self) -> EntityMetadata:
        """Field catalog of the served entity."""

    @property
    def db(self) -> Session:
        """Database session."""
        return self._db

    @property
    def executor(self) -> QueryExecutor:
        return self._executor

    @property
    def model(self) -> type[ModelT]:
        return self.metadata().model

    @property
    def entity_name(self) -> str:
        return self.metadata().entity_name

    # =========================================================================
    # Simple lookups
    # =========================================================================

    def find_one(self, entity_id: Any) -> ModelT:
        """
        Get entity by primary key.

        Raises:
            NotFoundError: If ``entity_id`` is None or no entity has it.
        """
        entity = self._db.get(self.model, entity_id) if entity_id is not None else None
        if entity is None:
            raise NotFoundError(self.entity_name, entity_id)
        return entity

    def find_by_slug(self, slug: str) -> ModelT:
        """
        Get entity by slug.

        Raises:
            NotFoundError: If no entity has ``slug``.
        """
        entity = self.find_one_like({SLUG: slug})
        if entity is None:
            raise NotFoundError(self.entity_name, slug=slug)
        return entity

    def find_all(self, page: int | None = None, size: int | None = None) -> Page | list[ModelT]:
        """Every entity, as one list, or as a page when ``page``/``size`` are given."""
        return self._find(self._base_predicate(), page, size)

    def find_all_active(self, page: int | None = None, size: int | None = None) -> Page | list[ModelT]:
        """Like ``find_all`` but skips soft-deleted entities."""
        predicate = self._base_predicate()
        is_active = resolve_column(self.model, "is_active")
        if is_active is not None:
            predicate = and_(predicate, is_active.is_(True))
        return self._find(predicate, page, size)

    def find_all_like(self, example: Mapping[str, Any] | ModelT) -> list[ModelT]:
        """Entities whose columns equal every non-None value of ``example``."""
        predicate = and_(self._base_predicate(), self._example_predicate(example))
        return list(self._executor.find(predicate, self._default_ordering(), None, None, self.model))

    def find_one_like(self, example: Mapping[str, Any] | ModelT) -> ModelT | None:
        predicate = and_(self._base_predicate(), self._example_predicate(example))
        found = self._executor.find(predicate, self._default_ordering(), None, 1, self.model)
        return found[0] if found else None

    def fields(self, locale: str | None = None) -> list[FieldDto]:
        """Localized field list, in display order."""
        metadata = self.metadata()
        ordered = sorted(metadata.fields, key=lambda f: f.sequence)
        labels = self._labeler.labels_for(ordered, locale)
        return [to_field_dto(descriptor, label) for descriptor, label in zip(ordered, labels)]

    # =========================================================================
    # Filtering
    # =========================================================================

    def filter(self, request: FilterRequest | None) -> Page:
        """
        One page of entities matching ``request``.

        Raises:
            ValidationError: If the request is missing or page/size are invalid.
            InvalidFilterError: If a column filter is malformed.
        """
        request = self._check_request(request)
        self._validate_page_and_size(request.page, request.size)

        metadata = self.metadata()
        ordering = self._sorting.compile(request.sort_model, metadata)
        predicate = self.build_predicate(request)

        total = self._executor.count(predicate, metadata.model)
        content = self._executor.find(
            predicate,
            ordering,
            offset=request.page * request.size,
            limit=request.size,
            model=metadata.model,
        )
        return Page(list(content), request.page, request.size, total)

    def filter_all(self, request: FilterRequest | None) -> list[ModelT]:
        """Every entity matching ``request``; page and size are ignored."""
        request = self._check_request(request)
        metadata = self.metadata()
        ordering = self._sorting.compile(request.sort_model, metadata)
        predicate = self.build_predicate(request)
        return list(self._executor.find(predicate, ordering, None, None, metadata.model))

    def build_predicate(self, request: FilterRequest | None) -> Predicate:
        metadata = self.metadata()
        filter_model = request.filter_model if request is not None else None
        return self._criteria.compile(
            filter_model,
            metadata,
            discriminator=self._discriminator.predicate(metadata.model),
        )

    # =========================================================================
    # Distinct values
    # =========================================================================

    def distinct_column_values(self, column: str, request: FilterRequest | None = None) -> list[KeyLabel]:
        """
        Options for a set filter on ``column``: a blank option, then every
        distinct non-blank value under ``request``'s filters. Join fields
        are labelled with the joined entity's display column.
        """
        metadata = self.metadata()
        descriptor = metadata.find_field(column)
        if descriptor is None:
            logger.warning(
                "Unable to find column in metadata fields, returning empty list",
                entity=metadata.entity_name,
                column=column,
            )
            return []
        if descriptor.data_type is None or descriptor.data_type.python_type is None:
            logger.warning(
                "Unable to determine value type of column, returning empty list",
                entity=metadata.entity_name,
                column=column,
            )
            return []

        predicate = self.build_predicate(request)
        values = [v for v in self._executor.distinct(column, predicate, metadata.model) if not is_blank(v)]

        result = [KeyLabel(key=BLANK_STRING, label=BLANK_STRING)]
        if descriptor.is_join:
            if values:
                result.extend(self._join_labels(descriptor, values))
        else:
            result.extend(KeyLabel(key=v, label=v) for v in values)
        return result

    def _join_labels(self, descriptor: FieldDescriptor, values: list[Any]) -> list[KeyLabel]:
        join_model = descriptor.join_model
        key_column = resolve_column(join_model, descriptor.join_key)
        label_column = resolve_column(join_model, descriptor.join_column or "")
        if key_column is None or label_column is None:
            logger.warning(
                "Join columns not found on joined model",
                join_model=join_model.__name__,
                join_key=descriptor.join_key,
                join_column=descriptor.join_column,
            )
            return []

        rows = self._executor.select_columns(
            join_model,
            [descriptor.join_key, descriptor.join_column],
            key_column.in_(values),
            [label_column.asc()],
        )
        return [
            KeyLabel(key=row[descriptor.join_key], label=row[descriptor.join_column])
            for row in rows
            if row
        ]

    # =========================================================================
    # Export
    # =========================================================================

    def export_data(
        self,
        transformer: GenericTransformer,
        request: FilterRequest | None,
        sink: RowSink,
        locale: str | None = None,
    ) -> int:
        """
        Stream every entity matching ``request`` into ``sink`` as DTO rows.

        Pages of ``default_batch_size()`` are fetched one after the other;
        each row is flushed as soon as it is written. The sink is closed
        whether or not the export succeeds.

        Returns:
            Number of rows written.

        Raises:
            ExportIOError: If the sink fails to write, flush or close.
        """
        metadata = self.metadata()
        request = request or FilterRequest()
        fields = metadata.exportable_fields()
        mappings = self.export_mappings(fields)
        formatters = self.export_cell_formatters(fields)
        batch_size = self.default_batch_size()

        state = ExportState.IDLE
        rows_written = 0
        succeeded = False
        self._log_state(state, metadata)
        try:
            self.write_header(sink, fields, mappings, locale)
            state = self._log_state(ExportState.HEADER_WRITTEN, metadata)

            page = self.filter(request.for_page(0, batch_size))
            total_pages = page.total_pages
            state = self._log_state(ExportState.WRITING, metadata, total_pages=total_pages)

            for index in range(total_pages):
                for dto in transformer.to_dtos(page.content):
                    sink.write(dto, mappings, formatters)
                    sink.flush()
                    rows_written += 1
                if index + 1 == total_pages:
                    break
                page = self.filter(request.for_page(index + 1, batch_size))
                if not page.content:
                    # Rows deleted since the first page; nothing left to write
                    break
            succeeded = True
        except OSError as exc:
            raise ExportIOError(
                metadata.entity_name,
                f"failed to write row {rows_written + 1}: {exc}",
                state=state.value,
                rows_written=rows_written,
            ) from exc
        finally:
            self._close_sink(sink, metadata, raise_errors=succeeded)
            self._log_state(ExportState.CLOSED, metadata, rows_written=rows_written)

        logger.info("Export finished", entity=metadata.entity_name, rows_written=rows_written)
        return rows_written

    def default_batch_size(self) -> int:
        return settings.export_batch_size

    def export_mappings(self, fields: Sequence[FieldDescriptor]) -> list[str]:
        return generic_mappings(fields)

    def write_header(
        self,
        sink: RowSink,
        fields: Sequence[FieldDescriptor],
        mappings: Sequence[str],
        locale: str | None,
    ) -> None:
        sink.write_header(self._labeler.labels_for(fields, locale))

    def export_cell_formatters(self, fields: Sequence[FieldDescriptor]) -> dict[str, CellFormatter]:
        """Per-mapping cell formatters; dates use the configured zone."""
        return default_formatters(fields, self._clock, settings.export_date_format)

    def _close_sink(self, sink: RowSink, metadata: EntityMetadata, *, raise_errors: bool) -> None:
        try:
            sink.close()
        except OSError as exc:
            if raise_errors:
                raise ExportIOError(metadata.entity_name, f"failed to close sink: {exc}") from exc
            # An earlier error is already propagating
            logger.error("Failed to close export sink", entity=metadata.entity_name, error=str(exc))

    @staticmethod
    def _log_state(state: ExportState, metadata: EntityMetadata, **context: Any) -> ExportState:
        logger.debug("Export state", entity=metadata.entity_name, state=state.value, **context)
        return state

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_request(self, request: FilterRequest | None) -> FilterRequest:
        if request is None:
            raise ValidationError("Filter request can't be null", entity=self.entity_name)
        return request

    def _validate_page_and_size(self, page: int | None, size: int | None) -> None:
        if page is None or size is None:
            raise ValidationError("Page number and page size can't be null", page=page, size=size)
        if page < 0:
            raise ValidationError("Page number can't be negative", page=page)
        if size <= 0:
            raise ValidationError("Page size must be positive", size=size)

    def _base_predicate(self) -> Predicate:
        discriminator = self._discriminator.predicate(self.model)
        return discriminator if discriminator is not None else true()

    def _default_ordering(self) -> Ordering:
        return self._sorting.compile(None, self.metadata())

    def _find(self, predicate: Predicate, page: int | None, size: int | None) -> Page | list[ModelT]:
        ordering = self._default_ordering()
        if page is None and size is None:
            return list(self._executor.find(predicate, ordering, None, None, self.model))

        self._validate_page_and_size(page, size)
        total = self._executor.count(predicate, self.model)
        content = self._executor.find(predicate, ordering, page * size, size, self.model)
        return Page(list(content), page, size, total)

    def _example_predicate(self, example: Mapping[str, Any] | ModelT) -> Predicate:
        if isinstance(example, Mapping):
            values = dict(example)
        else:
            values = {name: getattr(example, name) for name in inspect(self.model).column_attrs.keys()}

        conditions = []
        for name, value in values.items():
            if value is None:
                continue
            column = resolve_column(self.model, name)
            if column is None:
                raise ValidationError(f"Unknown property '{name}'", entity=self.entity_name)
            conditions.append(column == value)
        return and_(true(), *conditions)
