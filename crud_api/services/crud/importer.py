"""
CSV import: uploaded table -> validated DTOs + an import log.

Header cells are matched to importable fields by their localized label or
their name, ignoring case, so a file exported in any locale can be imported
back. Rows are validated one by one; a bad row is reported in the log and
does not stop the import.

Usage:
    importer = CsvImporter(ARTICLE_METADATA)
    result = importer.read(io.StringIO(text), locale="es")
    entities = transformer.to_domains(result.items)
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TextIO, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from crud_api.schemas.common import ImportLogDetails, ImportRowError
from crud_api.services.crud.metadata import (
    DataType,
    EntityMetadata,
    FieldDescriptor,
    FieldLabeler,
    LocalizedFieldLabeler,
)
from crud_shared.config.logging import get_logger
from crud_shared.config.settings import settings
from crud_shared.utils.dates import DayBoundaryClock, get_clock, to_epoch_millis
from crud_shared.utils.exceptions import ImportFormatError

logger = get_logger(__name__)

DtoT = TypeVar("DtoT", bound=BaseModel)


@dataclass
class ImportResult(Generic[DtoT]):
    """Rows that validated, plus the per-row log."""

    items: list[DtoT] = field(default_factory=list)
    log: ImportLogDetails = field(default_factory=ImportLogDetails)


def describe_errors(exc: PydanticValidationError) -> str:
    """``price: Input should be a valid number; title: Field required``"""
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()))
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


class CsvImporter(Generic[DtoT]):
    """Reads a CSV stream into DTOs of ``metadata.dto``."""

    def __init__(
        self,
        metadata: EntityMetadata,
        labeler: FieldLabeler | None = None,
        clock: DayBoundaryClock | None = None,
        date_format: str | None = None,
    ):
        if metadata.dto is None:
            raise ValueError(f"{metadata.entity_name} metadata has no DTO to import into")
        self._metadata = metadata
        self._labeler = labeler or LocalizedFieldLabeler()
        self._clock = clock or get_clock()
        self._date_format = date_format or settings.export_date_format

    def read(self, stream: TextIO, locale: str | None = None) -> ImportResult[DtoT]:
        """
        Parse ``stream``. Row numbers in the log are file line numbers, the
        header being row 1.

        Raises:
            ImportFormatError: If the file is not CSV, has no header, or no
                header cell names an importable field.
        """
        entity = self._metadata.entity_name
        reader = csv.reader(stream)
        try:
            header = next(reader, None)
            if not header or not any(cell.strip() for cell in header):
                raise ImportFormatError("missing header row", entity=entity)

            columns = self._match_header(header, locale)
            if not any(c is not None for c in columns):
                raise ImportFormatError(
                    "no header column matches an importable field",
                    entity=entity,
                    header=header,
                )

            result: ImportResult[DtoT] = ImportResult()
            # Rows are numbered by the file line they start on; quoted cells may span lines
            last_line = reader.line_num
            for row in reader:
                row_number, last_line = last_line + 1, reader.line_num
                if not any(cell.strip() for cell in row):
                    continue
                result.log.total_row_count += 1
                self._read_row(row_number, row, columns, result)
        except csv.Error as exc:
            raise ImportFormatError(str(exc), entity=entity) from exc
        except UnicodeDecodeError as exc:
            raise ImportFormatError(f"file is not valid text ({exc.reason})", entity=entity) from exc

        logger.info(
            "Import parsed",
            entity=entity,
            total=result.log.total_row_count,
            success=result.log.success_row_count,
            errors=result.log.error_row_count,
        )
        return result

    def _match_header(self, header: list[str], locale: str | None) -> list[FieldDescriptor | None]:
        lookup: dict[str, FieldDescriptor] = {}
        importable = self._metadata.importable_fields()
        labels = self._labeler.labels_for(importable, locale)
        for descriptor, label in zip(importable, labels):
            lookup.setdefault(descriptor.name.lower(), descriptor)
            lookup.setdefault(label.strip().lower(), descriptor)

        columns: list[FieldDescriptor | None] = []
        for cell in header:
            descriptor = lookup.get(cell.strip().lower())
            if descriptor is None:
                logger.debug("Ignoring unknown import column", entity=self._metadata.entity_name, column=cell)
            columns.append(descriptor)
        return columns

    def _read_row(
        self,
        row_number: int,
        row: list[str],
        columns: list[FieldDescriptor | None],
        result: ImportResult[DtoT],
    ) -> None:
        data: dict[str, Any] = {}
        try:
            for descriptor, cell in zip(columns, row):
                if descriptor is None or not cell.strip():
                    continue
                data[descriptor.name] = self._parse_cell(descriptor, cell.strip())
            item = self._metadata.dto.model_validate(data)
        except PydanticValidationError as exc:
            self._reject(result, row_number, describe_errors(exc))
            return
        except ValueError as exc:
            self._reject(result, row_number, str(exc))
            return

        result.items.append(item)
        result.log.success_row_count += 1

    def _parse_cell(self, descriptor: FieldDescriptor, cell: str) -> Any:
        """Dates come back in the export format; other types are left to pydantic."""
        if descriptor.data_type is not DataType.DATE or cell.lstrip("-").isdigit():
            return cell
        try:
            local = datetime.strptime(cell, self._date_format)
        except ValueError as exc:
            raise ValueError(f"{descriptor.name}: '{cell}' does not match date format {self._date_format}") from exc
        return to_epoch_millis(local.replace(tzinfo=self._clock.tz))

    @staticmethod
    def _reject(result: ImportResult, row_number: int, message: str) -> None:
        result.log.error_row_count += 1
        result.log.errors.append(ImportRowError(row=row_number, message=message))
