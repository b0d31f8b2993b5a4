"""
CSV row sink and column mapping for streaming exports.

A mapping is a dotted path into the exported DTO (``category.name``); each
path resolves attribute by attribute, falling back to dict keys. A formatter
turns the resolved value into the cell text.
"""

from __future__ import annotations

import csv
from enum import Enum
from typing import Any, Callable, Mapping, Protocol, Sequence, TextIO

from crud_api.services.crud.metadata import DataType, FieldDescriptor
from crud_shared.utils.dates import DayBoundaryClock

CellFormatter = Callable[[Any], str]


class ExportState(str, Enum):
    """Lifecycle of one export, logged on every transition."""

    IDLE = "IDLE"
    HEADER_WRITTEN = "HEADER_WRITTEN"
    WRITING = "WRITING"
    CLOSED = "CLOSED"


class RowSink(Protocol):
    """Destination of an export: one header, then rows, then close."""

    def write_header(self, labels: Sequence[str]) -> None:
        ...

    def write(
        self,
        row: Any,
        mappings: Sequence[str],
        formatters: Mapping[str, CellFormatter] | None = None,
    ) -> None:
        ...

    def flush(self) -> None:
        ...

    def close(self) -> None:
        ...


def resolve_path(row: Any, path: str) -> Any:
    """Value at dotted ``path`` inside ``row``; None when any step is missing."""
    value = row
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def default_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class CsvRowSink:
    """
    ``RowSink`` writing CSV to a text stream.

    The stream is closed with the sink unless ``close_stream`` is False, in
    which case only the CSV writer is released (the caller keeps reading
    the stream, e.g. to send it in an HTTP response).
    """

    def __init__(self, stream: TextIO, *, close_stream: bool = True, dialect: str = "excel"):
        self._stream = stream
        self._close_stream = close_stream
        self._writer = csv.writer(stream, dialect=dialect)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write_header(self, labels: Sequence[str]) -> None:
        self._writer.writerow(list(labels))

    def write(
        self,
        row: Any,
        mappings: Sequence[str],
        formatters: Mapping[str, CellFormatter] | None = None,
    ) -> None:
        formatters = formatters or {}
        cells = []
        for path in mappings:
            value = resolve_path(row, path)
            cells.append(formatters.get(path, default_cell)(value))
        self._writer.writerow(cells)

    def flush(self) -> None:
        self._stream.flush()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream.flush()
        if self._close_stream:
            self._stream.close()

    def __enter__(self) -> "CsvRowSink":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


# =============================================================================
# Mapping helpers used by the read service
# =============================================================================


def generic_mappings(fields: Sequence[FieldDescriptor]) -> list[str]:
    """One mapping per field, the field name itself."""
    return [f.name for f in fields]


def default_formatters(
    fields: Sequence[FieldDescriptor],
    clock: DayBoundaryClock,
    date_format: str,
) -> dict[str, CellFormatter]:
    """Date columns rendered in the deployment's zone; everything else as text."""

    def format_date(value: Any) -> str:
        if value is None or value == "":
            return ""
        return clock.format(int(value), date_format)

    return {f.name: format_date for f in fields if f.data_type is DataType.DATE}
