"""
Field/Metadata catalog.

Each entity type describes its fields once, at import time, and the catalog is
read-only afterwards. The compilers, the distinct-value resolver, the export
engine and the importer all look fields up here by name.

Usage:
    ARTICLE_METADATA = EntityMetadata(
        model=Article,
        dto=ArticleDto,
        fields=(
            FieldDescriptor("title", DataType.TEXT, localized_names={"es": "Título"}),
            FieldDescriptor("price", DataType.NUMBER),
            FieldDescriptor(
                "category",
                DataType.AUTO_COMPLETE,
                join_model=Category,
                join_column="name",
            ),
        ),
        default_sort=(SortModel(col_id="date_created", sort="desc"),),
    )
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence

from pydantic import BaseModel

from crud_api.schemas.common import FieldDto
from crud_api.schemas.filters import SortModel
from crud_shared.config.constants import SLUG


class DataType(Enum):
    """
    Field data types. Each member carries the Python type of the stored
    value (``None`` when values cannot be listed, e.g. nested objects) and
    whether the field takes part in free-text search by default.
    """

    TEXT = ("text", str, True)
    EMAIL = ("email", str, True)
    ENUM = ("enum", str, True)
    AUTO_COMPLETE = ("autoComplete", str, True)
    NUMBER = ("number", float, False)
    INTEGER = ("integer", int, False)
    BOOLEAN = ("boolean", bool, False)
    DATE = ("date", int, False)
    IMAGE = ("image", str, False)
    OBJECT = ("object", None, False)

    def __init__(self, wire_name: str, python_type: type | None, searchable: bool):
        self.wire_name = wire_name
        self.python_type = python_type
        self.searchable = searchable

    @property
    def is_textual(self) -> bool:
        return self.python_type is str


@dataclass(frozen=True)
class FieldDescriptor:
    """Description of one field of an entity."""

    name: str
    data_type: DataType | None = DataType.TEXT
    searchable: bool | None = None
    join_model: type | None = None
    join_column: str | None = None
    join_key: str = SLUG
    localized_names: Mapping[str, str] = field(default_factory=dict)
    exportable: bool = True
    importable: bool = True
    sequence: int = 0

    @property
    def is_searchable(self) -> bool:
        if self.searchable is not None:
            return self.searchable
        return self.data_type is not None and self.data_type.searchable

    @property
    def is_join(self) -> bool:
        return self.data_type is DataType.AUTO_COMPLETE and self.join_model is not None


@dataclass(frozen=True)
class EntityMetadata:
    """Catalog of one entity type: its model, DTO, fields and default sort."""

    model: type
    fields: tuple[FieldDescriptor, ...]
    dto: type[BaseModel] | None = None
    default_sort: tuple[SortModel, ...] = ()
    _by_name: dict[str, FieldDescriptor] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(
                f"Duplicate field names in {self.entity_name} metadata: {sorted(duplicates)}"
            )
        object.__setattr__(self, "_by_name", {f.name: f for f in self.fields})

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    def find_field(self, name: str) -> FieldDescriptor | None:
        return self._by_name.get(name)

    def searchable_fields(self) -> list[FieldDescriptor]:
        return [f for f in self.fields if f.is_searchable]

    def exportable_fields(self) -> list[FieldDescriptor]:
        return sorted((f for f in self.fields if f.exportable), key=lambda f: f.sequence)

    def importable_fields(self) -> list[FieldDescriptor]:
        return sorted((f for f in self.fields if f.importable), key=lambda f: f.sequence)


# =============================================================================
# Pages
# =============================================================================


@dataclass
class Page:
    """One page of query results plus the total match count."""

    content: list[Any]
    page: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 1
        return math.ceil(self.total_elements / self.size)

    @property
    def is_last(self) -> bool:
        return self.page + 1 >= self.total_pages


# =============================================================================
# Locale-aware labels
# =============================================================================


class FieldLabeler(Protocol):
    """Produces one header label per field for a locale."""

    def labels_for(self, fields: Sequence[FieldDescriptor], locale: str | None) -> list[str]:
        ...


def humanize(name: str) -> str:
    """``date_created`` -> ``Date created``; ``dateCreated`` -> ``Date created``."""
    words: list[str] = []
    current = ""
    for char in name.replace("_", " ").replace(".", " "):
        if char.isupper() and current and not current[-1].isupper():
            words.append(current)
            current = char.lower()
        elif char == " ":
            if current:
                words.append(current)
            current = ""
        else:
            current += char
    if current:
        words.append(current)
    text = " ".join(words)
    return text[:1].upper() + text[1:]


class LocalizedFieldLabeler:
    """
    Looks labels up in ``FieldDescriptor.localized_names``: exact locale
    first (``es-AR``), then its language (``es``), then the humanized name.
    """

    def label_for(self, descriptor: FieldDescriptor, locale: str | None) -> str:
        names = descriptor.localized_names
        if locale:
            normalized = locale.replace("_", "-")
            if normalized in names:
                return names[normalized]
            language = normalized.split("-", 1)[0].lower()
            if language in names:
                return names[language]
        return humanize(descriptor.name)

    def labels_for(self, fields: Sequence[FieldDescriptor], locale: str | None) -> list[str]:
        return [self.label_for(f, locale) for f in fields]


def to_field_dto(descriptor: FieldDescriptor, label: str) -> FieldDto:
    """Wire description of one catalog field."""
    return FieldDto(
        name=descriptor.name,
        label=label,
        data_type=descriptor.data_type.wire_name if descriptor.data_type else "unknown",
        searchable=descriptor.is_searchable,
        sequence=descriptor.sequence,
        join_collection=descriptor.join_model.__name__ if descriptor.join_model else None,
        join_column_name=descriptor.join_column,
    )
