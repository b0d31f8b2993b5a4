"""
Sort compiler: client sort model + catalog default sort -> ORDER BY list.
"""

from __future__ import annotations

from typing import Sequence

from crud_api.schemas.filters import SortModel
from crud_api.services.crud.executor import Ordering, resolve_column
from crud_api.services.crud.metadata import EntityMetadata
from crud_shared.config.constants import SortDirection
from crud_shared.config.logging import get_logger

logger = get_logger(__name__)


class SortCompiler:
    """
    Folds sort entries left to right, so each key only breaks ties of the
    keys before it, then appends the entity's default sort.
    """

    def compile(self, sort_model: Sequence[SortModel] | None, metadata: EntityMetadata) -> Ordering:
        ordering: Ordering = []
        seen: set[str] = set()

        for entry in [*(sort_model or ()), *metadata.default_sort]:
            if entry.col_id in seen:
                continue
            column = resolve_column(metadata.model, entry.col_id)
            if column is None:
                logger.warning("Ignoring sort on unknown column", entity=metadata.entity_name, column=entry.col_id)
                continue
            seen.add(entry.col_id)
            ordering.append(column.desc() if entry.sort == SortDirection.DESC else column.asc())

        return ordering
