"""
Generic write service.

Adds create/update/patch/delete, bulk upsert by slug and CSV import on top
of the read service. Subclasses tune behaviour through class attributes and
the validation/after hooks, the same way every entity service does:

    class ArticleService(AbstractCrudService[Article]):
        slug_prefix = "ART"

        def metadata(self) -> EntityMetadata:
            return ARTICLE_METADATA

        def _validate_create(self, entity: Article) -> None:
            if entity.price is not None and entity.price < 0:
                raise ValidationError("Price can't be negative", field="price")
"""

from __future__ import annotations

import uuid
from typing import Any, Iterable, Sequence, TextIO, TypeVar

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from crud_api.schemas.common import ImportLogDetails
from crud_api.services.crud.importer import CsvImporter
from crud_api.services.crud.read_service import AbstractReadService
from crud_api.services.crud.transformer import GenericTransformer
from crud_shared.config.constants import SLUG, Limits
from crud_shared.config.logging import get_logger
from crud_shared.infrastructure.db import safe_commit
from crud_shared.utils.exceptions import (
    DatabaseError,
    DuplicateEntityError,
    ValidationError,
)

logger = get_logger(__name__)

ModelT = TypeVar("ModelT")

# Columns maintained by the service itself, never copied from client input
PROTECTED_COLUMNS = frozenset({"id", "date_created", "date_modified"})


class AbstractCrudService(AbstractReadService[ModelT]):
    """
    Base service for entities with CRUD operations.

    Attributes:
        slug_prefix: Prefix of generated slugs (``ART`` -> ``ART3f9c...``).
        supports_soft_delete: Delete flips ``is_active`` instead of removing
            rows, when the model has a ``soft_delete()`` method.
    """

    slug_prefix: str = ""
    supports_soft_delete: bool = True

    # =========================================================================
    # Write Operations
    # =========================================================================

    def create(self, entity: ModelT) -> ModelT:
        """
        Persist a new entity, generating its slug when missing.

        Raises:
            ValidationError: If a validation hook rejects the entity.
            DuplicateEntityError: If another entity already has the slug.
            DatabaseError: If the commit fails.
        """
        self._validate_create(entity)
        self._assign_slug(entity)

        self._db.add(entity)
        self._commit("create", slug=getattr(entity, SLUG, None))
        self._db.refresh(entity)

        self._after_create(entity)
        logger.info("Entity created", entity=self.entity_name, slug=getattr(entity, SLUG, None))
        return entity

    def update(self, entity_id: Any, entity: ModelT) -> ModelT:
        """
        Replace the stored values of entity ``entity_id`` with every column
        set on ``entity``. Audit columns and the primary key are kept.

        Raises:
            NotFoundError: If no entity has ``entity_id``.
            DuplicateEntityError: If the new slug belongs to another entity.
            DatabaseError: If the commit fails.
        """
        existing = self.find_one(entity_id)
        self._validate_update(existing, entity)

        new_slug = getattr(entity, SLUG, None)
        if new_slug and new_slug != getattr(existing, SLUG, None):
            self._ensure_slug_free(new_slug, exclude_id=entity_id)

        self._copy_columns(entity, existing)
        self._commit("update", entity_id=entity_id)
        self._db.refresh(existing)

        self._after_update(existing)
        return existing

    def patch_update(self, entity_id: Any, entity: ModelT, prop_changed: str) -> ModelT:
        """
        Copy a single property from ``entity`` onto the stored entity.

        Raises:
            ValidationError: If ``prop_changed`` is not an editable column.
            NotFoundError: If no entity has ``entity_id``.
        """
        column_names = inspect(self.model).column_attrs.keys()
        if not prop_changed or prop_changed not in column_names or prop_changed in PROTECTED_COLUMNS:
            raise ValidationError(
                f"Property '{prop_changed}' can't be updated",
                entity=self.entity_name,
                field=prop_changed,
            )

        existing = self.find_one(entity_id)
        self._validate_update(existing, entity)

        value = getattr(entity, prop_changed)
        if prop_changed == SLUG:
            if not value:
                raise ValidationError("Slug can't be blank", entity=self.entity_name, field=SLUG)
            if value != getattr(existing, SLUG):
                self._ensure_slug_free(value, exclude_id=entity_id)

        setattr(existing, prop_changed, value)
        self._commit("patch", entity_id=entity_id, field=prop_changed)
        self._db.refresh(existing)

        self._after_update(existing)
        return existing

    def delete(self, ids: Sequence[Any]) -> int:
        """
        Delete every entity in ``ids`` (soft delete if supported).

        All ids are resolved before anything changes, so one unknown id
        leaves every entity untouched.

        Raises:
            NotFoundError: If any id is unknown.
        """
        entities = [self.find_one(entity_id) for entity_id in ids]
        for entity in entities:
            self._validate_delete(entity)

        for entity in entities:
            if self.supports_soft_delete and hasattr(entity, "soft_delete"):
                entity.soft_delete()
            else:
                self._db.delete(entity)
        self._commit("delete", ids=list(ids))

        for entity in entities:
            self._after_delete(entity)
        logger.info("Entities deleted", entity=self.entity_name, count=len(entities))
        return len(entities)

    def update_all(self, entities: Iterable[ModelT]) -> list[ModelT]:
        """
        Bulk upsert keyed by slug: entities whose slug exists update the
        stored row, the rest are created. One commit for the whole batch.
        """
        saved: list[ModelT] = []
        pending: dict[str, ModelT] = {}

        for entity in entities:
            slug = getattr(entity, SLUG, None)
            existing = pending.get(slug) if slug else None
            if existing is None and slug:
                existing = self._find_by_slug_any_type(slug)

            if existing is not None:
                self._validate_update(existing, entity)
                self._copy_columns(entity, existing)
                target = existing
            else:
                self._validate_create(entity)
                if not slug:
                    entity.slug = self.generate_slug()
                self._db.add(entity)
                target = entity

            pending[target.slug] = target
            saved.append(target)

        self._commit("bulk update", count=len(saved))
        for entity in saved:
            self._db.refresh(entity)
        logger.info("Bulk upsert finished", entity=self.entity_name, count=len(saved))
        return saved

    # =========================================================================
    # Import
    # =========================================================================

    def import_data(
        self,
        stream: TextIO,
        transformer: GenericTransformer,
        locale: str | None = None,
    ) -> ImportLogDetails:
        """
        Import a CSV file: valid rows are upserted by slug, invalid rows are
        reported in the returned log.
        """
        importer = CsvImporter(self.metadata(), self._labeler, self._clock)
        result = importer.read(stream, locale)
        if result.items:
            self.update_all(transformer.to_domains(result.items))
        return result.log

    # =========================================================================
    # Slugs
    # =========================================================================

    def generate_slug(self) -> str:
        return f"{self.slug_prefix}{uuid.uuid4().hex[:Limits.SLUG_SUFFIX_LENGTH]}"

    def _assign_slug(self, entity: ModelT) -> None:
        slug = getattr(entity, SLUG, None)
        if slug:
            self._ensure_slug_free(slug)
        else:
            entity.slug = self.generate_slug()

    def _ensure_slug_free(self, slug: str, exclude_id: Any = None) -> None:
        other = self._find_by_slug_any_type(slug)
        if other is not None and other.id != exclude_id:
            raise DuplicateEntityError(self.entity_name, slug)

    def _find_by_slug_any_type(self, slug: str) -> ModelT | None:
        """Slugs are unique per table, so sibling subtypes are searched too."""
        root = inspect(self.model).base_mapper.class_
        column = getattr(root, SLUG)
        found = self._executor.find(column == slug, [], None, 1, root)
        return found[0] if found else None

    # =========================================================================
    # Helpers
    # =========================================================================

    def _copy_columns(self, source: ModelT, target: ModelT) -> None:
        """Copy the columns explicitly set on ``source``; the subtype is never changed."""
        mapper = inspect(self.model)
        discriminator = mapper.polymorphic_on.key if mapper.polymorphic_on is not None else None
        loaded = inspect(source).dict
        for name in mapper.column_attrs.keys():
            if name in PROTECTED_COLUMNS or name == discriminator or name not in loaded:
                continue
            value = loaded[name]
            if name == SLUG and not value:
                continue
            setattr(target, name, value)

    def _commit(self, operation: str, **context: Any) -> None:
        try:
            safe_commit(self._db)
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to {operation} {self.entity_name}",
                error=str(e),
                **context,
            )
            raise DatabaseError(f"{operation} {self.entity_name.lower()}", **context) from e

    # =========================================================================
    # Validation Hooks (override in subclasses)
    # =========================================================================

    def _validate_create(self, entity: ModelT) -> None:
        """
        Validate an entity before it is created.

        Raises:
            ValidationError: If validation fails.
        """
        pass

    def _validate_update(self, existing: ModelT, incoming: ModelT) -> None:
        """Validate an update before ``incoming`` is copied onto ``existing``."""
        pass

    def _validate_delete(self, entity: ModelT) -> None:
        """Validate before delete, e.g. to refuse deleting referenced rows."""
        pass

    # =========================================================================
    # After Hooks (override in subclasses)
    # =========================================================================

    def _after_create(self, entity: ModelT) -> None:
        pass

    def _after_update(self, entity: ModelT) -> None:
        pass

    def _after_delete(self, entity: ModelT) -> None:
        pass
