"""
Generic CRUD router factory.

Usage:
    def get_article_service(db: Session = Depends(get_db)) -> ArticleService:
        return ArticleService(db)

    router = build_crud_router(
        get_article_service,
        GenericTransformer(Article, ArticleDto),
        prefix="/articles",
        tags=["articles"],
    )
    app.include_router(router, prefix=settings.api_prefix)

Endpoints are thin: each one resolves the service, delegates, and maps
entities to DTOs with the transformer.
"""

import io
import tempfile
from typing import Any, Callable, Iterator

from fastapi import APIRouter, Body, Depends, File, Header, Query, UploadFile, status
from fastapi.responses import StreamingResponse

from crud_api.schemas.common import FieldDto, ImportLogDetails, KeyLabel, PageDto
from crud_api.schemas.filters import FilterRequest
from crud_api.services.crud.crud_service import AbstractCrudService
from crud_api.services.crud.export import CsvRowSink
from crud_api.services.crud.transformer import GenericTransformer
from crud_shared.config.constants import AccessPermission
from crud_shared.config.logging import get_logger
from crud_shared.config.settings import settings
from crud_shared.utils.exceptions import ValidationError

logger = get_logger(__name__)

_CHUNK_SIZE = 64 * 1024

AccessDependency = Callable[[AccessPermission], Callable[..., Any]]


def get_locale(accept_language: str | None = Header(default=None)) -> str:
    """First language tag of ``Accept-Language``, or the configured default."""
    if accept_language:
        first = accept_language.split(",", 1)[0].split(";", 1)[0].strip()
        if first and first != "*":
            return first
    return settings.default_locale


def _iter_and_close(stream: Any) -> Iterator[str]:
    try:
        while chunk := stream.read(_CHUNK_SIZE):
            yield chunk
    finally:
        stream.close()


def build_crud_router(
    service_dependency: Callable[..., AbstractCrudService],
    transformer: GenericTransformer,
    *,
    prefix: str,
    tags: list[str] | None = None,
    access_dependency: AccessDependency | None = None,
) -> APIRouter:
    """
    Build the standard CRUD endpoints for one entity.

    Args:
        service_dependency: FastAPI dependency returning the entity's service.
        transformer: Entity <-> DTO mapping; its DTO is the request and
            response body of create/update/find.
        prefix: Route prefix, e.g. ``/articles``.
        tags: OpenAPI tags.
        access_dependency: Optional hook; called with the permission an
            endpoint needs, it returns a dependency that enforces it.

    Returns:
        Router to include in the application.
    """
    dto_type = transformer.dto
    router = APIRouter(prefix=prefix, tags=tags or [prefix.strip("/")])

    def guard(permission: AccessPermission) -> list[Any]:
        if access_dependency is None:
            return []
        return [Depends(access_dependency(permission))]

    # =========================================================================
    # Read
    # =========================================================================

    @router.get("/all/fields", response_model=list[FieldDto], dependencies=guard(AccessPermission.READ))
    def list_fields(
        service: AbstractCrudService = Depends(service_dependency),
        locale: str = Depends(get_locale),
    ) -> list[FieldDto]:
        """Localized field catalog, in display order."""
        return service.fields(locale)

    @router.post("/search", response_model=PageDto[dto_type], dependencies=guard(AccessPermission.READ))
    def search(
        request: FilterRequest,
        service: AbstractCrudService = Depends(service_dependency),
    ) -> PageDto:
        """One page of entities matching the filter request."""
        return transformer.page_entity_to_page_dto(service.filter(request))

    @router.post("/column/master", response_model=list[KeyLabel], dependencies=guard(AccessPermission.READ))
    def distinct_values(
        column: str = Query(...),
        request: FilterRequest | None = Body(default=None),
        service: AbstractCrudService = Depends(service_dependency),
    ) -> list[KeyLabel]:
        """Distinct values of ``column`` for a set-filter picker."""
        return service.distinct_column_values(column, request)

    @router.post("/export", dependencies=guard(AccessPermission.READ))
    def export(
        request: FilterRequest | None = Body(default=None),
        service: AbstractCrudService = Depends(service_dependency),
        locale: str = Depends(get_locale),
    ) -> StreamingResponse:
        """CSV download of every entity matching the filter request."""
        spool = tempfile.SpooledTemporaryFile(
            max_size=settings.export_spool_max_bytes,
            mode="w+",
            newline="",
            encoding="utf-8",
        )
        try:
            service.export_data(transformer, request, CsvRowSink(spool, close_stream=False), locale)
            spool.seek(0)
        except BaseException:
            spool.close()
            raise

        filename = f"{service.entity_name.lower()}.csv"
        return StreamingResponse(
            _iter_and_close(spool),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @router.get("/{slug}", response_model=dto_type, dependencies=guard(AccessPermission.READ))
    def find_by_slug(
        slug: str,
        service: AbstractCrudService = Depends(service_dependency),
    ) -> Any:
        """Get an entity by slug."""
        return transformer.to_dto(service.find_by_slug(slug))

    # =========================================================================
    # Write
    # =========================================================================

    @router.post(
        "",
        response_model=dto_type,
        status_code=status.HTTP_201_CREATED,
        dependencies=guard(AccessPermission.CREATE),
    )
    def create(
        body: dto_type,
        service: AbstractCrudService = Depends(service_dependency),
    ) -> Any:
        """Create an entity; the slug is generated when missing."""
        entity = service.create(transformer.to_domain(body))
        return transformer.to_dto(entity)

    @router.put("", response_model=dto_type, dependencies=guard(AccessPermission.UPDATE))
    def patch(
        body: dto_type,
        prop_changed: str = Query(..., alias="propChanged"),
        service: AbstractCrudService = Depends(service_dependency),
    ) -> Any:
        """Update the single property ``propChanged`` of the entity in the body."""
        entity_id = getattr(body, "id", None)
        if entity_id is None:
            raise ValidationError("Entity id is required", field="id")
        entity = service.patch_update(entity_id, transformer.to_domain(body), prop_changed)
        return transformer.to_dto(entity)

    @router.post("/delete", dependencies=guard(AccessPermission.DELETE))
    def delete(
        ids: list[int] = Body(...),
        service: AbstractCrudService = Depends(service_dependency),
    ) -> dict[str, int]:
        """Delete the entities with the given ids (soft delete if supported)."""
        return {"deleted": service.delete(ids)}

    @router.post("/import", response_model=ImportLogDetails, dependencies=guard(AccessPermission.CREATE))
    def import_file(
        file: UploadFile = File(...),
        service: AbstractCrudService = Depends(service_dependency),
        locale: str = Depends(get_locale),
    ) -> ImportLogDetails:
        """Upsert entities from an uploaded CSV file."""
        stream = io.TextIOWrapper(file.file, encoding=settings.import_encoding, newline="")
        try:
            return service.import_data(stream, transformer, locale)
        finally:
            # The upload owns the underlying file
            stream.detach()

    return router
