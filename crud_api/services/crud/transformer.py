"""
Entity <-> DTO transformer.

Converts SQLAlchemy entities to pydantic DTOs for responses and exports, and
DTOs back to (detached) entities for create, update and import.

Usage:
    transformer = GenericTransformer(Article, ArticleDto)
    dto = transformer.to_dto(article)
    page_dto = transformer.page_entity_to_page_dto(service.filter(request))
"""

from typing import Any, Generic, Iterable, TypeVar

from pydantic import BaseModel
from sqlalchemy import inspect

from crud_api.schemas.common import PageDto
from crud_api.services.crud.metadata import Page

ModelT = TypeVar("ModelT")
DtoT = TypeVar("DtoT", bound=BaseModel)


class GenericTransformer(Generic[ModelT, DtoT]):
    """
    Field-name based mapping between a mapped class and a DTO class.

    Only DTO fields that are mapped columns of the model are copied to the
    entity; DTO-only fields (computed labels, nested views) are dropped.
    Override ``to_dto`` / ``to_domain`` for custom mappings.
    """

    def __init__(self, model: type[ModelT], dto: type[DtoT]):
        self.model = model
        self.dto = dto
        self._column_names = set(inspect(model).column_attrs.keys())

    def to_dto(self, entity: ModelT) -> DtoT:
        return self.dto.model_validate(entity, from_attributes=True)

    def to_dtos(self, entities: Iterable[ModelT]) -> list[DtoT]:
        return [self.to_dto(e) for e in entities]

    def to_domain(self, dto: DtoT) -> ModelT:
        data = dto.model_dump(exclude_unset=True)
        return self.model(**self._column_values(data))

    def to_domains(self, dtos: Iterable[DtoT]) -> list[ModelT]:
        return [self.to_domain(d) for d in dtos]

    def page_entity_to_page_dto(self, page: Page) -> PageDto[DtoT]:
        return PageDto[self.dto](
            content=self.to_dtos(page.content),
            page=page.page,
            size=page.size,
            total_elements=page.total_elements,
            total_pages=page.total_pages,
        )

    def _column_values(self, data: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in data.items() if k in self._column_names}
