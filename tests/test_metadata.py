"""
Tests for the field catalog, pages, labels and the transformer.
"""

import pytest

from crud_api.services.crud.metadata import (
    DataType,
    EntityMetadata,
    FieldDescriptor,
    LocalizedFieldLabeler,
    Page,
    humanize,
)
from crud_api.services.crud.transformer import GenericTransformer
from tests.conftest import ARTICLE_METADATA, Article, ArticleDto, make_article


class TestCatalog:
    def test_searchable_defaults_follow_data_type(self):
        names = [f.name for f in ARTICLE_METADATA.searchable_fields()]
        assert names == ["title", "status", "category"]

    def test_explicit_searchable_wins(self):
        assert FieldDescriptor("price", DataType.NUMBER, searchable=True).is_searchable
        assert not FieldDescriptor("title", DataType.TEXT, searchable=False).is_searchable

    def test_object_type_has_no_value_type(self):
        assert DataType.OBJECT.python_type is None
        assert not DataType.OBJECT.is_textual

    def test_join_needs_auto_complete_and_model(self):
        assert ARTICLE_METADATA.find_field("category").is_join
        assert not FieldDescriptor("category", DataType.TEXT, join_model=Article).is_join

    def test_exportable_fields_are_ordered_by_sequence(self):
        metadata = EntityMetadata(
            model=Article,
            fields=(
                FieldDescriptor("price", sequence=2),
                FieldDescriptor("title", sequence=1),
                FieldDescriptor("hidden", exportable=False, sequence=0),
            ),
        )
        assert [f.name for f in metadata.exportable_fields()] == ["title", "price"]

    def test_duplicate_field_names_are_rejected(self):
        with pytest.raises(ValueError):
            EntityMetadata(model=Article, fields=(FieldDescriptor("title"), FieldDescriptor("title")))

    def test_unknown_field(self):
        assert ARTICLE_METADATA.find_field("nope") is None


class TestPage:
    @pytest.mark.parametrize(
        "total, size, pages",
        [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (2000, 750, 3)],
    )
    def test_total_pages(self, total, size, pages):
        assert Page([], 0, size, total).total_pages == pages


class TestLabels:
    @pytest.mark.parametrize(
        "name, label",
        [
            ("title", "Title"),
            ("published_at", "Published at"),
            ("dateCreated", "Date created"),
            ("category.name", "Category name"),
        ],
    )
    def test_humanize(self, name, label):
        assert humanize(name) == label

    def test_locale_fallbacks(self):
        labeler = LocalizedFieldLabeler()
        field = FieldDescriptor("title", localized_names={"es": "Título", "es-MX": "Titulo MX"})

        assert labeler.label_for(field, "es-MX") == "Titulo MX"
        assert labeler.label_for(field, "es_AR") == "Título"
        assert labeler.label_for(field, "fr") == "Title"
        assert labeler.label_for(field, None) == "Title"


class TestGenericTransformer:
    def test_entity_to_dto_and_back(self, db_session):
        article = make_article(db_session, slug="t-one", title="One", price=2)
        transformer = GenericTransformer(Article, ArticleDto)

        dto = transformer.to_dto(article)
        assert (dto.slug, dto.title, dto.price) == ("t-one", "One", 2)

        entity = transformer.to_domain(ArticleDto(title="New", price=3))
        assert isinstance(entity, Article)
        assert (entity.title, entity.price, entity.slug) == ("New", 3, None)

    def test_page_to_page_dto(self, db_session):
        article = make_article(db_session, title="One")
        transformer = GenericTransformer(Article, ArticleDto)

        page_dto = transformer.page_entity_to_page_dto(Page([article], 0, 10, 1))

        assert page_dto.total_pages == 1
        assert page_dto.content[0].title == "One"
        assert page_dto.model_dump(by_alias=True)["totalElements"] == 1
