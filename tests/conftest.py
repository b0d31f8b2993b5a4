"""
Pytest configuration and fixtures for the CRUD layer tests.

Test entities:
- Category: joined by articles through its slug.
- Article / FeaturedArticle: single-table inheritance on ``kind``.
"""

import itertools
from typing import Optional

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from pydantic import BaseModel, ConfigDict
from sqlalchemy import BigInteger, Boolean, Float, Integer, String, create_engine
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from crud_api.main import create_app
from crud_api.models import Base, CrudEntity
from crud_api.routers import build_crud_router
from crud_api.schemas import SortModel
from crud_api.services.crud import (
    AbstractCrudService,
    AbstractReadService,
    DataType,
    EntityMetadata,
    FieldDescriptor,
    GenericTransformer,
    SqlAlchemyQueryExecutor,
)
from crud_shared.infrastructure.db import get_db
from crud_shared.utils.dates import DayBoundaryClock

_slug_counter = itertools.count(1)


# =============================================================================
# Test entities
# =============================================================================


class Category(CrudEntity, Base):
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(100), nullable=False)


class Article(CrudEntity, Base):
    __tablename__ = "articles"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    published: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    published_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    __mapper_args__ = {
        "polymorphic_on": "kind",
        "polymorphic_identity": "article",
    }


class FeaturedArticle(Article):
    __mapper_args__ = {"polymorphic_identity": "featured"}


class ArticleDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    slug: str | None = None
    title: str
    status: str | None = None
    price: float | None = None
    quantity: int | None = None
    published: bool | None = None
    published_at: int | None = None
    category: str | None = None


ARTICLE_FIELDS = (
    FieldDescriptor("slug", DataType.TEXT, searchable=False, sequence=0),
    FieldDescriptor("title", DataType.TEXT, localized_names={"es": "Título"}, sequence=1),
    FieldDescriptor("status", DataType.ENUM, localized_names={"es": "Estado"}, sequence=2),
    FieldDescriptor("price", DataType.NUMBER, sequence=3),
    FieldDescriptor("quantity", DataType.INTEGER, sequence=4),
    FieldDescriptor("published", DataType.BOOLEAN, sequence=5),
    FieldDescriptor("published_at", DataType.DATE, sequence=6),
    FieldDescriptor(
        "category",
        DataType.AUTO_COMPLETE,
        join_model=Category,
        join_column="name",
        sequence=7,
    ),
    FieldDescriptor("details", DataType.OBJECT, exportable=False, importable=False, sequence=8),
)

ARTICLE_METADATA = EntityMetadata(
    model=Article,
    dto=ArticleDto,
    fields=ARTICLE_FIELDS,
    default_sort=(SortModel(col_id="title"),),
)

FEATURED_METADATA = EntityMetadata(
    model=FeaturedArticle,
    dto=ArticleDto,
    fields=ARTICLE_FIELDS,
    default_sort=(SortModel(col_id="title"),),
)

UTC_CLOCK = DayBoundaryClock("UTC")


class BracketLabeler:
    """Labeler with nothing but ``labels_for``."""

    def labels_for(self, fields, locale):
        return [f"[{f.name}]" for f in fields]


class ArticleService(AbstractCrudService[Article]):
    slug_prefix = "ART"

    def metadata(self) -> EntityMetadata:
        return ARTICLE_METADATA


class FeaturedArticleService(AbstractReadService[FeaturedArticle]):
    def metadata(self) -> EntityMetadata:
        return FEATURED_METADATA


class RecordingExecutor(SqlAlchemyQueryExecutor):
    """Executor that remembers every ``find`` page it served."""

    def __init__(self, session: Session):
        super().__init__(session)
        self.find_calls: list[tuple] = []

    def find(self, predicate, ordering, offset, limit, model):
        rows = super().find(predicate, ordering, offset, limit, model)
        self.find_calls.append((offset, limit, len(rows)))
        return rows


# =============================================================================
# Database
# =============================================================================

# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def next_slug(prefix: str = "a") -> str:
    """Unique slug for test rows; letters only so searches never hit it by accident."""
    n = next(_slug_counter)
    letters = ""
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("a") + rem) + letters
    return f"{prefix}-{letters}"


def make_article(db: Session, model: type = Article, **values) -> Article:
    values.setdefault("slug", next_slug())
    values.setdefault("title", "Untitled")
    article = model(**values)
    db.add(article)
    db.commit()
    db.refresh(article)
    return article


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def executor(db_session):
    return RecordingExecutor(db_session)


@pytest.fixture
def article_service(db_session, executor):
    return ArticleService(db_session, executor=executor, clock=UTC_CLOCK)


@pytest.fixture
def featured_service(db_session):
    return FeaturedArticleService(db_session, clock=UTC_CLOCK)


@pytest.fixture
def transformer():
    return GenericTransformer(Article, ArticleDto)


@pytest.fixture
def seed_categories(db_session):
    """Three categories, one of them unused by any article."""
    categories = [
        Category(slug="cat-m", name="Music"),
        Category(slug="cat-b", name="Books"),
        Category(slug="cat-x", name="Unused"),
    ]
    db_session.add_all(categories)
    db_session.commit()
    return categories


# =============================================================================
# HTTP
# =============================================================================


def get_article_service(db: Session = Depends(get_db)) -> ArticleService:
    return ArticleService(db, clock=UTC_CLOCK)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database session override.
    """
    router = build_crud_router(
        get_article_service,
        GenericTransformer(Article, ArticleDto),
        prefix="/articles",
        tags=["articles"],
    )
    app = create_app([router], with_lifespan=False)

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
