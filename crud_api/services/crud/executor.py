"""
Query execution collaborators.

The read service never builds ``select()`` statements itself: it compiles a
predicate and an ordering and hands them to a ``QueryExecutor``. The
SQLAlchemy implementation below is the one used in production and tests.

Usage:
    executor = SqlAlchemyQueryExecutor(db)
    total = executor.count(predicate, Article)
    rows = executor.find(predicate, ordering, offset=0, limit=25, model=Article)
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from sqlalchemy import ColumnElement, func, inspect, select
from sqlalchemy.orm import InstrumentedAttribute, Session
from sqlalchemy.sql.elements import UnaryExpression

from crud_shared.config.logging import get_logger

logger = get_logger(__name__)

Predicate = ColumnElement[bool]
Ordering = list[UnaryExpression]


def resolve_column(model: type, name: str) -> InstrumentedAttribute | None:
    """
    Mapped column attribute of ``model`` called ``name``, or None.

    Relationships and plain Python attributes are not columns and resolve
    to None, so unknown names degrade instead of raising.
    """
    mapper = inspect(model, raiseerr=False)
    if mapper is None or name not in mapper.column_attrs:
        return None
    return getattr(model, name)


class QueryExecutor(Protocol):
    """Read-only query surface the CRUD services depend on."""

    def count(self, predicate: Predicate, model: type) -> int:
        ...

    def find(
        self,
        predicate: Predicate,
        ordering: Ordering,
        offset: int | None,
        limit: int | None,
        model: type,
    ) -> Sequence[Any]:
        ...

    def distinct(self, column: str, predicate: Predicate, model: type) -> list[Any]:
        ...

    def select_columns(
        self,
        model: type,
        columns: Sequence[str],
        predicate: Predicate,
        ordering: Ordering,
    ) -> list[dict[str, Any]]:
        ...


class SqlAlchemyQueryExecutor:
    """``QueryExecutor`` backed by a SQLAlchemy session."""

    def __init__(self, session: Session):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def count(self, predicate: Predicate, model: type) -> int:
        query = select(func.count()).select_from(model).where(predicate)
        return self._session.scalar(query) or 0

    def find(
        self,
        predicate: Predicate,
        ordering: Ordering,
        offset: int | None,
        limit: int | None,
        model: type,
    ) -> Sequence[Any]:
        """
        Matching entities in ``ordering`` order. The primary key is appended
        as a last tiebreak so offset pagination never repeats or skips rows.
        """
        query = select(model).where(predicate).order_by(*self._with_tiebreak(ordering, model))
        if offset is not None:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return self._session.scalars(query).all()

    def distinct(self, column: str, predicate: Predicate, model: type) -> list[Any]:
        """Distinct values of ``column`` under ``predicate``, ascending."""
        attr = resolve_column(model, column)
        if attr is None:
            return []
        query = select(attr).where(predicate).distinct().order_by(attr.asc())
        return list(self._session.scalars(query).all())

    def select_columns(
        self,
        model: type,
        columns: Sequence[str],
        predicate: Predicate,
        ordering: Ordering,
    ) -> list[dict[str, Any]]:
        """Rows of only ``columns`` as dicts; unknown columns are dropped."""
        attrs = {name: resolve_column(model, name) for name in columns}
        selected = [attr.label(name) for name, attr in attrs.items() if attr is not None]
        if not selected:
            return []
        query = select(*selected).where(predicate).order_by(*ordering)
        return [dict(row._mapping) for row in self._session.execute(query)]

    @staticmethod
    def _with_tiebreak(ordering: Ordering, model: type) -> Ordering:
        primary_keys = inspect(model).primary_key
        ordered = {getattr(expr.element, "key", None) for expr in ordering}
        tiebreak = [pk.asc() for pk in primary_keys if pk.key not in ordered]
        return [*ordering, *tiebreak]


class InheritanceDiscriminator:
    """
    Predicate restricting a shared-table query to one subtype.

    For a single-table inheritance subclass the discriminator column must be
    one of the identities of the class and its descendants. Root classes and
    non-polymorphic models need no restriction and get None.
    """

    def predicate(self, model: type) -> Predicate | None:
        mapper = inspect(model, raiseerr=False)
        if mapper is None or mapper.polymorphic_on is None or mapper.inherits is None:
            return None

        identities = sorted(
            {
                m.polymorphic_identity
                for m in mapper.self_and_descendants
                if m.polymorphic_identity is not None
            },
            key=str,
        )
        if not identities:
            return None
        return mapper.polymorphic_on.in_(identities)
