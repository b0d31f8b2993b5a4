"""
Base class and entity mixin for models served by the CRUD layer.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, Boolean, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from crud_shared.utils.dates import to_epoch_millis


def now_millis() -> int:
    return to_epoch_millis(datetime.now(timezone.utc))


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class CrudEntity:
    """
    Mixin with the columns every CRUD entity shares.

    Fields added:
    - id: surrogate primary key
    - slug: unique business identifier, used by lookups, search and joins
    - is_active: soft delete flag (False = deleted)
    - date_created, date_modified: epoch milliseconds, filterable like any
      other date column
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    date_created: Mapped[int] = mapped_column(BigInteger, default=now_millis, nullable=False)
    date_modified: Mapped[Optional[int]] = mapped_column(
        BigInteger, default=now_millis, onupdate=now_millis, nullable=True
    )

    def soft_delete(self) -> None:
        """Mark the entity as deleted."""
        self.is_active = False
        self.date_modified = now_millis()

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        active = "active" if self.is_active else "deleted"
        return f"<{class_name}(id={self.id}, slug={self.slug!r}, {active})>"
