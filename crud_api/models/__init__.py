"""
ORM base classes.
"""

from crud_api.models.base import Base, CrudEntity, now_millis

__all__ = ["Base", "CrudEntity", "now_millis"]
