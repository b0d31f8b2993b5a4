"""
Routers: the generic CRUD router factory.
"""

from crud_api.routers.crud import build_crud_router, get_locale

__all__ = ["build_crud_router", "get_locale"]
