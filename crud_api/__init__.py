"""
Generic CRUD layer for SQLAlchemy entities served through FastAPI.

Subclass ``AbstractCrudService`` with an ``EntityMetadata`` catalog and mount
``build_crud_router`` to get filtering, distinct values, CSV export/import and
create/update/delete for an entity.
"""
