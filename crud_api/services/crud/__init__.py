"""
Generic CRUD building blocks.

Usage:
    from crud_api.services.crud import (
        AbstractCrudService, EntityMetadata, FieldDescriptor, DataType,
        GenericTransformer, CsvRowSink,
    )
"""

from crud_api.services.crud.metadata import (
    DataType,
    EntityMetadata,
    FieldDescriptor,
    FieldLabeler,
    LocalizedFieldLabeler,
    Page,
)
from crud_api.services.crud.executor import (
    InheritanceDiscriminator,
    QueryExecutor,
    SqlAlchemyQueryExecutor,
)
from crud_api.services.crud.criteria import CriteriaCompiler
from crud_api.services.crud.sorting import SortCompiler
from crud_api.services.crud.export import CsvRowSink, ExportState, RowSink
from crud_api.services.crud.transformer import GenericTransformer
from crud_api.services.crud.read_service import AbstractReadService
from crud_api.services.crud.importer import CsvImporter, ImportResult
from crud_api.services.crud.crud_service import AbstractCrudService

__all__ = [
    # Catalog
    "DataType",
    "EntityMetadata",
    "FieldDescriptor",
    "FieldLabeler",
    "LocalizedFieldLabeler",
    "Page",
    # Query collaborators
    "InheritanceDiscriminator",
    "QueryExecutor",
    "SqlAlchemyQueryExecutor",
    # Compilers
    "CriteriaCompiler",
    "SortCompiler",
    # Export / import
    "CsvRowSink",
    "ExportState",
    "RowSink",
    "CsvImporter",
    "ImportResult",
    # Services
    "GenericTransformer",
    "AbstractReadService",
    "AbstractCrudService",
]
