"""tablemap core -- record types ↔ relational rows.

Manifesto:
    Single-table CRUD should not need a session, a unit of work or a query
    language. A decorated dataclass and a database connection are enough:
    the mapper reads the table's columns from the catalog, validates the
    declaration against them, and generates (once) the SQL every operation
    needs. Updates on versioned records are guarded by optimistic locking.

    - **Declarative:** ``@table`` + ``Annotated`` field markers
    - **Catalog-verified:** every mapped property resolves to a real column
    - **Cached:** mappings and SQL are built once per record type
    - **Protocol-first:** CatalogProvider and SqlExecutor are protocols

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Structured error hierarchy (TableMapError, ...)
        types.py           SqlType codes + SqlParameter
        protocols.py       CatalogProvider, SqlExecutor

    Layer 2 -- Declaration & Reflection
        markers.py         @table, Id, Column, Version, CreatedOn, ...
        descriptor.py      Field walk along the MRO
        dialect.py         Schema / catalog conventions per database family
        catalog.py         ColumnInfo + SqlAlchemyCatalog

    Layer 3 -- Mapping & SQL
        mapping.py         PropertyMapping, IdPropertyInfo, TableMapping
        builder.py         TableMappingBuilder (merge + validate + memoize)
        sql.py             SqlAndParams + SqlBuilder (SQL caches)
        rows.py            Result rows → records
        executor.py        InsertSpec + SqlAlchemyExecutor

    Layer 4 -- Orchestration
        mapper.py          TableMapper (find / insert / update / delete)

    Cross-Cutting Concerns
        cache.py           MappingCache (first writer wins, soft capacity)
        logging.py         structlog configuration
        settings.py        MapperSettings (pydantic-settings)
        utils.py           Name conversion, result merging, list chunking

Tags:
    tablemap, orm, crud, optimistic-locking, sqlalchemy

Doc-Types:
    package-overview, module-index
"""

from tablemap.core.cache import MappingCache
from tablemap.core.catalog import ColumnInfo, SqlAlchemyCatalog
from tablemap.core.errors import (
    AnnotationError,
    ColumnNotFoundError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    MapperError,
    NamespaceConventionError,
    OptimisticLockingError,
    TableMapError,
    TableNotFoundError,
    is_retryable,
)
from tablemap.core.executor import InsertSpec, SqlAlchemyExecutor
from tablemap.core.logging import configure_logging, get_logger
from tablemap.core.mapper import TableMapper
from tablemap.core.mapping import IdPropertyInfo, PropertyMapping, TableMapping
from tablemap.core.markers import (
    Column,
    CreatedBy,
    CreatedOn,
    Id,
    IdType,
    OffsetDateTime,
    UpdatedBy,
    UpdatedOn,
    Version,
    table,
)
from tablemap.core.protocols import CatalogProvider, SqlExecutor
from tablemap.core.settings import MapperSettings, get_settings
from tablemap.core.sql import SqlAndParams
from tablemap.core.types import SqlParameter, SqlType
from tablemap.core.utils import chunk_list, merge_has_many, merge_has_one, to_underscore_name

__all__ = [
    # Mapper
    "TableMapper",
    # Markers
    "table",
    "Id",
    "IdType",
    "Column",
    "Version",
    "CreatedOn",
    "CreatedBy",
    "UpdatedOn",
    "UpdatedBy",
    "OffsetDateTime",
    # Model
    "TableMapping",
    "PropertyMapping",
    "IdPropertyInfo",
    "SqlAndParams",
    "SqlType",
    "SqlParameter",
    # Boundaries
    "CatalogProvider",
    "SqlExecutor",
    "ColumnInfo",
    "SqlAlchemyCatalog",
    "InsertSpec",
    "SqlAlchemyExecutor",
    # Errors
    "TableMapError",
    "ErrorCategory",
    "ErrorContext",
    "ConfigError",
    "AnnotationError",
    "ColumnNotFoundError",
    "TableNotFoundError",
    "NamespaceConventionError",
    "MapperError",
    "OptimisticLockingError",
    "is_retryable",
    # Cross-cutting
    "MappingCache",
    "configure_logging",
    "get_logger",
    "MapperSettings",
    "get_settings",
    "to_underscore_name",
    "merge_has_one",
    "merge_has_many",
    "chunk_list",
]
