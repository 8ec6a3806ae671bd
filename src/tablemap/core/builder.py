"""
Table mapping builder and validator.

Merges what a record type declares (``@table``, field markers) with what
the database reports (catalog columns) into a validated, immutable
``TableMapping``, and memoizes the result per record type.

Manifesto:
    - **Fail at build time:** every configuration problem surfaces the
      first time a type is used, never halfway through a write
    - **Catalog is the truth:** a mapped property must resolve to a real column
    - **Build once:** mappings are cached per type and never mutated

Architecture:
    ::

        get_table_mapping(Order)
          │  cache hit → return
          ▼
        describe(Order)                      markers, id, field order
          ▼
        resolve schema / catalog             declaration, else mapper default
          ▼
        dialect.validate_namespace()         MySQL: no schema, Oracle: no catalog
          ▼
        catalog.columns_of()                 [] → TableNotFoundError
          ▼
        resolve columns + override types     missing → ColumnNotFoundError
          ▼
        reserved names, duplicate / conflict / version checks
          ▼
        TableMapping → cache.put()           first writer wins

Tags:
    mapping, reflection, validation, catalog, tablemap

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any

from tablemap.core.cache import MappingCache
from tablemap.core.catalog import ColumnInfo
from tablemap.core.descriptor import ClassDescriptor, FieldDescriptor, describe
from tablemap.core.dialect import Dialect, dialect_for_product
from tablemap.core.errors import AnnotationError, ColumnNotFoundError, MapperError, TableNotFoundError
from tablemap.core.logging import get_logger
from tablemap.core.mapping import ROLE_FLAGS, IdPropertyInfo, PropertyMapping, TableMapping
from tablemap.core.markers import (
    Column,
    CreatedBy,
    CreatedOn,
    Id,
    Marker,
    UpdatedBy,
    UpdatedOn,
    Version,
)
from tablemap.core.protocols import CatalogProvider, SqlExecutor
from tablemap.core.sql import INCREMENTED_VERSION
from tablemap.core.types import SqlType
from tablemap.core.utils import is_blank, to_underscore_name

logger = get_logger(__name__)

_ROLE_BY_MARKER: dict[type[Marker], str] = {
    Id: "is_id",
    Version: "is_version",
    CreatedOn: "is_created_on",
    CreatedBy: "is_created_by",
    UpdatedOn: "is_updated_on",
    UpdatedBy: "is_updated_by",
}

_MARKER_BY_ROLE = {flag: marker for marker, flag in _ROLE_BY_MARKER.items()}


class TableMappingBuilder:
    """Builds and memoizes ``TableMapping`` objects.

    Args:
        catalog: Source of column metadata.
        executor: Used only to resolve the database product name, lazily.
        schema_name: Default schema for types that declare none.
        catalog_name: Default catalog for types that declare none.
        cache: Mapping cache keyed by record type (unbounded by default).
    """

    def __init__(
        self,
        catalog: CatalogProvider,
        executor: SqlExecutor,
        *,
        schema_name: str | None = None,
        catalog_name: str | None = None,
        cache: MappingCache | None = None,
    ):
        self._catalog = catalog
        self._executor = executor
        self.schema_name = None if is_blank(schema_name) else schema_name
        self.catalog_name = None if is_blank(catalog_name) else catalog_name
        self.cache = cache if cache is not None else MappingCache()

        self._product_name: str | None = None
        self._product_lock = threading.Lock()
        self._type_overrides: dict[Any, SqlType] | None = None
        self._offset_datetime_as_timestamp_tz = False

    # ── Database product ─────────────────────────────────────────

    @property
    def database_product_name(self) -> str:
        """Product name, resolved once on first use."""
        if self._product_name is None:
            with self._product_lock:
                if self._product_name is None:
                    try:
                        name = self._executor.database_product_name() or ""
                    except Exception as exc:
                        raise MapperError(f"Unable to resolve database product name: {exc}", cause=exc) from exc
                    logger.info("database_product_resolved", product=name)
                    self._product_name = name
        return self._product_name

    @property
    def dialect(self) -> Dialect:
        return dialect_for_product(self.database_product_name)

    # ── Type overrides ───────────────────────────────────────────

    def set_database_metadata_override(self, overrides: dict[Any, SqlType]) -> None:
        """Install the declared-type → ``SqlType`` override table (once).

        Raises:
            MapperError: If a table was already installed.
        """
        if self._type_overrides is not None:
            raise MapperError("database metadata override was already set and cannot be changed")
        self._type_overrides = dict(overrides)

    def enable_offset_datetime_as_timestamp_tz(self) -> None:
        """Bind ``OffsetDateTime`` fields as ``TIMESTAMP_WITH_TIMEZONE``."""
        self._offset_datetime_as_timestamp_tz = True

    @property
    def offset_datetime_as_timestamp_tz(self) -> bool:
        return self._offset_datetime_as_timestamp_tz

    def _override_type(self, field: FieldDescriptor) -> SqlType | None:
        column = field.marker(Column)
        if column is not None and column.sql_type is not None:
            return column.sql_type
        if self._type_overrides:
            try:
                override = self._type_overrides.get(field.declared_type)
            except TypeError:
                override = None
            if override is not None:
                return override
        if (
            self._offset_datetime_as_timestamp_tz
            and field.timezone_aware
            and field.declared_type is datetime
        ):
            return SqlType.TIMESTAMP_WITH_TIMEZONE
        return None

    # ── Build ────────────────────────────────────────────────────

    def get_table_mapping(self, record_type: type) -> TableMapping:
        """Return the (cached) mapping of ``record_type``.

        Raises:
            AnnotationError: Markers missing, duplicated or conflicting.
            ColumnNotFoundError: A mapped property has no column.
            TableNotFoundError: The catalog does not know the table.
            NamespaceConventionError: Schema / catalog not usable on this database.
        """
        if record_type is None:
            raise ValueError("record_type must not be None")
        cached = self.cache.get(record_type)
        if cached is not None:
            return cached
        return self.cache.put(record_type, self._build(record_type))

    def _build(self, record_type: type) -> TableMapping:
        descriptor = describe(record_type)
        table_name = descriptor.table.name
        schema = self.schema_name if is_blank(descriptor.table.schema) else descriptor.table.schema
        catalog = self.catalog_name if is_blank(descriptor.table.catalog) else descriptor.table.catalog

        dialect = self.dialect
        dialect.validate_namespace(schema, catalog)

        columns = {c.name.lower(): c for c in self._catalog.columns_of(schema, catalog, table_name)}
        if not columns:
            raise TableNotFoundError(record_type.__name__, table_name, schema, catalog)

        property_mappings = self._property_mappings(descriptor, table_name, columns)
        id_field = descriptor.id_field
        id_marker = id_field.marker(Id)
        mapping = TableMapping(
            record_type=record_type,
            table_name=table_name,
            schema_name=schema,
            catalog_name=catalog,
            id_info=IdPropertyInfo(
                record_type=record_type,
                property_name=id_field.name,
                property_type=id_field.declared_type,
                id_type=id_marker.type,
            ),
            property_mappings=tuple(property_mappings),
            qualified_table_name=dialect.qualify(schema, catalog, table_name),
        )
        logger.debug(
            "table_mapping_built",
            record_type=record_type.__name__,
            table=mapping.qualified_table_name,
            properties=len(property_mappings),
        )
        return mapping

    def _property_mappings(
        self,
        descriptor: ClassDescriptor,
        table_name: str,
        columns: dict[str, ColumnInfo],
    ) -> list[PropertyMapping]:
        record_name = descriptor.record_type.__name__
        resolved: list[tuple[FieldDescriptor, str, dict[str, bool]]] = []
        for field in descriptor.fields:
            if field.name == INCREMENTED_VERSION:
                raise AnnotationError(
                    f"{record_name}.{field.name} uses a name reserved for the new version bind parameter"
                ).with_context(record_type=record_name, property_name=field.name)
            column = field.marker(Column)
            if column is not None and not is_blank(column.name):
                column_name = column.name.lower()
            else:
                column_name = to_underscore_name(field.name).lower()
            if column_name not in columns:
                raise ColumnNotFoundError(column_name, table_name, field.declared_in.__name__, field.name)
            roles = {flag: False for flag in ROLE_FLAGS}
            for marker in field.markers:
                flag = _ROLE_BY_MARKER.get(type(marker))
                if flag is not None:
                    roles[flag] = True
            resolved.append((field, column_name, roles))

        self._check_duplicates(record_name, [roles for _, _, roles in resolved])
        self._check_conflicts(record_name, [(f.name, roles) for f, _, roles in resolved])
        self._check_version_type(record_name, [(f, roles) for f, _, roles in resolved])

        return [
            PropertyMapping(
                property_name=field.name,
                property_type=field.declared_type,
                column_name=column_name,
                column_sql_type=columns[column_name].sql_type,
                overridden_sql_type=self._override_type(field),
                **roles,
            )
            for field, column_name, roles in resolved
        ]

    # ── Validation ───────────────────────────────────────────────

    @staticmethod
    def _check_duplicates(record_name: str, role_sets: list[dict[str, bool]]) -> None:
        for flag in ROLE_FLAGS:
            if sum(1 for roles in role_sets if roles[flag]) > 1:
                label = f"@{_MARKER_BY_ROLE[flag].__name__}"
                raise AnnotationError(
                    f"{record_name} has multiple {label} markers"
                ).with_context(record_type=record_name)

    @staticmethod
    def _check_conflicts(record_name: str, fields: list[tuple[str, dict[str, bool]]]) -> None:
        for name, roles in fields:
            if sum(roles.values()) > 1:
                raise AnnotationError(
                    f"{record_name}.{name} has multiple markers that conflict"
                ).with_context(record_type=record_name, property_name=name)

    @staticmethod
    def _check_version_type(record_name: str, fields: list[tuple[FieldDescriptor, dict[str, bool]]]) -> None:
        for field, roles in fields:
            if roles["is_version"] and field.declared_type is not int:
                raise AnnotationError(
                    f"@Version requires the type of property {record_name}.{field.name} to be int"
                ).with_context(record_type=record_name, property_name=field.name)

    def clear(self) -> None:
        """Drop every cached mapping."""
        self.cache.clear()


__all__ = ["TableMappingBuilder"]
