"""
TableMapper - single-table CRUD for annotated record types.

The orchestrator of the package: it resolves a record type's mapping,
fetches the statement for the requested operation, binds values through
the mapping's accessor table and hands everything to the ``SqlExecutor``.

Manifesto:
    - **Declarative:** a decorated dataclass is all a caller writes
    - **Optimistic concurrency:** versioned updates fail loudly on stale data
    - **System-managed audit fields:** created/updated on/by filled from suppliers
    - **Thread-safe:** one mapper serves many threads, caches are shared

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                         TableMapper                           │
        ├──────────────────────────────────────────────────────────────┤
        │  TableMappingBuilder ──► CatalogProvider (SqlAlchemyCatalog) │
        │  SqlBuilder (SQL caches)                                      │
        │  SqlExecutor (SqlAlchemyExecutor)                             │
        └──────────────────────────────────────────────────────────────┘

        update(order):
          mapping → SQL (cached) → id check → bind (incremented version)
            → execute → 0 rows + version guard → OptimisticLockingError
                      → else version = incremented, audit fields set

Examples:
    >>> engine = sa.create_engine("sqlite://")
    >>> mapper = TableMapper(engine)
    >>> mapper.set_record_audited_on_supplier(lambda: datetime.now(UTC))
    >>> order = Order(status="NEW")
    >>> mapper.insert(order)          # order.id, order.version == 1 populated
    >>> order.status = "SHIPPED"
    >>> mapper.update(order)          # order.version == 2
    1
    >>> mapper.find_by_id(Order, order.id).status
    'SHIPPED'

Guardrails:
    ❌ DON'T: Catch OptimisticLockingError and retry with the same object
    ✅ DO: Re-read the record, re-apply the change, update again

    ❌ DON'T: Pass the id or audit fields to update_specific_properties
    ✅ DO: Name only business properties; audit fields are added for you

Tags:
    orm, crud, optimistic-locking, audit, sqlalchemy, tablemap

Doc-Types:
    - API Reference
    - Usage Guide
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine

from tablemap.core.builder import TableMappingBuilder
from tablemap.core.cache import MappingCache
from tablemap.core.catalog import SqlAlchemyCatalog
from tablemap.core.errors import MapperError, OptimisticLockingError
from tablemap.core.executor import SqlAlchemyExecutor
from tablemap.core.logging import configure_logging, get_logger
from tablemap.core.mapping import PropertyMapping, TableMapping
from tablemap.core.protocols import CatalogProvider, SqlExecutor
from tablemap.core.rows import to_record, to_records
from tablemap.core.settings import MapperSettings
from tablemap.core.sql import (
    DEFAULT_CACHEABLE_UPDATE_PROPERTIES_COUNT,
    DEFAULT_UPDATE_PROPERTIES_CACHE_CAPACITY,
    INCREMENTED_VERSION,
    SqlAndParams,
    SqlBuilder,
    result_label,
)
from tablemap.core.types import SqlParameter, SqlType

logger = get_logger(__name__)


def _bind_value(pm: PropertyMapping, value: Any) -> SqlParameter:
    sql_type = pm.effective_sql_type
    if value is not None:
        if sql_type is SqlType.BLOB and not isinstance(value, bytes):
            if not isinstance(value, (bytearray, memoryview)):
                raise _lob_mismatch(pm, value)
            value = bytes(value)
        elif sql_type is SqlType.CLOB and not isinstance(value, str):
            raise _lob_mismatch(pm, value)
    return SqlParameter(value, sql_type)


def _lob_mismatch(pm: PropertyMapping, value: Any) -> MapperError:
    sql_type = pm.effective_sql_type
    return MapperError(
        f"Property {pm.property_name} is bound as {sql_type.value} and cannot take a {type(value).__name__} value"
    ).with_context(property_name=pm.property_name, column=pm.column_name)


class TableMapper:
    """Single-table CRUD over annotated record types.

    Args:
        bind: SQLAlchemy Engine or Connection. Supplies the default executor
            and catalog when those are not passed explicitly.
        schema_name: Default schema for types whose ``@table`` names none.
        catalog_name: Default catalog for types whose ``@table`` names none.
        executor: Statement executor (defaults to ``SqlAlchemyExecutor(bind)``).
        catalog: Column metadata source (defaults to ``SqlAlchemyCatalog(bind)``).
        update_properties_cache_capacity: Soft bound of the partial-update SQL cache.
        cacheable_update_properties_count: Largest partial update that is cached.

    Raises:
        ValueError: If neither ``bind`` nor both ``executor`` and ``catalog``
            are given.
    """

    def __init__(
        self,
        bind: Engine | Connection | None = None,
        schema_name: str | None = None,
        catalog_name: str | None = None,
        *,
        executor: SqlExecutor | None = None,
        catalog: CatalogProvider | None = None,
        update_properties_cache_capacity: int = DEFAULT_UPDATE_PROPERTIES_CACHE_CAPACITY,
        cacheable_update_properties_count: int = DEFAULT_CACHEABLE_UPDATE_PROPERTIES_COUNT,
    ):
        if bind is None and (executor is None or catalog is None):
            raise ValueError("bind must be given unless both executor and catalog are supplied")
        self._executor: SqlExecutor = executor if executor is not None else SqlAlchemyExecutor(bind)
        catalog = catalog if catalog is not None else SqlAlchemyCatalog(bind)
        self._builder = TableMappingBuilder(
            catalog,
            self._executor,
            schema_name=schema_name,
            catalog_name=catalog_name,
        )
        self._sql = SqlBuilder(
            update_properties_cache_capacity=update_properties_cache_capacity,
            cacheable_update_properties_count=cacheable_update_properties_count,
        )
        self._audited_on_supplier: Callable[[], Any] | None = None
        self._audited_by_supplier: Callable[[], Any] | None = None

    @classmethod
    def from_settings(cls, settings: MapperSettings | None = None, *, configure_logs: bool = False) -> TableMapper:
        """Create an engine from ``settings`` and a mapper over it."""
        if settings is None:
            from tablemap.core.settings import get_settings

            settings = get_settings()
        if configure_logs:
            configure_logging(level=settings.log_level, json_format=settings.log_format == "json")
        engine = sa.create_engine(settings.database_url, echo=settings.database_echo)
        mapper = cls(
            engine,
            settings.schema_name,
            settings.catalog_name,
            update_properties_cache_capacity=settings.update_properties_cache_capacity,
            cacheable_update_properties_count=settings.cacheable_update_properties_count,
        )
        if settings.enable_offset_datetime_as_timestamp_tz:
            mapper.enable_offset_datetime_as_timestamp_tz()
        return mapper

    # ── Configuration ────────────────────────────────────────────

    @property
    def schema_name(self) -> str | None:
        return self._builder.schema_name

    @property
    def catalog_name(self) -> str | None:
        return self._builder.catalog_name

    @property
    def executor(self) -> SqlExecutor:
        return self._executor

    @property
    def database_product_name(self) -> str:
        return self._builder.database_product_name

    @property
    def table_mapping_cache(self) -> MappingCache:
        return self._builder.cache

    @property
    def sql_builder(self) -> SqlBuilder:
        return self._sql

    def set_record_audited_on_supplier(self, supplier: Callable[[], Any]) -> None:
        """Supplier of created-on / updated-on values. Can be set once."""
        if self._audited_on_supplier is not None:
            raise MapperError("record audited on supplier was already set and cannot be changed")
        self._audited_on_supplier = supplier

    def set_record_audited_by_supplier(self, supplier: Callable[[], Any]) -> None:
        """Supplier of created-by / updated-by values. Can be set once."""
        if self._audited_by_supplier is not None:
            raise MapperError("record audited by supplier was already set and cannot be changed")
        self._audited_by_supplier = supplier

    def set_database_metadata_override(self, overrides: dict[Any, SqlType]) -> None:
        """Bind properties of the given declared types with the given ``SqlType``. Can be set once."""
        self._builder.set_database_metadata_override(overrides)

    def enable_offset_datetime_as_timestamp_tz(self) -> None:
        self._builder.enable_offset_datetime_as_timestamp_tz()

    # ── Mapping ──────────────────────────────────────────────────

    def get_table_mapping(self, record_type: type) -> TableMapping:
        return self._builder.get_table_mapping(record_type)

    def load_mapping(self, record_type: type) -> None:
        """Build and validate the mapping of ``record_type`` now rather than on first use."""
        self._builder.get_table_mapping(record_type)

    def select_columns_sql(self, record_type: type) -> str:
        """Select list whose labels match the record's property names.

        Useful for hand-written queries whose rows are turned into records.
        """
        return self._sql.select_columns(self.get_table_mapping(record_type))

    def get_property_to_column_mappings(self, record_type: type) -> dict[str, str]:
        mapping = self.get_table_mapping(record_type)
        return {pm.property_name: pm.column_name for pm in mapping.property_mappings}

    def clear_caches(self) -> None:
        """Drop cached mappings and SQL."""
        self._builder.clear()
        self._sql.clear()

    # ── Find ─────────────────────────────────────────────────────

    @staticmethod
    def _result_types(mapping: TableMapping) -> dict[str, SqlType]:
        return {result_label(pm): pm.effective_sql_type for pm in mapping.property_mappings}

    def find_by_id(self, record_type: type, id_value: Any) -> Any | None:
        """Record with the given id, ``None`` when there is none."""
        mapping = self.get_table_mapping(record_type)
        if id_value is None:
            return None
        statement = self._sql.find_by_id(mapping)
        rows = self._executor.query(
            statement.sql,
            {mapping.id_property_name: SqlParameter(id_value, mapping.id_column_type)},
            self._result_types(mapping),
        )
        if not rows:
            return None
        if len(rows) > 1:
            raise MapperError(
                f"find_by_id for {record_type.__name__} returned {len(rows)} rows for "
                f"{mapping.id_column_name} = {id_value}"
            ).with_context(record_type=record_type.__name__, table=mapping.table_name)
        return to_record(mapping, rows[0])

    def find_all(self, record_type: type) -> list[Any]:
        mapping = self.get_table_mapping(record_type)
        rows = self._executor.query(self._sql.find_all(mapping), {}, self._result_types(mapping))
        return to_records(mapping, rows)

    # ── Insert ───────────────────────────────────────────────────

    def insert(self, obj: Any) -> None:
        """Insert ``obj``.

        A database-generated id must be ``None`` beforehand and is written
        back afterwards; a manual id must be set. Audit fields are filled
        from the suppliers and the version starts at 1.

        Raises:
            MapperError: If the id value contradicts how the id is generated.
        """
        if obj is None:
            raise ValueError("obj must not be None")
        mapping = self.get_table_mapping(type(obj))
        record_name = type(obj).__name__
        id_name = mapping.id_property_name
        id_value = mapping.get_value(obj, id_name)
        if mapping.is_id_auto_generated and id_value is not None:
            raise MapperError(
                f"For insert() the property {record_name}.{id_name} has to be None since this insert is "
                "for an object whose id is auto generated in the database"
            ).with_context(record_type=record_name, property_name=id_name)
        if not mapping.is_id_auto_generated and id_value is None:
            raise MapperError(
                f"{record_name}.{id_name} needs to have a value since it is not auto generated"
            ).with_context(record_type=record_name, property_name=id_name)

        if self._audited_on_supplier is not None:
            on_value = self._audited_on_supplier()
            for pm in (mapping.created_on_property_mapping, mapping.updated_on_property_mapping):
                if pm is not None:
                    mapping.set_value(obj, pm.property_name, on_value)
        if self._audited_by_supplier is not None:
            by_value = self._audited_by_supplier()
            for pm in (mapping.created_by_property_mapping, mapping.updated_by_property_mapping):
                if pm is not None:
                    mapping.set_value(obj, pm.property_name, by_value)
        version_pm = mapping.version_property_mapping
        if version_pm is not None:
            mapping.set_value(obj, version_pm.property_name, 1)

        spec = self._sql.insert(mapping)
        values = {}
        for column_name in spec.column_names:
            pm = mapping.get_property_mapping_by_column(column_name)
            values[column_name] = _bind_value(pm, mapping.get_value(obj, pm.property_name))

        key = self._executor.insert(spec, values)
        if mapping.is_id_auto_generated:
            if key is None:
                raise MapperError(
                    f"No generated key was returned for {record_name}.{id_name}"
                ).with_context(record_type=record_name, table=mapping.table_name)
            if mapping.id_info.property_type is int:
                key = int(key)
            mapping.set_value(obj, id_name, key)
        logger.debug("record_inserted", record_type=record_name, id=mapping.get_value(obj, id_name))

    # ── Update ───────────────────────────────────────────────────

    def update(self, obj: Any) -> int:
        """Update every mapped property except id, created-on and created-by.

        Returns:
            Number of rows updated.

        Raises:
            MapperError: The id is ``None``, or the version is ``None`` on a
                versioned record.
            OptimisticLockingError: Versioned update matched no row.
        """
        if obj is None:
            raise ValueError("obj must not be None")
        mapping = self.get_table_mapping(type(obj))
        return self._update(obj, mapping, self._sql.update(mapping))

    def update_specific_properties(self, obj: Any, *property_names: str) -> int:
        """Update only ``property_names`` (plus updated-on, updated-by and version).

        Raises:
            MapperError: No property named, an unknown property, the id, or a
                system-managed property named. No SQL is issued in that case.
            OptimisticLockingError: Versioned update matched no row.
        """
        if obj is None:
            raise ValueError("obj must not be None")
        mapping = self.get_table_mapping(type(obj))
        return self._update(obj, mapping, self._sql.update_properties(mapping, property_names))

    def _update(self, obj: Any, mapping: TableMapping, statement: SqlAndParams) -> int:
        record_name = type(obj).__name__
        id_name = mapping.id_property_name
        id_value = mapping.get_value(obj, id_name)
        if id_value is None:
            raise MapperError(
                f"Property {record_name}.{id_name} is the id and must not be None."
            ).with_context(record_type=record_name, property_name=id_name)

        params = statement.params
        audit_values: dict[str, Any] = {}
        if mapping.has_auto_assign_properties:
            updated_on = mapping.updated_on_property_mapping
            if updated_on is not None and self._audited_on_supplier is not None and updated_on.property_name in params:
                audit_values[updated_on.property_name] = self._audited_on_supplier()
            updated_by = mapping.updated_by_property_mapping
            if updated_by is not None and self._audited_by_supplier is not None and updated_by.property_name in params:
                audit_values[updated_by.property_name] = self._audited_by_supplier()

        bound: dict[str, SqlParameter] = {}
        incremented: int | None = None
        version_pm = mapping.version_property_mapping
        for name in params:
            if name == INCREMENTED_VERSION:
                current = mapping.get_value(obj, version_pm.property_name)
                if current is None:
                    raise MapperError(
                        f"{record_name}.{version_pm.property_name} is configured with marker @Version. "
                        f"Property {version_pm.property_name} must not be None when updating."
                    ).with_context(record_type=record_name, property_name=version_pm.property_name)
                incremented = current + 1
                bound[name] = SqlParameter(incremented, SqlType.INTEGER)
            else:
                pm = mapping.get_property_mapping(name)
                value = audit_values[name] if name in audit_values else mapping.get_value(obj, name)
                bound[name] = _bind_value(pm, value)

        count = self._executor.update(statement.sql, bound)
        if incremented is not None:
            if count == 0:
                current = mapping.get_value(obj, version_pm.property_name)
                logger.warning(
                    "optimistic_lock_failed",
                    record_type=record_name,
                    id=id_value,
                    version=current,
                )
                raise OptimisticLockingError(
                    f"{record_name} update failed due to stale data. Failed for "
                    f"{mapping.id_column_name} = {id_value} and {version_pm.column_name} = {current}"
                ).with_context(
                    record_type=record_name,
                    table=mapping.table_name,
                    column=version_pm.column_name,
                )
            mapping.set_value(obj, version_pm.property_name, incremented)
        for name, value in audit_values.items():
            mapping.set_value(obj, name, value)
        logger.debug("record_updated", record_type=record_name, id=id_value, rows=count)
        return count

    # ── Delete ───────────────────────────────────────────────────

    def delete(self, obj: Any) -> int:
        """Delete the row of ``obj`` by its id. Returns the number of rows deleted."""
        if obj is None:
            raise ValueError("obj must not be None")
        mapping = self.get_table_mapping(type(obj))
        id_value = mapping.get_value(obj, mapping.id_property_name)
        return self._delete(mapping, id_value)

    def delete_by_id(self, record_type: type, id_value: Any) -> int:
        """Delete the row with the given id. Returns the number of rows deleted."""
        return self._delete(self.get_table_mapping(record_type), id_value)

    def _delete(self, mapping: TableMapping, id_value: Any) -> int:
        record_name = mapping.record_type.__name__
        if id_value is None:
            raise MapperError(
                f"Property {record_name}.{mapping.id_property_name} is the id and must not be None."
            ).with_context(record_type=record_name, property_name=mapping.id_property_name)
        statement = self._sql.delete(mapping)
        count = self._executor.update(
            statement.sql,
            {mapping.id_property_name: SqlParameter(id_value, mapping.id_column_type)},
        )
        logger.debug("record_deleted", record_type=record_name, id=id_value, rows=count)
        return count


__all__ = ["TableMapper"]
