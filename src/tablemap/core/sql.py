"""
SQL generation for single-table CRUD.

Every statement is a pure function of a ``TableMapping`` (plus, for
partial updates, the requested property names), so the text is generated
once and cached per record type. Placeholders are named after the property
they bind (``:order_date``), except the synthetic ``:incremented_version``
that carries the new version value on versioned updates.

Statements:
    ::

        select columns  id, order_dt AS order_date, status
        find by id      SELECT <cols> FROM <table> WHERE id = :id
        find all        SELECT <cols> FROM <table>
        update          UPDATE <table> SET status = :status, version = :incremented_version
                        WHERE id = :id AND version = :version
        partial update  UPDATE <table> SET <requested>, <updated_on>, <updated_by>, <version> ...
        delete          DELETE FROM <table> WHERE id = :id

Tags:
    sql, code-generation, caching, optimistic-locking, tablemap

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from tablemap.core.cache import MappingCache
from tablemap.core.errors import MapperError
from tablemap.core.executor import InsertSpec
from tablemap.core.logging import get_logger
from tablemap.core.mapping import PropertyMapping, TableMapping
from tablemap.core.utils import to_underscore_name

logger = get_logger(__name__)

INCREMENTED_VERSION = "incremented_version"

DEFAULT_UPDATE_PROPERTIES_CACHE_CAPACITY = 2000
DEFAULT_CACHEABLE_UPDATE_PROPERTIES_COUNT = 3


@dataclass(frozen=True)
class SqlAndParams:
    """Statement text and the names of the parameters it binds."""

    sql: str
    params: frozenset[str]

    def __post_init__(self) -> None:
        if not self.sql:
            raise ValueError("sql must not be empty")
        if not self.params:
            raise ValueError("params must not be empty")
        object.__setattr__(self, "params", frozenset(self.params))


def result_label(pm: PropertyMapping) -> str:
    """Label a mapped column is selected under."""
    return to_underscore_name(pm.property_name)


def build_select_columns(mapping: TableMapping) -> str:
    """Column list aliasing each column whose name differs from its property."""
    parts = []
    for pm in mapping.property_mappings:
        label = result_label(pm)
        if label.lower() != pm.column_name.lower():
            parts.append(f"{pm.column_name} AS {label}")
        else:
            parts.append(pm.column_name)
    return ", ".join(parts)


def build_update(mapping: TableMapping, property_names: Iterable[str]) -> SqlAndParams:
    """UPDATE setting ``property_names``, guarded by the version when it is set."""
    params: set[str] = set()
    assignments = []
    version_pm: PropertyMapping | None = None
    for name in property_names:
        pm = mapping.get_property_mapping(name)
        if pm.is_version:
            assignments.append(f"{pm.column_name} = :{INCREMENTED_VERSION}")
            params.add(INCREMENTED_VERSION)
            version_pm = pm
        else:
            assignments.append(f"{pm.column_name} = :{pm.property_name}")
            params.add(pm.property_name)

    sql = (
        f"UPDATE {mapping.qualified_table_name} SET {', '.join(assignments)}"
        f" WHERE {mapping.id_column_name} = :{mapping.id_property_name}"
    )
    params.add(mapping.id_property_name)
    if version_pm is not None:
        sql += f" AND {version_pm.column_name} = :{version_pm.property_name}"
        params.add(version_pm.property_name)
    return SqlAndParams(sql, frozenset(params))


class SqlBuilder:
    """Generates and caches the statements of each record type.

    Args:
        update_properties_cache_capacity: Soft bound of the partial-update cache.
        cacheable_update_properties_count: Partial updates naming more
            properties than this are never cached.
    """

    def __init__(
        self,
        *,
        update_properties_cache_capacity: int = DEFAULT_UPDATE_PROPERTIES_CACHE_CAPACITY,
        cacheable_update_properties_count: int = DEFAULT_CACHEABLE_UPDATE_PROPERTIES_COUNT,
    ):
        self.select_columns_cache = MappingCache()
        self.find_by_id_cache = MappingCache()
        self.find_all_cache = MappingCache()
        self.insert_cache = MappingCache()
        self.update_cache = MappingCache()
        self.update_properties_cache = MappingCache(capacity=update_properties_cache_capacity)
        self.delete_cache = MappingCache()
        self.cacheable_update_properties_count = cacheable_update_properties_count

    def _generated(self, cache: MappingCache, key: object, value: object, kind: str, mapping: TableMapping):
        logger.debug("sql_generated", record_type=mapping.record_type.__name__, kind=kind)
        return cache.put(key, value)

    # ── Select ───────────────────────────────────────────────────

    def select_columns(self, mapping: TableMapping) -> str:
        cached = self.select_columns_cache.get(mapping.record_type)
        if cached is not None:
            return cached
        return self._generated(
            self.select_columns_cache, mapping.record_type, build_select_columns(mapping), "select_columns", mapping
        )

    def find_by_id(self, mapping: TableMapping) -> SqlAndParams:
        cached = self.find_by_id_cache.get(mapping.record_type)
        if cached is not None:
            return cached
        sql = (
            f"SELECT {self.select_columns(mapping)} FROM {mapping.qualified_table_name}"
            f" WHERE {mapping.id_column_name} = :{mapping.id_property_name}"
        )
        return self._generated(
            self.find_by_id_cache,
            mapping.record_type,
            SqlAndParams(sql, frozenset({mapping.id_property_name})),
            "find_by_id",
            mapping,
        )

    def find_all(self, mapping: TableMapping) -> str:
        cached = self.find_all_cache.get(mapping.record_type)
        if cached is not None:
            return cached
        sql = f"SELECT {self.select_columns(mapping)} FROM {mapping.qualified_table_name}"
        return self._generated(self.find_all_cache, mapping.record_type, sql, "find_all", mapping)

    # ── Insert ───────────────────────────────────────────────────

    def insert(self, mapping: TableMapping) -> InsertSpec:
        cached = self.insert_cache.get(mapping.record_type)
        if cached is not None:
            return cached
        columns = tuple(
            (pm.column_name, pm.effective_sql_type)
            for pm in mapping.property_mappings
            if not (pm.is_id and mapping.is_id_auto_generated)
        )
        spec = InsertSpec(
            table=mapping.table_name,
            schema=mapping.schema_name,
            catalog=mapping.catalog_name,
            columns=columns,
            generated_key_column=mapping.id_column_name if mapping.is_id_auto_generated else None,
        )
        return self._generated(self.insert_cache, mapping.record_type, spec, "insert", mapping)

    # ── Update ───────────────────────────────────────────────────

    def update(self, mapping: TableMapping) -> SqlAndParams:
        """Full update: every mapped property except id, created-on and created-by."""
        cached = self.update_cache.get(mapping.record_type)
        if cached is not None:
            return cached
        names = [
            pm.property_name
            for pm in mapping.property_mappings
            if not (pm.is_id or pm.is_created_on or pm.is_created_by)
        ]
        if not names:
            raise MapperError(
                f"{mapping.record_type.__name__} has no updatable properties"
            ).with_context(record_type=mapping.record_type.__name__, table=mapping.table_name)
        return self._generated(self.update_cache, mapping.record_type, build_update(mapping, names), "update", mapping)

    def update_properties(self, mapping: TableMapping, property_names: Iterable[str]) -> SqlAndParams:
        """Partial update of ``property_names`` plus updated-on, updated-by and version.

        Raises:
            MapperError: Empty request, unknown property, the id, or a
                system-managed property among ``property_names``.
        """
        requested = list(dict.fromkeys(property_names))
        record_name = mapping.record_type.__name__
        if not requested:
            raise MapperError(f"At least one property of {record_name} must be named for update")

        key = None
        if len(requested) <= self.cacheable_update_properties_count:
            key = (mapping.record_type, tuple(sorted(requested)))
            cached = self.update_properties_cache.get(key)
            if cached is not None:
                return cached

        for name in requested:
            pm = mapping.get_property_mapping(name)
            if pm is None:
                raise MapperError(
                    f"No mapping found for property '{name}' in class {record_name}"
                ).with_context(record_type=record_name, property_name=name)
            if pm.is_id:
                raise MapperError(
                    f"Id property {record_name}.{name} cannot be updated."
                ).with_context(record_type=record_name, property_name=name)
            if pm.is_auto_assign:
                raise MapperError(
                    f"Auto assign property {record_name}.{name} cannot be updated."
                ).with_context(record_type=record_name, property_name=name)

        wanted = set(requested)
        names = [pm.property_name for pm in mapping.property_mappings if pm.property_name in wanted]
        for auto in (
            mapping.updated_on_property_mapping,
            mapping.updated_by_property_mapping,
            mapping.version_property_mapping,
        ):
            if auto is not None:
                names.append(auto.property_name)

        sql_and_params = build_update(mapping, names)
        if key is None:
            logger.debug("sql_generated", record_type=record_name, kind="update_properties", cached=False)
            return sql_and_params
        return self._generated(self.update_properties_cache, key, sql_and_params, "update_properties", mapping)

    # ── Delete ───────────────────────────────────────────────────

    def delete(self, mapping: TableMapping) -> SqlAndParams:
        cached = self.delete_cache.get(mapping.record_type)
        if cached is not None:
            return cached
        sql = f"DELETE FROM {mapping.qualified_table_name} WHERE {mapping.id_column_name} = :{mapping.id_property_name}"
        return self._generated(
            self.delete_cache,
            mapping.record_type,
            SqlAndParams(sql, frozenset({mapping.id_property_name})),
            "delete",
            mapping,
        )

    def clear(self) -> None:
        for cache in (
            self.select_columns_cache,
            self.find_by_id_cache,
            self.find_all_cache,
            self.insert_cache,
            self.update_cache,
            self.update_properties_cache,
            self.delete_cache,
        ):
            cache.clear()


__all__ = [
    "INCREMENTED_VERSION",
    "SqlAndParams",
    "SqlBuilder",
    "build_select_columns",
    "build_update",
    "result_label",
]
