"""Immutable mapping model: record type ↔ table.

A ``TableMapping`` is built once per record type by the builder and shared
by every thread afterwards. It also carries the accessor table used to read
and write record values without repeating reflective lookups.
"""

from __future__ import annotations

import operator
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from tablemap.core.markers import IdType
from tablemap.core.types import SqlType
from tablemap.core.utils import is_blank

ROLE_FLAGS = ("is_id", "is_version", "is_created_on", "is_created_by", "is_updated_on", "is_updated_by")


@dataclass(frozen=True)
class PropertyMapping:
    """One mapped field of a record type."""

    property_name: str
    property_type: Any
    column_name: str
    column_sql_type: SqlType
    overridden_sql_type: SqlType | None = None
    is_id: bool = False
    is_version: bool = False
    is_created_on: bool = False
    is_created_by: bool = False
    is_updated_on: bool = False
    is_updated_by: bool = False

    def __post_init__(self) -> None:
        if is_blank(self.column_name):
            raise ValueError(f"column name of property {self.property_name} must not be blank")
        object.__setattr__(self, "column_name", self.column_name.lower())
        if self.role_count() > 1:
            raise ValueError(f"property {self.property_name} has more than one role: {self.roles()}")

    @property
    def effective_sql_type(self) -> SqlType:
        """Overridden type code when present, else the catalog's."""
        return self.overridden_sql_type or self.column_sql_type

    @property
    def is_auto_assign(self) -> bool:
        return (
            self.is_version
            or self.is_created_on
            or self.is_created_by
            or self.is_updated_on
            or self.is_updated_by
        )

    def roles(self) -> list[str]:
        return [flag for flag in ROLE_FLAGS if getattr(self, flag)]

    def role_count(self) -> int:
        return len(self.roles())


@dataclass(frozen=True)
class IdPropertyInfo:
    """The id property of a record type."""

    record_type: type
    property_name: str
    property_type: Any
    id_type: IdType = IdType.MANUAL

    @property
    def is_auto_generated(self) -> bool:
        return self.id_type is IdType.AUTO_GENERATED


@dataclass(frozen=True)
class PropertyAccessor:
    """Getter / setter pair for one property."""

    getter: Callable[[Any], Any]
    setter: Callable[[Any, Any], None]


def _accessor_for(name: str) -> PropertyAccessor:
    def setter(obj: Any, value: Any) -> None:
        setattr(obj, name, value)

    return PropertyAccessor(getter=operator.attrgetter(name), setter=setter)


@dataclass(frozen=True)
class TableMapping:
    """Complete mapping of a record type to its table.

    ``property_mappings`` keeps declaration order, so every statement built
    from a mapping lists its columns in the same order.
    ``qualified_table_name`` is the table as generated SQL names it; the
    builder sets it from the database dialect.
    """

    record_type: type
    table_name: str
    schema_name: str | None
    catalog_name: str | None
    id_info: IdPropertyInfo
    property_mappings: tuple[PropertyMapping, ...]
    qualified_table_name: str | None = None
    _by_property: dict[str, PropertyMapping] = field(init=False, repr=False, compare=False)
    _by_column: dict[str, PropertyMapping] = field(init=False, repr=False, compare=False)
    _accessors: dict[str, PropertyAccessor] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if is_blank(self.table_name):
            raise ValueError("table name must not be blank")
        object.__setattr__(self, "property_mappings", tuple(self.property_mappings))
        if self.qualified_table_name is None:
            namespace = self.schema_name or self.catalog_name
            qualified = f"{namespace}.{self.table_name}" if namespace else self.table_name
            object.__setattr__(self, "qualified_table_name", qualified)
        object.__setattr__(self, "_by_property", {pm.property_name: pm for pm in self.property_mappings})
        object.__setattr__(self, "_by_column", {pm.column_name: pm for pm in self.property_mappings})
        object.__setattr__(
            self, "_accessors", {pm.property_name: _accessor_for(pm.property_name) for pm in self.property_mappings}
        )
        if self.id_info.property_name not in self._by_property:
            raise ValueError(f"id property {self.id_info.property_name} is not mapped")

    # ── Lookups ──────────────────────────────────────────────────

    def get_property_mapping(self, property_name: str) -> PropertyMapping | None:
        return self._by_property.get(property_name)

    def get_property_mapping_by_column(self, column_name: str) -> PropertyMapping | None:
        return self._by_column.get(column_name.lower())

    def get_column_type(self, property_name: str) -> SqlType | None:
        pm = self._by_property.get(property_name)
        return pm.column_sql_type if pm else None

    def get_overridden_column_type(self, property_name: str) -> SqlType | None:
        pm = self._by_property.get(property_name)
        return pm.overridden_sql_type if pm else None

    def get_effective_column_type(self, property_name: str) -> SqlType | None:
        pm = self._by_property.get(property_name)
        return pm.effective_sql_type if pm else None

    @property
    def column_names(self) -> list[str]:
        return [pm.column_name for pm in self.property_mappings]

    # ── Id ───────────────────────────────────────────────────────

    @property
    def id_property_name(self) -> str:
        return self.id_info.property_name

    @property
    def id_property_mapping(self) -> PropertyMapping:
        return self._by_property[self.id_info.property_name]

    @property
    def id_column_name(self) -> str:
        return self.id_property_mapping.column_name

    @property
    def id_column_type(self) -> SqlType:
        return self.id_property_mapping.effective_sql_type

    @property
    def is_id_auto_generated(self) -> bool:
        return self.id_info.is_auto_generated

    # ── Roles ────────────────────────────────────────────────────

    def _role(self, flag: str) -> PropertyMapping | None:
        return next((pm for pm in self.property_mappings if getattr(pm, flag)), None)

    @property
    def version_property_mapping(self) -> PropertyMapping | None:
        return self._role("is_version")

    @property
    def created_on_property_mapping(self) -> PropertyMapping | None:
        return self._role("is_created_on")

    @property
    def created_by_property_mapping(self) -> PropertyMapping | None:
        return self._role("is_created_by")

    @property
    def updated_on_property_mapping(self) -> PropertyMapping | None:
        return self._role("is_updated_on")

    @property
    def updated_by_property_mapping(self) -> PropertyMapping | None:
        return self._role("is_updated_by")

    @property
    def has_auto_assign_properties(self) -> bool:
        return any(pm.is_auto_assign for pm in self.property_mappings)

    # ── Values ───────────────────────────────────────────────────

    def get_value(self, obj: Any, property_name: str) -> Any:
        return self._accessors[property_name].getter(obj)

    def set_value(self, obj: Any, property_name: str, value: Any) -> None:
        self._accessors[property_name].setter(obj, value)


__all__ = [
    "ROLE_FLAGS",
    "PropertyMapping",
    "IdPropertyInfo",
    "PropertyAccessor",
    "TableMapping",
]
