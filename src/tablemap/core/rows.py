"""Result rows → record instances.

A row key is matched against each mapped property by its underscore form
(the label the select list uses) and by the property name itself, both
case-insensitively. Keys matching no property are ignored.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from tablemap.core.errors import MapperError
from tablemap.core.mapping import PropertyMapping, TableMapping
from tablemap.core.sql import result_label


def label_index(mapping: TableMapping) -> dict[str, PropertyMapping]:
    index: dict[str, PropertyMapping] = {}
    for pm in mapping.property_mappings:
        index.setdefault(pm.property_name.lower(), pm)
        index.setdefault(result_label(pm).lower(), pm)
    return index


def new_instance(record_type: type) -> Any:
    try:
        return record_type()
    except TypeError as exc:
        raise MapperError(
            f"{record_type.__name__} must be constructible without arguments to be loaded from a row",
            cause=exc,
        ).with_context(record_type=record_type.__name__)


def to_record(
    mapping: TableMapping,
    row: Mapping[str, Any],
    index: Mapping[str, PropertyMapping] | None = None,
) -> Any:
    """Build one record of ``mapping.record_type`` from ``row``."""
    if index is None:
        index = label_index(mapping)
    obj = new_instance(mapping.record_type)
    for key, value in row.items():
        pm = index.get(key.lower())
        if pm is not None:
            mapping.set_value(obj, pm.property_name, value)
    return obj


def to_records(mapping: TableMapping, rows: Iterable[Mapping[str, Any]]) -> list[Any]:
    index = label_index(mapping)
    return [to_record(mapping, row, index) for row in rows]


__all__ = ["label_index", "new_instance", "to_record", "to_records"]
