"""
Declarative markers for mapped record types.

A record type is a plain class (normally a dataclass) decorated with
``@table`` whose mapped fields carry one or more markers in their
``typing.Annotated`` metadata. Fields without markers are not mapped.

Examples:
    >>> from dataclasses import dataclass
    >>> from datetime import datetime
    >>> from typing import Annotated
    >>>
    >>> @table("orders")
    ... @dataclass
    ... class Order:
    ...     id: Annotated[int | None, Id(type=IdType.AUTO_GENERATED)] = None
    ...     orderDate: Annotated[datetime | None, Column()] = None
    ...     status: Annotated[str | None, Column("order_status")] = None
    ...     version: Annotated[int | None, Version()] = None
    ...     created_on: Annotated[datetime | None, CreatedOn()] = None
    ...     notes: str | None = None  # not mapped

Markers:
    - ``Id(type=IdType.MANUAL | IdType.AUTO_GENERATED)``: primary key, exactly one
    - ``Column(name=None, sql_type=None)``: column name and bind-type overrides
    - ``Version()``: optimistic-lock counter, must be an ``int``
    - ``CreatedOn()`` / ``UpdatedOn()``: filled from the audited-on supplier
    - ``CreatedBy()`` / ``UpdatedBy()``: filled from the audited-by supplier

Tags:
    markers, annotations, declarative, tablemap

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from tablemap.core.types import SqlType

TABLE_ATTRIBUTE = "__tablemap_table__"


class IdType(str, Enum):
    """How the id value of a new record is obtained."""

    MANUAL = "MANUAL"
    AUTO_GENERATED = "AUTO_GENERATED"


@dataclass(frozen=True)
class TableDeclaration:
    """Table name and optional namespace declared by ``@table``."""

    name: str
    schema: str | None = None
    catalog: str | None = None


def table(name: str, *, schema: str | None = None, catalog: str | None = None):
    """Class decorator binding a record type to a table.

    Subclasses inherit the declaration unless they are decorated themselves.

    Args:
        name: Table name (required, non-blank).
        schema: Schema the table lives in. Blank → mapper default.
        catalog: Catalog the table lives in. Blank → mapper default.
    """

    def decorator(cls: type) -> type:
        setattr(cls, TABLE_ATTRIBUTE, TableDeclaration(name=name, schema=schema, catalog=catalog))
        return cls

    return decorator


def get_table_declaration(cls: type) -> TableDeclaration | None:
    """Return the ``@table`` declaration visible on ``cls``, if any."""
    return getattr(cls, TABLE_ATTRIBUTE, None)


# ── Field markers ────────────────────────────────────────────────


class Marker:
    """Base class for field markers that make a field mapped."""

    __slots__ = ()

    @property
    def label(self) -> str:
        return f"@{type(self).__name__}"


@dataclass(frozen=True)
class Id(Marker):
    type: IdType = IdType.MANUAL


@dataclass(frozen=True)
class Column(Marker):
    name: str | None = None
    sql_type: SqlType | None = None


@dataclass(frozen=True)
class Version(Marker):
    pass


@dataclass(frozen=True)
class CreatedOn(Marker):
    pass


@dataclass(frozen=True)
class CreatedBy(Marker):
    pass


@dataclass(frozen=True)
class UpdatedOn(Marker):
    pass


@dataclass(frozen=True)
class UpdatedBy(Marker):
    pass


ROLE_MARKERS: tuple[type[Marker], ...] = (Id, Version, CreatedOn, CreatedBy, UpdatedOn, UpdatedBy)


# ── Type hints ───────────────────────────────────────────────────


@dataclass(frozen=True)
class TimezoneAware:
    """Annotated metadata flagging a ``datetime`` that always carries an offset.

    Not a marker on its own: it does not make a field mapped.
    """


OffsetDateTime = Annotated[datetime, TimezoneAware()]


def as_marker(value: Any) -> Marker | None:
    """Normalize ``Annotated`` metadata to a marker instance.

    Accepts marker instances and bare marker classes (``Version`` as well as
    ``Version()``); everything else returns ``None``.
    """
    if isinstance(value, Marker):
        return value
    if isinstance(value, type) and issubclass(value, Marker) and value is not Marker:
        return value()
    return None


__all__ = [
    "IdType",
    "TableDeclaration",
    "table",
    "get_table_declaration",
    "Marker",
    "Id",
    "Column",
    "Version",
    "CreatedOn",
    "CreatedBy",
    "UpdatedOn",
    "UpdatedBy",
    "ROLE_MARKERS",
    "TimezoneAware",
    "OffsetDateTime",
    "as_marker",
]
