"""Reflection over record types: declared fields and their markers.

``describe(cls)`` walks the MRO (subclass first), reads each class's own
annotations, resolves them with ``typing.get_type_hints(include_extras=True)``
and keeps the fields that carry at least one marker. A field redeclared in a
subclass shadows the parent's declaration.
"""

from __future__ import annotations

import inspect
import types
import typing
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Union

from tablemap.core.errors import AnnotationError
from tablemap.core.markers import (
    Id,
    Marker,
    TableDeclaration,
    TimezoneAware,
    as_marker,
    get_table_declaration,
)
from tablemap.core.utils import is_blank

_NONE_TYPE = type(None)


@dataclass(frozen=True)
class FieldDescriptor:
    """One declared field carrying markers."""

    name: str
    declared_type: Any
    nullable: bool
    markers: tuple[Marker, ...]
    declared_in: type
    timezone_aware: bool = False

    def marker(self, kind: type[Marker]) -> Marker | None:
        for m in self.markers:
            if isinstance(m, kind):
                return m
        return None

    def has(self, kind: type[Marker]) -> bool:
        return self.marker(kind) is not None


@dataclass(frozen=True)
class ClassDescriptor:
    """The table declaration and mapped fields of a record type."""

    record_type: type
    table: TableDeclaration
    fields: tuple[FieldDescriptor, ...]
    id_field: FieldDescriptor

    def field(self, name: str) -> FieldDescriptor | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


def _is_union(hint: Any) -> bool:
    origin = typing.get_origin(hint)
    return origin is Union or origin is types.UnionType


def _split_annotated(hint: Any) -> tuple[Any, list[Any]]:
    """Strip ``Annotated`` wrappers, returning the bare type and all metadata.

    Metadata nested inside an optional member (``Annotated[X, m] | None``) is
    collected too.
    """
    metadata: list[Any] = []
    if typing.get_origin(hint) is Annotated:
        args = typing.get_args(hint)
        hint = args[0]
        metadata.extend(args[1:])
    if _is_union(hint):
        members = []
        for arg in typing.get_args(hint):
            bare, inner = _split_annotated(arg)
            members.append(bare)
            metadata.extend(inner)
        hint = Union[tuple(members)]  # noqa: UP007
    return hint, metadata


def _nullable(hint: Any) -> tuple[bool, Any]:
    """Whether ``hint`` admits ``None``, and the type with ``None`` removed."""
    if hint is Any or hint is _NONE_TYPE or hint is None:
        return True, hint
    if _is_union(hint):
        members = [a for a in typing.get_args(hint) if a is not _NONE_TYPE]
        nullable = len(members) != len(typing.get_args(hint))
        if len(members) == 1:
            return nullable, members[0]
        return nullable, Union[tuple(members)]  # noqa: UP007
    return False, hint


def _resolve_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except (NameError, TypeError) as exc:
        raise AnnotationError(
            f"Unable to resolve type annotations of {cls.__name__}: {exc}", cause=exc
        ).with_context(record_type=cls.__name__)


def describe(cls: type) -> ClassDescriptor:
    """Build the ``ClassDescriptor`` of ``cls``.

    Raises:
        AnnotationError: no ``@table`` declaration, blank table name, no ``Id``
            marker, or an id field whose type does not accept ``None``.
    """
    declaration = get_table_declaration(cls)
    if declaration is None:
        raise AnnotationError(
            f"{cls.__name__} does not have the @table decorator. It is required"
        ).with_context(record_type=cls.__name__)
    if is_blank(declaration.name):
        raise AnnotationError(
            f"For {cls.__name__} the @table decorator has a blank name"
        ).with_context(record_type=cls.__name__)

    hints = _resolve_hints(cls)
    seen: set[str] = set()
    fields: list[FieldDescriptor] = []
    for klass in cls.__mro__:
        if klass is object:
            continue
        for name in inspect.get_annotations(klass):
            if name in seen:
                continue
            seen.add(name)
            hint = hints.get(name)
            if hint is None or typing.get_origin(hint) is ClassVar:
                continue
            bare, metadata = _split_annotated(hint)
            markers = tuple(m for m in (as_marker(v) for v in metadata) if m is not None)
            if not markers:
                continue
            nullable, declared_type = _nullable(bare)
            fields.append(
                FieldDescriptor(
                    name=name,
                    declared_type=declared_type,
                    nullable=nullable,
                    markers=markers,
                    declared_in=klass,
                    timezone_aware=any(isinstance(v, TimezoneAware) for v in metadata),
                )
            )

    id_field = next((f for f in fields if f.has(Id)), None)
    if id_field is None:
        raise AnnotationError(
            f"@Id marker not found in class {cls.__name__}. It is required"
        ).with_context(record_type=cls.__name__)
    if not id_field.nullable:
        raise AnnotationError(
            f"{cls.__name__}.{id_field.name} is an id and its type must accept None "
            f"(declare it as '{getattr(id_field.declared_type, '__name__', id_field.declared_type)} | None')"
        ).with_context(record_type=cls.__name__, property_name=id_field.name)

    return ClassDescriptor(record_type=cls, table=declaration, fields=tuple(fields), id_field=id_field)


__all__ = ["FieldDescriptor", "ClassDescriptor", "describe"]
