"""Helpers shared by the mapper and useful to its callers.

Name conversion and blank checks are used internally. The merge helpers
stitch together results of separate single-table queries (e.g. orders and
their customers) since tablemap itself never issues joins. ``chunk_list``
splits long id lists for ``IN`` clauses on databases that cap their size.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, TypeVar

from tablemap.core.errors import MapperError

T = TypeVar("T")


def to_underscore_name(name: str | None) -> str:
    """Convert camel case to underscore case.

    ``userLastName`` becomes ``user_last_name``. Each upper-case character
    after the first becomes ``_`` followed by its lower-case form.
    """
    if not name:
        return ""
    result = [name[0].lower()]
    for ch in name[1:]:
        if ch.isupper():
            result.append("_")
            result.append(ch.lower())
        else:
            result.append(ch)
    return "".join(result)


def is_blank(value: str | None) -> bool:
    """True for ``None``, the empty string and whitespace-only strings."""
    return value is None or not value.strip()


def is_not_blank(value: str | None) -> bool:
    return not is_blank(value)


def _unique(items: Iterable[Any]) -> list[Any]:
    # Records are usually unhashable dataclasses; de-duplicate by identity.
    seen: set[int] = set()
    result = []
    for item in items:
        if item is None or id(item) in seen:
            continue
        seen.add(id(item))
        result.append(item)
    return result


def _require_attribute(obj: Any, name: str) -> None:
    if not name:
        raise ValueError("property name must not be empty")
    if not hasattr(obj, name):
        raise MapperError(f"{name} not found in {type(obj).__name__}")


def merge_has_one(
    parents: Sequence[Any] | None,
    children: Sequence[Any] | None,
    parent_join_property: str,
    child_join_property: str,
    parent_property_to_populate: str,
) -> None:
    """Populate each parent's has-one property with its matching child.

    A parent whose join value has no matching child gets ``None``.

    Example:
        orders = mapper.find_all(Order)
        customers = mapper.find_all(Customer)
        merge_has_one(orders, customers, "customer_id", "id", "customer")

    Raises:
        MapperError: If a named property does not exist on the first
            parent / child.
    """
    parent_items = _unique(parents or ())
    child_items = _unique(children or ())
    if not parent_items or not child_items:
        return
    _require_attribute(parent_items[0], parent_join_property)
    _require_attribute(parent_items[0], parent_property_to_populate)
    _require_attribute(child_items[0], child_join_property)

    by_key = {getattr(child, child_join_property): child for child in child_items}
    for parent in parent_items:
        setattr(parent, parent_property_to_populate, by_key.get(getattr(parent, parent_join_property)))


def merge_has_many(
    parents: Sequence[Any] | None,
    children: Sequence[Any] | None,
    parent_join_property: str,
    child_join_property: str,
    parent_property_to_populate: str,
) -> None:
    """Populate each parent's has-many list with its matching children.

    Children keep their input order. A parent with no children gets ``None``.

    Example:
        orders = mapper.find_all(Order)
        lines = mapper.find_all(OrderLine)
        merge_has_many(orders, lines, "id", "order_id", "order_lines")

    Raises:
        MapperError: If a named property does not exist, or the parent's
            current value of the has-many property is not a list or ``None``.
    """
    parent_items = _unique(parents or ())
    child_items = _unique(children or ())
    if not parent_items or not child_items:
        return
    _require_attribute(parent_items[0], parent_join_property)
    _require_attribute(child_items[0], child_join_property)
    _require_attribute(parent_items[0], parent_property_to_populate)
    current = getattr(parent_items[0], parent_property_to_populate)
    if current is not None and not isinstance(current, list):
        raise MapperError(
            f"property {type(parent_items[0]).__name__}.{parent_property_to_populate} is not a list. "
            "Merge for has-many requires it to be a list"
        )

    grouped: dict[Any, list[Any]] = {}
    for child in child_items:
        grouped.setdefault(getattr(child, child_join_property), []).append(child)
    for parent in parent_items:
        setattr(parent, parent_property_to_populate, grouped.get(getattr(parent, parent_join_property)))


def chunk_list(items: Sequence[T] | None, chunk_size: int) -> list[list[T]]:
    """Split ``items`` into consecutive lists of at most ``chunk_size``.

    >>> chunk_list([1, 2, 3, 4, 5], 2)
    [[1, 2], [3, 4], [5]]
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
    if not items:
        return []
    return [list(items[i : i + chunk_size]) for i in range(0, len(items), chunk_size)]


__all__ = [
    "to_underscore_name",
    "is_blank",
    "is_not_blank",
    "merge_has_one",
    "merge_has_many",
    "chunk_list",
]
