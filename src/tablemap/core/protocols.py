"""
Boundary protocols for tablemap.

The mapper core never talks to a database driver directly. It reads table
metadata through a ``CatalogProvider`` and runs statements through a
``SqlExecutor``. The SQLAlchemy-backed implementations live in
:mod:`tablemap.core.catalog` and :mod:`tablemap.core.executor`; tests and
embedding applications may supply any object matching these shapes.

Manifesto:
    Protocols define contracts without inheritance. They enable:
    - **Decoupling:** The mapper depends on shape, not implementation
    - **Testability:** A fake catalog or executor is a few lines of code
    - **Portability:** Same mapper on any database SQLAlchemy can reach

Architecture:
    ::

        protocols.py
        ├── CatalogProvider  — column metadata of one table
        └── SqlExecutor      — product name, query, update, insert

    Consumers:
        builder.py (CatalogProvider, SqlExecutor.database_product_name),
        mapper.py (SqlExecutor)

Guardrails:
    ❌ DON'T: Raise from ``columns_of`` when the table does not exist
    ✅ DO: Return an empty list; the builder turns it into TableNotFoundError

    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts, implementations go in adapters

Tags:
    protocol, catalog, executor, database, tablemap, contracts

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tablemap.core.catalog import ColumnInfo
    from tablemap.core.executor import InsertSpec
    from tablemap.core.types import SqlParameter, SqlType


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@runtime_checkable
class CatalogProvider(Protocol):
    """Source of table column metadata."""

    def columns_of(self, schema: str | None, catalog: str | None, table: str) -> list[ColumnInfo]:
        """Columns of ``table`` in the given namespace.

        Column names are returned lower-cased. An empty list means the table
        could not be located.
        """
        ...


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@runtime_checkable
class SqlExecutor(Protocol):
    """Runs the statements the mapper generates.

    Parameters are named (``:name`` placeholders) and each value carries
    the ``SqlType`` it must be bound as.
    """

    def database_product_name(self) -> str:
        """Product name of the connected database (e.g. ``'postgresql'``)."""
        ...

    def query(
        self,
        sql: str,
        params: Mapping[str, SqlParameter],
        result_types: Mapping[str, SqlType],
    ) -> list[dict[str, Any]]:
        """Run a SELECT and return each row as ``{label: value}``.

        ``result_types`` lists the result labels in select order with the
        type each must be read as.
        """
        ...

    def update(self, sql: str, params: Mapping[str, SqlParameter]) -> int:
        """Run an UPDATE or DELETE and return the affected row count."""
        ...

    def insert(self, spec: InsertSpec, values: Mapping[str, SqlParameter]) -> Any | None:
        """Insert one row.

        ``values`` is keyed by column name. Returns the generated key when
        ``spec.generated_key_column`` is set, else ``None``.
        """
        ...


__all__ = ["CatalogProvider", "SqlExecutor"]
