"""Database-family namespace conventions.

Provides a ``Dialect`` protocol and concrete implementations for every
database family tablemap knows about. A dialect decides which namespace
level a table lives in (schema, catalog, or both). It also turns a resolved
schema / catalog pair into the ``schema=`` argument of SQLAlchemy's
inspector and into the qualified name generated SQL uses, so reflection,
inserts and statements all address the same table.

Manifesto:
    Record declarations and mapper defaults speak of ``schema`` and
    ``catalog``, but databases disagree about what those words mean. MySQL
    calls its databases catalogs and has no schemas; Oracle has schemas and
    no catalogs; SQL Server uses both. Without a dialect layer the mapper
    would silently look for tables in the wrong place.

    - **One interface:** Dialect protocol for namespace handling
    - **Fail fast:** a namespace that cannot work raises before any SQL runs
    - **Auto-detection:** dialect_for_product() picks from the product name
    - **Open:** unknown products fall back to GenericDialect

Architecture::

    ┌──────────┐ ┌────────────┐ ┌────────────┐ ┌──────────┐ ┌──────────┐
    │ SQLite   │ │ PostgreSQL │ │ MySQL /    │ │  Oracle  │ │  MSSQL   │
    │ schema   │ │ schema     │ │ MariaDB    │ │  schema  │ │ catalog. │
    │ (attach) │ │            │ │ catalog    │ │  only    │ │ schema   │
    └──────────┘ └────────────┘ └────────────┘ └──────────┘ └──────────┘

Examples:
    >>> from tablemap.core.dialect import get_dialect
    >>> d = get_dialect("mysql")
    >>> d.inspector_schema(None, "sales")
    'sales'
    >>> d.validate_namespace("sales", None)  # raises NamespaceConventionError

Guardrails:
    ❌ DON'T: Set a schema for MySQL/MariaDB tables
    ✅ DO: Use the catalog attribute (the MySQL database name)

    ❌ DON'T: Set a catalog for Oracle tables
    ✅ DO: Use the schema attribute

Tags:
    dialect, namespace, schema, catalog, database, tablemap

Doc-Types:
    - API Reference
    - Database Portability Guide
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tablemap.core.errors import NamespaceConventionError


@runtime_checkable
class Dialect(Protocol):
    """Namespace contract for a database family."""

    @property
    def name(self) -> str:
        """Common family name (e.g. ``'mysql'``)."""
        ...

    def validate_namespace(self, schema: str | None, catalog: str | None) -> None:
        """Raise ``NamespaceConventionError`` if the pair cannot address a table."""
        ...

    def inspector_schema(self, schema: str | None, catalog: str | None) -> str | None:
        """The ``schema=`` argument SQLAlchemy's inspector expects."""
        ...

    def qualify(self, schema: str | None, catalog: str | None, table: str) -> str:
        """Table name as written in generated SQL."""
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


def _qualify(dialect: Dialect, schema: str | None, catalog: str | None, table: str) -> str:
    namespace = dialect.inspector_schema(schema, catalog)
    return f"{namespace}.{table}" if namespace else table


class GenericDialect:
    """Fallback for unrecognised products: no restrictions, schema preferred."""

    @property
    def name(self) -> str:
        return "generic"

    def validate_namespace(self, schema: str | None, catalog: str | None) -> None:  # noqa: ARG002
        return None

    def inspector_schema(self, schema: str | None, catalog: str | None) -> str | None:
        return schema or catalog

    def qualify(self, schema: str | None, catalog: str | None, table: str) -> str:
        return _qualify(self, schema, catalog, table)


class SQLiteDialect(GenericDialect):
    """SQLite: the schema is the name of an attached database."""

    @property
    def name(self) -> str:
        return "sqlite"


class PostgreSQLDialect(GenericDialect):
    """PostgreSQL: tables live in schemas; the catalog is the connected database."""

    @property
    def name(self) -> str:
        return "postgresql"

    def inspector_schema(self, schema: str | None, catalog: str | None) -> str | None:  # noqa: ARG002
        return schema


class DB2Dialect(GenericDialect):
    """IBM DB2: schema qualified, catalog ignored."""

    @property
    def name(self) -> str:
        return "db2"

    def inspector_schema(self, schema: str | None, catalog: str | None) -> str | None:  # noqa: ARG002
        return schema


class MySQLDialect:
    """MySQL / MariaDB: the catalog is the database, schemas do not exist."""

    def __init__(self, name: str = "mysql"):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def validate_namespace(self, schema: str | None, catalog: str | None) -> None:  # noqa: ARG002
        if schema:
            raise NamespaceConventionError(
                f"{self._name}: When creating TableMapper() if you are using 'schema_name' use "
                "'catalog_name' instead. If you are using the @table decorator use the 'catalog' "
                "argument instead of 'schema'"
            ).with_context(schema=schema)

    def inspector_schema(self, schema: str | None, catalog: str | None) -> str | None:  # noqa: ARG002
        return catalog

    def qualify(self, schema: str | None, catalog: str | None, table: str) -> str:
        return _qualify(self, schema, catalog, table)


class OracleDialect:
    """Oracle: schema (owner) qualified, catalogs are not supported."""

    @property
    def name(self) -> str:
        return "oracle"

    def validate_namespace(self, schema: str | None, catalog: str | None) -> None:  # noqa: ARG002
        if catalog:
            raise NamespaceConventionError(
                "oracle: When creating TableMapper() if you are using 'catalog_name' use "
                "'schema_name' instead. If you are using the @table decorator use the 'schema' "
                "argument instead of 'catalog'"
            ).with_context(catalog=catalog)

    def inspector_schema(self, schema: str | None, catalog: str | None) -> str | None:  # noqa: ARG002
        return schema

    def qualify(self, schema: str | None, catalog: str | None, table: str) -> str:
        return _qualify(self, schema, catalog, table)


class MSSQLDialect(GenericDialect):
    """SQL Server: ``database.owner`` multi-part names."""

    @property
    def name(self) -> str:
        return "mssql"

    def inspector_schema(self, schema: str | None, catalog: str | None) -> str | None:
        if schema and catalog:
            return f"{catalog}.{schema}"
        return schema or catalog


# =========================================================================
# Factory
# =========================================================================

_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "db2": DB2Dialect(),
    "ibm_db_sa": DB2Dialect(),  # alias
    "mysql": MySQLDialect(),
    "mariadb": MySQLDialect("mariadb"),
    "oracle": OracleDialect(),
    "mssql": MSSQLDialect(),
    "microsoft sql server": MSSQLDialect(),  # alias
}

_GENERIC = GenericDialect()


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database family name.

    Args:
        db_type: One of ``'sqlite'``, ``'postgresql'``, ``'postgres'``,
                 ``'db2'``, ``'mysql'``, ``'mariadb'``, ``'oracle'``,
                 ``'mssql'``.

    Raises:
        ValueError: If ``db_type`` is not recognised.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(f"Unknown dialect '{db_type}'. Supported: {sorted(_DIALECTS)}")
    return _DIALECTS[key]


def dialect_for_product(product_name: str | None) -> Dialect:
    """Resolve a dialect from a database product name.

    Accepts SQLAlchemy dialect names (``engine.dialect.name``) and the
    vendor product strings drivers report (``'DB2/LINUXX8664'``,
    ``'Microsoft SQL Server'``). Unknown products get :class:`GenericDialect`.
    """
    if not product_name:
        return _GENERIC
    key = product_name.strip().lower()
    if key.startswith("db2"):
        key = "db2"
    return _DIALECTS.get(key, _GENERIC)


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation.

    Args:
        name: Lookup key (lower-cased automatically).
        dialect: Instance implementing :class:`Dialect`.
    """
    _DIALECTS[name.lower()] = dialect


__all__ = [
    # Protocol
    "Dialect",
    # Implementations
    "GenericDialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "DB2Dialect",
    "MySQLDialect",
    "OracleDialect",
    "MSSQLDialect",
    # Factory
    "get_dialect",
    "dialect_for_product",
    "register_dialect",
]
