"""SQLAlchemy-backed table metadata.

``SqlAlchemyCatalog`` answers ``columns_of`` through ``sqlalchemy.inspect``.
A fresh inspector is used per call so tables created after the catalog was
constructed are visible; the builder caches the resulting mapping anyway.
"""

from __future__ import annotations

from dataclasses import dataclass

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, NoSuchTableError

from tablemap.core.dialect import dialect_for_product
from tablemap.core.errors import ErrorCategory, TableMapError
from tablemap.core.logging import get_logger
from tablemap.core.types import SqlType, from_sqlalchemy_type

logger = get_logger(__name__)


@dataclass(frozen=True)
class ColumnInfo:
    """One column as reported by the catalog."""

    name: str
    sql_type: SqlType
    nullable: bool = True
    type_name: str | None = None


class SqlAlchemyCatalog:
    """``CatalogProvider`` reading column metadata via SQLAlchemy reflection.

    Args:
        bind: Engine or Connection to reflect through.
    """

    def __init__(self, bind: Engine | Connection):
        self._bind = bind
        self._dialect = dialect_for_product(bind.dialect.name)

    def columns_of(self, schema: str | None, catalog: str | None, table: str) -> list[ColumnInfo]:
        target_schema = self._dialect.inspector_schema(schema, catalog)
        try:
            reflected = sa.inspect(self._bind).get_columns(table, schema=target_schema)
        except NoSuchTableError:
            return []
        except DBAPIError as exc:
            raise TableMapError(
                f"Failed to read column metadata for table '{table}': {exc}",
                category=ErrorCategory.DATABASE,
                cause=exc,
            ).with_context(table=table, schema=schema, catalog=catalog)

        columns = [
            ColumnInfo(
                name=col["name"].lower(),
                sql_type=from_sqlalchemy_type(col["type"]),
                nullable=bool(col.get("nullable", True)),
                type_name=type(col["type"]).__name__,
            )
            for col in reflected
        ]
        logger.debug("columns_reflected", table=table, schema=target_schema, count=len(columns))
        return columns


__all__ = ["ColumnInfo", "SqlAlchemyCatalog"]
