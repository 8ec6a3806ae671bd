"""SQLAlchemy-backed statement execution.

``SqlAlchemyExecutor`` runs the text the SQL builder generates through
``sqlalchemy.text()`` with explicitly typed bind parameters. Inserts are
built as a lightweight ``sqlalchemy.table()`` insert so generated keys can
come back through ``RETURNING`` where the dialect supports it and through
``cursor.lastrowid`` elsewhere.

Transactions:
    - Given an ``Engine``, each call runs in its own transaction
      (``engine.begin()``) and commits on return.
    - Given a ``Connection``, statements run on it directly and the caller
      owns the transaction.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine

from tablemap.core.dialect import dialect_for_product
from tablemap.core.logging import get_logger
from tablemap.core.types import SqlParameter, SqlType, to_sqlalchemy_type

logger = get_logger(__name__)


@dataclass(frozen=True)
class InsertSpec:
    """Everything needed to insert a row of one record type.

    Attributes:
        table: Table name.
        schema: Resolved schema.
        catalog: Resolved catalog.
        columns: ``(column_name, sql_type)`` pairs in declaration order,
            excluding a database-generated id.
        generated_key_column: Column of the generated id, if any.
    """

    table: str
    schema: str | None
    catalog: str | None
    columns: tuple[tuple[str, SqlType], ...]
    generated_key_column: str | None = None

    @property
    def column_names(self) -> list[str]:
        return [name for name, _ in self.columns]


class SqlAlchemyExecutor:
    """``SqlExecutor`` over a SQLAlchemy ``Engine`` or ``Connection``.

    Example:
        engine = sa.create_engine("postgresql+psycopg://app@db/sales")
        executor = SqlAlchemyExecutor(engine)
        executor.update("DELETE FROM orders WHERE id = :id", {"id": SqlParameter(7, SqlType.INTEGER)})
    """

    def __init__(self, bind: Engine | Connection):
        self._bind = bind
        self._dialect = dialect_for_product(bind.dialect.name)

    @property
    def bind(self) -> Engine | Connection:
        return self._bind

    @contextmanager
    def _connection(self, *, write: bool) -> Iterator[Connection]:
        if isinstance(self._bind, Connection):
            yield self._bind
        elif write:
            with self._bind.begin() as conn:
                yield conn
        else:
            with self._bind.connect() as conn:
                yield conn

    @staticmethod
    def _text(sql: str, params: Mapping[str, SqlParameter]) -> sa.TextClause:
        stmt = sa.text(sql)
        if params:
            stmt = stmt.bindparams(
                *(sa.bindparam(name, p.value, type_=p.bind_type()) for name, p in params.items())
            )
        return stmt

    def database_product_name(self) -> str:
        return self._bind.dialect.name

    def query(
        self,
        sql: str,
        params: Mapping[str, SqlParameter],
        result_types: Mapping[str, SqlType],
    ) -> list[dict[str, Any]]:
        stmt: Any = self._text(sql, params)
        if result_types:
            stmt = stmt.columns(
                *(sa.column(label, to_sqlalchemy_type(sql_type)) for label, sql_type in result_types.items())
            )
        with self._connection(write=False) as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    def update(self, sql: str, params: Mapping[str, SqlParameter]) -> int:
        with self._connection(write=True) as conn:
            result = conn.execute(self._text(sql, params))
            return result.rowcount

    def insert(self, spec: InsertSpec, values: Mapping[str, SqlParameter]) -> Any | None:
        columns = [sa.column(name, to_sqlalchemy_type(sql_type)) for name, sql_type in spec.columns]
        if spec.generated_key_column:
            columns.append(sa.column(spec.generated_key_column))
        table = sa.table(
            spec.table,
            *columns,
            schema=self._dialect.inspector_schema(spec.schema, spec.catalog),
        )
        stmt = sa.insert(table)
        if spec.columns:
            stmt = stmt.values({name: values[name].value for name in spec.column_names})

        use_returning = bool(spec.generated_key_column) and self._bind.dialect.insert_returning
        if use_returning:
            stmt = stmt.returning(table.c[spec.generated_key_column])

        with self._connection(write=True) as conn:
            result = conn.execute(stmt)
            if not spec.generated_key_column:
                return None
            if use_returning:
                return result.scalar_one()
            return result.lastrowid


__all__ = ["InsertSpec", "SqlAlchemyExecutor"]
