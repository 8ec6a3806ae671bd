"""SQL type codes and typed bind parameters.

``SqlType`` is the database-neutral code a column carries in a
``PropertyMapping``. The catalog adapter derives it from the reflected
SQLAlchemy column type, a ``Column(sql_type=...)`` marker or the
type-override table can replace it, and the executor turns it back into a
SQLAlchemy type when binding values.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import sqlalchemy as sa
from sqlalchemy.types import TypeEngine


class SqlType(str, Enum):
    """Database-neutral column type codes."""

    BLOB = "BLOB"
    CLOB = "CLOB"
    LONGVARCHAR = "LONGVARCHAR"
    VARCHAR = "VARCHAR"
    BINARY = "BINARY"
    BOOLEAN = "BOOLEAN"
    SMALLINT = "SMALLINT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    NUMERIC = "NUMERIC"
    DOUBLE = "DOUBLE"
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    TIMESTAMP_WITH_TIMEZONE = "TIMESTAMP_WITH_TIMEZONE"
    OTHER = "OTHER"

    @property
    def is_large_object(self) -> bool:
        return self in (SqlType.BLOB, SqlType.CLOB)


@dataclass(frozen=True)
class SqlParameter:
    """A value paired with the type code it must be bound as."""

    value: Any
    sql_type: SqlType | None = None

    def bind_type(self) -> TypeEngine | None:
        if self.sql_type is None:
            return None
        return to_sqlalchemy_type(self.sql_type)


def from_sqlalchemy_type(column_type: TypeEngine) -> SqlType:
    """Map a reflected SQLAlchemy column type to its ``SqlType`` code.

    Subclass checks run most-specific first: ``CLOB`` before ``Text``
    before ``String``, ``Float`` before ``Numeric``.
    """
    if isinstance(column_type, sa.CLOB):
        return SqlType.CLOB
    if isinstance(column_type, sa.Text):
        return SqlType.LONGVARCHAR
    if isinstance(column_type, sa.String):
        return SqlType.VARCHAR
    if isinstance(column_type, sa.LargeBinary):
        return SqlType.BLOB
    if isinstance(column_type, (sa.BINARY, sa.VARBINARY)):
        return SqlType.BINARY
    if isinstance(column_type, sa.Boolean):
        return SqlType.BOOLEAN
    if isinstance(column_type, sa.BigInteger):
        return SqlType.BIGINT
    if isinstance(column_type, sa.SmallInteger):
        return SqlType.SMALLINT
    if isinstance(column_type, sa.Integer):
        return SqlType.INTEGER
    if isinstance(column_type, sa.Float):
        return SqlType.DOUBLE
    if isinstance(column_type, sa.Numeric):
        return SqlType.NUMERIC
    if isinstance(column_type, sa.DateTime):
        return SqlType.TIMESTAMP_WITH_TIMEZONE if column_type.timezone else SqlType.TIMESTAMP
    if isinstance(column_type, sa.Date):
        return SqlType.DATE
    if isinstance(column_type, sa.Time):
        return SqlType.TIME
    return SqlType.OTHER


_SQLALCHEMY_TYPES: dict[SqlType, TypeEngine | None] = {
    SqlType.BLOB: sa.LargeBinary(),
    SqlType.CLOB: sa.CLOB(),
    SqlType.LONGVARCHAR: sa.Text(),
    SqlType.VARCHAR: sa.String(),
    SqlType.BINARY: sa.LargeBinary(),
    SqlType.BOOLEAN: sa.Boolean(),
    SqlType.SMALLINT: sa.SmallInteger(),
    SqlType.INTEGER: sa.Integer(),
    SqlType.BIGINT: sa.BigInteger(),
    SqlType.NUMERIC: sa.Numeric(),
    SqlType.DOUBLE: sa.Float(),
    SqlType.DATE: sa.Date(),
    SqlType.TIME: sa.Time(),
    SqlType.TIMESTAMP: sa.DateTime(),
    SqlType.TIMESTAMP_WITH_TIMEZONE: sa.DateTime(timezone=True),
    SqlType.OTHER: None,
}


def to_sqlalchemy_type(sql_type: SqlType) -> TypeEngine | None:
    """SQLAlchemy type used to bind or read a value of ``sql_type``.

    ``OTHER`` returns ``None`` so the driver infers the type from the value.
    """
    return _SQLALCHEMY_TYPES[sql_type]


__all__ = [
    "SqlType",
    "SqlParameter",
    "from_sqlalchemy_type",
    "to_sqlalchemy_type",
]
