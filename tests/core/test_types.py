"""Tests for SqlType codes and the SQLAlchemy type bridge."""

from __future__ import annotations

import pytest
import sqlalchemy as sa

from tablemap.core.types import SqlParameter, SqlType, from_sqlalchemy_type, to_sqlalchemy_type


class TestFromSqlAlchemyType:
    @pytest.mark.parametrize(
        ("column_type", "expected"),
        [
            (sa.CLOB(), SqlType.CLOB),
            (sa.Text(), SqlType.LONGVARCHAR),
            (sa.String(50), SqlType.VARCHAR),
            (sa.VARCHAR(10), SqlType.VARCHAR),
            (sa.LargeBinary(), SqlType.BLOB),
            (sa.BLOB(), SqlType.BLOB),
            (sa.VARBINARY(16), SqlType.BINARY),
            (sa.Boolean(), SqlType.BOOLEAN),
            (sa.BigInteger(), SqlType.BIGINT),
            (sa.SmallInteger(), SqlType.SMALLINT),
            (sa.Integer(), SqlType.INTEGER),
            (sa.Float(), SqlType.DOUBLE),
            (sa.REAL(), SqlType.DOUBLE),
            (sa.Numeric(10, 2), SqlType.NUMERIC),
            (sa.DateTime(), SqlType.TIMESTAMP),
            (sa.DateTime(timezone=True), SqlType.TIMESTAMP_WITH_TIMEZONE),
            (sa.Date(), SqlType.DATE),
            (sa.Time(), SqlType.TIME),
            (sa.JSON(), SqlType.OTHER),
        ],
    )
    def test_mapping(self, column_type, expected) -> None:
        assert from_sqlalchemy_type(column_type) is expected


class TestToSqlAlchemyType:
    def test_large_objects(self) -> None:
        assert isinstance(to_sqlalchemy_type(SqlType.BLOB), sa.LargeBinary)
        assert isinstance(to_sqlalchemy_type(SqlType.CLOB), sa.CLOB)

    def test_timezone_flag(self) -> None:
        assert to_sqlalchemy_type(SqlType.TIMESTAMP_WITH_TIMEZONE).timezone is True
        assert to_sqlalchemy_type(SqlType.TIMESTAMP).timezone is False

    def test_other_is_untyped(self) -> None:
        assert to_sqlalchemy_type(SqlType.OTHER) is None

    def test_every_code_is_covered(self) -> None:
        for code in SqlType:
            to_sqlalchemy_type(code)


class TestSqlParameter:
    def test_bind_type(self) -> None:
        assert isinstance(SqlParameter(1, SqlType.INTEGER).bind_type(), sa.Integer)
        assert SqlParameter("x").bind_type() is None

    def test_is_large_object(self) -> None:
        assert SqlType.BLOB.is_large_object
        assert SqlType.CLOB.is_large_object
        assert not SqlType.VARCHAR.is_large_object
