"""
Shared pytest fixtures and configuration for tablemap tests.

This module provides:
- An in-memory SQLite engine (StaticPool) with the test tables created
- TableMapper instances over that engine
- Fake catalog / executor pairs for tests that must not touch a database

Usage:
    Fixtures are auto-discovered by pytest.

    def test_insert(mapper: TableMapper) -> None:
        ...
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from tablemap.core.mapper import TableMapper
from tests._support.records import SCHEMA_DDL


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests that use the SQLite engine as integration, the rest as unit."""
    for item in items:
        fixtures = set(getattr(item, "fixturenames", ()))
        if fixtures.intersection({"engine", "mapper"}):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine shared by every connection, with test tables."""
    eng = sa.create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with eng.begin() as conn:
        for ddl in SCHEMA_DDL:
            conn.exec_driver_sql(ddl)
    yield eng
    eng.dispose()


@pytest.fixture
def mapper(engine: Engine) -> TableMapper:
    return TableMapper(engine)

