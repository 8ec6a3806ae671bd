"""Record types shared by the test modules.

Valid records map onto the tables created by ``SCHEMA_DDL``; the broken
ones each violate exactly one declaration rule.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any

from tablemap.core.markers import (
    Column,
    CreatedBy,
    CreatedOn,
    Id,
    IdType,
    OffsetDateTime,
    UpdatedBy,
    UpdatedOn,
    Version,
    table,
)
from tablemap.core.types import SqlType

SCHEMA_DDL = [
    """
    CREATE TABLE orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_date TIMESTAMP,
        customer_id INTEGER,
        status VARCHAR(50),
        notes TEXT,
        version INTEGER,
        created_on TIMESTAMP,
        created_by VARCHAR(50),
        updated_on TIMESTAMP,
        updated_by VARCHAR(50)
    )
    """,
    """
    CREATE TABLE customers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        first_name VARCHAR(100),
        last_name VARCHAR(100)
    )
    """,
    """
    CREATE TABLE products (
        id INTEGER PRIMARY KEY,
        name VARCHAR(100),
        cost FLOAT,
        photo BLOB,
        active BOOLEAN,
        version INTEGER
    )
    """,
    """
    CREATE TABLE legacy_orders (
        id INTEGER PRIMARY KEY,
        order_dt TIMESTAMP,
        amount INTEGER
    )
    """,
    """
    CREATE TABLE order_lines (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id INTEGER,
        quantity INTEGER
    )
    """,
]


# ── Valid records ────────────────────────────────────────────────


@table("orders")
@dataclass
class Order:
    id: Annotated[int | None, Id(type=IdType.AUTO_GENERATED)] = None
    orderDate: Annotated[datetime | None, Column()] = None
    customerId: Annotated[int | None, Column()] = None
    status: Annotated[str | None, Column()] = None
    notes: Annotated[str | None, Column()] = None
    version: Annotated[int | None, Version()] = None
    createdOn: Annotated[datetime | None, CreatedOn()] = None
    createdBy: Annotated[str | None, CreatedBy()] = None
    updatedOn: Annotated[datetime | None, UpdatedOn()] = None
    updatedBy: Annotated[str | None, UpdatedBy()] = None
    # not mapped
    customer: Any = None
    orderLines: list[Any] | None = None


@table("customers")
@dataclass
class Customer:
    id: Annotated[int | None, Id(type=IdType.AUTO_GENERATED)] = None
    firstName: Annotated[str | None, Column()] = None
    lastName: Annotated[str | None, Column()] = None


@table("products")
@dataclass
class Product:
    id: Annotated[int | None, Id()] = None
    name: Annotated[str | None, Column()] = None
    cost: Annotated[float | None, Column()] = None
    photo: Annotated[bytes | None, Column()] = None
    active: Annotated[bool | None, Column()] = None
    version: Annotated[int | None, Version] = None


@table("legacy_orders")
@dataclass
class LegacyOrder:
    id: Annotated[int | None, Id()] = None
    orderDate: Annotated[datetime | None, Column("order_dt")] = None
    amount: Annotated[int | None, Column(sql_type=SqlType.BIGINT)] = None


@table("order_lines")
@dataclass
class OrderLine:
    id: Annotated[int | None, Id(type=IdType.AUTO_GENERATED)] = None
    orderId: Annotated[int | None, Column()] = None
    quantity: Annotated[int | None, Column()] = None


@dataclass
class AuditedRecord:
    id: Annotated[int | None, Id()] = None
    version: Annotated[int | None, Version()] = None
    name: Annotated[str | None, Column()] = None


@table("products")
@dataclass
class AuditedProduct(AuditedRecord):
    # redeclared: the subclass declaration wins
    name: Annotated[str | None, Column("name")] = None
    cost: Annotated[float | None, Column()] = None


@table("events")
@dataclass
class Event:
    id: Annotated[int | None, Id()] = None
    happenedAt: Annotated[OffsetDateTime | None, Column()] = None
    loggedAt: Annotated[datetime | None, Column()] = None


# ── Broken records ───────────────────────────────────────────────


@dataclass
class NoTableDecorator:
    id: Annotated[int | None, Id()] = None


@table("   ")
@dataclass
class BlankTableName:
    id: Annotated[int | None, Id()] = None


@table("customers")
@dataclass
class NoIdMarker:
    firstName: Annotated[str | None, Column()] = None


@table("customers")
@dataclass
class NonNullableId:
    id: Annotated[int, Id()] = 0


@table("customers")
@dataclass
class DuplicateId:
    id: Annotated[int | None, Id()] = None
    firstName: Annotated[str | None, Id()] = None


@table("products")
@dataclass
class DuplicateVersion:
    id: Annotated[int | None, Id()] = None
    version: Annotated[int | None, Version()] = None
    cost: Annotated[int | None, Version()] = None


@table("orders")
@dataclass
class DuplicateCreatedOn:
    id: Annotated[int | None, Id()] = None
    createdOn: Annotated[datetime | None, CreatedOn()] = None
    updatedOn: Annotated[datetime | None, CreatedOn()] = None


@table("orders")
@dataclass
class ConflictingMarkers:
    id: Annotated[int | None, Id()] = None
    createdOn: Annotated[datetime | None, CreatedOn(), UpdatedOn()] = None


@table("products")
@dataclass
class StringVersion:
    id: Annotated[int | None, Id()] = None
    version: Annotated[str | None, Version()] = None


@table("products")
@dataclass
class BoolVersion:
    id: Annotated[int | None, Id()] = None
    version: Annotated[bool | None, Version()] = None


@table("customers")
@dataclass
class MissingColumn:
    id: Annotated[int | None, Id()] = None
    middleName: Annotated[str | None, Column()] = None


@table("no_such_table")
@dataclass
class MissingTable:
    id: Annotated[int | None, Id()] = None


@table("customers", schema="sales")
@dataclass
class SchemaCustomer:
    id: Annotated[int | None, Id()] = None


@table("customers", catalog="sales")
@dataclass
class CatalogCustomer:
    id: Annotated[int | None, Id()] = None


@table("customers", schema="sales", catalog="tenant1")
@dataclass
class TenantCustomer:
    id: Annotated[int | None, Id()] = None
    firstName: Annotated[str | None, Column()] = None


@table("products")
@dataclass
class ReservedBindName:
    id: Annotated[int | None, Id()] = None
    incremented_version: Annotated[int | None, Column("name")] = None
    version: Annotated[int | None, Version] = None
