"""
Tests for tablemap.core.mapper.TableMapper.

Covers:
- CRUD round-trips against in-memory SQLite
- Id rules on insert, version initialization and increment
- Optimistic locking on stale updates
- Audit suppliers (set once, called once per insert)
- Partial updates: guards issue no SQL, system-managed columns are added
- Construction from MapperSettings
"""

from __future__ import annotations

import itertools
from datetime import datetime

import pytest
import sqlalchemy as sa

from tablemap.core.errors import AnnotationError, MapperError, OptimisticLockingError, TableNotFoundError
from tablemap.core.mapper import TableMapper
from tablemap.core.settings import MapperSettings
from tablemap.core.sql import INCREMENTED_VERSION
from tablemap.core.types import SqlType
from tests._support.fakes import SAMPLE_TABLES, FakeCatalog, FakeExecutor
from tests._support.records import (
    Customer,
    LegacyOrder,
    MissingTable,
    Order,
    OrderLine,
    Product,
    ReservedBindName,
    TenantCustomer,
)

T0 = datetime(2024, 5, 1, 9, 30, 0, 125000)


def clock(start: datetime = T0):
    """Supplier returning a new minute on every call."""
    minutes = itertools.count()
    return lambda: start.replace(minute=next(minutes))


def fake_mapper(**executor_kwargs) -> tuple[TableMapper, FakeExecutor]:
    executor = FakeExecutor(**executor_kwargs)
    mapper = TableMapper(executor=executor, catalog=FakeCatalog(tables=dict(SAMPLE_TABLES)))
    return mapper, executor


def count_rows(engine: sa.Engine, table: str) -> int:
    with engine.connect() as conn:
        return conn.execute(sa.text(f"SELECT COUNT(*) FROM {table}")).scalar_one()


class TestConstruction:
    def test_requires_bind_or_collaborators(self):
        with pytest.raises(ValueError, match="bind must be given"):
            TableMapper()
        with pytest.raises(ValueError):
            TableMapper(executor=FakeExecutor())

    def test_defaults(self, mapper):
        assert mapper.schema_name is None
        assert mapper.catalog_name is None
        assert mapper.database_product_name == "sqlite"

    def test_from_settings(self):
        settings = MapperSettings(
            database_url="sqlite://",
            schema_name="  ",
            cacheable_update_properties_count=5,
            enable_offset_datetime_as_timestamp_tz=True,
        )
        mapper = TableMapper.from_settings(settings)
        assert mapper.schema_name is None
        assert mapper.sql_builder.cacheable_update_properties_count == 5
        assert mapper.database_product_name == "sqlite"


class TestInsert:
    def test_auto_generated_id(self, mapper, engine):
        customer = Customer(firstName="Ada", lastName="Lovelace")
        mapper.insert(customer)

        assert isinstance(customer.id, int)
        assert customer.id > 0
        assert count_rows(engine, "customers") == 1

    def test_version_and_audit_fields(self, mapper):
        mapper.set_record_audited_on_supplier(lambda: T0)
        mapper.set_record_audited_by_supplier(lambda: "alice")
        order = Order(status="NEW", customerId=7)
        mapper.insert(order)

        assert order.version == 1
        assert order.createdOn == T0
        assert order.updatedOn == T0
        assert order.createdBy == "alice"
        assert order.updatedBy == "alice"

    def test_suppliers_called_once_per_insert(self, mapper):
        mapper.set_record_audited_on_supplier(clock())
        order = Order(status="NEW")
        mapper.insert(order)

        assert order.createdOn == order.updatedOn

    def test_without_suppliers_audit_fields_untouched(self, mapper):
        order = Order(status="NEW", createdBy="manual")
        mapper.insert(order)

        assert order.createdBy == "manual"
        assert order.createdOn is None

    def test_auto_generated_id_must_be_none(self, mapper, engine):
        with pytest.raises(MapperError, match=r"For insert\(\) the property Customer\.id has to be None"):
            mapper.insert(Customer(id=5, firstName="Ada"))
        assert count_rows(engine, "customers") == 0

    def test_manual_id_must_be_set(self, mapper):
        with pytest.raises(MapperError, match=r"Product\.id needs to have a value since it is not auto generated"):
            mapper.insert(Product(name="Widget"))

    def test_manual_id(self, mapper):
        product = Product(id=42, name="Widget", cost=9.5, photo=b"\x89PNG", active=True)
        mapper.insert(product)

        assert product.id == 42
        assert product.version == 1
        assert mapper.find_by_id(Product, 42) == product

    def test_blob_accepts_bytearray(self, mapper):
        mapper.insert(Product(id=1, photo=bytearray(b"abc")))

        assert mapper.find_by_id(Product, 1).photo == b"abc"

    def test_blob_rejects_text(self):
        mapper, executor = fake_mapper()
        with pytest.raises(MapperError, match="Property photo is bound as BLOB and cannot take a str value"):
            mapper.insert(Product(id=1, photo="abc"))
        assert executor.statements == []

    def test_none_object(self, mapper):
        with pytest.raises(ValueError):
            mapper.insert(None)

    def test_missing_generated_key(self):
        mapper, _ = fake_mapper(generated_key=None)
        with pytest.raises(MapperError, match="No generated key"):
            mapper.insert(Customer(firstName="Ada"))

    def test_generated_key_is_coerced_to_int(self):
        mapper, _ = fake_mapper(generated_key="17")
        customer = Customer(firstName="Ada")
        mapper.insert(customer)

        assert customer.id == 17


class TestFind:
    def test_round_trip(self, mapper):
        mapper.set_record_audited_on_supplier(lambda: T0)
        mapper.set_record_audited_by_supplier(lambda: "alice")
        order = Order(orderDate=T0, customerId=3, status="NEW", notes="leave at door")
        mapper.insert(order)

        found = mapper.find_by_id(Order, order.id)
        assert found == order
        assert found is not order

    def test_unmapped_fields_keep_defaults(self, mapper):
        order = Order(status="NEW", customer="not stored")
        mapper.insert(order)

        assert mapper.find_by_id(Order, order.id).customer is None

    def test_aliased_column(self, mapper):
        mapper.insert(LegacyOrder(id=1, orderDate=T0, amount=250))

        found = mapper.find_by_id(LegacyOrder, 1)
        assert found.orderDate == T0
        assert found.amount == 250

    def test_missing_row(self, mapper):
        assert mapper.find_by_id(Customer, 999) is None

    def test_none_id(self, mapper):
        assert mapper.find_by_id(Customer, None) is None

    def test_find_all(self, mapper):
        for name in ("Ada", "Grace", "Edsger"):
            mapper.insert(Customer(firstName=name))

        found = mapper.find_all(Customer)
        assert sorted(c.firstName for c in found) == ["Ada", "Edsger", "Grace"]
        assert all(isinstance(c, Customer) for c in found)

    def test_find_all_empty(self, mapper):
        assert mapper.find_all(OrderLine) == []

    def test_multiple_rows_for_id(self):
        mapper, _ = fake_mapper(rows=[{"id": 1}, {"id": 1}])
        with pytest.raises(MapperError, match="returned 2 rows"):
            mapper.find_by_id(Customer, 1)

    def test_unknown_row_keys_are_ignored(self):
        mapper, executor = fake_mapper(rows=[{"ID": 1, "FIRST_NAME": "Ada", "extra": "x"}])
        customer = mapper.find_by_id(Customer, 1)

        assert customer == Customer(id=1, firstName="Ada")
        sql, params = executor.statements[0]
        assert sql == "SELECT id, first_name, last_name FROM customers WHERE id = :id"
        assert params["id"].value == 1
        assert params["id"].sql_type is SqlType.INTEGER

    def test_missing_table(self, mapper):
        with pytest.raises(TableNotFoundError):
            mapper.find_by_id(MissingTable, 1)


class TestUpdate:
    def test_increments_version(self, mapper):
        order = Order(status="NEW")
        mapper.insert(order)
        order.status = "SHIPPED"

        assert mapper.update(order) == 1
        assert order.version == 2
        found = mapper.find_by_id(Order, order.id)
        assert found.status == "SHIPPED"
        assert found.version == 2

    def test_stale_update_fails(self, mapper):
        order = Order(status="NEW")
        mapper.insert(order)
        first = mapper.find_by_id(Order, order.id)
        second = mapper.find_by_id(Order, order.id)

        first.status = "SHIPPED"
        mapper.update(first)
        second.status = "CANCELLED"
        with pytest.raises(OptimisticLockingError) as exc_info:
            mapper.update(second)

        assert str(exc_info.value) == (
            f"Order update failed due to stale data. Failed for id = {order.id} and version = 1"
        )
        assert exc_info.value.retryable
        assert second.version == 1
        found = mapper.find_by_id(Order, order.id)
        assert found.status == "SHIPPED"
        assert found.version == 2

    def test_audit_fields_on_update(self, mapper):
        mapper.set_record_audited_on_supplier(clock())
        mapper.set_record_audited_by_supplier(lambda: "bob")
        order = Order(status="NEW")
        mapper.insert(order)
        created_on = order.createdOn

        order.status = "SHIPPED"
        mapper.update(order)

        assert order.createdOn == created_on
        assert order.updatedOn > created_on
        found = mapper.find_by_id(Order, order.id)
        assert found.createdOn == created_on
        assert found.updatedOn == order.updatedOn
        assert found.updatedBy == "bob"

    def test_created_fields_are_not_updated(self, mapper):
        mapper.set_record_audited_by_supplier(lambda: "alice")
        order = Order(status="NEW")
        mapper.insert(order)

        order.createdBy = "mallory"
        mapper.update(order)

        assert mapper.find_by_id(Order, order.id).createdBy == "alice"

    def test_stale_update_leaves_audit_fields(self):
        mapper, _ = fake_mapper(update_count=0)
        mapper.set_record_audited_on_supplier(lambda: T0)
        order = Order(id=1, version=3, status="NEW")

        with pytest.raises(OptimisticLockingError):
            mapper.update(order)
        assert order.updatedOn is None
        assert order.version == 3

    def test_unversioned_zero_rows(self, mapper):
        assert mapper.update(Customer(id=404, firstName="nobody")) == 0

    def test_none_id(self, mapper):
        with pytest.raises(MapperError, match=r"Property Order\.id is the id and must not be None\."):
            mapper.update(Order(status="NEW", version=1))

    def test_none_version(self):
        mapper, executor = fake_mapper()
        with pytest.raises(MapperError, match="configured with marker @Version"):
            mapper.update(Order(id=1, status="NEW"))
        assert executor.statements == []

    def test_bound_parameters(self):
        mapper, executor = fake_mapper()
        mapper.update(Order(id=1, version=4, status="NEW"))

        _, params = executor.statements[0]
        assert params[INCREMENTED_VERSION].value == 5
        assert params["version"].value == 4
        assert params["id"].value == 1
        assert params["status"].sql_type is SqlType.VARCHAR


class TestUpdateSpecificProperties:
    def test_updates_only_named_properties(self, mapper):
        order = Order(status="NEW", notes="fragile")
        mapper.insert(order)

        order.status = "SHIPPED"
        order.notes = "not persisted"
        assert mapper.update_specific_properties(order, "status") == 1

        found = mapper.find_by_id(Order, order.id)
        assert found.status == "SHIPPED"
        assert found.notes == "fragile"
        assert found.version == 2
        assert order.version == 2

    def test_sets_updated_audit_fields(self):
        mapper, executor = fake_mapper()
        mapper.set_record_audited_on_supplier(lambda: T0)
        mapper.set_record_audited_by_supplier(lambda: "carol")
        order = Order(id=1, version=1, status="NEW")

        mapper.update_specific_properties(order, "status")

        sql, params = executor.statements[0]
        assert sql == (
            "UPDATE orders SET status = :status, updated_on = :updatedOn, updated_by = :updatedBy, "
            "version = :incremented_version WHERE id = :id AND version = :version"
        )
        assert params["updatedOn"].value == T0
        assert params["updatedBy"].value == "carol"
        assert order.updatedOn == T0
        assert order.updatedBy == "carol"
        assert order.createdOn is None

    @pytest.mark.parametrize(
        ("names", "message"),
        [
            ((), "At least one property"),
            (("id",), "Id property Order.id cannot be updated"),
            (("version",), "Auto assign property Order.version cannot be updated"),
            (("updatedOn",), "Auto assign property Order.updatedOn cannot be updated"),
            (("status", "customer"), "No mapping found for property 'customer'"),
        ],
    )
    def test_guards_issue_no_sql(self, names, message):
        mapper, executor = fake_mapper()
        with pytest.raises(MapperError, match=message):
            mapper.update_specific_properties(Order(id=1, version=1), *names)
        assert executor.statements == []

    def test_stale_partial_update(self, mapper):
        order = Order(status="NEW")
        mapper.insert(order)
        stale = mapper.find_by_id(Order, order.id)
        mapper.update_specific_properties(order, "status")

        stale.notes = "late"
        with pytest.raises(OptimisticLockingError):
            mapper.update_specific_properties(stale, "notes")


class TestDelete:
    def test_delete(self, mapper, engine):
        customer = Customer(firstName="Ada")
        mapper.insert(customer)

        assert mapper.delete(customer) == 1
        assert mapper.find_by_id(Customer, customer.id) is None
        assert count_rows(engine, "customers") == 0

    def test_delete_by_id(self, mapper):
        mapper.insert(Product(id=7, name="Widget"))

        assert mapper.delete_by_id(Product, 7) == 1
        assert mapper.delete_by_id(Product, 7) == 0

    def test_none_id(self, mapper):
        with pytest.raises(MapperError, match="must not be None"):
            mapper.delete(Customer())
        with pytest.raises(MapperError, match="must not be None"):
            mapper.delete_by_id(Customer, None)


class TestSuppliers:
    def test_on_supplier_set_once(self, mapper):
        mapper.set_record_audited_on_supplier(lambda: T0)
        with pytest.raises(MapperError, match="record audited on supplier was already set"):
            mapper.set_record_audited_on_supplier(lambda: T0)

    def test_by_supplier_set_once(self, mapper):
        mapper.set_record_audited_by_supplier(lambda: "alice")
        with pytest.raises(MapperError, match="record audited by supplier was already set"):
            mapper.set_record_audited_by_supplier(lambda: "bob")


class TestMappingHelpers:
    def test_property_to_column_mappings(self, mapper):
        assert mapper.get_property_to_column_mappings(LegacyOrder) == {
            "id": "id",
            "orderDate": "order_dt",
            "amount": "amount",
        }

    def test_select_columns_sql(self, mapper, engine):
        mapper.insert(LegacyOrder(id=1, amount=5))
        sql = f"SELECT {mapper.select_columns_sql(LegacyOrder)} FROM legacy_orders"
        with engine.connect() as conn:
            row = conn.execute(sa.text(sql)).mappings().one()
        assert set(row.keys()) == {"id", "order_date", "amount"}

    def test_load_mapping_fails_fast(self, mapper):
        mapper.load_mapping(Order)
        assert mapper.table_mapping_cache.contains(Order)
        with pytest.raises(TableNotFoundError):
            mapper.load_mapping(MissingTable)

    def test_clear_caches(self, mapper):
        mapper.load_mapping(Order)
        mapper.find_all(Order)
        mapper.clear_caches()

        assert mapper.table_mapping_cache.size() == 0
        assert mapper.sql_builder.find_all_cache.size() == 0

    def test_type_override_applies_to_binding(self):
        mapper, executor = fake_mapper()
        mapper.set_database_metadata_override({str: SqlType.CLOB})
        mapper.update(Customer(id=1, firstName="Ada"))

        _, params = executor.statements[0]
        assert params["firstName"].sql_type is SqlType.CLOB

    def test_clob_rejects_bytes(self):
        mapper, executor = fake_mapper()
        mapper.set_database_metadata_override({str: SqlType.CLOB})
        with pytest.raises(MapperError, match="Property firstName is bound as CLOB and cannot take a bytes value"):
            mapper.update(Customer(id=1, firstName=b"Ada"))
        assert executor.statements == []


class TestNamespace:
    def test_mssql_statements_use_catalog_and_schema(self):
        mapper, executor = fake_mapper(product="mssql")

        mapper.find_by_id(TenantCustomer, 3)
        mapper.update(TenantCustomer(id=3, firstName="Ada"))
        mapper.delete_by_id(TenantCustomer, 3)
        mapper.insert(TenantCustomer(id=4, firstName="Grace"))

        sqls = [statement for statement, _ in executor.statements[:3]]
        assert sqls == [
            "SELECT id, first_name FROM tenant1.sales.customers WHERE id = :id",
            "UPDATE tenant1.sales.customers SET first_name = :firstName WHERE id = :id",
            "DELETE FROM tenant1.sales.customers WHERE id = :id",
        ]
        spec, _ = executor.statements[3]
        assert (spec.table, spec.schema, spec.catalog) == ("customers", "sales", "tenant1")

    def test_reserved_bind_name_is_rejected_before_sql(self):
        mapper, executor = fake_mapper()
        with pytest.raises(AnnotationError, match="reserved for the new version bind parameter"):
            mapper.update(ReservedBindName(id=1, incremented_version=100, version=4))
        assert executor.statements == []
