"""Tests for the SQLAlchemy helpers: entity names, identities and snapshots."""

import uuid

import msgspec.msgpack
import pytest
import sqlalchemy as sa
from sqlalchemy.orm import as_declarative, declared_attr

from ormcache.orm import get_entity_name, get_identity, get_primary_key_names, snapshot_of
from tests.models import Customer, Order, OrderItem, Product


# custom base

@as_declarative()
class CustomBase:
    __name__: str

    @declared_attr
    def __tablename__(cls) -> str:
        """Returns table name  by lowercasing a Class name"""
        return cls.__name__.lower()

    pk = sa.Column(sa.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)


# Model without explicit tablename and with mixed primary key from custom base and its own
class Tag(CustomBase):
    id = sa.Column(sa.Integer, primary_key=True)
    name = sa.Column(sa.String)


class NotAModel:
    id = 1


# Test entity name extraction
def test_entity_name_standard():
    assert get_entity_name(Order) == "orders"
    assert get_entity_name(Customer) == "customers"


def test_entity_name_composite_pk():
    assert get_entity_name(OrderItem) == "order_items"


def test_entity_name_auto_tablename():
    # SQLAlchemy sets the table name automatically for the model without __tablename__
    assert get_entity_name(Tag) == "tag"


def test_entity_name_rejects_unmapped_class():
    with pytest.raises(ValueError, match="not recognized as a SQLAlchemy model"):
        get_entity_name(NotAModel)


# Test primary key names
def test_primary_key_names():
    assert get_primary_key_names(Order) == ["id"]
    assert get_primary_key_names(Product) == ["product_id"]
    assert get_primary_key_names(OrderItem) == ["order_id", "product_id"]
    assert set(get_primary_key_names(Tag)) == {"id", "pk"}


# Test identity extraction
def test_identity_scalar():
    assert get_identity(Order(id=5, status="open")) == 5
    assert get_identity(Product(product_id=101)) == 101


def test_identity_composite():
    assert get_identity(OrderItem(order_id=1, product_id=101, quantity=2)) == (1, 101)


def test_identity_transient_without_key():
    assert get_identity(Order(status="open")) is None


# Test snapshots
def test_snapshot_only_loaded_columns():
    order = Order(id=1, status="open")

    assert snapshot_of(order) == {"id": 1, "status": "open"}


def test_snapshot_nested_relationships():
    item = OrderItem(order_id=1, product_id=101, quantity=2, product=Product(product_id=101, name="Widget", price=2.5))

    assert snapshot_of(item) == {
        "order_id": 1,
        "product_id": 101,
        "quantity": 2,
        "product": {"product_id": 101, "name": "Widget", "price": 2.5},
    }


def test_snapshot_skips_back_references():
    alice = Customer(id=1, name="Alice")
    Order(id=1, status="open", customer=alice)
    Order(id=2, status="closed", customer=alice)

    snapshot = snapshot_of(alice)
    assert [order["id"] for order in snapshot["orders"]] == [1, 2]
    # Each order's customer is the instance being snapshotted
    assert all("customer" not in order for order in snapshot["orders"])


def test_snapshot_to_one_none():
    order = Order(id=1, status="open", customer=None)

    assert snapshot_of(order)["customer"] is None


def test_snapshot_is_serializable():
    alice = Customer(id=1, name="Alice", orders=[Order(id=1, status="open", total=10.0)])
    assert msgspec.msgpack.decode(msgspec.msgpack.encode(snapshot_of(alice))) == snapshot_of(alice)
