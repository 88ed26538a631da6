import asyncio
import json
import logging

import redis.asyncio as aioredis
import sqlalchemy as sa
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base, relationship

from ormcache import CacheCoordinator, CacheStore, MemoryBackend, RedisBackend, SQLAlchemySource

Base = declarative_base()


class Customer(Base):
    __tablename__ = "customers"

    id = sa.Column(sa.Integer, primary_key=True)
    name = sa.Column(sa.String(100))

    orders = relationship("Order", back_populates="customer")


class Order(Base):
    __tablename__ = "orders"

    id = sa.Column(sa.Integer, primary_key=True)
    status = sa.Column(sa.String(20))
    total = sa.Column(sa.Float)
    customer_id = sa.Column(sa.Integer, sa.ForeignKey("customers.id"))

    customer = relationship("Customer", back_populates="orders")


async def setup_database():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    # Records must keep their state after commit to be cached
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        alice = Customer(id=1, name="Alice")
        session.add_all([
            alice,
            Order(id=1, status="open", total=10.0, customer=alice),
            Order(id=2, status="open", total=25.0, customer=alice),
        ])
        await session.commit()
    return engine, session_factory


async def main():
    engine, session_factory = await setup_database()

    # Example 1: Basic usage with Redis using backend-level namespacing
    redis_client = aioredis.Redis(host='localhost', port=6379, db=0)
    # Namespace is configured at the backend level
    redis_backend = RedisBackend(redis_client, key_prefix="app:")
    store = CacheStore(backend=redis_backend, namespace="shop", ttl=600)
    await redis_client.aclose()

    # Example 2: Using the in-memory backend with logging
    logging.basicConfig(level=logging.DEBUG)
    store = CacheStore(backend=MemoryBackend(), ttl=60, debug=True)

    orders = CacheCoordinator(store, SQLAlchemySource(Order, session_factory))
    customers = CacheCoordinator(store, SQLAlchemySource(Customer, session_factory))

    # Example 3: Read-through lookups and queries
    order = await orders.lookup_by_id(1)          # miss, loads from the database
    order = await orders.lookup_by_id(1)          # hit
    open_orders = await orders.find_many({"where": {"status": "open"}, "order_by": ["-total"]})
    page = await orders.find_many_with_count({"where": {"status": "open"}, "limit": 1})
    print(f"{len(open_orders)} open orders, first page {page.items} of {page.total_count}")

    # Example 4: Loading relationships, cached together with the record
    alice = await customers.lookup_by_id(1, {"include": ["orders"]})
    print(f"{alice.name} has {len(alice.orders)} orders")

    # Example 5: Writes go to the database, then refresh the cache
    created = await orders.create({"id": 3, "status": "open", "total": 5.0, "customer_id": 1})
    # Cached queries of "orders" were invalidated, this reads 3 rows
    open_orders = await orders.find_many({"where": {"status": "open"}, "order_by": ["-total"]})
    count, closed = await orders.update({"status": "closed"}, {"id": created.id})
    record, was_created = await orders.upsert({"id": 4, "status": "open", "total": 1.0, "customer_id": 1})

    # Example 6: Instance-scoped operations
    order.total = 12.5
    await orders.for_instance(order).save()
    order = await orders.for_instance(order).reload()
    await orders.for_instance(record).destroy()

    # Example 7: Several queries sharing one custom key
    dashboard = orders.with_key("dashboard")
    await dashboard.find_many({"where": {"status": "open"}, "limit": 5})
    await dashboard.clear()

    # Example 8: Custom serialization
    json_store = CacheStore(
        serializer=lambda value: json.dumps(value, default=str).encode(),
        deserializer=json.loads,
    )
    json_orders = CacheCoordinator(json_store, SQLAlchemySource(Order, session_factory))
    print(await json_orders.find_many())

    # Example 9: Disabling the cache, every call goes to the database
    uncached = CacheCoordinator(CacheStore(enabled=False), SQLAlchemySource(Order, session_factory))
    print(await uncached.find_many())

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
