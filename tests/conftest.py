"""Pytest configuration for ormcache tests."""

import logging

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ormcache import CacheCoordinator, CacheStore, SQLAlchemySource
from ormcache.backends.memory import MemoryBackend
from ormcache.backends.redis import RedisBackend
from tests.models import Base, Customer, Order, OrderItem, Product

# Add fixtures that should be available for all tests here
logging.getLogger("ormcache").setLevel(logging.DEBUG)


@pytest.fixture
def memory_backend(request):
    """Return a fresh memory backend for each test.

    Uses worker-specific namespace if tests are run in parallel.
    """
    worker_id = getattr(request.config, 'workerinput', {}).get('workerid', '')
    namespace = f"test:{worker_id}" if worker_id else "test"
    return MemoryBackend(key_prefix=f"{namespace}:")


@pytest.fixture
def memory_store(memory_backend):
    """Return a CacheStore with memory backend."""
    return CacheStore(backend=memory_backend, ttl=60, debug=True)


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database with the test tables and a few rows."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        alice = Customer(id=1, name="Alice")
        bob = Customer(id=2, name="Bob")
        widget = Product(product_id=101, name="Widget", price=2.5)
        gadget = Product(product_id=102, name="Gadget", price=7.0)
        session.add_all([
            alice, bob, widget, gadget,
            Order(id=1, status="open", total=10.0, customer=alice),
            Order(id=2, status="open", total=25.0, customer=alice),
            Order(id=3, status="open", total=5.0, customer=bob),
            Order(id=4, status="closed", total=99.0, customer=bob),
            OrderItem(order_id=1, product_id=101, quantity=2),
            OrderItem(order_id=1, product_id=102, quantity=1),
        ])
        await session.commit()

    yield factory

    await engine.dispose()


@pytest.fixture
def order_source(session_factory):
    return SQLAlchemySource(Order, session_factory)


@pytest.fixture
def orders(memory_store, order_source):
    """CacheCoordinator for orders backed by SQLite and a memory store."""
    return CacheCoordinator(memory_store, order_source)


@pytest.fixture
def customers(memory_store, session_factory):
    return CacheCoordinator(memory_store, SQLAlchemySource(Customer, session_factory))


@pytest.fixture
def order_items(memory_store, session_factory):
    return CacheCoordinator(memory_store, SQLAlchemySource(OrderItem, session_factory))


try:
    import redis.asyncio as aioredis
    HAS_REDIS = True
except ImportError:
    HAS_REDIS = False


@pytest_asyncio.fixture
async def redis_client():
    """Return an asyncio Redis client for testing if Redis is available.

    The fixture automatically:
    1. Uses a dedicated DB for testing
    2. Flushes the DB before each test
    3. Cleans up after the test is finished
    """
    if not HAS_REDIS:
        pytest.skip("Redis is not installed")
    client = aioredis.Redis(host='localhost', port=6379, db=15)
    try:
        await client.ping()
    except Exception as e:
        await client.aclose()
        pytest.skip(f"Redis server is not running: {e}")

    # FLUSH THE ENTIRE TEST DB to ensure clean state
    await client.flushdb()

    yield client

    await client.flushdb()
    await client.aclose()


@pytest.fixture
def redis_backend(redis_client, request):
    """Return a RedisBackend for testing if Redis is available.

    Uses worker-specific namespace if tests are run in parallel.
    """
    worker_id = getattr(request.config, 'workerinput', {}).get('workerid', '')
    namespace = f"test:{worker_id}" if worker_id else "test"
    return RedisBackend(redis_client, key_prefix=f"{namespace}:")


@pytest.fixture
def redis_store(redis_backend):
    """Return a CacheStore with Redis backend."""
    return CacheStore(backend=redis_backend, ttl=60, debug=True)


# Add a marker for Redis tests
def pytest_configure(config):
    config.addinivalue_line("markers", "redis: mark test as requiring Redis")
