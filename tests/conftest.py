"""
Shared fixtures.

- in-memory store doubles (`memory_db`, `memory_engine`)
- a fresh in-memory SQLite database per test (`sqlite_engine`, `session_maker`)
- an HTTP client on the FastAPI app wired to that database (`api_client`)
"""
import os
import uuid
from functools import partial
from types import SimpleNamespace

import pytest
import pytest_asyncio

# Set testing environment BEFORE any application imports
os.environ["ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["TRANSFER_LOCK_TIMEOUT"] = "5"
os.environ["LOG_LEVEL"] = "WARNING"

import httpx
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from db.client import Client
from db.database import create_db_and_tables, get_async_session, session_transaction
from db.inventory_store import SqlAlchemyInventoryStore
from db.ledger_store import SqlAlchemyLedgerStore
from db.product import Product
from services.transfer import TransferEngine, get_transfer_engine

from tests.fakes import FakeInventoryStore, FakeLedgerStore, InMemoryDatabase


# =============================================================================
# In-memory doubles
# =============================================================================

@pytest.fixture
def memory_db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def memory_engine(memory_db) -> TransferEngine:
    return TransferEngine(
        begin=memory_db.begin,
        inventory=FakeInventoryStore(memory_db),
        ledger=FakeLedgerStore(memory_db),
    )


# =============================================================================
# SQLite
# =============================================================================

@pytest_asyncio.fixture
async def sqlite_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await create_db_and_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(sqlite_engine):
    return async_sessionmaker(sqlite_engine, expire_on_commit=False)


@pytest.fixture
def sql_engine(session_maker) -> TransferEngine:
    return TransferEngine(
        begin=partial(session_transaction, session_maker),
        inventory=SqlAlchemyInventoryStore(),
        ledger=SqlAlchemyLedgerStore(),
    )


@pytest.fixture
def make_product(session_maker):
    async def _make(quantity: int = 100, name: str = "Widget", price_in_cents: int = 1990) -> uuid.UUID:
        async with session_maker() as session:
            product = Product(name=name, description="", price_in_cents=price_in_cents, quantity=quantity)
            session.add(product)
            await session.commit()
            return product.id
    return _make


@pytest.fixture
def make_client(session_maker):
    async def _make(name: str = "Acme") -> uuid.UUID:
        async with session_maker() as session:
            client = Client(name=name, email=None, phone=None)
            session.add(client)
            await session.commit()
            return client.id
    return _make


@pytest.fixture
def read_product_quantity(session_maker):
    async def _read(product_id: uuid.UUID):
        async with session_maker() as session:
            product = await session.get(Product, product_id)
            return None if product is None else product.quantity
    return _read


@pytest.fixture
def read_ledger(session_maker):
    async def _read(client_id: uuid.UUID, product_id: uuid.UUID):
        async with session_maker() as session:
            stock = await SqlAlchemyLedgerStore().get(session, client_id, product_id)
            return None if stock is None else stock.quantity
    return _read


# =============================================================================
# HTTP
# =============================================================================

@pytest.fixture
def test_user():
    return SimpleNamespace(id=uuid.uuid4(), email="tester@acme.com", is_active=True, is_superuser=False)


@pytest_asyncio.fixture
async def api_client(session_maker, sql_engine, test_user):
    from core.auth import current_active_user
    from main import app

    async def _session_override():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = _session_override
    app.dependency_overrides[current_active_user] = lambda: test_user
    app.dependency_overrides[get_transfer_engine] = lambda: sql_engine

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
