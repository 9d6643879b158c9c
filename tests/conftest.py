import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from supplier_ledger.main import create_app
from supplier_ledger.models.obligation import Obligation
from supplier_ledger.repositories.memory_store import MemoryObligationStore
from supplier_ledger.services.ledger_service import LedgerService

# Live MongoDB tests run only when MONGODB_URI is set
TEST_MONGODB_URI = os.getenv("MONGODB_URI")
TEST_MONGODB_DB = "supplier_ledger_test"

BASE_TIME = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def make_obligation(party="Patel", amount_cents=10000, minutes=0, **extra) -> Obligation:
    """Unsaved obligation created `minutes` after BASE_TIME."""
    return Obligation(
        party=party,
        description=extra.pop("description", f"Parts from {party}"),
        amount_cents=amount_cents,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        **extra,
    )


@pytest.fixture
def store() -> MemoryObligationStore:
    return MemoryObligationStore()


@pytest.fixture
def ledger(store) -> LedgerService:
    return LedgerService(store)


@pytest.fixture
def mock_db():
    """Mock motor database with the ledger collections."""
    mock_db = MagicMock()
    for name in ("obligations", "supplier_payments", "ledger_counters"):
        collection = MagicMock()
        collection.insert_one = AsyncMock()
        collection.find_one = AsyncMock(return_value=None)
        collection.find_one_and_update = AsyncMock()
        collection.update_one = AsyncMock()
        collection.delete_one = AsyncMock()
        collection.delete_many = AsyncMock()
        collection.create_index = AsyncMock()
        setattr(mock_db, name, collection)
    return mock_db


@pytest_asyncio.fixture
async def test_db() -> AsyncIOMotorDatabase:
    """Fixture for a live test MongoDB database."""
    if not TEST_MONGODB_URI:
        pytest.skip("MONGODB_URI not set")
    client = AsyncIOMotorClient(TEST_MONGODB_URI, tz_aware=True)
    await client.drop_database(TEST_MONGODB_DB)

    yield client[TEST_MONGODB_DB]

    await client.drop_database(TEST_MONGODB_DB)
    client.close()


@pytest.fixture
def app(ledger):
    app = create_app()
    # ASGITransport does not run the lifespan; wire the ledger directly
    app.state.ledger = ledger
    return app


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
