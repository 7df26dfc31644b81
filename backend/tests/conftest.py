from datetime import UTC, datetime

import pytest
from httpx import ASGITransport, AsyncClient

from main import app
from pads.application.store import SnapshotStore
from pads.application.subscriptions import SubscriptionRegistry
from shared.dependencies import get_registry, get_store

PAD_CREATED_AT = datetime(2000, 1, 1, tzinfo=UTC)


@pytest.fixture
def store():
    return SnapshotStore(clock=lambda: PAD_CREATED_AT)


@pytest.fixture
def registry(store):
    return SubscriptionRegistry(store, send_timeout=1.0, max_pending=16)


@pytest.fixture(autouse=True)
def override_pads(store, registry):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_registry] = lambda: registry
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
