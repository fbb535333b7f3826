"""Test fixtures — an in-process REST backend and an in-memory realtime store.

Learn: Nothing here needs a network. The reference backend runs inside the
test's event loop through httpx.ASGITransport, and every test gets a fresh
UserRepository via dependency_overrides, so no data leaks between tests.
Failure modes the real backend can't produce on demand (connection refused,
HTML error pages) are staged with httpx.MockTransport instead.
"""

import asyncio

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from usersync.client.rest import UsersApiClient
from usersync.config import settings
from usersync.errors import RealtimeError
from usersync.main import app
from usersync.realtime.store import InMemoryRealtimeStore
from usersync.realtime.subscriptions import RealtimeSubscriptionManager
from usersync.services.dual_write import DualWriteCoordinator
from usersync.services.user_store import UserRepository, get_user_repository
from usersync.ui.view_model import UserDirectoryViewModel

DOMAIN_A = "a.shop.com"
DOMAIN_B = "b.shop.com"


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Let the event loop run until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


class FailingInsertStore(InMemoryRealtimeStore):
    """Realtime store that reads fine but refuses every write."""

    def __init__(self) -> None:
        super().__init__()
        self.insert_attempts = 0

    async def insert(self, collection, data):
        self.insert_attempts += 1
        raise RealtimeError("realtime store is read-only")


class BrokenWatchStore(InMemoryRealtimeStore):
    """Realtime store whose live queries fail right away."""

    async def watch(self, collection, field, value):
        raise RealtimeError("permission denied")
        yield  # pragma: no cover (turns this into an async generator)


def refused_transport(calls: list | None = None) -> httpx.MockTransport:
    """Transport behaving like a backend that is not running."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


@pytest.fixture()
def repo():
    """Fresh REST-side repository, wired into the app for this test."""
    repository = UserRepository()
    app.dependency_overrides[get_user_repository] = lambda: repository
    yield repository
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(repo):
    """Raw HTTP client against the reference backend."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def api(repo):
    """UsersApiClient talking to the reference backend in process."""
    async with UsersApiClient("http://test", transport=ASGITransport(app=app)) as c:
        yield c


@pytest_asyncio.fixture()
async def down_api():
    """UsersApiClient whose backend refuses connections."""
    async with UsersApiClient("http://test", transport=refused_transport()) as c:
        yield c


@pytest.fixture()
def store():
    return InMemoryRealtimeStore()


def make_view_model(api, store) -> UserDirectoryViewModel:
    return UserDirectoryViewModel(
        api=api,
        realtime=RealtimeSubscriptionManager(store, collection=settings.users_collection),
        coordinator=DualWriteCoordinator(
            api, store, collection=settings.users_collection, domains=settings.domains
        ),
        domains=settings.domains,
    )


@pytest_asyncio.fixture()
async def view_model(api, store):
    vm = make_view_model(api, store)
    yield vm
    await vm.close()
