"""Wiring — build clients and stores from settings.

Learn: The realtime store is chosen once per process. With
USERSYNC_REALTIME_URL set, every process shares one Redis; without it the
store lives in memory and only this process sees its documents.
"""

from typing import Optional

import structlog

from usersync.client.rest import UsersApiClient
from usersync.config import Settings, settings
from usersync.realtime.redis_store import RedisRealtimeStore
from usersync.realtime.store import InMemoryRealtimeStore, RealtimeStore
from usersync.realtime.subscriptions import RealtimeSubscriptionManager
from usersync.services.dual_write import DualWriteCoordinator
from usersync.ui.view_model import UserDirectoryViewModel

logger = structlog.get_logger()

_realtime_store: Optional[RealtimeStore] = None


def get_realtime_store(config: Settings = settings) -> RealtimeStore:
    """Return the process-wide realtime store."""
    global _realtime_store
    if _realtime_store is not None:
        return _realtime_store

    if config.realtime_url:
        _realtime_store = RedisRealtimeStore(config.realtime_url, prefix=config.realtime_prefix)
    else:
        logger.warning(
            "realtime.in_memory",
            hint="set USERSYNC_REALTIME_URL to share live data between processes",
        )
        _realtime_store = InMemoryRealtimeStore()
    return _realtime_store


async def close_realtime_store() -> None:
    global _realtime_store
    if _realtime_store is not None:
        await _realtime_store.aclose()
        _realtime_store = None


def build_api_client(config: Settings = settings) -> UsersApiClient:
    return UsersApiClient(config.backend_url, timeout=config.request_timeout)


def build_coordinator(
    api: UsersApiClient, store: RealtimeStore, config: Settings = settings
) -> DualWriteCoordinator:
    return DualWriteCoordinator(
        api, store, collection=config.users_collection, domains=config.domains
    )


def build_view_model(
    api: UsersApiClient, store: RealtimeStore, config: Settings = settings
) -> UserDirectoryViewModel:
    return UserDirectoryViewModel(
        api=api,
        realtime=RealtimeSubscriptionManager(store, collection=config.users_collection),
        coordinator=build_coordinator(api, store, config),
        domains=config.domains,
    )
