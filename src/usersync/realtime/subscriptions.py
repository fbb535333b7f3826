"""Realtime subscription manager — one live, filtered query at a time.

Learn: subscribe() turns a store's watch() iterator into callbacks:

  on_update(users)  — the full filtered result set, first immediately,
                      then after every relevant change
  on_error(exc)     — the watch failed; no further callbacks follow

It returns a Subscription handle. Calling the handle (or .cancel()) stops
callbacks at once, even if a result set is already on its way, and
releases the underlying listener.

The manager remembers the active subscription and cancels it before
opening the next one, so switching filters never leaves a stale listener
pushing results for the old filter.
"""

import asyncio
from contextlib import aclosing
from typing import Callable, Optional

import structlog

from usersync.realtime.store import RealtimeStore
from usersync.schemas.user import User

logger = structlog.get_logger()

OnUpdate = Callable[[list[User]], None]
OnError = Callable[[Exception], None]


class Subscription:
    """Cancellation handle for one live query."""

    def __init__(self, domain: str):
        self.domain = domain
        self.active = True
        self._task: Optional[asyncio.Task] = None

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._task is not None and not self._task.done():
            self._task.cancel()

    __call__ = cancel

    async def wait_closed(self) -> None:
        """Wait until the listener task has finished its cleanup."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class RealtimeSubscriptionManager:
    """Owns the live query behind the realtime user list."""

    def __init__(self, store: RealtimeStore, collection: str = "users"):
        self.store = store
        self.collection = collection
        self.current: Optional[Subscription] = None

    def subscribe(self, domain: str, on_update: OnUpdate, on_error: OnError) -> Subscription:
        """Open a live query on ``domain == domain``, replacing any active one.

        Must be called from inside a running event loop.
        """
        if self.current is not None:
            logger.debug("realtime.unsubscribe", domain=self.current.domain)
            self.current.cancel()

        subscription = Subscription(domain)
        subscription._task = asyncio.create_task(
            self._pump(subscription, on_update, on_error),
            name=f"realtime-watch:{self.collection}:{domain}",
        )
        self.current = subscription
        logger.debug("realtime.subscribe", collection=self.collection, domain=domain)
        return subscription

    async def close(self) -> None:
        """Cancel the active subscription and wait for it to let go."""
        subscription, self.current = self.current, None
        if subscription is not None:
            subscription.cancel()
            await subscription.wait_closed()

    async def _pump(
        self, subscription: Subscription, on_update: OnUpdate, on_error: OnError
    ) -> None:
        watch = self.store.watch(self.collection, "domain", subscription.domain)
        async with aclosing(watch) as results:
            while True:
                try:
                    docs = await anext(results)
                    users = [User.model_validate(doc) for doc in docs]
                except StopAsyncIteration:
                    return
                except Exception as exc:
                    logger.error(
                        "realtime.subscription_error",
                        collection=self.collection,
                        domain=subscription.domain,
                        error=str(exc),
                    )
                    if subscription.active:
                        subscription.active = False
                        on_error(exc)
                    return

                if not subscription.active:
                    return
                # Outside the try: errors raised by on_update belong to the caller
                on_update(users)
