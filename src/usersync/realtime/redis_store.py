"""Redis-backed realtime store — documents in a hash, changes over pub/sub.

Learn: Redis pub/sub is fire-and-forget, so it only carries change
notifications, never the data itself. Documents live in one hash per
collection and every watcher re-reads its filter when told something
changed:

  usersync:docs:users      HASH  {doc_id: json document}
  usersync:changes:users   CHANNEL  {"type": "added", "id": ..., **document}

watch() subscribes to the channel BEFORE reading the initial snapshot.
An insert landing between the two shows up as an extra notification
rather than going missing.
"""

import json
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from usersync.errors import RealtimeError
from usersync.realtime.store import new_document_id

logger = structlog.get_logger()


class RedisRealtimeStore:
    """Realtime store shared by every process pointed at the same Redis."""

    def __init__(self, url: str, prefix: str = "usersync"):
        self.prefix = prefix
        self._redis: aioredis.Redis = aioredis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
        )

    def _docs_key(self, collection: str) -> str:
        return f"{self.prefix}:docs:{collection}"

    def _channel(self, collection: str) -> str:
        return f"{self.prefix}:changes:{collection}"

    async def insert(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = new_document_id()
        try:
            await self._redis.hset(self._docs_key(collection), doc_id, json.dumps(data))
        except RedisError as exc:
            raise RealtimeError(f"Insert into {collection} failed: {exc}") from exc

        # Stored already; open watchers see it on the next change notice
        try:
            await self._redis.publish(
                self._channel(collection),
                json.dumps({"type": "added", "id": doc_id, **data}),
            )
        except RedisError as exc:
            logger.warning(
                "realtime.notify_failed",
                collection=collection,
                doc_id=doc_id,
                error=str(exc),
            )
        return doc_id

    async def query(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        try:
            raw = await self._redis.hgetall(self._docs_key(collection))
        except RedisError as exc:
            raise RealtimeError(f"Query on {collection} failed: {exc}") from exc

        docs = []
        for doc_id, payload in raw.items():
            try:
                data = json.loads(payload)
            except json.JSONDecodeError:
                logger.warning("realtime.bad_document", collection=collection, doc_id=doc_id)
                continue
            if data.get(field) == value:
                docs.append({"id": doc_id, **data})
        # Hash order is arbitrary; sort for a stable rendering
        docs.sort(key=lambda d: d["id"])
        return docs

    async def watch(
        self, collection: str, field: str, value: Any
    ) -> AsyncIterator[list[dict[str, Any]]]:
        pubsub = self._redis.pubsub()
        channel = self._channel(collection)
        try:
            try:
                await pubsub.subscribe(channel)
            except RedisError as exc:
                raise RealtimeError(f"Subscribe to {channel} failed: {exc}") from exc

            yield await self.query(collection, field, value)

            try:
                async for message in pubsub.listen():
                    if message["type"] != "message":
                        continue
                    try:
                        change = json.loads(message["data"])
                    except json.JSONDecodeError:
                        continue
                    if change.get(field) != value:
                        continue
                    yield await self.query(collection, field, value)
            except RedisError as exc:
                raise RealtimeError(f"Lost subscription to {channel}: {exc}") from exc
        finally:
            try:
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()
            except RedisError as exc:
                logger.warning("realtime.unsubscribe_failed", channel=channel, error=str(exc))

    async def aclose(self) -> None:
        await self._redis.aclose()
