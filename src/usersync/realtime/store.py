"""Realtime store interface and the in-process implementation.

Learn: A RealtimeStore offers three operations:

  insert(collection, data)       → store-assigned document id
  query(collection, field, value) → current documents where field == value
  watch(collection, field, value) → async iterator of full result sets,
                                    first the current one, then one per
                                    relevant change

Documents come back as plain dicts with the id merged in under "id".
"""

import asyncio
import secrets
import string
from collections import defaultdict
from typing import Any, AsyncIterator, Protocol

import structlog

logger = structlog.get_logger()

_ID_ALPHABET = string.ascii_letters + string.digits
DOCUMENT_ID_LENGTH = 20


def new_document_id() -> str:
    """Random 20-char alphanumeric id, the shape document databases hand out."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(DOCUMENT_ID_LENGTH))


class RealtimeStore(Protocol):
    async def insert(self, collection: str, data: dict[str, Any]) -> str: ...

    async def query(
        self, collection: str, field: str, value: Any
    ) -> list[dict[str, Any]]: ...

    def watch(
        self, collection: str, field: str, value: Any
    ) -> AsyncIterator[list[dict[str, Any]]]: ...

    async def aclose(self) -> None: ...


class InMemoryRealtimeStore:
    """Process-local realtime store.

    Every open watch() owns an asyncio.Queue; insert() drops the new
    document onto each queue, and the watcher re-reads its filter when the
    change matches. Documents are returned in insertion order.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._watchers: dict[str, set[asyncio.Queue]] = defaultdict(set)

    async def insert(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = new_document_id()
        self._collections[collection][doc_id] = dict(data)
        change = {"type": "added", "id": doc_id, **data}
        for queue in list(self._watchers[collection]):
            queue.put_nowait(change)
        logger.debug("realtime.inserted", collection=collection, doc_id=doc_id)
        return doc_id

    async def query(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        return self._select(collection, field, value)

    async def watch(
        self, collection: str, field: str, value: Any
    ) -> AsyncIterator[list[dict[str, Any]]]:
        queue: asyncio.Queue = asyncio.Queue()
        self._watchers[collection].add(queue)
        try:
            yield self._select(collection, field, value)
            while True:
                change = await queue.get()
                if change.get(field) != value:
                    continue
                yield self._select(collection, field, value)
        finally:
            self._watchers[collection].discard(queue)

    def watcher_count(self, collection: str) -> int:
        """Number of open watches on a collection."""
        return len(self._watchers[collection])

    async def aclose(self) -> None:
        self._watchers.clear()

    def _select(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        return [
            {"id": doc_id, **doc}
            for doc_id, doc in self._collections[collection].items()
            if doc.get(field) == value
        ]
