"""Dual-write coordinator — one submission, two independent stores.

Learn: There is no transaction spanning the REST store and the realtime
store. submit() therefore runs a fixed sequence and reports where it
stopped:

  validate ──✗──→ invalid   (no network call at all)
     │
  REST create ──✗──→ failed   (realtime write never attempted)
     │
  realtime insert ──✗──→ partial  (REST has the record, realtime doesn't)
     │
  created

Nothing is rolled back or retried. A partial write leaves the stores
diverged until someone resubmits; the outcome message says so. Both stores
assign their own ids, and the two records are not linked.
"""

import enum
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

import structlog

from usersync.client.rest import UsersApiClient
from usersync.errors import ApiError, RealtimeError
from usersync.realtime.store import RealtimeStore

logger = structlog.get_logger()

Refresh = Callable[[], Awaitable[None]]


class SubmitStatus(str, enum.Enum):
    CREATED = "created"
    PARTIAL = "partial"
    FAILED = "failed"
    INVALID = "invalid"


@dataclass
class SubmitOutcome:
    status: SubmitStatus
    message: str
    rest_response: Optional[dict[str, Any]] = None
    realtime_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is SubmitStatus.CREATED

    @property
    def rest_written(self) -> bool:
        return self.status in (SubmitStatus.CREATED, SubmitStatus.PARTIAL)


class DualWriteCoordinator:
    """Writes a new user to the REST store, then to the realtime store."""

    def __init__(
        self,
        api: UsersApiClient,
        store: RealtimeStore,
        collection: str = "users",
        domains: Optional[Sequence[str]] = None,
    ):
        self.api = api
        self.store = store
        self.collection = collection
        self.domains = tuple(domains) if domains else None

    def validate(self, name: str, email: str, domain: str) -> Optional[str]:
        """Return a user-facing complaint, or None if the input is fine."""
        if not name.strip() or not email.strip():
            return "Please enter both name and email."
        if self.domains is not None and domain not in self.domains:
            return f"Unknown domain {domain!r}. Choose one of: {', '.join(self.domains)}."
        return None

    async def submit(
        self,
        name: str,
        email: str,
        domain: str,
        refresh: Optional[Refresh] = None,
    ) -> SubmitOutcome:
        problem = self.validate(name, email, domain)
        if problem:
            return SubmitOutcome(SubmitStatus.INVALID, problem)

        name, email = name.strip(), email.strip()
        log = logger.bind(domain=domain, email=email)

        # 1. REST store
        try:
            rest_response = await self.api.create_user(name, email, domain)
        except ApiError as exc:
            log.warning("dual_write.rest_failed", error=exc.message, status=exc.status_code)
            return SubmitOutcome(SubmitStatus.FAILED, f"Failed to add user: {exc.message}")

        # 2. Realtime store, only once REST accepted the user
        try:
            realtime_id = await self.store.insert(
                self.collection, {"name": name, "email": email, "domain": domain}
            )
        except RealtimeError as exc:
            log.error("dual_write.partial", error=str(exc))
            outcome = SubmitOutcome(
                SubmitStatus.PARTIAL,
                "User saved to the REST store, but the realtime write failed. "
                "The live list will not show this user; the stores are not "
                "reconciled automatically.",
                rest_response=rest_response,
            )
        else:
            log.info("dual_write.created", realtime_id=realtime_id)
            outcome = SubmitOutcome(
                SubmitStatus.CREATED,
                "User added successfully!",
                rest_response=rest_response,
                realtime_id=realtime_id,
            )

        # 3. The REST store changed either way, so its list is out of date
        if refresh is not None:
            await refresh()
        return outcome
