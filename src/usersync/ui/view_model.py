"""View model — the state behind the user-management screen.

Learn: The screen shows two lists that share a filter but nothing else:

  rest_users / rest_loading   ← UsersApiClient.fetch_users(domain)
  live_users / live_loading   ← RealtimeSubscriptionManager.subscribe(domain)

Changing the filter restarts both. Responses can arrive late, so every
update is checked against the filter it was requested for; anything
meant for an older filter is dropped instead of overwriting the current
list. The lists are never merged or compared with each other.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import structlog

from usersync.client.rest import UsersApiClient
from usersync.errors import ApiError
from usersync.realtime.subscriptions import RealtimeSubscriptionManager
from usersync.schemas.user import User
from usersync.services.dual_write import DualWriteCoordinator, SubmitOutcome, SubmitStatus

logger = structlog.get_logger()

Listener = Callable[[], None]


@dataclass(frozen=True)
class Notice:
    """A message meant for the person using the screen."""

    level: str  # "info" | "warning" | "error"
    text: str


class UserDirectoryViewModel:
    def __init__(
        self,
        api: UsersApiClient,
        realtime: RealtimeSubscriptionManager,
        coordinator: DualWriteCoordinator,
        domains: Sequence[str],
    ):
        if not domains:
            raise ValueError("at least one domain is required")
        self.api = api
        self.realtime = realtime
        self.coordinator = coordinator
        self.domains = tuple(domains)

        self.domain = self.domains[0]
        self.name = ""
        self.email = ""

        self.rest_users: list[User] = []
        self.live_users: list[User] = []
        self.rest_loading = True
        self.live_loading = True

        self.notices: list[Notice] = []
        self._listeners: list[Listener] = []
        self._fetch_generation = 0

    # ─── Observers ───────────────────────────────────────

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _notify_user(self, level: str, text: str) -> None:
        self.notices.append(Notice(level, text))

    @property
    def last_notice(self) -> Optional[Notice]:
        return self.notices[-1] if self.notices else None

    # ─── Filter ──────────────────────────────────────────

    async def start(self) -> None:
        """Load both lists for the initial filter."""
        await self.set_domain(self.domain)

    async def set_domain(self, domain: str) -> None:
        """Switch the filter: resubscribe the live list, refetch the REST list."""
        if domain not in self.domains:
            raise ValueError(f"unknown domain {domain!r}")
        self.domain = domain
        self._resubscribe()
        await self.refresh_rest()

    def _resubscribe(self) -> None:
        domain = self.domain
        self.live_loading = True
        self._changed()
        # The manager cancels the previous subscription before opening this one
        self.realtime.subscribe(
            domain,
            on_update=lambda users: self._on_live_update(domain, users),
            on_error=lambda exc: self._on_live_error(domain, exc),
        )

    def _on_live_update(self, domain: str, users: list[User]) -> None:
        if domain != self.domain:
            return
        self.live_users = list(users)
        self.live_loading = False
        self._changed()

    def _on_live_error(self, domain: str, exc: Exception) -> None:
        if domain != self.domain:
            return
        logger.error("view.live_list_failed", domain=domain, error=str(exc))
        self.live_users = []
        self.live_loading = False
        self._changed()

    # ─── REST list ───────────────────────────────────────

    async def refresh_rest(self) -> None:
        """Refetch the REST list for the current filter."""
        self._fetch_generation += 1
        generation = self._fetch_generation
        domain = self.domain

        self.rest_loading = True
        self._changed()

        try:
            users = await self.api.fetch_users(domain)
            error = None
        except ApiError as exc:
            users = []
            error = exc

        if generation != self._fetch_generation:
            logger.debug("view.stale_rest_response", domain=domain)
            return

        if error is not None:
            self._notify_user("error", f"Could not load users: {error.message}")
        self.rest_users = users
        self.rest_loading = False
        self._changed()

    # ─── Form ────────────────────────────────────────────

    async def submit(self) -> SubmitOutcome:
        """Submit the form fields to both stores.

        Fields are cleared once the REST store has the user (also on a
        partial write, where resubmitting would duplicate the REST record).
        They stay populated on rejection or failure so the user can retry.
        """
        outcome = await self.coordinator.submit(
            self.name, self.email, self.domain, refresh=self.refresh_rest
        )

        if outcome.rest_written:
            self.name = ""
            self.email = ""

        level = {
            SubmitStatus.CREATED: "info",
            SubmitStatus.PARTIAL: "warning",
        }.get(outcome.status, "error")
        self._notify_user(level, outcome.message)
        self._changed()
        return outcome

    async def close(self) -> None:
        """Tear the live subscription down."""
        await self.realtime.close()
