"""Exception types shared by the client side of usersync.

Learn: Each backing store gets its own failure type so callers can tell
"the REST backend said no" apart from "the realtime store is down".
Driver exceptions (httpx, redis) are wrapped at the edge and never leak
into the coordinator or the view model.
"""

from typing import Any, Optional


class UserSyncError(Exception):
    """Base class for usersync failures."""


class ApiError(UserSyncError):
    """Raised when a REST call fails: network error or non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


class RealtimeError(UserSyncError):
    """Raised when the realtime store cannot be read, written or watched."""
