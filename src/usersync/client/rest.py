"""REST client — fetch and create users on the HTTP backend.

Learn: Every call goes through _request(), which normalizes the two
shapes a backend can answer with:

  2xx      → decoded JSON body (a dict)
  non-2xx  → ApiError carrying the server's {"error": ...} message

A body that is not JSON (an HTML error page from a proxy, say) is wrapped
as {"error": <raw text>} instead of blowing up the caller. Reads treat
that as "no data"; creates treat it as a failure. Transport
failures (refused connection, DNS, reset) become ApiError too, so callers
handle exactly one exception type.
"""

from typing import Any, Optional

import httpx
import structlog
from pydantic import ValidationError

from usersync.errors import ApiError
from usersync.schemas.user import User

logger = structlog.get_logger()

USERS_GET_PATH = "/api/userGet"
USERS_POST_PATH = "/api/userPost"


def parse_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a response body into a dict, never raising."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return {"error": text or f"HTTP {response.status_code} with empty body"}
    if isinstance(body, dict):
        return body
    return {"error": "Unexpected response shape", "raw": body}


class UsersApiClient:
    """Async client for /api/userGet and /api/userPost.

    Use as an async context manager, or call aclose() when done.
    A transport can be injected for tests (httpx.MockTransport or
    httpx.ASGITransport against the reference backend).
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> "UsersApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ─── Operations ──────────────────────────────────────

    async def fetch_users(self, domain: str) -> list[User]:
        """GET the REST store's users for one domain."""
        body = await self._request("GET", USERS_GET_PATH, params={"domain": domain})
        data = body.get("data")
        if not isinstance(data, list):
            return []
        try:
            return [User.model_validate(item) for item in data if isinstance(item, dict)]
        except ValidationError as exc:
            raise ApiError(f"Malformed user record from backend: {exc}") from exc

    async def create_user(self, name: str, email: str, domain: str) -> dict[str, Any]:
        """POST a new user to the REST store.

        An error-shaped body fails the create even on a 2xx status.
        """
        return await self._request(
            "POST",
            USERS_POST_PATH,
            json={"name": name, "email": email, "domain": domain},
            strict=True,
        )

    # ─── Plumbing ────────────────────────────────────────

    async def _request(
        self, method: str, path: str, *, strict: bool = False, **kwargs: Any
    ) -> dict[str, Any]:
        if not self.base_url:
            raise ApiError("Backend URL is not configured (set USERSYNC_BACKEND_IP)")

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("rest.request_failed", method=method, path=path, error=str(exc))
            raise ApiError(f"Request failed: {exc}") from exc

        body = parse_body(response)
        if not response.is_success:
            message = body.get("error") or "Request failed"
            logger.error(
                "rest.error_response",
                method=method,
                path=path,
                status=response.status_code,
                error=message,
            )
            raise ApiError(str(message), status_code=response.status_code, payload=body)

        if strict and "error" in body:
            logger.error(
                "rest.error_body",
                method=method,
                path=path,
                status=response.status_code,
                error=body["error"],
            )
            raise ApiError(str(body["error"]), status_code=response.status_code, payload=body)

        return body
