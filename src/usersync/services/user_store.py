"""In-memory user repository behind the reference REST backend.

Learn: The backend's real storage engine is someone else's concern; this
repository only has to hand out document-style ids ("_id", 24 hex chars)
and answer equality queries on domain. Records live as long as the
server process.
"""

import secrets
from datetime import datetime, timezone
from typing import Any, Optional


def new_object_id() -> str:
    return secrets.token_hex(12)


class UserRepository:
    """Business logic for the REST user store."""

    def __init__(self) -> None:
        self._users: list[dict[str, Any]] = []

    async def create_user(self, name: str, email: str, domain: str) -> dict[str, Any]:
        user = {
            "_id": new_object_id(),
            "name": name,
            "email": email,
            "domain": domain,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self._users.append(user)
        return dict(user)

    async def list_users(self, domain: Optional[str] = None) -> list[dict[str, Any]]:
        return [
            dict(user)
            for user in self._users
            if domain is None or user["domain"] == domain
        ]

    async def count(self) -> int:
        return len(self._users)


# One repository per server process
_repository = UserRepository()


def get_user_repository() -> UserRepository:
    """FastAPI dependency — the process-wide repository."""
    return _repository
