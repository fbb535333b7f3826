"""User API routes — the REST store's two endpoints.

Learn: Route and body shapes are fixed by the clients already in the
field:

  GET  /api/userGet?domain=a.shop.com   → {"data": [user, ...]}
  POST /api/userPost {name,email,domain} → 201 {"message": ..., "data": user}

Failures answer {"error": "..."} (see the exception handlers in main.py).
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException

from usersync.config import settings
from usersync.schemas.user import UserCreate
from usersync.services.user_store import UserRepository, get_user_repository

logger = structlog.get_logger()
router = APIRouter()


@router.get("/userGet")
async def list_users(
    domain: Optional[str] = None,
    repo: UserRepository = Depends(get_user_repository),
):
    """List users, optionally filtered by domain."""
    return {"data": await repo.list_users(domain)}


@router.post("/userPost", status_code=201)
async def create_user(
    body: UserCreate,
    repo: UserRepository = Depends(get_user_repository),
):
    if body.domain not in settings.domains:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown domain {body.domain!r}",
        )
    user = await repo.create_user(name=body.name, email=body.email, domain=body.domain)
    logger.info("users.created", user_id=user["_id"], domain=user["domain"])
    return {"message": "User added", "data": user}
