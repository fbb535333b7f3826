"""Health check endpoint."""

from fastapi import APIRouter, Depends

from usersync import __version__
from usersync.services.user_store import UserRepository, get_user_repository

router = APIRouter()


@router.get("/health")
async def health_check(repo: UserRepository = Depends(get_user_repository)):
    """Report server status, version and how many users are stored."""
    return {
        "status": "healthy",
        "server": "ok",
        "version": __version__,
        "users": await repo.count(),
    }
