"""API route aggregation.

All routers registered here get mounted in main.py.
"""

from fastapi import APIRouter

from usersync.api.health import router as health_router
from usersync.api.users import router as users_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(users_router, tags=["users"])
