"""FastAPI application factory for the reference REST backend.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Every error leaves the server as {"error": "<message>"} with
the matching status code, which is the shape UsersApiClient expects;
FastAPI's own {"detail": ...} never reaches a client.

Run with:  usersync serve   (or: uvicorn usersync.main:app --port 3000)
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from usersync import __version__
from usersync.api import api_router
from usersync.config import settings
from usersync.middleware.request_id import RequestIdMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "usersync.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.backend_port,
    )
    yield
    logger.info("usersync.shutdown")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    logger.info("usersync.invalid_request", path=request.url.path, problems=problems)
    return JSONResponse(status_code=400, content={"error": "; ".join(problems)})


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="usersync REST backend",
        description="Reference user store for the usersync client",
        version=__version__,
        lifespan=lifespan,
    )

    # Starlette runs middleware in reverse order of registration.
    # Request flow: CORS → RequestId → handler
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: usersync.main:app)
app = create_app()
