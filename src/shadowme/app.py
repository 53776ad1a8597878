from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shadowme.api.middleware.correlation_id import CorrelationIdMiddleware
from shadowme.api.v1.routers import health, sessions, ws
from shadowme.application.exceptions import AuthenticationError, NotFoundError, ValidationError
from shadowme.application.ports.users import UserDirectory
from shadowme.config import settings
from shadowme.infrastructure.users.directory import InMemoryUserDirectory
from shadowme.infrastructure.ws.manager import RoomConnectionManager
from shadowme.services.session_relay import SessionRelay

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    logger.info("Session relay ready")
    yield
    logger.info("Session relay stopped (%d open connections)", app.state.relay.manager.connection_count)


def create_app(users: UserDirectory | None = None) -> FastAPI:
    app = FastAPI(
        title="ShadowMe Session Relay",
        version="0.1.0",
        lifespan=lifespan,
    )
    directory = users or InMemoryUserDirectory(
        settings.DEV_USERS, open_registration=settings.USER_DIRECTORY_OPEN,
    )
    app.state.relay = SessionRelay(RoomConnectionManager(), directory)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(sessions.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(AuthenticationError)
    async def _unauthenticated(_req: Request, exc: AuthenticationError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"detail": exc.detail})
