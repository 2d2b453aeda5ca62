from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from swapride_chat.config import settings
from swapride_chat.devserver.auth import HS256Verifier
from swapride_chat.devserver.exceptions import ForbiddenError, NotFoundError, ValidationError
from swapride_chat.devserver.rooms import RoomManager
from swapride_chat.devserver.routers import conversations, health, uploads, ws
from swapride_chat.devserver.seed import seed_demo_data
from swapride_chat.devserver.store import InMemoryChatStore

logger = logging.getLogger(__name__)


def create_app(
    store: InMemoryChatStore | None = None,
    *,
    jwt_secret: str | None = None,
    seed: bool | None = None,
) -> FastAPI:
    seed = settings.DEVSERVER_SEED if seed is None else seed

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if seed:
            seed_demo_data(app.state.store)
        logger.info("SwapRide chat devserver ready")
        yield

    app = FastAPI(
        title="SwapRide Chat Devserver",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store if store is not None else InMemoryChatStore()
    app.state.rooms = RoomManager()
    app.state.verifier = HS256Verifier(jwt_secret or settings.JWT_SECRET, settings.JWT_ALGORITHM)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(uploads.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})
