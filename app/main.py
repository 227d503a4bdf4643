from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.router import router
from app.core.config import settings
from app.core.cors import PathCORSMiddleware
from app.core.database import db
from app.core.errors import ConfigError
from app.core.firebase import firebase
from app.repositories.family.repository import FamilyRepository
from app.repositories.member.repository import MemberRepository
from app.workers.fetcher import close_http_client


def _configure_logging() -> None:
    """Configure the ``app`` logger namespace.

    ``logging.basicConfig`` is a no-op when the root logger already has
    handlers (uvicorn installs its own before our lifespan runs), so the
    ``app`` namespace gets its own handler with ``propagate = False``.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    app_log = logging.getLogger("app")
    app_log.setLevel(level)
    if not app_log.handlers:
        app_log.addHandler(handler)
    app_log.propagate = False


_configure_logging()

logger = logging.getLogger("app.main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # ── Startup ──────────────────────────────────────────────────────
    await db.connect()
    for repo_cls in (FamilyRepository, MemberRepository):
        await repo_cls.from_db(db).ensure_indexes()
    try:
        firebase.initialize()
    except ConfigError as exc:
        # Only the notification endpoint depends on Firebase.
        logger.error("Firebase Admin initialization failed: %s", exc.message)
    yield
    # ── Shutdown ─────────────────────────────────────────────────────
    await close_http_client()
    firebase.shutdown()
    await db.disconnect()


app = FastAPI(
    title="Shukku List API",
    description="Product previews and family push notifications for the shopping list.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(PathCORSMiddleware, allow_origins=settings.cors_allow_origins)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed requests as 400 with a one-line message."""
    detail = "Invalid request"
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{detail}: {location or 'body'}: {first.get('msg')}"
    return JSONResponse(status_code=400, content={"detail": detail})


app.include_router(router)


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    """Liveness probe; also reports whether MongoDB answers."""
    database_up = await db.ping()
    return {
        "status": "ok" if database_up else "degraded",
        "database": "up" if database_up else "down",
    }
