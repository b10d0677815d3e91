"""medtrack application entry point.

Quick Start:
    $ medtrack serve           # Start the API server

Environment:
    MEDTRACK_ENV               # development/production (default: development)
    MEDTRACK_LOG_LEVEL         # DEBUG/INFO/WARNING/ERROR (default: INFO)
    STORAGE_BACKEND            # local/remote (default: local)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from medtrack import __version__
from medtrack.api.routes import router, set_services
from medtrack.config import get_settings
from medtrack.database import close_db, init_db
from medtrack.logging_config import bind_request_context, clear_request_context, get_logger, setup_logging
from medtrack.services import Services

setup_logging()
logger = get_logger(__name__)

_services: Services | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    global _services
    settings = get_settings()
    logger.info("medtrack_starting", version=__version__, storage_backend=settings.storage_backend)

    if not settings.is_remote:
        await init_db()

    _services = Services(settings)
    set_services(_services)

    logger.info("medtrack_ready", version=__version__, env=settings.medtrack_env)

    yield

    await _shutdown()


async def _shutdown() -> None:
    """Release the store and database connections."""
    global _services
    logger.info("medtrack_shutting_down")
    if _services is not None:
        try:
            await _services.shutdown()
        except Exception as exc:
            logger.warning("store_close_error", error=str(exc))
        _services = None
    set_services(None)

    try:
        await close_db()
    except Exception as exc:
        logger.warning("db_close_error", error=str(exc))
    logger.info("medtrack_stopped")


app = FastAPI(
    title="medtrack",
    description="Family medical tracking: appointments, treatments, exams and doses",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_log_context(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Tag every log event of a request with its id and caller."""
    request_id = request.headers.get("x-request-id") or uuid4().hex[:12]
    bind_request_context(
        request_id,
        request.headers.get("x-user-id"),
        method=request.method,
        path=request.url.path,
    )
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers["X-Request-Id"] = request_id
    return response


app.include_router(router, prefix="/api")


def run() -> None:
    """Start the API server with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "medtrack.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.medtrack_env == "development",
        log_level=settings.medtrack_log_level.lower(),
    )


if __name__ == "__main__":
    run()
