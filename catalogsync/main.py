import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalogsync.api import (
    cards_router,
    health_router,
    heroes_router,
    movies_router,
    tags_router,
)
from catalogsync.config import settings
from catalogsync.db.database import init_db
from catalogsync.models.failure import Envelope, KnownError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("catalogsync"),
    lifespan=lifespan,
)


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    """Every known failure leaves as a `success: false` envelope."""
    logger.info("Rejected request (%s): %s", exc.kind.value, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_envelope().model_dump())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid {location}: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=Envelope.fail(message).model_dump(),
    )


app.include_router(cards_router)
app.include_router(health_router)
app.include_router(heroes_router)
app.include_router(movies_router)
app.include_router(tags_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
