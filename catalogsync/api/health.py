"""
Liveness and readiness routes.

`/health` never touches storage. `/ready` queries the catalog tables so a
missing schema shows up as not ready, not only a dead connection.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.db.database import get_session
from catalogsync.models.db import HeroDB, TagDB

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class ProbeResult(BaseModel):
    status: str
    database: str | None = None
    heroes: int | None = None
    tags: int | None = None


@router.get("/health", response_model=ProbeResult)
async def health() -> ProbeResult:
    return ProbeResult(status="healthy")


@router.get("/ready", response_model=ProbeResult, responses={503: {"model": ProbeResult}})
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ProbeResult:
    """Ready once the catalog tables answer; 503 otherwise."""
    try:
        heroes = await session.scalar(select(func.count(HeroDB.id)))
        tags = await session.scalar(select(func.count(TagDB.id)))
    except SQLAlchemyError as e:
        logger.error("Catalog storage not ready: %s", e)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ProbeResult(status="not ready", database="unavailable")
    return ProbeResult(status="ready", database="connected", heroes=heroes or 0, tags=tags or 0)
