"""
Movie API endpoints.

A locked movie rejects every change except to its own `locked` flag.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.db import delete_movie, get_movie_row, list_cards, update_movie
from catalogsync.db.database import get_session
from catalogsync.models.failure import Envelope

router = APIRouter(prefix="/movies", tags=["movies"])


class MovieUpdateRequest(BaseModel):
    """Partial movie update. Omitted fields are left unchanged."""

    title: str | None = None
    need_review: bool | None = None
    locked: bool | None = None


@router.get("/{movie_id}")
async def get_movie(
    movie_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[dict[str, Any]]:
    return Envelope.ok(await get_movie_row(session, movie_id))


@router.get("/{movie_id}/cards")
async def get_movie_cards(
    movie_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[list[dict[str, Any]]]:
    return Envelope.ok(await list_cards(session, movie_id=movie_id))


@router.patch("/{movie_id}")
async def patch_movie(
    movie_id: int,
    request: MovieUpdateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[dict[str, Any]]:
    """Update title, review flag or lock. An empty body is a 400."""
    fields = request.model_dump(exclude_unset=True)
    return Envelope.ok(await update_movie(session, movie_id, fields), "Movie updated")


@router.delete("/{movie_id}")
async def remove_movie(
    movie_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[None]:
    await delete_movie(session, movie_id)
    return Envelope.ok(None, "Movie deleted")
