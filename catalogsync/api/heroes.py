"""
Hero API endpoints.

Heroes are listed with movie and card counts. Movies are created under
their hero, and both of a hero's bulk reads (movies, cards) live here.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.db import (
    create_hero,
    create_movie,
    delete_hero,
    list_cards,
    list_heroes,
    list_movies,
    update_hero,
)
from catalogsync.db.database import get_session
from catalogsync.models.failure import Envelope

router = APIRouter(prefix="/heroes", tags=["heroes"])

Rows = list[dict[str, Any]]


class HeroCreateRequest(BaseModel):
    """Request model for creating a hero."""

    name: str = Field(default="", examples=["Thor"])
    industry: str = Field(default="", examples=["Marvel"])


class HeroUpdateRequest(BaseModel):
    """Partial hero update. Omitted fields are left unchanged."""

    name: str | None = None
    industry: str | None = None


class MovieCreateRequest(BaseModel):
    """Request model for creating a movie under a hero."""

    title: str = Field(default="", examples=["Ragnarok"])


@router.get("")
async def get_heroes(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[Rows]:
    """List heroes ordered by industry, then name."""
    return Envelope.ok(await list_heroes(session))


@router.post("")
async def post_hero(
    request: HeroCreateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[dict[str, Any]]:
    """Create a hero. A duplicate (name, industry) pair is a 409."""
    return Envelope.ok(await create_hero(session, request.name, request.industry), "Hero created")


@router.patch("/{hero_id}")
async def patch_hero(
    hero_id: int,
    request: HeroUpdateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[dict[str, Any]]:
    fields = request.model_dump(exclude_unset=True)
    return Envelope.ok(await update_hero(session, hero_id, fields), "Hero updated")


@router.delete("/{hero_id}")
async def remove_hero(
    hero_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[None]:
    """Delete a hero with all of its movies and cards."""
    await delete_hero(session, hero_id)
    return Envelope.ok(None, "Hero deleted")


@router.get("/{hero_id}/movies")
async def get_hero_movies(
    hero_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[Rows]:
    return Envelope.ok(await list_movies(session, hero_id))


@router.post("/{hero_id}/movies")
async def post_movie(
    hero_id: int,
    request: MovieCreateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[dict[str, Any]]:
    """Create an unlocked movie for a hero."""
    return Envelope.ok(await create_movie(session, hero_id, request.title), "Movie created")


@router.get("/{hero_id}/cards")
async def get_hero_cards(
    hero_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[Rows]:
    return Envelope.ok(await list_cards(session, hero_id=hero_id))
