"""
Card API endpoints.

Card tags are only ever replaced as a whole set via PUT /cards/{id}/tags.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.db import create_card, delete_card, set_card_tags, update_card
from catalogsync.db.database import get_session
from catalogsync.models.failure import Envelope

router = APIRouter(prefix="/cards", tags=["cards"])


class CardCreateRequest(BaseModel):
    """Request model for creating a card. Validation happens in the db layer."""

    hero_id: int | None = None
    movie_id: int | None = None
    name: str = ""
    type: str = Field(default="", description="HERO, VILLAIN, SR1, SR2 or WC")
    call_sign: str = ""
    ability_text: str = ""
    ability_text2: str = ""
    need_review: bool = False


class CardUpdateRequest(BaseModel):
    """Partial card update. Omitted fields are left unchanged."""

    movie_id: int | None = None
    name: str | None = None
    type: str | None = None
    call_sign: str | None = None
    ability_text: str | None = None
    ability_text2: str | None = None
    need_review: bool | None = None


class CardTagsRequest(BaseModel):
    """Full replacement of a card's tags."""

    tag_ids: list[int] = Field(default_factory=list, examples=[[1, 3]])


@router.post("")
async def post_card(
    request: CardCreateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[dict[str, Any]]:
    return Envelope.ok(await create_card(session, request.model_dump()), "Card created")


@router.patch("/{card_id}")
async def patch_card(
    card_id: int,
    request: CardUpdateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[dict[str, Any]]:
    fields = request.model_dump(exclude_unset=True)
    return Envelope.ok(await update_card(session, card_id, fields), "Card updated")


@router.delete("/{card_id}")
async def remove_card(
    card_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[None]:
    await delete_card(session, card_id)
    return Envelope.ok(None, "Card deleted")


@router.put("/{card_id}/tags")
async def put_card_tags(
    card_id: int,
    request: CardTagsRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[dict[str, Any]]:
    """Replace the card's tag set. Unknown tag ids are a 400."""
    return Envelope.ok(await set_card_tags(session, card_id, request.tag_ids), "Tags updated")
