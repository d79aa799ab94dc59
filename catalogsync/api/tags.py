"""Tag API endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync.db import create_tag, delete_tag, list_tags, update_tag
from catalogsync.db.database import get_session
from catalogsync.models.failure import Envelope

router = APIRouter(prefix="/tags", tags=["tags"])


class TagRequest(BaseModel):
    name: str = ""


@router.get("")
async def get_tags(
    session: Annotated[AsyncSession, Depends(get_session)],
    hero_id: int | None = None,
) -> Envelope[list[dict[str, Any]]]:
    """Tags ordered by name. `hero_id` scopes the card counts to that hero."""
    return Envelope.ok(await list_tags(session, hero_id))


@router.post("")
async def post_tag(
    request: TagRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[dict[str, Any]]:
    return Envelope.ok(await create_tag(session, request.name), "Tag created")


@router.patch("/{tag_id}")
async def patch_tag(
    tag_id: int,
    request: TagRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[dict[str, Any]]:
    fields = request.model_dump(exclude_unset=True)
    return Envelope.ok(await update_tag(session, tag_id, fields), "Tag updated")


@router.delete("/{tag_id}")
async def remove_tag(
    tag_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Envelope[None]:
    await delete_tag(session, tag_id)
    return Envelope.ok(None, "Tag deleted")
