"""
Database CRUD operations for the admin API.

Every function takes an AsyncSession, flushes but never commits (the
session dependency commits), and raises KnownError subclasses for anything
the caller did wrong. Rows handed back to the API layer are plain dicts in
wire shape.

Deletes are issued as explicit statements, children first, so nothing
relies on lazy loading or on SQLite enforcing foreign keys.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from catalogsync.config import LOCKED_MOVIE_MUTATION_MESSAGE
from catalogsync.models.catalog import CardType
from catalogsync.models.db import CardDB, HeroDB, MovieDB, TagDB, card_tags
from catalogsync.models.failure import (
    ConflictError,
    FailureKind,
    MovieLockedError,
    NotFoundError,
    PreconditionError,
)

Row = dict[str, Any]


def _require_text(fields: Mapping[str, Any], *names: str) -> None:
    for name in names:
        if name in fields and not str(fields[name] or "").strip():
            raise PreconditionError(
                f"Missing required field: {name}", kind=FailureKind.MISSING_REQUIRED
            )


def _card_type(value: Any) -> str:
    try:
        return CardType(str(value).strip().upper()).value
    except ValueError as e:
        allowed = ", ".join(t.value for t in CardType)
        raise PreconditionError(f"Invalid card type {value!r} (expected one of {allowed})") from e


def _ensure_unlocked(movie: MovieDB) -> None:
    if movie.locked:
        raise MovieLockedError(movie.id, LOCKED_MOVIE_MUTATION_MESSAGE)


# --- Hero Operations ---


def _hero_counts() -> tuple[Any, Any, Any]:
    total_movies = (
        select(func.count(MovieDB.id))
        .where(MovieDB.hero_id == HeroDB.id)
        .correlate(HeroDB)
        .scalar_subquery()
        .label("total_movies")
    )
    pending_movies = (
        select(func.count(MovieDB.id))
        .where(MovieDB.hero_id == HeroDB.id, MovieDB.locked.is_(False))
        .correlate(HeroDB)
        .scalar_subquery()
        .label("pending_movies")
    )
    total_cards = (
        select(func.count(CardDB.id))
        .where(CardDB.hero_id == HeroDB.id)
        .correlate(HeroDB)
        .scalar_subquery()
        .label("total_cards")
    )
    return total_movies, pending_movies, total_cards


def hero_to_row(hero: HeroDB, total_movies: int = 0, pending_movies: int = 0, total_cards: int = 0) -> Row:
    """Convert a hero and its counts to a wire row."""
    return {
        "id": hero.id,
        "name": hero.name,
        "industry": hero.industry,
        "total_movies": total_movies or 0,
        "pending_movies": pending_movies or 0,
        "total_cards": total_cards or 0,
    }


async def list_heroes(session: AsyncSession) -> list[Row]:
    """All heroes with movie/card counts, ordered by industry then name."""
    result = await session.execute(
        select(HeroDB, *_hero_counts()).order_by(HeroDB.industry, HeroDB.name)
    )
    return [hero_to_row(*row) for row in result.all()]


async def get_hero(session: AsyncSession, hero_id: int) -> HeroDB:
    """
    Get a hero by id.

    Raises:
        NotFoundError: If no hero has this id
    """
    hero = await session.get(HeroDB, hero_id)
    if hero is None:
        raise NotFoundError("hero", hero_id)
    return hero


async def get_hero_row(session: AsyncSession, hero_id: int) -> Row:
    result = await session.execute(select(HeroDB, *_hero_counts()).where(HeroDB.id == hero_id))
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("hero", hero_id)
    return hero_to_row(*row)


async def _ensure_unique_hero(
    session: AsyncSession, name: str, industry: str, exclude_id: int | None = None
) -> None:
    stmt = select(HeroDB.id).where(
        func.lower(HeroDB.name) == name.lower(),
        func.lower(HeroDB.industry) == industry.lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(HeroDB.id != exclude_id)
    if (await session.execute(stmt)).first() is not None:
        raise ConflictError(f"Hero {name} already exists in {industry}")


async def create_hero(session: AsyncSession, name: str, industry: str) -> Row:
    """
    Create a hero.

    Raises:
        PreconditionError: If name or industry is empty
        ConflictError: If the (name, industry) pair already exists
    """
    name, industry = name.strip(), industry.strip()
    _require_text({"name": name, "industry": industry}, "name", "industry")
    await _ensure_unique_hero(session, name, industry)

    hero = HeroDB(name=name, industry=industry)
    session.add(hero)
    await session.flush()
    return hero_to_row(hero)


async def update_hero(session: AsyncSession, hero_id: int, fields: Mapping[str, Any]) -> Row:
    """Rename a hero or move it to another industry."""
    if not fields:
        raise PreconditionError("Nothing to update", kind=FailureKind.MISSING_REQUIRED)
    _require_text(fields, "name", "industry")
    hero = await get_hero(session, hero_id)
    name = str(fields.get("name", hero.name)).strip()
    industry = str(fields.get("industry", hero.industry)).strip()
    await _ensure_unique_hero(session, name, industry, exclude_id=hero_id)

    hero.name = name
    hero.industry = industry
    await session.flush()
    return await get_hero_row(session, hero_id)


async def delete_hero(session: AsyncSession, hero_id: int) -> None:
    """Delete a hero with all of its movies, cards and card tags."""
    await get_hero(session, hero_id)
    card_ids = select(CardDB.id).where(CardDB.hero_id == hero_id)
    await session.execute(delete(card_tags).where(card_tags.c.card_id.in_(card_ids)))
    await session.execute(delete(CardDB).where(CardDB.hero_id == hero_id))
    await session.execute(delete(MovieDB).where(MovieDB.hero_id == hero_id))
    await session.execute(delete(HeroDB).where(HeroDB.id == hero_id))


# --- Movie Operations ---


def _movie_counts() -> tuple[Any, Any]:
    total_cards = (
        select(func.count(CardDB.id))
        .where(CardDB.movie_id == MovieDB.id)
        .correlate(MovieDB)
        .scalar_subquery()
        .label("total_cards")
    )
    review_cards = (
        select(func.count(CardDB.id))
        .where(CardDB.movie_id == MovieDB.id, CardDB.need_review.is_(True))
        .correlate(MovieDB)
        .scalar_subquery()
        .label("review_cards")
    )
    return total_cards, review_cards


def movie_to_row(movie: MovieDB, total_cards: int = 0, review_cards: int = 0) -> Row:
    """Convert a movie and its card counts to a wire row."""
    return {
        "id": movie.id,
        "hero_id": movie.hero_id,
        "title": movie.title,
        "locked": movie.locked,
        "need_review": movie.need_review,
        "total_cards": total_cards or 0,
        "review_cards": review_cards or 0,
    }


async def list_movies(session: AsyncSession, hero_id: int) -> list[Row]:
    """A hero's movies with card counts, in creation order."""
    await get_hero(session, hero_id)
    result = await session.execute(
        select(MovieDB, *_movie_counts()).where(MovieDB.hero_id == hero_id).order_by(MovieDB.id)
    )
    return [movie_to_row(*row) for row in result.all()]


async def get_movie(session: AsyncSession, movie_id: int) -> MovieDB:
    """
    Get a movie by id.

    Raises:
        NotFoundError: If no movie has this id
    """
    movie = await session.get(MovieDB, movie_id)
    if movie is None:
        raise NotFoundError("movie", movie_id)
    return movie


async def get_movie_row(session: AsyncSession, movie_id: int) -> Row:
    result = await session.execute(
        select(MovieDB, *_movie_counts()).where(MovieDB.id == movie_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("movie", movie_id)
    return movie_to_row(*row)


async def create_movie(session: AsyncSession, hero_id: int, title: str) -> Row:
    await get_hero(session, hero_id)
    title = title.strip()
    _require_text({"title": title}, "title")

    movie = MovieDB(hero_id=hero_id, title=title, locked=False, need_review=False)
    session.add(movie)
    await session.flush()
    return movie_to_row(movie)


async def update_movie(session: AsyncSession, movie_id: int, fields: Mapping[str, Any]) -> Row:
    """
    Partial movie update.

    A locked movie only accepts a change to `locked` itself.

    Raises:
        PreconditionError: If nothing is being updated or title is empty
        MovieLockedError: If the movie is locked and other fields change
    """
    if not fields:
        raise PreconditionError("Title or need_review is required", kind=FailureKind.MISSING_REQUIRED)
    _require_text(fields, "title")
    movie = await get_movie(session, movie_id)
    if set(fields) - {"locked"}:
        _ensure_unlocked(movie)

    if "title" in fields:
        movie.title = str(fields["title"]).strip()
    if "need_review" in fields:
        movie.need_review = bool(fields["need_review"])
    if "locked" in fields:
        movie.locked = bool(fields["locked"])
    await session.flush()
    return await get_movie_row(session, movie_id)


async def delete_movie(session: AsyncSession, movie_id: int) -> None:
    movie = await get_movie(session, movie_id)
    _ensure_unlocked(movie)
    card_ids = select(CardDB.id).where(CardDB.movie_id == movie_id)
    await session.execute(delete(card_tags).where(card_tags.c.card_id.in_(card_ids)))
    await session.execute(delete(CardDB).where(CardDB.movie_id == movie_id))
    await session.execute(delete(MovieDB).where(MovieDB.id == movie_id))


# --- Card Operations ---


def card_to_row(card: CardDB) -> Row:
    """Convert a card (with movie and tags loaded) to a wire row."""
    return {
        "id": card.id,
        "hero_id": card.hero_id,
        "movie_id": card.movie_id,
        "movie_title": card.movie.title if card.movie is not None else "",
        "name": card.name,
        "type": card.type,
        "call_sign": card.call_sign,
        "ability_text": card.ability_text,
        "ability_text2": card.ability_text2,
        "need_review": card.need_review,
        "tags": [{"id": tag.id, "name": tag.name} for tag in card.tags],
    }


def _card_query() -> Any:
    return select(CardDB).options(selectinload(CardDB.tags), selectinload(CardDB.movie))


async def list_cards(
    session: AsyncSession, hero_id: int | None = None, movie_id: int | None = None
) -> list[Row]:
    """Cards of a hero or of a movie, in creation order."""
    stmt = _card_query().order_by(CardDB.id)
    if hero_id is not None:
        await get_hero(session, hero_id)
        stmt = stmt.where(CardDB.hero_id == hero_id)
    if movie_id is not None:
        await get_movie(session, movie_id)
        stmt = stmt.where(CardDB.movie_id == movie_id)
    result = await session.execute(stmt)
    return [card_to_row(card) for card in result.scalars().all()]


async def get_card(session: AsyncSession, card_id: int) -> CardDB:
    """
    Get a card with its movie and tags loaded.

    Raises:
        NotFoundError: If no card has this id
    """
    result = await session.execute(
        _card_query().where(CardDB.id == card_id).execution_options(populate_existing=True)
    )
    card = result.scalar_one_or_none()
    if card is None:
        raise NotFoundError("card", card_id)
    return card


async def _movie_for_card(session: AsyncSession, hero_id: int, movie_id: int) -> MovieDB:
    movie = await get_movie(session, movie_id)
    if movie.hero_id != hero_id:
        raise PreconditionError(
            f"Movie {movie_id} does not belong to hero {hero_id}",
            kind=FailureKind.INVARIANT_VIOLATION,
        )
    _ensure_unlocked(movie)
    return movie


async def create_card(session: AsyncSession, fields: Mapping[str, Any]) -> Row:
    """
    Create a card in an unlocked movie.

    Raises:
        PreconditionError: Missing name, bad type, or movie/hero mismatch
        MovieLockedError: If the movie is locked
    """
    for name in ("hero_id", "movie_id", "name", "type"):
        if fields.get(name) in (None, ""):
            raise PreconditionError(
                f"Missing required field: {name}", kind=FailureKind.MISSING_REQUIRED
            )
    _require_text(fields, "name")
    await _movie_for_card(session, int(fields["hero_id"]), int(fields["movie_id"]))

    card = CardDB(
        hero_id=int(fields["hero_id"]),
        movie_id=int(fields["movie_id"]),
        name=str(fields["name"]).strip(),
        type=_card_type(fields["type"]),
        call_sign=str(fields.get("call_sign") or ""),
        ability_text=str(fields.get("ability_text") or ""),
        ability_text2=str(fields.get("ability_text2") or ""),
        need_review=bool(fields.get("need_review", False)),
    )
    session.add(card)
    await session.flush()
    return card_to_row(await get_card(session, card.id))


async def update_card(session: AsyncSession, card_id: int, fields: Mapping[str, Any]) -> Row:
    if not fields:
        raise PreconditionError("Nothing to update", kind=FailureKind.MISSING_REQUIRED)
    _require_text(fields, "name", "type")
    card = await get_card(session, card_id)
    _ensure_unlocked(card.movie)
    if "movie_id" in fields and fields["movie_id"] != card.movie_id:
        await _movie_for_card(session, card.hero_id, int(fields["movie_id"]))
        card.movie_id = int(fields["movie_id"])

    for name in ("name", "call_sign", "ability_text", "ability_text2"):
        if name in fields:
            setattr(card, name, str(fields[name] or "").strip())
    if "type" in fields:
        card.type = _card_type(fields["type"])
    if "need_review" in fields:
        card.need_review = bool(fields["need_review"])
    await session.flush()
    return card_to_row(await get_card(session, card_id))


async def delete_card(session: AsyncSession, card_id: int) -> None:
    card = await get_card(session, card_id)
    _ensure_unlocked(card.movie)
    await session.execute(delete(card_tags).where(card_tags.c.card_id == card_id))
    await session.execute(delete(CardDB).where(CardDB.id == card_id))


async def set_card_tags(session: AsyncSession, card_id: int, tag_ids: Sequence[int]) -> Row:
    """
    Replace a card's whole tag set.

    Raises:
        PreconditionError: If any tag id does not exist
        MovieLockedError: If the card's movie is locked
    """
    card = await get_card(session, card_id)
    _ensure_unlocked(card.movie)

    wanted = list(dict.fromkeys(tag_ids))
    tags: list[TagDB] = []
    if wanted:
        result = await session.execute(select(TagDB).where(TagDB.id.in_(wanted)))
        tags = list(result.scalars().all())
    missing = sorted(set(wanted) - {tag.id for tag in tags})
    if missing:
        raise PreconditionError(
            f"Unknown tag ids: {', '.join(map(str, missing))}", kind=FailureKind.NOT_FOUND
        )

    card.tags = tags
    await session.flush()
    return card_to_row(await get_card(session, card_id))


# --- Tag Operations ---


def _tag_card_count(hero_id: int | None) -> Any:
    stmt = select(func.count(card_tags.c.card_id)).where(card_tags.c.tag_id == TagDB.id)
    if hero_id is not None:
        stmt = stmt.select_from(
            card_tags.join(CardDB, CardDB.id == card_tags.c.card_id)
        ).where(CardDB.hero_id == hero_id)
    return stmt.correlate(TagDB).scalar_subquery().label("card_count")


def tag_to_row(tag: TagDB, card_count: int = 0) -> Row:
    return {"id": tag.id, "name": tag.name, "card_count": card_count or 0}


async def list_tags(session: AsyncSession, hero_id: int | None = None) -> list[Row]:
    """All tags ordered by name, with card counts (scoped to a hero if given)."""
    result = await session.execute(
        select(TagDB, _tag_card_count(hero_id)).order_by(TagDB.name)
    )
    return [tag_to_row(*row) for row in result.all()]


async def get_tag(session: AsyncSession, tag_id: int) -> TagDB:
    tag = await session.get(TagDB, tag_id)
    if tag is None:
        raise NotFoundError("tag", tag_id)
    return tag


async def _ensure_unique_tag(session: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    stmt = select(TagDB.id).where(func.lower(TagDB.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(TagDB.id != exclude_id)
    if (await session.execute(stmt)).first() is not None:
        raise ConflictError(f"Tag {name} already exists")


async def create_tag(session: AsyncSession, name: str) -> Row:
    name = name.strip()
    _require_text({"name": name}, "name")
    await _ensure_unique_tag(session, name)

    tag = TagDB(name=name)
    session.add(tag)
    await session.flush()
    return tag_to_row(tag)


async def update_tag(session: AsyncSession, tag_id: int, fields: Mapping[str, Any]) -> Row:
    if "name" not in fields:
        raise PreconditionError("Missing required field: name", kind=FailureKind.MISSING_REQUIRED)
    _require_text(fields, "name")
    tag = await get_tag(session, tag_id)
    name = str(fields["name"]).strip()
    await _ensure_unique_tag(session, name, exclude_id=tag_id)

    tag.name = name
    await session.flush()
    result = await session.execute(select(TagDB, _tag_card_count(None)).where(TagDB.id == tag_id))
    return tag_to_row(*result.one())


async def delete_tag(session: AsyncSession, tag_id: int) -> None:
    """Delete a tag and detach it from every card."""
    await get_tag(session, tag_id)
    await session.execute(delete(card_tags).where(card_tags.c.tag_id == tag_id))
    await session.execute(delete(TagDB).where(TagDB.id == tag_id))
