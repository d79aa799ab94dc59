"""
SQLAlchemy ORM models for the reference admin API.

Four entity tables plus the `card_tags` join. Tags are global; a card's tag
membership lives only in the join table.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


card_tags = Table(
    "card_tags",
    Base.metadata,
    Column("card_id", ForeignKey("cards.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class HeroDB(Base):
    """A hero. `(name, industry)` is unique."""

    __tablename__ = "heroes"
    __table_args__ = (UniqueConstraint("name", "industry", name="uq_hero_name_industry"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    industry: Mapped[str] = mapped_column(String(100), index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    movies: Mapped[list["MovieDB"]] = relationship(
        back_populates="hero", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<HeroDB(id={self.id}, name={self.name})>"


class MovieDB(Base):
    """A movie belonging to one hero."""

    __tablename__ = "movies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hero_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("heroes.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(String(255))
    locked: Mapped[bool] = mapped_column(Boolean, default=False)
    need_review: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    hero: Mapped["HeroDB"] = relationship(back_populates="movies")
    cards: Mapped[list["CardDB"]] = relationship(
        back_populates="movie", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<MovieDB(id={self.id}, title={self.title}, locked={self.locked})>"


class CardDB(Base):
    """A card belonging to one movie. `hero_id` is denormalized from the movie."""

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hero_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("heroes.id", ondelete="CASCADE"), index=True
    )
    movie_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("movies.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(20))
    call_sign: Mapped[str] = mapped_column(String(255), default="")
    ability_text: Mapped[str] = mapped_column(Text, default="")
    ability_text2: Mapped[str] = mapped_column(Text, default="")
    need_review: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    movie: Mapped["MovieDB"] = relationship(back_populates="cards")
    tags: Mapped[list["TagDB"]] = relationship(secondary=card_tags, order_by="TagDB.name")

    def __repr__(self) -> str:
        return f"<CardDB(id={self.id}, name={self.name})>"


class TagDB(Base):
    """A global tag."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    def __repr__(self) -> str:
        return f"<TagDB(id={self.id}, name={self.name})>"
