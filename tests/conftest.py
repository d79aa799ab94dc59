import asyncio
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, fields, replace
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from catalogsync.db.database import get_session
from catalogsync.main import app
from catalogsync.models.catalog import Card, CardType, Collection, Entity, Hero, Movie, Tag
from catalogsync.models.db import Base
from catalogsync.models.failure import RemoteError
from catalogsync.models.scope import Scope, ScopeKind, ScreenContext
from catalogsync.parsers.payload import TagCatalog
from catalogsync.services.entity_store import EntityStore
from catalogsync.services.mutation_controller import MutationController
from catalogsync.services.render_trigger import RenderTrigger, Viewport
from catalogsync.services.tag_reconciler import TagReconciler

# =============================================================================
# SAMPLE DATA
# =============================================================================

TAG_A = Tag(id=1, name="A")
TAG_B = Tag(id=2, name="B")
TAG_C = Tag(id=3, name="C")

IRON_MAN = Hero(id=1, name="Iron Man", industry="Marvel", total_movies=2, pending_movies=1)
BATMAN = Hero(id=2, name="Batman", industry="DC", total_movies=1, pending_movies=1)

OPEN_MOVIE = Movie(id=10, hero_id=1, title="Iron Man", total_cards=3, review_cards=1)
LOCKED_MOVIE = Movie(id=11, hero_id=1, title="Endgame", locked=True, total_cards=1)


def make_card(card_id: int, movie_id: int = 10, **overrides: Any) -> Card:
    values: dict[str, Any] = {
        "id": card_id,
        "hero_id": 1,
        "movie_id": movie_id,
        "name": f"Card {card_id}",
        "type": CardType.HERO,
        "movie_title": "Iron Man" if movie_id == 10 else "Endgame",
    }
    values.update(overrides)
    return Card(**values)


# =============================================================================
# FAKES
# =============================================================================


@dataclass
class Step:
    """Scripted behaviour for one remote call."""

    gate: asyncio.Event | None = None
    error: RemoteError | None = None


class FakeRemote:
    """
    In-memory RemoteApi.

    Calls succeed immediately unless a step is scripted with `respond()`:
    a step can hold the call on an asyncio.Event and/or fail it.
    """

    def __init__(self) -> None:
        self.entities: dict[Collection, dict[int, Entity]] = {c: {} for c in Collection}
        self.calls: list[tuple[str, Any]] = []
        self.script: deque[Step] = deque()
        self._next_id = 1000

    def seed(self, collection: Collection, *entities: Entity) -> None:
        for entity in entities:
            self.entities[collection][entity.id] = entity

    def respond(self, gate: asyncio.Event | None = None, error: RemoteError | None = None) -> Step:
        step = Step(gate=gate, error=error)
        self.script.append(step)
        return step

    def fail_next(self, message: str = "Server error") -> None:
        self.respond(error=RemoteError(message, status_code=500))

    def hold_next(self, error: RemoteError | None = None) -> asyncio.Event:
        gate = asyncio.Event()
        self.respond(gate=gate, error=error)
        return gate

    def calls_to(self, name: str) -> list[Any]:
        return [args for call, args in self.calls if call == name]

    async def _respond(self, name: str, args: Any) -> None:
        self.calls.append((name, args))
        if not self.script:
            return
        step = self.script.popleft()
        if step.gate is not None:
            await step.gate.wait()
        if step.error is not None:
            raise step.error

    async def fetch_collection(self, scope: Scope) -> list[Entity]:
        await self._respond("fetch_collection", scope)
        rows = list(self.entities[scope.collection].values())
        if scope.kind in (ScopeKind.HERO_MOVIES, ScopeKind.HERO_CARDS):
            rows = [r for r in rows if r.hero_id == scope.hero_id]
        elif scope.kind == ScopeKind.MOVIE_CARDS:
            rows = [r for r in rows if r.movie_id == scope.movie_id]
        return rows

    async def create_entity(self, collection: Collection, payload: dict[str, Any]) -> Entity:
        await self._respond("create_entity", (collection, dict(payload)))
        self._next_id += 1
        entity_id = self._next_id
        entity: Entity
        if collection == Collection.HEROES:
            entity = Hero(id=entity_id, name=payload["name"], industry=payload["industry"])
        elif collection == Collection.MOVIES:
            entity = Movie(id=entity_id, hero_id=payload["hero_id"], title=payload["title"])
        elif collection == Collection.CARDS:
            known = {f.name for f in fields(Card)} - {"id", "type", "tags"}
            extra = {k: v for k, v in payload.items() if k in known}
            entity = Card(id=entity_id, type=CardType(payload["type"]), **extra)
        else:
            entity = Tag(id=entity_id, name=payload["name"])
        self.entities[collection][entity_id] = entity
        return entity

    async def update_entity(
        self, collection: Collection, entity_id: int, payload: dict[str, Any]
    ) -> Entity:
        await self._respond("update_entity", (collection, entity_id, dict(payload)))
        changes = dict(payload)
        if "type" in changes:
            changes["type"] = CardType(changes["type"])
        entity = replace(self.entities[collection][entity_id], **changes)
        self.entities[collection][entity_id] = entity
        return entity

    async def delete_entity(self, collection: Collection, entity_id: int) -> None:
        await self._respond("delete_entity", (collection, entity_id))
        self.entities[collection].pop(entity_id, None)

    async def set_card_tags(self, card_id: int, tag_ids: Sequence[int]) -> None:
        await self._respond("set_card_tags", (card_id, list(tag_ids)))


class RecordingRenderer:
    """
    Renderer that records every call.

    Repainting the body resets the simulated scroll offsets and focus, the
    way rebuilding a table does, so viewport restoration is observable.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.bodies: list[list[Any]] = []
        self.viewport = Viewport()

    def render_shell(self, context: ScreenContext) -> None:
        self.calls.append("shell")
        self.viewport = Viewport()

    def render_body(self, rows: list[Any]) -> None:
        self.calls.append("body")
        self.bodies.append(list(rows))
        self.viewport = replace(self.viewport, scroll_left=0.0, scroll_top=0.0)

    def capture_viewport(self) -> Viewport:
        return self.viewport

    def restore_viewport(self, viewport: Viewport) -> None:
        self.calls.append("restore")
        self.viewport = viewport

    @property
    def last_rows(self) -> list[Any]:
        return self.bodies[-1] if self.bodies else []


class RecordingNotifier:
    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.prompts: list[str] = []
        self.alerts: list[str] = []
        self.notices: list[str] = []

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answer

    def alert(self, message: str) -> None:
        self.alerts.append(message)

    def notice(self, message: str) -> None:
        self.notices.append(message)


@dataclass
class Harness:
    """A screen's core pieces wired together without a ScreenController."""

    context: ScreenContext
    store: EntityStore
    trigger: RenderTrigger
    controller: MutationController
    reconciler: TagReconciler
    catalog: TagCatalog
    remote: FakeRemote
    renderer: RecordingRenderer
    notifier: RecordingNotifier


async def settle() -> None:
    """Let scheduled tasks run up to their next blocking await."""
    for _ in range(5):
        await asyncio.sleep(0)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_harness(fake_remote: FakeRemote, renderer: RecordingRenderer, notifier: RecordingNotifier):
    def _make(scope: Scope, tags: Sequence[Tag] = (TAG_A, TAG_B, TAG_C)) -> Harness:
        context = ScreenContext(scope=scope)
        store = EntityStore()
        catalog = TagCatalog(tags)
        trigger = RenderTrigger(context, store, renderer)
        controller = MutationController(context, store, fake_remote, trigger, notifier)
        return Harness(
            context=context,
            store=store,
            trigger=trigger,
            controller=controller,
            reconciler=TagReconciler(controller, catalog),
            catalog=catalog,
            remote=fake_remote,
            renderer=renderer,
            notifier=notifier,
        )

    return _make


@pytest.fixture
def card_screen(make_harness) -> Harness:
    """Cards of movie 10, with both of the hero's movies loaded."""
    harness = make_harness(Scope(ScopeKind.MOVIE_CARDS, hero_id=1, movie_id=10))
    cards = [
        make_card(100, tags=(TAG_A, TAG_B)),
        make_card(101, need_review=True),
        make_card(102),
        make_card(200, movie_id=11),
    ]
    harness.store.load(Collection.MOVIES, [OPEN_MOVIE, LOCKED_MOVIE])
    harness.store.load(Collection.CARDS, cards)
    harness.remote.seed(Collection.MOVIES, OPEN_MOVIE, LOCKED_MOVIE)
    harness.remote.seed(Collection.CARDS, *cards)
    return harness


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session(async_engine) -> AsyncSession:
    """Provide a database session for tests."""
    async_session = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session


@pytest.fixture
async def client(async_engine):
    """Provide an async test client with overridden database session."""
    async_session = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_session():
        async with async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
