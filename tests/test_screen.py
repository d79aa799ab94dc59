"""Tests for the screen controller and action dispatch."""

import asyncio

import pytest

from catalogsync.config import LOCKED_MOVIE_MUTATION_MESSAGE
from catalogsync.models.catalog import Collection, Hero, Movie, Tag
from catalogsync.models.failure import FailureKind, PreconditionError, RemoteError
from catalogsync.models.scope import (
    CardFilters,
    Scope,
    ScopeKind,
    SortDirection,
    SortState,
    ViewMode,
)
from catalogsync.parsers import TagCatalog
from catalogsync.services.mutation_controller import MutationOutcome
from catalogsync.services.render_trigger import RenderDecision
from catalogsync.services.screen import (
    AddTag,
    ClearFilters,
    CreateEntity,
    Deactivate,
    DeleteEntity,
    DispatchResult,
    LoadScope,
    RemoveTag,
    ScreenController,
    SetFilter,
    SetTags,
    SortBy,
    SwitchViewMode,
    ToggleLock,
    ToggleReview,
    UpdateEntity,
    decide_render,
)
from tests.conftest import (
    BATMAN,
    IRON_MAN,
    LOCKED_MOVIE,
    OPEN_MOVIE,
    TAG_A,
    TAG_B,
    TAG_C,
    FakeRemote,
    RecordingNotifier,
    RecordingRenderer,
    make_card,
    settle,
)

HERO_MOVIES = Scope(ScopeKind.HERO_MOVIES, hero_id=1)
MOVIE_CARDS = Scope(ScopeKind.MOVIE_CARDS, hero_id=1, movie_id=10)


@pytest.fixture
def seeded_remote(fake_remote: FakeRemote) -> FakeRemote:
    fake_remote.seed(Collection.HEROES, IRON_MAN, BATMAN)
    fake_remote.seed(Collection.MOVIES, OPEN_MOVIE, LOCKED_MOVIE)
    fake_remote.seed(
        Collection.CARDS,
        make_card(100, tags=(TAG_A, TAG_B)),
        make_card(101, name="Jarvis", need_review=True),
        make_card(102, name="Pepper"),
        make_card(200, movie_id=11),
    )
    fake_remote.seed(Collection.TAGS, TAG_A, TAG_B, TAG_C)
    return fake_remote


@pytest.fixture
def screen(
    seeded_remote: FakeRemote, renderer: RecordingRenderer, notifier: RecordingNotifier
) -> ScreenController:
    return ScreenController(
        Scope(ScopeKind.HEROES),
        seeded_remote,
        catalog=TagCatalog(),
        renderer=renderer,
        notifier=notifier,
    )


class TestDecideRender:
    def test_structure_changes_are_full(self) -> None:
        """Scope loads, view switches and filter resets rebuild the shell."""
        assert decide_render(LoadScope(HERO_MOVIES)) == RenderDecision.FULL
        assert decide_render(SwitchViewMode()) == RenderDecision.FULL
        assert decide_render(ClearFilters()) == RenderDecision.FULL

    def test_value_changes_are_body_only(self) -> None:
        """Filter values and sort only repaint rows."""
        assert decide_render(SetFilter("name", "x")) == RenderDecision.BODY_ONLY
        assert decide_render(SortBy("name")) == RenderDecision.BODY_ONLY

    def test_mutations_depend_on_outcome(self) -> None:
        """Mutations repaint only when they touched local state."""
        toggle = ToggleReview(Collection.CARDS, 1)
        assert decide_render(toggle, MutationOutcome.ROLLED_BACK) == RenderDecision.BODY_ONLY
        assert decide_render(toggle, MutationOutcome.REFUSED) == RenderDecision.NONE
        assert decide_render(AddTag(1, 1), MutationOutcome.SKIPPED) == RenderDecision.NONE
        assert decide_render(DeleteEntity(Collection.CARDS, 1), MutationOutcome.CANCELLED) == (
            RenderDecision.NONE
        )

    def test_failed_create_draws_nothing(self) -> None:
        """A failed create or edit never changed the store."""
        create = CreateEntity(Collection.HEROES, {"name": "X"})
        assert decide_render(create, MutationOutcome.ROLLED_BACK) == RenderDecision.NONE
        assert decide_render(create, MutationOutcome.CONFIRMED) == RenderDecision.BODY_ONLY

    def test_deactivate(self) -> None:
        assert decide_render(Deactivate()) == RenderDecision.NONE


class TestLoadScope:
    async def test_hero_movies(self, screen: ScreenController, renderer: RecordingRenderer) -> None:
        """Loading refreshes the tag catalog, then shows the hero's movies."""
        result = await screen.dispatch(LoadScope(HERO_MOVIES))

        assert result == DispatchResult(RenderDecision.FULL)
        assert [m.id for m in screen.view()] == [10, 11]
        assert screen.catalog.get(3) == TAG_C
        assert screen.store.items(Collection.TAGS) == (TAG_A, TAG_B, TAG_C)
        assert renderer.calls == ["shell", "body", "restore"]

    async def test_movie_cards_loads_hero_movies(
        self, screen: ScreenController, seeded_remote: FakeRemote
    ) -> None:
        """A movie screen knows every movie of its hero, not only its own."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))

        assert [c.id for c in screen.view()] == [100, 101, 102]
        assert screen.store.items(Collection.MOVIES) == (OPEN_MOVIE, LOCKED_MOVIE)
        assert HERO_MOVIES in seeded_remote.calls_to("fetch_collection")

    def test_movie_cards_needs_both_ids(self) -> None:
        """A movie screen cannot be built without its hero and movie."""
        with pytest.raises(PreconditionError) as exc:
            Scope(ScopeKind.MOVIE_CARDS, hero_id=1)
        assert exc.value.kind == FailureKind.MISSING_REQUIRED

        with pytest.raises(PreconditionError):
            Scope(ScopeKind.MOVIE_CARDS, movie_id=10)

    async def test_hero_cards_loads_movies(self, screen: ScreenController) -> None:
        """A hero's card screen knows which of its movies are locked."""
        await screen.dispatch(LoadScope(Scope(ScopeKind.HERO_CARDS, hero_id=1)))

        assert len(screen.view()) == 4
        assert screen.store.get(Collection.MOVIES, 11).locked is True
        assert screen.context.view_mode == ViewMode.CARDS

    async def test_sort_resets_on_scope_change(self, screen: ScreenController) -> None:
        """Each scope starts in server order."""
        await screen.dispatch(LoadScope(Scope(ScopeKind.HEROES)))
        await screen.dispatch(SortBy("name"))

        await screen.dispatch(LoadScope(HERO_MOVIES))

        assert screen.context.sort == SortState()

    async def test_failure_shows_empty_table(
        self, screen: ScreenController, seeded_remote: FakeRemote, notifier: RecordingNotifier
    ) -> None:
        """A failed load renders an empty table and alerts the user."""
        seeded_remote.fail_next("Database unavailable")

        result = await screen.dispatch(LoadScope(Scope(ScopeKind.HEROES)))

        assert result.render == RenderDecision.FULL
        assert result.error == "Database unavailable"
        assert screen.view() == []
        assert notifier.alerts == ["Error loading data: Database unavailable"]

    async def test_tag_refresh_failure_keeps_catalog(
        self, screen: ScreenController, seeded_remote: FakeRemote
    ) -> None:
        """The table still loads when only the tag list fails."""
        screen.catalog.replace([TAG_A])
        seeded_remote.fail_next("tags down")

        result = await screen.dispatch(LoadScope(HERO_MOVIES))

        assert result.render == RenderDecision.FULL
        assert len(screen.view()) == 2
        assert screen.catalog.all() == [TAG_A]

    async def test_stale_load_dropped(self, screen: ScreenController, seeded_remote: FakeRemote) -> None:
        """A slow load that finishes after navigation changes nothing."""
        gate = seeded_remote.hold_next()
        slow = asyncio.create_task(screen.dispatch(LoadScope(Scope(ScopeKind.HEROES))))
        await settle()

        await screen.dispatch(LoadScope(Scope(ScopeKind.TAGS)))
        gate.set()

        assert await slow == DispatchResult(RenderDecision.NONE)
        assert screen.store.items(Collection.HEROES) == ()
        assert screen.context.scope.kind == ScopeKind.TAGS


class TestViewActions:
    async def test_switch_view_mode(self, screen: ScreenController, renderer: RecordingRenderer) -> None:
        """The hero screen flips between movies and cards with a full render."""
        await screen.dispatch(LoadScope(HERO_MOVIES))

        result = await screen.dispatch(SwitchViewMode())

        assert result.render == RenderDecision.FULL
        assert screen.context.scope.kind == ScopeKind.HERO_CARDS
        assert screen.context.view_mode == ViewMode.CARDS
        assert renderer.calls.count("shell") == 2

    async def test_switch_view_mode_outside_hero_screen(
        self, screen: ScreenController, notifier: RecordingNotifier
    ) -> None:
        """Other screens have no view mode."""
        await screen.dispatch(LoadScope(Scope(ScopeKind.HEROES)))

        result = await screen.dispatch(SwitchViewMode(ViewMode.CARDS))

        assert result.render == RenderDecision.NONE
        assert result.outcome == MutationOutcome.REFUSED
        assert len(notifier.notices) == 1

    async def test_set_filter(self, screen: ScreenController, renderer: RecordingRenderer) -> None:
        """Typing in a filter repaints only the body."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))

        result = await screen.dispatch(SetFilter("name", "jar"))

        assert result.render == RenderDecision.BODY_ONLY
        assert [c.name for c in renderer.last_rows] == ["Jarvis"]
        assert renderer.calls[-2:] == ["body", "restore"]

    async def test_unknown_filter(self, screen: ScreenController) -> None:
        """A filter field the collection lacks is refused."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))

        result = await screen.dispatch(SetFilter("rating", "5"))

        assert result.outcome == MutationOutcome.REFUSED

    async def test_clear_filters(self, screen: ScreenController) -> None:
        """Clearing filters resets every field with a full render."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))
        await screen.dispatch(SetFilter("name", "jar"))

        result = await screen.dispatch(ClearFilters())

        assert result.render == RenderDecision.FULL
        assert screen.context.active_filters == CardFilters()
        assert len(screen.view()) == 3

    async def test_sort_toggles(self, screen: ScreenController) -> None:
        """Clicking a header twice reverses the sort."""
        await screen.dispatch(LoadScope(Scope(ScopeKind.HEROES)))

        await screen.dispatch(SortBy("name"))
        assert [h.name for h in screen.view()] == ["Batman", "Iron Man"]

        await screen.dispatch(SortBy("name"))
        assert screen.context.sort.direction == SortDirection.DESC
        assert [h.name for h in screen.view()] == ["Iron Man", "Batman"]

    async def test_unknown_sort_key(self, screen: ScreenController) -> None:
        """Sorting by a column the collection lacks is refused."""
        await screen.dispatch(LoadScope(Scope(ScopeKind.HEROES)))

        result = await screen.dispatch(SortBy("rating"))

        assert result.outcome == MutationOutcome.REFUSED
        assert screen.context.sort == SortState()


class TestMutationDispatch:
    async def test_toggle_review(self, screen: ScreenController) -> None:
        """A confirmed toggle reports a body-only render."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))

        result = await screen.dispatch(ToggleReview(Collection.CARDS, 102))

        assert result == DispatchResult(RenderDecision.BODY_ONLY, MutationOutcome.CONFIRMED)

    async def test_locked_card_refused(
        self, screen: ScreenController, seeded_remote: FakeRemote, notifier: RecordingNotifier
    ) -> None:
        """Toggling a card of a locked movie never reaches the server."""
        await screen.dispatch(LoadScope(Scope(ScopeKind.HERO_CARDS, hero_id=1)))
        before = screen.store.get(Collection.CARDS, 200)
        calls_before = len(seeded_remote.calls)

        result = await screen.dispatch(ToggleReview(Collection.CARDS, 200))

        assert result.render == RenderDecision.NONE
        assert result.outcome == MutationOutcome.REFUSED
        assert len(seeded_remote.calls) == calls_before
        assert screen.store.get(Collection.CARDS, 200) == before
        assert notifier.notices == [LOCKED_MOVIE_MUTATION_MESSAGE]

    async def test_toggle_lock(self, screen: ScreenController) -> None:
        """Locking goes through the controller like any toggle."""
        await screen.dispatch(LoadScope(HERO_MOVIES))

        result = await screen.dispatch(ToggleLock(10))

        assert result.outcome == MutationOutcome.CONFIRMED
        assert screen.store.get(Collection.MOVIES, 10).locked is True

    async def test_delete_asks_first(
        self, screen: ScreenController, seeded_remote: FakeRemote, notifier: RecordingNotifier
    ) -> None:
        """Declining the prompt cancels the delete."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))
        notifier.answer = False

        result = await screen.dispatch(DeleteEntity(Collection.CARDS, 101))

        assert result == DispatchResult(RenderDecision.NONE, MutationOutcome.CANCELLED)
        assert notifier.prompts == ["Delete this card?"]
        assert seeded_remote.calls_to("delete_entity") == []
        assert screen.store.get(Collection.CARDS, 101) is not None

    async def test_delete_confirmed(self, screen: ScreenController) -> None:
        """An accepted delete removes the row."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))

        result = await screen.dispatch(DeleteEntity(Collection.CARDS, 101))

        assert result.outcome == MutationOutcome.CONFIRMED
        assert [c.id for c in screen.view()] == [100, 102]

    async def test_locked_delete_never_prompts(
        self, screen: ScreenController, notifier: RecordingNotifier
    ) -> None:
        """A delete that would be refused does not ask for confirmation."""
        await screen.dispatch(LoadScope(HERO_MOVIES))

        result = await screen.dispatch(DeleteEntity(Collection.MOVIES, 11))

        assert result.outcome == MutationOutcome.REFUSED
        assert notifier.prompts == []

    async def test_create_hero_sorted_by_name(
        self, screen: ScreenController, renderer: RecordingRenderer
    ) -> None:
        """A new hero shows up with its server id in name order."""
        await screen.dispatch(LoadScope(Scope(ScopeKind.HEROES)))
        await screen.dispatch(SortBy("name"))

        result = await screen.dispatch(
            CreateEntity(Collection.HEROES, {"name": "Thor", "industry": "Marvel"})
        )

        assert result == DispatchResult(RenderDecision.BODY_ONLY, MutationOutcome.CONFIRMED)
        assert [h.name for h in renderer.last_rows] == ["Batman", "Iron Man", "Thor"]
        thor = next(h for h in screen.store.items(Collection.HEROES) if h.name == "Thor")
        assert isinstance(thor, Hero)
        assert thor.id not in (IRON_MAN.id, BATMAN.id)

    async def test_update(self, screen: ScreenController) -> None:
        """Edits are applied from the server's response."""
        await screen.dispatch(LoadScope(HERO_MOVIES))

        result = await screen.dispatch(UpdateEntity(Collection.MOVIES, 10, {"title": "Iron Man 1"}))

        assert result.outcome == MutationOutcome.CONFIRMED
        assert screen.store.get(Collection.MOVIES, 10).title == "Iron Man 1"

    async def test_tag_actions(self, screen: ScreenController, seeded_remote: FakeRemote) -> None:
        """Tag actions route through the reconciler."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))

        await screen.dispatch(AddTag(102, 3))
        await screen.dispatch(RemoveTag(100, 1))
        result = await screen.dispatch(SetTags(101, (2, 1)))

        assert result.outcome == MutationOutcome.CONFIRMED
        assert seeded_remote.calls_to("set_card_tags") == [(102, [3]), (100, [2]), (101, [2, 1])]

    async def test_delete_refused_while_toggle_in_flight(
        self, screen: ScreenController, seeded_remote: FakeRemote, notifier: RecordingNotifier
    ) -> None:
        """A card with a pending toggle cannot be deleted, and is not asked about."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))
        gate = seeded_remote.hold_next(error=RemoteError("Database unavailable"))
        toggle = asyncio.create_task(screen.dispatch(ToggleReview(Collection.CARDS, 102)))
        await settle()

        result = await screen.dispatch(DeleteEntity(Collection.CARDS, 102))

        assert result == DispatchResult(RenderDecision.NONE, MutationOutcome.REFUSED)
        assert notifier.prompts == []
        gate.set()
        assert (await toggle).outcome == MutationOutcome.ROLLED_BACK
        assert screen.store.get(Collection.CARDS, 102).need_review is False
        assert seeded_remote.calls_to("delete_entity") == []

    async def test_move_card_into_locked_movie_refused(
        self, screen: ScreenController, seeded_remote: FakeRemote, notifier: RecordingNotifier
    ) -> None:
        """A movie screen checks the lock of the movie a card moves to."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))

        result = await screen.dispatch(UpdateEntity(Collection.CARDS, 100, {"movie_id": 11}))

        assert result.outcome == MutationOutcome.REFUSED
        assert seeded_remote.calls_to("update_entity") == []
        assert notifier.notices == [LOCKED_MOVIE_MUTATION_MESSAGE]
        assert screen.store.get(Collection.CARDS, 100).movie_id == 10

    async def test_move_card_to_unknown_movie_refused(
        self, screen: ScreenController, seeded_remote: FakeRemote, notifier: RecordingNotifier
    ) -> None:
        """A move to a movie that is not loaded never reaches the server."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))

        result = await screen.dispatch(UpdateEntity(Collection.CARDS, 100, {"movie_id": 99}))

        assert result.outcome == MutationOutcome.REFUSED
        assert seeded_remote.calls_to("update_entity") == []
        assert notifier.notices == ["Movie 99 is not loaded"]

    async def test_moved_card_leaves_movie_screen(
        self, screen: ScreenController, seeded_remote: FakeRemote
    ) -> None:
        """A card moved to another open movie drops off the current movie's rows."""
        seeded_remote.seed(Collection.MOVIES, Movie(id=12, hero_id=1, title="Iron Man 2"))
        await screen.dispatch(LoadScope(MOVIE_CARDS))

        result = await screen.dispatch(UpdateEntity(Collection.CARDS, 100, {"movie_id": 12}))

        assert result == DispatchResult(RenderDecision.BODY_ONLY, MutationOutcome.CONFIRMED)
        assert seeded_remote.calls_to("update_entity") == [(Collection.CARDS, 100, {"movie_id": 12})]
        assert [c.id for c in screen.view()] == [101, 102]
        assert screen.store.get(Collection.CARDS, 100) is None

    async def test_response_after_deactivate_discarded(
        self, screen: ScreenController, seeded_remote: FakeRemote
    ) -> None:
        """Closing the screen stops late responses from applying."""
        await screen.dispatch(LoadScope(MOVIE_CARDS))
        gate = seeded_remote.hold_next(error=RemoteError("late"))
        toggle = asyncio.create_task(screen.dispatch(ToggleReview(Collection.CARDS, 102)))
        await settle()

        await screen.dispatch(Deactivate())
        gate.set()

        result = await toggle
        assert result.outcome == MutationOutcome.DISCARDED
        assert screen.store.get(Collection.CARDS, 102).need_review is True


class TestTagScreen:
    async def test_catalog_follows_tag_screen(self, screen: ScreenController) -> None:
        """Creating or deleting tags on the tag screen updates the shared catalog."""
        await screen.dispatch(LoadScope(Scope(ScopeKind.TAGS)))
        assert len(screen.catalog) == 3

        await screen.dispatch(CreateEntity(Collection.TAGS, {"name": "Speed"}))
        assert screen.catalog.find_by_name("speed") is not None

        await screen.dispatch(DeleteEntity(Collection.TAGS, 1))
        assert 1 not in screen.catalog

    async def test_duplicate_tag_refused(self, screen: ScreenController) -> None:
        """A tag name already in the list is refused locally."""
        await screen.dispatch(LoadScope(Scope(ScopeKind.TAGS)))

        result = await screen.dispatch(CreateEntity(Collection.TAGS, {"name": "a"}))

        assert result.outcome == MutationOutcome.REFUSED
        assert screen.catalog.all() == [TAG_A, TAG_B, TAG_C]

    async def test_filter_by_card_count(self, screen: ScreenController, seeded_remote: FakeRemote) -> None:
        """Tag rows filter on their card counts."""
        seeded_remote.seed(Collection.TAGS, Tag(1, "A", card_count=5))
        await screen.dispatch(LoadScope(Scope(ScopeKind.TAGS)))

        await screen.dispatch(SetFilter("min_cards", "1"))

        assert [t.id for t in screen.view()] == [1]
