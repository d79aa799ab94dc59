"""Tests for the render trigger."""

import pytest

from catalogsync.models.catalog import Collection, Hero
from catalogsync.models.scope import HeroFilters, Scope, ScopeKind, ScreenContext, SortState
from catalogsync.services.entity_store import EntityStore
from catalogsync.services.render_trigger import RenderDecision, RenderTrigger, Viewport
from tests.conftest import RecordingRenderer

SCROLLED = Viewport(scroll_left=120.0, scroll_top=480.0, page_top=30.0, focused_filter="name", cursor=3)


@pytest.fixture
def trigger(renderer: RecordingRenderer) -> RenderTrigger:
    context = ScreenContext(scope=Scope(ScopeKind.HEROES))
    store = EntityStore()
    store.load(
        Collection.HEROES,
        [Hero(1, "Thor", "Marvel"), Hero(2, "Batman", "DC"), Hero(3, "Hulk", "Marvel")],
    )
    return RenderTrigger(context, store, renderer)


class TestBodyOnly:
    def test_preserves_scroll_and_focus(self, trigger: RenderTrigger, renderer: RecordingRenderer) -> None:
        """A body-only repaint puts scroll offsets, focus and cursor back."""
        renderer.viewport = SCROLLED

        trigger.apply(RenderDecision.BODY_ONLY)

        assert renderer.viewport == SCROLLED
        assert renderer.calls == ["body", "restore"]

    def test_renders_current_view(self, trigger: RenderTrigger, renderer: RecordingRenderer) -> None:
        """Rows reflect the active filters and sort."""
        trigger.context.filters[Collection.HEROES] = HeroFilters(industry="marvel")
        trigger.context.sort = SortState("name")

        trigger.apply(RenderDecision.BODY_ONLY)

        assert [h.name for h in renderer.last_rows] == ["Hulk", "Thor"]


class TestFull:
    def test_rebuilds_shell_and_keeps_scroll(self, trigger: RenderTrigger, renderer: RecordingRenderer) -> None:
        """A full repaint keeps scroll offsets but drops the replaced input's focus."""
        renderer.viewport = SCROLLED

        trigger.apply(RenderDecision.FULL)

        assert renderer.calls == ["shell", "body", "restore"]
        assert renderer.viewport.scroll_top == 480.0
        assert renderer.viewport.focused_filter is None
        assert renderer.viewport.cursor is None


class TestNone:
    def test_draws_nothing(self, trigger: RenderTrigger, renderer: RecordingRenderer) -> None:
        """NONE leaves the screen alone."""
        trigger.apply(RenderDecision.NONE)

        assert renderer.calls == []
        assert trigger.last_decision == RenderDecision.NONE
