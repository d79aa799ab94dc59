"""
Render trigger: the one place that turns a render decision into repaint calls.

Every dispatched action yields a `RenderDecision`:

- FULL: the column/filter structure changed (view mode switch, scope load,
  filters reset). Header, filter controls and body are rebuilt. Scroll
  offsets survive; focus does not, since the focused input was replaced.
- BODY_ONLY: data, filter values or sort changed. Only the rows are
  replaced. Scroll offsets and the focused filter input (with its cursor)
  are captured before the repaint and restored after it.
- NONE: nothing visible changed.

INVARIANT: any mutation that changes entity data is followed by at least a
BODY_ONLY render, including its rollback.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol

from catalogsync.filtering import compute_view
from catalogsync.models.scope import ScreenContext
from catalogsync.services.entity_store import EntityStore

logger = logging.getLogger(__name__)


class RenderDecision(str, Enum):
    FULL = "full"
    BODY_ONLY = "body_only"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class Viewport:
    """Scroll and focus state preserved across a repaint."""

    scroll_left: float = 0.0
    scroll_top: float = 0.0
    page_top: float = 0.0
    focused_filter: str | None = None
    cursor: int | None = None


class Renderer(Protocol):
    """Presentation layer driven by the render trigger."""

    def render_shell(self, context: ScreenContext) -> None: ...

    def render_body(self, rows: list[Any]) -> None: ...

    def capture_viewport(self) -> Viewport: ...

    def restore_viewport(self, viewport: Viewport) -> None: ...


class NullRenderer:
    """Renderer that draws nothing. Used for headless screens."""

    def render_shell(self, context: ScreenContext) -> None:
        pass

    def render_body(self, rows: list[Any]) -> None:
        pass

    def capture_viewport(self) -> Viewport:
        return Viewport()

    def restore_viewport(self, viewport: Viewport) -> None:
        pass


class RenderTrigger:
    """Consumes render decisions for one screen."""

    def __init__(self, context: ScreenContext, store: EntityStore, renderer: Renderer) -> None:
        self.context = context
        self.store = store
        self.renderer = renderer
        self.last_decision = RenderDecision.NONE

    def view(self) -> list[Any]:
        """Current filtered, sorted rows for the active collection."""
        collection = self.context.collection
        return compute_view(
            collection,
            self.store.items(collection),
            self.context.active_filters,
            self.context.sort,
        )

    def apply(self, decision: RenderDecision) -> None:
        """Repaint according to `decision`."""
        self.last_decision = decision
        if decision == RenderDecision.NONE:
            return

        viewport = self.renderer.capture_viewport()
        rows = self.view()
        logger.debug("Render %s: %d rows", decision.value, len(rows))

        if decision == RenderDecision.FULL:
            self.renderer.render_shell(self.context)
            self.renderer.render_body(rows)
            self.renderer.restore_viewport(replace(viewport, focused_filter=None, cursor=None))
            return

        self.renderer.render_body(rows)
        self.renderer.restore_viewport(viewport)
