"""
CatalogSync services.

Client-side sync core: entity store, API client, mutations, tags, rendering.
"""

from catalogsync.services.entity_store import EntityStore
from catalogsync.services.mutation_controller import (
    InFlightTracker,
    LoggingNotifier,
    MutationController,
    MutationOutcome,
    MutationState,
    Notifier,
)
from catalogsync.services.remote_api import CatalogApiClient, RemoteApi
from catalogsync.services.render_trigger import (
    NullRenderer,
    RenderDecision,
    Renderer,
    RenderTrigger,
    Viewport,
)
from catalogsync.services.screen import (
    Action,
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
from catalogsync.services.tag_reconciler import TagReconciler

__all__ = [
    "Action",
    "AddTag",
    "CatalogApiClient",
    "ClearFilters",
    "CreateEntity",
    "Deactivate",
    "DeleteEntity",
    "DispatchResult",
    "EntityStore",
    "InFlightTracker",
    "LoadScope",
    "LoggingNotifier",
    "MutationController",
    "MutationOutcome",
    "MutationState",
    "Notifier",
    "NullRenderer",
    "RemoteApi",
    "RemoveTag",
    "RenderDecision",
    "RenderTrigger",
    "Renderer",
    "ScreenController",
    "SetFilter",
    "SetTags",
    "SortBy",
    "SwitchViewMode",
    "TagReconciler",
    "ToggleLock",
    "ToggleReview",
    "UpdateEntity",
    "Viewport",
    "decide_render",
]
