from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

import anyio

from ...domain.view import BUILT_IN_VIEW_IDS, View
from ...errors import ActivationFailed, StoreNotFound, ViewNotFound
from ...observability.logging import get_logger
from ...repositories.base_repository import PreferenceStore, ViewStore
from ...repositories.preferences_repo import BUILT_IN_VIEW_KEY
from .view_resolver import built_in_kind_from_preference, most_recently_accessed

log = get_logger("view_activation")


@dataclass(frozen=True, slots=True)
class ActiveCustomView:
    view_id: str


@dataclass(frozen=True, slots=True)
class NoActiveCustomView:
    # Built-in kind chosen locally, or None to fall through to the default.
    built_in_preference: str | None = None


ActivationState = Union[ActiveCustomView, NoActiveCustomView]


class ViewActivation:
    """
    Single owner of "which view is active".

    A custom view's active flag lives in the View Store; the built-in choice
    lives in the local preference store and only counts while no custom view
    is active. Transitions keep the two consistent.
    """

    def __init__(self, views: ViewStore, preferences: PreferenceStore) -> None:
        self._views = views
        self._preferences = preferences

    def built_in_preference(self) -> str | None:
        return built_in_kind_from_preference(self._preferences.get(BUILT_IN_VIEW_KEY))

    def state_from(self, views: Iterable[View]) -> ActivationState:
        active = [v for v in views or [] if not v.isBuiltIn and v.isActive]
        if active:
            return ActiveCustomView(view_id=most_recently_accessed(active).id)
        return NoActiveCustomView(built_in_preference=self.built_in_preference())

    async def state(self) -> ActivationState:
        views = await anyio.to_thread.run_sync(self._views.list)
        return self.state_from(views)

    async def select_built_in(self, kind: str) -> ActivationState:
        k = str(kind or "").strip()
        if k not in BUILT_IN_VIEW_IDS:
            raise ValueError(f"Unknown built-in view kind: {kind!r}")

        try:
            await anyio.to_thread.run_sync(self._views.deactivate_all_custom)
        except Exception as e:
            log.warning("built_in_select_failed", kind=k, error=str(e) or type(e).__name__)
            raise ActivationFailed(
                message="Could not switch views; please try again.", view_id=BUILT_IN_VIEW_IDS[k], cause=e
            ) from e

        self._preferences.set(BUILT_IN_VIEW_KEY, k)
        log.info("built_in_view_selected", kind=k)
        return NoActiveCustomView(built_in_preference=k)

    async def select_custom(self, view_id: str) -> ActivationState:
        vid = str(view_id or "").strip()
        if not vid:
            raise ViewNotFound(message="View not found", view_id=vid)

        try:
            # Activation and sibling deactivation are one store call.
            await anyio.to_thread.run_sync(self._views.activate_custom, vid)
        except StoreNotFound as e:
            raise ViewNotFound(message="View not found", view_id=vid) from e
        except Exception as e:
            log.warning("custom_view_activation_failed", view_id=vid, error=str(e) or type(e).__name__)
            raise ActivationFailed(
                message="Could not switch views; please try again.", view_id=vid, cause=e
            ) from e

        self._preferences.set(BUILT_IN_VIEW_KEY, None)
        log.info("custom_view_activated", view_id=vid)
        return ActiveCustomView(view_id=vid)
