from __future__ import annotations

import uuid
from contextvars import Token
from datetime import date
from typing import Any, Callable, Iterable, Sequence

import anyio
from anyio.abc import TaskGroup

from ...domain.view import CustomViewSpec, View, built_in_kind_for_id, built_in_view
from ...errors import ViewLimitExceeded, ViewNotFound, WriteFailure
from ...observability.context import board_session_id_var
from ...observability.logging import get_logger
from ...repositories.base_repository import OpportunityStore, PreferenceStore, ViewStore
from ...repositories.preferences_repo import SHOW_ALL_QUARTERS_KEY, parse_flag
from ...settings import Settings, get_settings
from .board_filter import BoardFilter, filter_opportunities
from .board_filter import quarter_options as _quarter_options
from .grouping import DEFAULT_VALUE_TIERS, BoardParams, ValueTier, value_tiers_from_bounds
from .mutation_coordinator import MutationOutcome, OptimisticMutationCoordinator, Scheduler
from .reassignment import translate_reassignment
from .view_activation import ActivationState, ViewActivation
from .view_resolver import ResolvedBoard, available_views, materialize, resolve_board

log = get_logger("board_service")


def _value_tiers(settings: Settings) -> tuple[ValueTier, ...]:
    try:
        bounds = settings.customer_value_bounds()
        return value_tiers_from_bounds(bounds) if bounds else DEFAULT_VALUE_TIERS
    except ValueError as e:
        # Production refuses to boot with bad tiers; dev keeps the defaults.
        log.warning("customer_value_tiers_invalid", error=str(e))
        return DEFAULT_VALUE_TIERS


class BoardService:
    """
    One user's board: stores, settings, the optimistic coordinator and the
    activation state machine behind a small async API.
    """

    def __init__(
        self,
        *,
        opportunities: OpportunityStore,
        views: ViewStore,
        preferences: PreferenceStore,
        settings: Settings | None = None,
        today: Callable[[], date] = date.today,
        schedule: Scheduler | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._opportunity_store = opportunities
        self._view_store = views
        self._preferences = preferences
        self._today = today
        self._schedule = schedule
        self._value_tiers = _value_tiers(self._settings)
        self._views: list[View] = []
        self._loaded = False
        self.last_failure: WriteFailure | None = None
        self._coordinator = OptimisticMutationCoordinator(opportunities, on_error=self._record_failure)
        self._activation = ViewActivation(views, preferences)

    @property
    def coordinator(self) -> OptimisticMutationCoordinator:
        return self._coordinator

    @property
    def activation(self) -> ViewActivation:
        return self._activation

    @property
    def settings(self) -> Settings:
        return self._settings

    def attach_scheduler(self, schedule: Scheduler | None) -> None:
        self._schedule = schedule

    def _record_failure(self, failure: WriteFailure) -> None:
        self.last_failure = failure

    # ---- loading ----

    async def load(self) -> None:
        opportunities = await anyio.to_thread.run_sync(self._opportunity_store.list)
        views = await anyio.to_thread.run_sync(self._view_store.list)
        self._coordinator.replace_all(opportunities)
        self._views = list(views)
        self._loaded = True
        log.info("board_loaded", opportunities=len(opportunities), custom_views=len(self._views))

    async def ensure_loaded(self) -> None:
        if not self._loaded:
            await self.load()

    async def _reload_views(self) -> None:
        self._views = list(await anyio.to_thread.run_sync(self._view_store.list))

    async def refresh(self) -> ResolvedBoard:
        """Re-read opportunities and views from the stores."""
        await self._coordinator.reconcile()
        await self._reload_views()
        return self.board()

    # ---- reads ----

    def show_all_quarters(self) -> bool:
        flag = parse_flag(self._preferences.get(SHOW_ALL_QUARTERS_KEY))
        return self._settings.show_all_quarters if flag is None else flag

    def params(self) -> BoardParams:
        s = self._settings
        return BoardParams(
            fiscal_year_start_month=s.fiscal_year_start_month,
            today=self._today(),
            show_all_quarters=self.show_all_quarters(),
            quarters_past=s.quarters_past,
            quarters_future=s.quarters_future,
            close_date_anchor=s.quarter_close_date_anchor,
            value_tiers=self._value_tiers,
        )

    def views(self) -> list[View]:
        return available_views(self._views)

    def activation_state(self) -> ActivationState:
        return self._activation.state_from(self._views)

    def board(self, *, quarter: str | None = None, search: str | None = None) -> ResolvedBoard:
        """
        Resolve and group the active view. `quarter` and `search` narrow the
        opportunity list first; without them every loaded record is considered.
        """
        opportunities = filter_opportunities(self._coordinator.opportunities, BoardFilter.of(quarter, search))
        return resolve_board(
            self._views,
            opportunities,
            self.params(),
            built_in_preference=self._activation.built_in_preference(),
            default_view=self._settings.default_view,
        )

    def quarter_options(self) -> list[str]:
        return _quarter_options(self._coordinator.opportunities)

    # ---- drag & drop ----

    async def on_reassign(
        self,
        opportunity_id: str,
        source_column_id: str | None,
        target_column_id: str | None,
        *,
        schedule: Scheduler | None = None,
    ) -> MutationOutcome:
        board = self.board()
        translation = translate_reassignment(
            self._coordinator.find(opportunity_id),
            board.view.kind,
            source_column_id,
            target_column_id,
            columns=board.columns,
            fiscal_year_start_month=self._settings.fiscal_year_start_month,
            close_date_anchor=self._settings.quarter_close_date_anchor,
        )
        return await self._coordinator.submit(translation, schedule=schedule or self._schedule)

    # ---- view switching ----

    async def select_built_in(self, kind: str) -> ResolvedBoard:
        await self._activation.select_built_in(kind)
        await self._reload_views()
        return self.board()

    async def select_custom(self, view_id: str) -> ResolvedBoard:
        kind = built_in_kind_for_id(view_id)
        if kind:
            return await self.select_built_in(kind)
        await self._activation.select_custom(view_id)
        await self._reload_views()
        return self.board()

    def set_show_all_quarters(self, flag: bool) -> ResolvedBoard:
        self._preferences.set(SHOW_ALL_QUARTERS_KEY, "true" if flag else "false")
        return self.board()

    # ---- custom views ----

    async def create_custom_view(
        self,
        name: str,
        column_titles: Sequence[str] = (),
        *,
        is_default: bool = False,
        column_colors: Iterable[str | None] | None = None,
        user_id: str | None = None,
        organization_id: str | None = None,
    ) -> View:
        await self._reload_views()
        limit = self._settings.max_custom_views
        if len(self._views) >= limit:
            raise ViewLimitExceeded(message=f"Maximum {limit} custom views per user", limit=limit)

        spec = CustomViewSpec(
            name=str(name or "").strip(),
            columnTitles=[str(t) for t in column_titles or []],
            columnColors=list(column_colors or []),
            isDefault=bool(is_default),
            userId=user_id,
            organizationId=organization_id,
        )
        view = await anyio.to_thread.run_sync(self._view_store.create_custom, spec)
        # New views start active, so the local built-in choice no longer applies.
        await self._activation.select_custom(view.id)
        await self._reload_views()
        log.info("custom_view_created", view_id=view.id, columns=len(view.columns))
        return view

    async def duplicate_view_as_custom(
        self, name: str, *, source_view_id: str | None = None, **kwargs: Any
    ) -> View:
        """
        Copy a view's columns (titles and colors) into a new custom view.

        `source_view_id` may name a built-in view, whose columns are generated
        as they would be shown now, or one of the user's custom views. Without
        it the currently resolved view is copied.
        """
        source = await self._duplicate_source(source_view_id)
        columns = source.columns
        if isinstance(source, View):
            columns = sorted(source.columns, key=lambda c: (c.order, c.id))
            kwargs.setdefault("user_id", source.userId)
            kwargs.setdefault("organization_id", source.organizationId)
        return await self.create_custom_view(
            name,
            [c.title for c in columns],
            column_colors=[c.color for c in columns],
            **kwargs,
        )

    async def _duplicate_source(self, source_view_id: str | None) -> ResolvedBoard | View:
        vid = str(source_view_id or "").strip()
        if not vid:
            return self.board()
        kind = built_in_kind_for_id(vid)
        if kind:
            return materialize(built_in_view(kind), self._coordinator.opportunities, self.params())
        await self._reload_views()
        for view in self._views:
            if view.id == vid:
                return view
        raise ViewNotFound(message="View not found", view_id=vid)


class BoardSession:
    """
    Async context manager around a `BoardService`.

    Background reconciliations run in the session's task group; leaving the
    block waits for any that are still running.
    """

    def __init__(self, service: BoardService, *, session_id: str | None = None) -> None:
        self.service = service
        self.session_id = session_id or uuid.uuid4().hex
        self._task_group: TaskGroup | None = None
        self._token: Token[str | None] | None = None

    async def __aenter__(self) -> BoardService:
        self._token = board_session_id_var.set(self.session_id)
        self._task_group = anyio.create_task_group()
        await self._task_group.__aenter__()
        self.service.attach_scheduler(self._task_group.start_soon)
        try:
            await self.service.load()
        except BaseException:
            # Nothing has been scheduled yet; close the group empty and surface the load error as-is.
            await self._close(None, None, None)
            raise
        log.info("board_session_started")
        return self.service

    async def __aexit__(self, exc_type, exc, tb) -> bool | None:
        log.info("board_session_ended")
        return await self._close(exc_type, exc, tb)

    async def _close(self, exc_type, exc, tb) -> bool | None:
        self.service.attach_scheduler(None)
        task_group, self._task_group = self._task_group, None
        try:
            if task_group is None:
                return None
            return await task_group.__aexit__(exc_type, exc, tb)
        finally:
            if self._token is not None:
                board_session_id_var.reset(self._token)
                self._token = None
