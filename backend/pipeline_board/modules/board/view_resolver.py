from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from ...domain.opportunity import Opportunity
from ...domain.view import (
    BUILT_IN_VIEW_IDS,
    Column,
    View,
    built_in_kind_for_id,
    built_in_view,
    built_in_views,
)
from ...observability.logging import get_logger
from .grouping import BoardParams, count_hidden_quarterly, group_opportunities, virtual_columns

log = get_logger("view_resolver")


@dataclass(frozen=True, slots=True)
class ResolvedBoard:
    view: View
    columns: tuple[Column, ...]
    buckets: dict[str, list[Opportunity]]
    hidden_count: int = 0
    draggable: bool = False
    show_all_quarters: bool = False

    def column_ids(self) -> set[str]:
        return {c.id for c in self.columns}

    def column_for(self, opportunity_id: str) -> str | None:
        oid = str(opportunity_id or "").strip()
        for cid, opps in self.buckets.items():
            if any(o.id == oid for o in opps):
                return cid
        return None

    def to_api(self) -> dict[str, Any]:
        return {
            "view": self.view.model_dump(mode="json", exclude={"columns"}),
            "columns": [
                {
                    **c.model_dump(mode="json"),
                    "opportunities": [o.model_dump(mode="json") for o in self.buckets.get(c.id, [])],
                }
                for c in self.columns
            ],
            "hiddenCount": self.hidden_count,
            "draggable": self.draggable,
            "showAllQuarters": self.show_all_quarters,
        }


def _custom(views: Iterable[View]) -> list[View]:
    return [v for v in (views or []) if not v.isBuiltIn and v.kind == "custom"]


def most_recently_accessed(views: Sequence[View]) -> View:
    def key(v: View) -> tuple[float, str]:
        ts = v.lastAccessedAt.timestamp() if v.lastAccessedAt else float("-inf")
        return (-ts, v.id)

    return sorted(views, key=key)[0]


def available_views(views: Iterable[View]) -> list[View]:
    """Built-in views first (fixed order), then custom views by name."""
    customs = sorted(_custom(views), key=lambda v: (v.name.lower(), v.id))
    return [*built_in_views(), *customs]


def built_in_kind_from_preference(preference: str | None) -> str | None:
    """Accepts either a kind ("stage") or a built-in view id ("built-in-stage")."""
    p = str(preference or "").strip()
    if not p:
        return None
    if p in BUILT_IN_VIEW_IDS:
        return p
    return built_in_kind_for_id(p)


def pick_default_view(views: Iterable[View], default_view: str = "quarterly") -> View:
    defaults = [v for v in _custom(views) if v.isDefault]
    if defaults:
        return most_recently_accessed(defaults)
    kind = built_in_kind_from_preference(default_view) or "quarterly"
    return built_in_view(kind)


def resolve_active_view(
    views: Iterable[View],
    *,
    active_custom_view_id: str | None = None,
    built_in_preference: str | None = None,
    default_view: str = "quarterly",
) -> View:
    """
    Single active view, by precedence:

    1. a custom view flagged active (by id, or by its persisted `isActive` flag);
    2. the local built-in preference, when it names a known built-in view;
    3. the configured default.

    Several active custom views in stored data are not an error; the most
    recently accessed one wins.
    """
    customs = _custom(views)

    wanted = str(active_custom_view_id or "").strip()
    if wanted:
        for v in customs:
            if v.id == wanted:
                return v
        log.warning("active_custom_view_missing", view_id=wanted)

    active = [v for v in customs if v.isActive]
    if active:
        if len(active) > 1:
            log.warning("multiple_active_custom_views", view_ids=[v.id for v in active])
        return most_recently_accessed(active)

    kind = built_in_kind_from_preference(built_in_preference)
    if kind:
        return built_in_view(kind)
    if built_in_preference:
        log.info("unknown_built_in_preference_ignored", preference=str(built_in_preference))

    return pick_default_view(customs, default_view)


def materialize(view: View, opportunities: Sequence[Opportunity], params: BoardParams) -> ResolvedBoard:
    """
    Columns and buckets for a view. Virtual columns are regenerated here and
    anything stored on a virtual view is ignored.
    """
    opps = list(opportunities or [])
    if view.is_virtual:
        columns = virtual_columns(view.kind, opps, params)
    else:
        columns = sorted(view.columns, key=lambda c: (c.order, c.id))

    buckets = group_opportunities(view.kind, opps, columns, params)
    hidden = count_hidden_quarterly(opps, columns, params) if view.kind == "quarterly" else 0

    return ResolvedBoard(
        view=view,
        columns=tuple(columns),
        buckets=buckets,
        hidden_count=hidden,
        draggable=view.is_draggable,
        show_all_quarters=params.show_all_quarters if view.kind == "quarterly" else False,
    )


def resolve_board(
    views: Iterable[View],
    opportunities: Sequence[Opportunity],
    params: BoardParams,
    *,
    active_custom_view_id: str | None = None,
    built_in_preference: str | None = None,
    default_view: str = "quarterly",
) -> ResolvedBoard:
    view = resolve_active_view(
        views,
        active_custom_view_id=active_custom_view_id,
        built_in_preference=built_in_preference,
        default_view=default_view,
    )
    board = materialize(view, opportunities, params)
    log.debug(
        "board_resolved",
        view_id=view.id,
        kind=view.kind,
        columns=len(board.columns),
        hidden_count=board.hidden_count,
    )
    return board
