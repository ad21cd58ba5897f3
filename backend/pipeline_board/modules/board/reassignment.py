from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Literal, Sequence, Union

from ...domain.opportunity import (
    ForecastCategory,
    Opportunity,
    Stage,
    default_confidence_level,
    default_forecast_category,
)
from ...domain.view import DRAGGABLE_KINDS, Column
from ...observability.logging import get_logger
from .fiscal_calendar import CloseDateAnchor, close_date_for, fiscal_quarter_of, quarter_from_column_id
from .grouping import forecast_for_column_id, stage_for_column_id

log = get_logger("reassignment")

NoOpReason = Literal["invalid_drop_target", "unchanged", "read_only_view", "unknown_opportunity"]


@dataclass(frozen=True, slots=True)
class SetColumnId:
    opportunity_id: str
    column_id: str

    def as_patch(self) -> dict[str, Any]:
        return {"columnId": self.column_id}


@dataclass(frozen=True, slots=True)
class SetCloseDate:
    opportunity_id: str
    close_date: date
    quarter: str

    def as_patch(self) -> dict[str, Any]:
        # The cached quarter label travels with the date so they never disagree.
        return {"closeDate": self.close_date, "quarter": self.quarter}


@dataclass(frozen=True, slots=True)
class SetForecastCategory:
    opportunity_id: str
    forecast_category: ForecastCategory

    def as_patch(self) -> dict[str, Any]:
        return {"forecastCategory": self.forecast_category}


@dataclass(frozen=True, slots=True)
class SetStage:
    opportunity_id: str
    stage: Stage
    confidence_level: int
    forecast_category: ForecastCategory

    def as_patch(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "confidenceLevel": self.confidence_level,
            "forecastCategory": self.forecast_category,
        }


@dataclass(frozen=True, slots=True)
class NoOp:
    reason: NoOpReason
    opportunity_id: str | None = None

    def as_patch(self) -> dict[str, Any]:
        return {}


Mutation = Union[SetColumnId, SetCloseDate, SetForecastCategory, SetStage]
Translation = Union[Mutation, NoOp]


def is_noop(result: Translation) -> bool:
    return isinstance(result, NoOp)


def set_stage(opportunity_id: str, stage: Stage) -> SetStage:
    """Stage change with the confidence/forecast defaults for the new stage."""
    return SetStage(
        opportunity_id=opportunity_id,
        stage=stage,
        confidence_level=default_confidence_level(stage),
        forecast_category=default_forecast_category(stage),
    )


def translate_reassignment(
    opportunity: Opportunity | None,
    view_kind: str,
    source_column_id: str | None,
    target_column_id: str | None,
    *,
    columns: Sequence[Column],
    fiscal_year_start_month: int = 1,
    close_date_anchor: CloseDateAnchor = "start",
) -> Translation:
    """
    Turn a drag from `source_column_id` to `target_column_id` into the field
    mutation the active view kind implies.

    `columns` are the columns currently resolved for the active view; a target
    outside them is not a valid drop. Never raises: anything that cannot be
    translated is a NoOp with a reason.
    """
    if opportunity is None:
        return NoOp(reason="unknown_opportunity")

    oid = opportunity.id
    if view_kind not in DRAGGABLE_KINDS:
        return NoOp(reason="read_only_view", opportunity_id=oid)

    target = str(target_column_id or "").strip()
    if not target or target not in {c.id for c in columns or []}:
        return NoOp(reason="invalid_drop_target", opportunity_id=oid)

    try:
        result = _translate(
            opportunity,
            view_kind,
            target,
            fiscal_year_start_month=fiscal_year_start_month,
            close_date_anchor=close_date_anchor,
        )
    except ValueError as e:
        # Bad fiscal month or a malformed quarter column; treat like an invalid drop.
        log.warning(
            "reassignment_untranslatable",
            opportunity_id=oid,
            view_kind=view_kind,
            source_column_id=source_column_id,
            target_column_id=target,
            error=str(e),
        )
        return NoOp(reason="invalid_drop_target", opportunity_id=oid)

    if isinstance(result, NoOp):
        log.debug(
            "reassignment_noop",
            opportunity_id=oid,
            view_kind=view_kind,
            reason=result.reason,
            source_column_id=source_column_id,
            target_column_id=target,
        )
    return result


def _translate(
    opportunity: Opportunity,
    view_kind: str,
    target: str,
    *,
    fiscal_year_start_month: int,
    close_date_anchor: CloseDateAnchor,
) -> Translation:
    oid = opportunity.id

    if view_kind == "custom":
        if str(opportunity.columnId or "").strip() == target:
            return NoOp(reason="unchanged", opportunity_id=oid)
        return SetColumnId(opportunity_id=oid, column_id=target)

    if view_kind == "quarterly":
        q = quarter_from_column_id(target)
        if q is None:
            return NoOp(reason="invalid_drop_target", opportunity_id=oid)
        if (
            opportunity.closeDate is not None
            and fiscal_quarter_of(opportunity.closeDate, fiscal_year_start_month) == q
        ):
            return NoOp(reason="unchanged", opportunity_id=oid)
        new_date = close_date_for(q, fiscal_year_start_month, anchor=close_date_anchor)
        return SetCloseDate(opportunity_id=oid, close_date=new_date, quarter=q.label)

    if view_kind == "forecast":
        category = forecast_for_column_id(target)
        if category is None:
            return NoOp(reason="invalid_drop_target", opportunity_id=oid)
        if opportunity.forecastCategory == category:
            return NoOp(reason="unchanged", opportunity_id=oid)
        return SetForecastCategory(opportunity_id=oid, forecast_category=category)

    if view_kind == "stage":
        stage = stage_for_column_id(target)
        if stage is None:
            return NoOp(reason="invalid_drop_target", opportunity_id=oid)
        if opportunity.stage == stage:
            return NoOp(reason="unchanged", opportunity_id=oid)
        return set_stage(oid, stage)

    # closed-lost and customer-value never reach here
    return NoOp(reason="read_only_view", opportunity_id=oid)


def apply_mutation(opportunity: Opportunity, mutation: Mutation) -> Opportunity:
    """New opportunity with the mutation's patch applied; the input is left untouched."""
    return opportunity.with_fields(mutation.as_patch())
