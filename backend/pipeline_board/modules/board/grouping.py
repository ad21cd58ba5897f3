"""
Grouping strategies: how each view kind buckets opportunities into columns.

Every strategy is a pure function `(opportunities, columns, params)` returning
an ordered mapping `column_id -> [opportunity, ...]` with one key per column.
Virtual kinds also get a column generator; their columns are rebuilt on every
resolution and never persisted. Strategies never raise on odd data: records
that cannot be placed are omitted from display.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Literal, Sequence

from ...domain.opportunity import (
    FORECAST_CATEGORIES,
    FORECAST_LABELS,
    PIPELINE_STAGES,
    STAGE_LABELS,
    ForecastCategory,
    Opportunity,
    Stage,
)
from ...domain.view import BUILT_IN_VIEW_IDS, Column, ColumnMetadata
from .fiscal_calendar import (
    CloseDateAnchor,
    FiscalQuarter,
    current_quarter,
    fiscal_quarter_of,
    quarter_column_id,
    quarter_month_range,
    quarter_status,
    quarter_window,
)

Buckets = dict[str, list[Opportunity]]
ClosedLostPeriod = Literal["thisQuarter", "lastQuarter", "older"]


def _kebab(value: str) -> str:
    # "Best Case" -> "best-case", "midMarket" -> "mid-market"
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", str(value or "").strip())
    return re.sub(r"[\s_]+", "-", s).lower()


@dataclass(frozen=True, slots=True)
class ValueTier:
    """Customer value tier covering [min_amount, next tier's min_amount)."""

    id: str
    title: str
    min_amount: float
    color: str | None = None


DEFAULT_VALUE_TIERS: tuple[ValueTier, ...] = (
    ValueTier(id="smb", title="SMB (<$25K)", min_amount=0, color="#6b7280"),
    ValueTier(id="commercial", title="Commercial ($25K-$100K)", min_amount=25_000, color="#10b981"),
    ValueTier(id="midMarket", title="Mid-Market ($100K-$500K)", min_amount=100_000, color="#3b82f6"),
    ValueTier(id="enterprise", title="Enterprise ($500K+)", min_amount=500_000, color="#8b5cf6"),
)
_TIER_NAMES = {"smb": "SMB", "commercial": "Commercial", "midMarket": "Mid-Market", "enterprise": "Enterprise"}


def validate_value_tiers(tiers: Sequence[ValueTier]) -> tuple[ValueTier, ...]:
    """
    Tiers must be non-empty, uniquely named, start at zero and be strictly
    ascending by lower bound, so every non-negative amount lands in a tier.
    """
    out = tuple(tiers or ())
    if not out:
        raise ValueError("at least one customer value tier is required")
    ids = [t.id for t in out]
    if len(set(ids)) != len(ids):
        raise ValueError("customer value tier ids must be unique")
    for prev, cur in zip(out, out[1:]):
        if not cur.min_amount > prev.min_amount:
            raise ValueError("customer value tiers must be strictly ascending by min_amount")
    if out[0].min_amount != 0:
        raise ValueError("the lowest customer value tier must start at 0")
    return out


def value_tiers_from_bounds(bounds: Sequence[float]) -> tuple[ValueTier, ...]:
    """
    Build tiers from ascending lower bounds. Titles always show the configured
    ranges; the default tier names are reused when the number of bounds
    matches the default ladder.
    """
    values = [float(b) for b in bounds]
    if len(values) == len(DEFAULT_VALUE_TIERS):
        tiers = [
            ValueTier(id=t.id, title=f"{_TIER_NAMES[t.id]} ({_tier_title(values, i)})", min_amount=v, color=t.color)
            for i, (t, v) in enumerate(zip(DEFAULT_VALUE_TIERS, values))
        ]
    else:
        tiers = [
            ValueTier(id=f"tier{i + 1}", title=_tier_title(values, i), min_amount=v)
            for i, v in enumerate(values)
        ]
    return validate_value_tiers(tiers)


def _money(v: float) -> str:
    if v >= 1_000_000 and v % 1_000_000 == 0:
        return f"${int(v // 1_000_000)}M"
    if v >= 1_000 and v % 1_000 == 0:
        return f"${int(v // 1_000)}K"
    return f"${v:,.0f}"


def _tier_title(values: Sequence[float], i: int) -> str:
    lo = values[i]
    if i + 1 >= len(values):
        return f"{_money(lo)}+"
    if i == 0 and lo == 0:
        return f"<{_money(values[1])}"
    return f"{_money(lo)}-{_money(values[i + 1])}"


@dataclass(frozen=True, slots=True)
class BoardParams:
    """Everything the virtual strategies need besides the opportunities themselves."""

    fiscal_year_start_month: int = 1
    today: date = field(default_factory=date.today)
    show_all_quarters: bool = False
    quarters_past: int = 1
    quarters_future: int = 3
    close_date_anchor: CloseDateAnchor = "start"
    value_tiers: tuple[ValueTier, ...] = DEFAULT_VALUE_TIERS

    def __post_init__(self) -> None:
        if not 1 <= int(self.fiscal_year_start_month) <= 12:
            raise ValueError("fiscal_year_start_month must be 1..12")
        validate_value_tiers(self.value_tiers)


# ---- quarterly ----

_PAST_COLOR = "#f97316"
_CURRENT_COLOR = "#3b82f6"
_FUTURE_COLORS = ("#60a5fa", "#93c5fd", "#bfdbfe", "#dbeafe")


def _quarter_color(status: str, index: int) -> str:
    if status == "past":
        return _PAST_COLOR
    if status == "current":
        return _CURRENT_COLOR
    return _FUTURE_COLORS[index % len(_FUTURE_COLORS)]


def _opportunity_quarter(opp: Opportunity, fiscal_year_start_month: int) -> FiscalQuarter | None:
    if opp.closeDate is None:
        return None
    return fiscal_quarter_of(opp.closeDate, fiscal_year_start_month)


def quarterly_columns(opportunities: Iterable[Opportunity], params: BoardParams) -> list[Column]:
    """
    Rolling window: N past quarters, the current one and M future ones.
    Show-all: the same span plus every quarter that holds at least one opportunity.
    """
    m = params.fiscal_year_start_month
    quarters = set(
        quarter_window(params.today, m, past=params.quarters_past, future=params.quarters_future)
    )
    if params.show_all_quarters:
        for opp in opportunities:
            q = _opportunity_quarter(opp, m)
            if q is not None:
                quarters.add(q)

    columns: list[Column] = []
    for index, q in enumerate(sorted(quarters)):
        status = quarter_status(q, params.today, m)
        columns.append(
            Column(
                id=quarter_column_id(q),
                title=q.label,
                subtitle=quarter_month_range(q, m),
                order=index,
                color=_quarter_color(status, index),
                viewId=BUILT_IN_VIEW_IDS["quarterly"],
                metadata=ColumnMetadata(quarterStatus=status),
            )
        )
    return columns


def group_by_quarter(
    opportunities: Iterable[Opportunity], columns: Sequence[Column], params: BoardParams
) -> Buckets:
    # No close date -> no quarter column, ever. Out-of-window quarters are hidden.
    buckets: Buckets = {c.id: [] for c in columns}
    m = params.fiscal_year_start_month
    for opp in opportunities:
        q = _opportunity_quarter(opp, m)
        if q is None:
            continue
        cid = quarter_column_id(q)
        if cid in buckets:
            buckets[cid].append(opp)
    return buckets


def count_hidden_quarterly(
    opportunities: Iterable[Opportunity], columns: Sequence[Column], params: BoardParams
) -> int:
    """Opportunities with a close date whose quarter has no visible column."""
    visible = {c.id for c in columns}
    hidden = 0
    for opp in opportunities:
        q = _opportunity_quarter(opp, params.fiscal_year_start_month)
        if q is not None and quarter_column_id(q) not in visible:
            hidden += 1
    return hidden


# ---- stage ----

_STAGE_COLORS: dict[Stage, str] = {
    "discovery": "#94a3b8",
    "demo": "#60a5fa",
    "validateSolution": "#3b82f6",
    "decisionMakerApproval": "#f59e0b",
    "contracting": "#10b981",
    "closedWon": "#22c55e",
    "closedLost": "#ef4444",
}

STAGE_COLUMN_IDS: dict[Stage, str] = {
    s: f"virtual-stage-{_kebab(STAGE_LABELS[s])}" for s in PIPELINE_STAGES
}
_STAGE_BY_COLUMN_ID: dict[str, Stage] = {cid: s for s, cid in STAGE_COLUMN_IDS.items()}


def stage_for_column_id(column_id: str | None) -> Stage | None:
    return _STAGE_BY_COLUMN_ID.get(str(column_id or "").strip())


def stage_columns() -> list[Column]:
    return [
        Column(
            id=STAGE_COLUMN_IDS[s],
            title=STAGE_LABELS[s],
            order=i,
            color=_STAGE_COLORS[s],
            viewId=BUILT_IN_VIEW_IDS["stage"],
        )
        for i, s in enumerate(PIPELINE_STAGES)
    ]


def group_by_stage(
    opportunities: Iterable[Opportunity], columns: Sequence[Column], params: BoardParams | None = None
) -> Buckets:
    buckets: Buckets = {c.id: [] for c in columns}
    for opp in opportunities:
        cid = STAGE_COLUMN_IDS.get(opp.stage)
        if cid in buckets:
            buckets[cid].append(opp)
    return buckets


# ---- forecast ----

_FORECAST_COLORS: dict[ForecastCategory, str] = {
    "pipeline": "#94a3b8",
    "bestCase": "#3b82f6",
    "commit": "#10b981",
    "closedWon": "#22c55e",
    "closedLost": "#ef4444",
}

FORECAST_COLUMN_IDS: dict[ForecastCategory, str] = {
    c: f"virtual-forecast-{_kebab(FORECAST_LABELS[c])}" for c in FORECAST_CATEGORIES
}
_FORECAST_BY_COLUMN_ID: dict[str, ForecastCategory] = {
    cid: c for c, cid in FORECAST_COLUMN_IDS.items()
}


def forecast_for_column_id(column_id: str | None) -> ForecastCategory | None:
    return _FORECAST_BY_COLUMN_ID.get(str(column_id or "").strip())


def forecast_columns() -> list[Column]:
    return [
        Column(
            id=FORECAST_COLUMN_IDS[c],
            title=FORECAST_LABELS[c],
            order=i,
            color=_FORECAST_COLORS[c],
            viewId=BUILT_IN_VIEW_IDS["forecast"],
        )
        for i, c in enumerate(FORECAST_CATEGORIES)
    ]


def group_by_forecast(
    opportunities: Iterable[Opportunity], columns: Sequence[Column], params: BoardParams | None = None
) -> Buckets:
    # Same omission policy as quarterly: no category, no column.
    buckets: Buckets = {c.id: [] for c in columns}
    for opp in opportunities:
        if opp.forecastCategory is None:
            continue
        cid = FORECAST_COLUMN_IDS.get(opp.forecastCategory)
        if cid in buckets:
            buckets[cid].append(opp)
    return buckets


# ---- closed lost ----

_CLOSED_LOST_PERIODS: tuple[tuple[ClosedLostPeriod, str, str], ...] = (
    ("thisQuarter", "This Quarter", "#ef4444"),
    ("lastQuarter", "Last Quarter", "#f97316"),
    ("older", "Older", "#6b7280"),
)


def closed_lost_column_id(period: ClosedLostPeriod) -> str:
    return f"virtual-closedlost-{_kebab(period)}"


def closed_lost_columns() -> list[Column]:
    return [
        Column(
            id=closed_lost_column_id(period),
            title=title,
            order=i,
            color=color,
            viewId=BUILT_IN_VIEW_IDS["closed-lost"],
        )
        for i, (period, title, color) in enumerate(_CLOSED_LOST_PERIODS)
    ]


def closed_lost_period(opp: Opportunity, params: BoardParams) -> ClosedLostPeriod:
    """
    Recency of a lost deal, by the fiscal quarter of `lostAt` (falling back to
    `updatedAt`). Undated records are treated as old.
    """
    ts: datetime | None = opp.lostAt or opp.updatedAt
    if ts is None:
        return "older"
    m = params.fiscal_year_start_month
    q = fiscal_quarter_of(ts.date(), m)
    now = current_quarter(params.today, m)
    if q >= now:
        return "thisQuarter"
    if q == now.shift(-1):
        return "lastQuarter"
    return "older"


def group_by_closed_lost(
    opportunities: Iterable[Opportunity], columns: Sequence[Column], params: BoardParams
) -> Buckets:
    buckets: Buckets = {c.id: [] for c in columns}
    for opp in opportunities:
        if opp.stage != "closedLost":
            continue
        cid = closed_lost_column_id(closed_lost_period(opp, params))
        if cid in buckets:
            buckets[cid].append(opp)
    return buckets


# ---- customer value ----

def customer_value_column_id(tier: ValueTier) -> str:
    return f"virtual-customers-{_kebab(tier.id)}"


def customer_value_columns(params: BoardParams) -> list[Column]:
    # Highest tier first.
    ordered = list(reversed(params.value_tiers))
    return [
        Column(
            id=customer_value_column_id(t),
            title=t.title,
            order=i,
            color=t.color,
            viewId=BUILT_IN_VIEW_IDS["customer-value"],
        )
        for i, t in enumerate(ordered)
    ]


def value_tier_for(amount: float, tiers: Sequence[ValueTier]) -> ValueTier | None:
    for tier in reversed(tiers):
        if amount >= tier.min_amount:
            return tier
    return None


def group_by_customer_value(
    opportunities: Iterable[Opportunity], columns: Sequence[Column], params: BoardParams
) -> Buckets:
    buckets: Buckets = {c.id: [] for c in columns}
    for opp in opportunities:
        if opp.stage != "closedWon":
            continue
        tier = value_tier_for(opp.amountArr, params.value_tiers)
        if tier is None:
            continue
        cid = customer_value_column_id(tier)
        if cid in buckets:
            buckets[cid].append(opp)
    return buckets


# ---- custom ----

def group_by_column_id(
    opportunities: Iterable[Opportunity], columns: Sequence[Column], params: BoardParams | None = None
) -> Buckets:
    # Cards pointing at a missing column (e.g. after the column was deleted) are
    # not shown anywhere. Kept as-is on purpose; see DESIGN.md open questions.
    buckets: Buckets = {c.id: [] for c in columns}
    for opp in opportunities:
        cid = str(opp.columnId or "").strip()
        if cid and cid in buckets:
            buckets[cid].append(opp)
    return buckets


# ---- dispatch ----

def virtual_columns(kind: str, opportunities: Sequence[Opportunity], params: BoardParams) -> list[Column]:
    if kind == "quarterly":
        return quarterly_columns(opportunities, params)
    if kind == "stage":
        return stage_columns()
    if kind == "forecast":
        return forecast_columns()
    if kind == "closed-lost":
        return closed_lost_columns()
    if kind == "customer-value":
        return customer_value_columns(params)
    raise ValueError(f"{kind!r} is not a virtual view kind")


def group_opportunities(
    kind: str, opportunities: Sequence[Opportunity], columns: Sequence[Column], params: BoardParams
) -> Buckets:
    if kind == "quarterly":
        return group_by_quarter(opportunities, columns, params)
    if kind == "stage":
        return group_by_stage(opportunities, columns, params)
    if kind == "forecast":
        return group_by_forecast(opportunities, columns, params)
    if kind == "closed-lost":
        return group_by_closed_lost(opportunities, columns, params)
    if kind == "customer-value":
        return group_by_customer_value(opportunities, columns, params)
    if kind == "custom":
        return group_by_column_id(opportunities, columns, params)
    raise ValueError(f"Unknown view kind: {kind!r}")
