"""
Fiscal quarter math.

Quarters are anchored to a configurable fiscal-year start month (1=January).
A fiscal year is labelled with the calendar year in which it starts, so with
an April start, 2025-03-15 is "Q4 2024" and 2025-04-01 is "Q1 2025".
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date
from typing import Literal

CloseDateAnchor = Literal["start", "end"]

QUARTER_COLUMN_PREFIX = "virtual-"

_LABEL_RE = re.compile(r"^\s*Q([1-4])\s+(\d{4})\s*$")
_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True, slots=True, order=True)
class FiscalQuarter:
    # Field order matters: ordering is chronological (year, then quarter).
    fiscal_year: int
    quarter: int

    @property
    def label(self) -> str:
        return f"Q{self.quarter} {self.fiscal_year}"

    def shift(self, n: int) -> "FiscalQuarter":
        idx = self.fiscal_year * 4 + (self.quarter - 1) + int(n)
        return FiscalQuarter(fiscal_year=idx // 4, quarter=idx % 4 + 1)

    def __str__(self) -> str:
        return self.label


def _check_month(fiscal_year_start_month: int) -> int:
    m = int(fiscal_year_start_month)
    if m < 1 or m > 12:
        raise ValueError(f"fiscal_year_start_month must be 1..12, got {fiscal_year_start_month!r}")
    return m


def fiscal_quarter_of(d: date, fiscal_year_start_month: int = 1) -> FiscalQuarter:
    m = _check_month(fiscal_year_start_month)
    months_from_start = (d.month - m) % 12
    fiscal_year = d.year if d.month >= m else d.year - 1
    return FiscalQuarter(fiscal_year=fiscal_year, quarter=months_from_start // 3 + 1)


def quarter_of(d: date, fiscal_year_start_month: int = 1) -> str:
    """Quarter label ("Q1 2025") for a date."""
    return fiscal_quarter_of(d, fiscal_year_start_month).label


def parse_quarter_label(label: str | FiscalQuarter) -> FiscalQuarter:
    if isinstance(label, FiscalQuarter):
        return label
    match = _LABEL_RE.match(str(label or ""))
    if not match:
        raise ValueError(f'Invalid quarter label {label!r}; expected format "Q1 2025"')
    return FiscalQuarter(fiscal_year=int(match.group(2)), quarter=int(match.group(1)))


def shift_quarter(label: str | FiscalQuarter, n: int) -> str:
    """ "Q4 2024" shifted by +1 is "Q1 2025". """
    return parse_quarter_label(label).shift(n).label


def _quarter_start_month(q: FiscalQuarter, fiscal_year_start_month: int) -> tuple[int, int]:
    # (calendar year, month 1..12) of the first month in the quarter
    offset = _check_month(fiscal_year_start_month) - 1 + (q.quarter - 1) * 3
    return q.fiscal_year + offset // 12, offset % 12 + 1


def quarter_date_range(
    label: str | FiscalQuarter, fiscal_year_start_month: int = 1
) -> tuple[date, date]:
    """First and last calendar day of a fiscal quarter."""
    q = parse_quarter_label(label)
    start_year, start_month = _quarter_start_month(q, fiscal_year_start_month)
    end_offset = start_month - 1 + 2
    end_year = start_year + end_offset // 12
    end_month = end_offset % 12 + 1
    last_day = calendar.monthrange(end_year, end_month)[1]
    return date(start_year, start_month, 1), date(end_year, end_month, last_day)


def close_date_for(
    label: str | FiscalQuarter,
    fiscal_year_start_month: int = 1,
    *,
    anchor: CloseDateAnchor = "start",
) -> date:
    """
    Canonical close date inside a quarter.

    Always satisfies `quarter_of(close_date_for(q, m), m) == q`.
    """
    start, end = quarter_date_range(label, fiscal_year_start_month)
    return end if anchor == "end" else start


def current_quarter(today: date, fiscal_year_start_month: int = 1) -> FiscalQuarter:
    return fiscal_quarter_of(today, fiscal_year_start_month)


def quarter_status(
    label: str | FiscalQuarter, today: date, fiscal_year_start_month: int = 1
) -> Literal["past", "current", "future"]:
    q = parse_quarter_label(label)
    now = current_quarter(today, fiscal_year_start_month)
    if q < now:
        return "past"
    if q == now:
        return "current"
    return "future"


def quarter_window(
    today: date, fiscal_year_start_month: int = 1, *, past: int = 1, future: int = 3
) -> list[FiscalQuarter]:
    """`past` quarters before the current one, the current quarter, then `future` quarters."""
    now = current_quarter(today, fiscal_year_start_month)
    return [now.shift(n) for n in range(-max(0, int(past)), max(0, int(future)) + 1)]


def quarter_month_range(label: str | FiscalQuarter, fiscal_year_start_month: int = 1) -> str:
    start, end = quarter_date_range(label, fiscal_year_start_month)
    return f"{_MONTH_ABBR[start.month - 1]} - {_MONTH_ABBR[end.month - 1]}"


def quarter_column_id(label: str | FiscalQuarter) -> str:
    q = parse_quarter_label(label)
    return f"{QUARTER_COLUMN_PREFIX}Q{q.quarter}-{q.fiscal_year}"


def quarter_from_column_id(column_id: str | None) -> FiscalQuarter | None:
    """Inverse of `quarter_column_id`; None for anything that is not a quarter column."""
    cid = str(column_id or "").strip()
    if not cid.startswith(QUARTER_COLUMN_PREFIX):
        return None
    raw = cid[len(QUARTER_COLUMN_PREFIX):].replace("-", " ")
    try:
        return parse_quarter_label(raw)
    except ValueError:
        return None


def fiscal_year_start_month_name(fiscal_year_start_month: int) -> str:
    return calendar.month_name[_check_month(fiscal_year_start_month)]
