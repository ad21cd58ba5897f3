"""
Board filters: narrow the local opportunity list before it is grouped.

A quarter filter matches the cached `quarter` label ("unassigned" selects
records without one) and the search is a case-insensitive substring match on
the opportunity name or account name. Filtering never touches grouping: the
filtered list is handed to the resolver unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ...domain.opportunity import Opportunity
from .fiscal_calendar import parse_quarter_label

ALL_QUARTERS = "all"
UNASSIGNED_QUARTER = "unassigned"


@dataclass(frozen=True, slots=True)
class BoardFilter:
    quarter: str | None = None
    search: str | None = None

    @classmethod
    def of(cls, quarter: str | None = None, search: str | None = None) -> "BoardFilter":
        q = str(quarter or "").strip()
        s = str(search or "").strip().lower()
        return cls(quarter=None if q in ("", ALL_QUARTERS) else q, search=s or None)

    @property
    def is_empty(self) -> bool:
        return self.quarter is None and self.search is None

    def matches(self, opp: Opportunity) -> bool:
        if self.quarter == UNASSIGNED_QUARTER:
            if opp.quarter:
                return False
        elif self.quarter is not None and opp.quarter != self.quarter:
            return False

        if self.search:
            name = str(opp.name or "").lower()
            account = str(opp.accountName or "").lower()
            return self.search in name or self.search in account
        return True

    def to_api(self) -> dict[str, str | None]:
        return {"quarter": self.quarter or ALL_QUARTERS, "search": self.search}


def filter_opportunities(opportunities: Iterable[Opportunity], board_filter: BoardFilter | None) -> list[Opportunity]:
    opps = list(opportunities or [])
    if board_filter is None or board_filter.is_empty:
        return opps
    return [o for o in opps if board_filter.matches(o)]


def quarter_options(opportunities: Iterable[Opportunity]) -> list[str]:
    """Distinct cached quarter labels, oldest first; unparseable labels sort last."""

    def key(label: str) -> tuple[int, int, int, str]:
        try:
            q = parse_quarter_label(label)
        except ValueError:
            return (1, 0, 0, label)
        return (0, q.fiscal_year, q.quarter, label)

    labels = {str(o.quarter).strip() for o in (opportunities or []) if str(o.quarter or "").strip()}
    return sorted(labels, key=key)
