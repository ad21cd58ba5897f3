from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


ViewKind = Literal["quarterly", "stage", "forecast", "closed-lost", "customer-value", "custom"]
QuarterStatus = Literal["past", "current", "future"]

VIRTUAL_KINDS: tuple[ViewKind, ...] = (
    "quarterly",
    "stage",
    "forecast",
    "closed-lost",
    "customer-value",
)
# Kinds whose drag gesture maps to a field mutation.
DRAGGABLE_KINDS: frozenset[str] = frozenset({"quarterly", "stage", "forecast", "custom"})

BUILT_IN_VIEW_IDS: dict[str, str] = {
    "quarterly": "built-in-quarterly",
    "stage": "built-in-stage",
    "forecast": "built-in-forecast",
    "closed-lost": "built-in-closed-lost",
    "customer-value": "built-in-customer-value",
}
BUILT_IN_VIEW_NAMES: dict[str, str] = {
    "quarterly": "Quarterly View",
    "stage": "Sales Stages",
    "forecast": "Forecast Categories",
    "closed-lost": "Closed Lost",
    "customer-value": "Customers",
}


class ColumnMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    quarterStatus: QuarterStatus | None = None


class Column(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1)
    title: str
    order: int
    color: str | None = None
    viewId: str | None = None
    subtitle: str | None = None
    metadata: ColumnMetadata | None = None


class View(BaseModel):
    """
    A board view. Built-in views are virtual: their `columns` stay empty and
    are regenerated from opportunities on every resolution.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1)
    name: str
    kind: ViewKind
    isBuiltIn: bool = False
    isDefault: bool = False
    isActive: bool = False
    columns: list[Column] = Field(default_factory=list)
    userId: str | None = None
    organizationId: str | None = None
    lastAccessedAt: datetime | None = None

    @property
    def is_virtual(self) -> bool:
        return self.kind != "custom"

    @property
    def is_draggable(self) -> bool:
        return self.kind in DRAGGABLE_KINDS


class CustomViewSpec(BaseModel):
    """Input for `ViewStore.create_custom`."""

    name: str = Field(..., min_length=1, max_length=120)
    columnTitles: list[str] = Field(default_factory=list)
    # Optional explicit colors, aligned by index with columnTitles.
    columnColors: list[str | None] = Field(default_factory=list)
    isDefault: bool = False
    userId: str | None = None
    organizationId: str | None = None


def is_built_in_view_id(view_id: str | None) -> bool:
    return str(view_id or "").strip() in BUILT_IN_VIEW_IDS.values()


def built_in_kind_for_id(view_id: str | None) -> str | None:
    vid = str(view_id or "").strip()
    for kind, bid in BUILT_IN_VIEW_IDS.items():
        if bid == vid:
            return kind
    return None


def built_in_view(kind: str) -> View:
    k = str(kind or "").strip()
    if k not in BUILT_IN_VIEW_IDS:
        raise ValueError(f"Unknown built-in view kind: {kind!r}")
    return View(
        id=BUILT_IN_VIEW_IDS[k],
        name=BUILT_IN_VIEW_NAMES[k],
        kind=k,  # type: ignore[arg-type]
        isBuiltIn=True,
    )


def built_in_views() -> list[View]:
    return [built_in_view(k) for k in VIRTUAL_KINDS]
