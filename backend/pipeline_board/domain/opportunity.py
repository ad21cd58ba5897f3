from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


Stage = Literal[
    "discovery",
    "demo",
    "validateSolution",
    "decisionMakerApproval",
    "contracting",
    "closedWon",
    "closedLost",
]
ForecastCategory = Literal["pipeline", "bestCase", "commit", "closedWon", "closedLost"]

# Pipeline order; terminal stages last.
PIPELINE_STAGES: tuple[Stage, ...] = (
    "discovery",
    "demo",
    "validateSolution",
    "decisionMakerApproval",
    "contracting",
    "closedWon",
    "closedLost",
)
FORECAST_CATEGORIES: tuple[ForecastCategory, ...] = (
    "pipeline",
    "bestCase",
    "commit",
    "closedWon",
    "closedLost",
)

STAGE_LABELS: dict[Stage, str] = {
    "discovery": "Discovery",
    "demo": "Demo",
    "validateSolution": "Validate Solution",
    "decisionMakerApproval": "Decision Maker Approval",
    "contracting": "Contracting",
    "closedWon": "Closed Won",
    "closedLost": "Closed Lost",
}
FORECAST_LABELS: dict[ForecastCategory, str] = {
    "pipeline": "Pipeline",
    "bestCase": "Best Case",
    "commit": "Commit",
    "closedWon": "Closed Won",
    "closedLost": "Closed Lost",
}

_DEFAULT_CONFIDENCE: dict[Stage, int] = {
    "discovery": 1,
    "demo": 2,
    "validateSolution": 3,
    "decisionMakerApproval": 4,
    "contracting": 5,
    "closedWon": 5,
    "closedLost": 1,
}
_DEFAULT_FORECAST: dict[Stage, ForecastCategory] = {
    "discovery": "pipeline",
    "demo": "pipeline",
    "validateSolution": "pipeline",
    "decisionMakerApproval": "bestCase",
    "contracting": "bestCase",
    "closedWon": "closedWon",
    "closedLost": "closedLost",
}


def default_confidence_level(stage: Stage) -> int:
    """Default 1-5 confidence for a stage; applied whenever a card changes stage."""
    return _DEFAULT_CONFIDENCE[stage]


def default_forecast_category(stage: Stage) -> ForecastCategory:
    return _DEFAULT_FORECAST[stage]


class Opportunity(BaseModel):
    """
    Read model of a pipeline opportunity as the board sees it.

    Instances are frozen: the board never edits a record in place, it derives
    a new one (see `with_fields`) so snapshots stay valid for rollback.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1)
    name: str = ""
    accountName: str | None = None
    stage: Stage = "discovery"
    forecastCategory: ForecastCategory | None = None
    amountArr: float = Field(default=0.0, ge=0)
    confidenceLevel: int = Field(default=1, ge=1, le=5)
    closeDate: date | None = None
    # Cached fiscal quarter label ("Q1 2025"), derived from closeDate.
    quarter: str | None = None
    columnId: str | None = None
    lostAt: datetime | None = None
    updatedAt: datetime | None = None

    def with_fields(self, fields: dict[str, object]) -> "Opportunity":
        return self.model_copy(update=dict(fields or {}))
