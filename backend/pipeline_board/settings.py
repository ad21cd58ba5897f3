from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BUILT_IN_VIEW_CHOICES = ("quarterly", "stage", "forecast", "closed-lost", "customer-value")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Runtime
    environment: str = Field(default="development", validation_alias="APP_ENV")
    port: int = Field(default=8080, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Fiscal calendar (1=January .. 12=December)
    fiscal_year_start_month: int = Field(
        default=1, ge=1, le=12, validation_alias="FISCAL_YEAR_START_MONTH"
    )
    # Where a dragged card lands inside its new quarter.
    quarter_close_date_anchor: Literal["start", "end"] = Field(
        default="start", validation_alias="QUARTER_CLOSE_DATE_ANCHOR"
    )

    # Board defaults
    default_view: str = Field(default="quarterly", validation_alias="BOARD_DEFAULT_VIEW")
    quarters_past: int = Field(default=1, ge=0, validation_alias="BOARD_QUARTERS_PAST")
    quarters_future: int = Field(default=3, ge=0, validation_alias="BOARD_QUARTERS_FUTURE")
    show_all_quarters: bool = Field(default=False, validation_alias="BOARD_SHOW_ALL_QUARTERS")

    # Comma-separated ARR lower bounds starting at 0, e.g. "0,25000,100000,500000".
    # Tier names follow the default SMB/Commercial/Mid-Market/Enterprise ladder.
    customer_value_tiers: str | None = Field(default=None, validation_alias="CUSTOMER_VALUE_TIERS")

    max_custom_views: int = Field(default=20, ge=1, validation_alias="MAX_CUSTOM_VIEWS")

    @field_validator("default_view")
    @classmethod
    def _known_default_view(cls, v: str) -> str:
        kind = str(v or "").strip().lower()
        if kind not in BUILT_IN_VIEW_CHOICES:
            raise ValueError(
                f"BOARD_DEFAULT_VIEW must be one of {', '.join(BUILT_IN_VIEW_CHOICES)}"
            )
        return kind

    # ---- helpers / derived flags ----
    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        if v in ("prod", "production"):
            return "production"
        if v in ("stage", "staging"):
            return "staging"
        if v in ("dev", "development"):
            return "development"
        return v or "development"

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    @property
    def is_development(self) -> bool:
        return self.normalized_environment == "development"

    def customer_value_bounds(self) -> list[float] | None:
        """
        Parsed CUSTOMER_VALUE_TIERS lower bounds (ascending), or None when unset.
        """
        raw = str(self.customer_value_tiers or "").strip()
        if not raw:
            return None
        out: list[float] = []
        for part in raw.split(","):
            p = part.strip()
            if not p:
                continue
            out.append(float(p))
        return out or None

    def require_in_production(self) -> None:
        """
        Enforce coherent board settings in production.

        Development is allowed to run with loose values for local work.
        """
        if not self.is_production:
            return

        problems: list[str] = []
        bounds = None
        try:
            bounds = self.customer_value_bounds()
        except ValueError:
            problems.append("CUSTOMER_VALUE_TIERS (must be comma-separated numbers)")
        if bounds is not None and bounds != sorted(set(bounds)):
            problems.append("CUSTOMER_VALUE_TIERS (must be strictly ascending)")
        if bounds and bounds[0] != 0:
            problems.append("CUSTOMER_VALUE_TIERS (must start at 0)")

        if problems:
            raise RuntimeError("Invalid production configuration: " + ", ".join(problems))

    def to_log_safe_dict(self) -> dict[str, object]:
        return {
            "environment": self.normalized_environment,
            "port": self.port,
            "board": {
                "fiscal_year_start_month": self.fiscal_year_start_month,
                "quarter_close_date_anchor": self.quarter_close_date_anchor,
                "default_view": self.default_view,
                "quarters_past": self.quarters_past,
                "quarters_future": self.quarters_future,
                "show_all_quarters": self.show_all_quarters,
                "customer_value_tiers": self.customer_value_tiers,
                "max_custom_views": self.max_custom_views,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s
