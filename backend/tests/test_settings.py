from __future__ import annotations

import pytest
from pydantic import ValidationError

from pipeline_board.settings import Settings, get_settings


def test_defaults():
    s = Settings()
    assert s.fiscal_year_start_month == 1
    assert s.default_view == "quarterly"
    assert (s.quarters_past, s.quarters_future) == (1, 3)
    assert s.show_all_quarters is False
    assert s.quarter_close_date_anchor == "start"
    assert s.customer_value_bounds() is None
    assert s.max_custom_views == 20
    assert s.is_development


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("FISCAL_YEAR_START_MONTH", "7")
    monkeypatch.setenv("BOARD_DEFAULT_VIEW", " Stage ")
    monkeypatch.setenv("BOARD_SHOW_ALL_QUARTERS", "true")
    monkeypatch.setenv("CUSTOMER_VALUE_TIERS", "0, 10000, 75000")
    s = Settings()
    assert s.fiscal_year_start_month == 7
    assert s.default_view == "stage"
    assert s.show_all_quarters is True
    assert s.customer_value_bounds() == [0.0, 10000.0, 75000.0]


@pytest.mark.parametrize(
    "name,value",
    [
        ("FISCAL_YEAR_START_MONTH", "13"),
        ("BOARD_DEFAULT_VIEW", "custom"),
        ("QUARTER_CLOSE_DATE_ANCHOR", "middle"),
    ],
)
def test_invalid_values_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings()


def test_production_rejects_unordered_tiers(monkeypatch):
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("CUSTOMER_VALUE_TIERS", "0,500000,100000")
    with pytest.raises(RuntimeError):
        get_settings()


def test_log_safe_dict_has_board_section():
    d = Settings().to_log_safe_dict()
    assert d["environment"] == "development"
    assert d["board"]["default_view"] == "quarterly"


def test_production_rejects_tiers_not_starting_at_zero(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("CUSTOMER_VALUE_TIERS", "1000,5000")
    with pytest.raises(RuntimeError):
        get_settings()
