from __future__ import annotations

from datetime import date, timedelta

import pytest

from pipeline_board.modules.board.fiscal_calendar import (
    FiscalQuarter,
    close_date_for,
    fiscal_year_start_month_name,
    parse_quarter_label,
    quarter_column_id,
    quarter_date_range,
    quarter_from_column_id,
    quarter_month_range,
    quarter_of,
    quarter_status,
    quarter_window,
    shift_quarter,
)


def test_calendar_year_quarters():
    assert quarter_of(date(2025, 2, 10)) == "Q1 2025"
    assert quarter_of(date(2025, 3, 31)) == "Q1 2025"
    assert quarter_of(date(2025, 4, 1)) == "Q2 2025"
    assert quarter_of(date(2025, 12, 31)) == "Q4 2025"


def test_fiscal_year_is_labelled_by_the_year_it_starts():
    # April start: Jan-Mar 2025 is the last quarter of fiscal 2024.
    assert quarter_of(date(2025, 3, 15), 4) == "Q4 2024"
    assert quarter_of(date(2025, 4, 1), 4) == "Q1 2025"
    assert quarter_of(date(2025, 7, 1), 4) == "Q2 2025"


def test_boundary_date_belongs_to_quarter_that_begins_there():
    for m in range(1, 13):
        start = date(2025, m, 1)
        before = start - timedelta(days=1)
        assert parse_quarter_label(quarter_of(start, m)).quarter == 1
        assert parse_quarter_label(quarter_of(before, m)).quarter == 4


def test_quarter_of_is_stable_for_repeated_calls():
    d = date(2024, 11, 30)
    assert quarter_of(d, 7) == quarter_of(d, 7) == quarter_of(d, 7)


@pytest.mark.parametrize("anchor", ["start", "end"])
def test_close_date_round_trip_for_every_start_month(anchor):
    d = date(2023, 1, 1)
    end = date(2026, 12, 31)
    while d <= end:
        for m in range(1, 13):
            q = quarter_of(d, m)
            assert quarter_of(close_date_for(q, m, anchor=anchor), m) == q
        d += timedelta(days=17)


def test_close_date_anchors():
    assert close_date_for("Q2 2025", 1) == date(2025, 4, 1)
    assert close_date_for("Q2 2025", 1, anchor="end") == date(2025, 6, 30)
    assert close_date_for("Q4 2024", 4) == date(2025, 1, 1)


def test_quarter_range_spanning_calendar_years():
    # November start: Q2 2025 covers Feb-Apr 2026.
    assert quarter_date_range("Q2 2025", 11) == (date(2026, 2, 1), date(2026, 4, 30))
    # Q1 2025 covers Nov 2025 - Jan 2026.
    assert quarter_date_range("Q1 2025", 11) == (date(2025, 11, 1), date(2026, 1, 31))


def test_invalid_inputs_raise_value_error():
    with pytest.raises(ValueError):
        parse_quarter_label("Q5 2025")
    with pytest.raises(ValueError):
        parse_quarter_label("2025-Q1")
    with pytest.raises(ValueError):
        quarter_of(date(2025, 1, 1), 13)
    with pytest.raises(ValueError):
        quarter_of(date(2025, 1, 1), 0)


def test_shift_and_ordering():
    assert shift_quarter("Q4 2024", 1) == "Q1 2025"
    assert shift_quarter("Q1 2025", -1) == "Q4 2024"
    assert shift_quarter("Q3 2025", -8) == "Q3 2023"
    assert FiscalQuarter(2024, 4) < FiscalQuarter(2025, 1)


def test_quarter_window_and_status():
    today = date(2025, 2, 10)
    assert [q.label for q in quarter_window(today)] == ["Q4 2024", "Q1 2025", "Q2 2025", "Q3 2025", "Q4 2025"]
    assert [q.label for q in quarter_window(today, past=0, future=1)] == ["Q1 2025", "Q2 2025"]
    assert quarter_status("Q4 2024", today) == "past"
    assert quarter_status("Q1 2025", today) == "current"
    assert quarter_status("Q2 2025", today) == "future"


def test_month_range_labels():
    assert quarter_month_range("Q1 2025") == "Jan - Mar"
    assert quarter_month_range("Q4 2024", 4) == "Jan - Mar"
    assert quarter_month_range("Q1 2025", 11) == "Nov - Jan"


def test_column_id_helpers():
    assert quarter_column_id("Q1 2025") == "virtual-Q1-2025"
    assert quarter_from_column_id("virtual-Q3-2026") == FiscalQuarter(2026, 3)
    assert quarter_from_column_id("virtual-stage-demo") is None
    assert quarter_from_column_id("col_123") is None
    assert quarter_from_column_id(None) is None


def test_month_name():
    assert fiscal_year_start_month_name(4) == "April"
