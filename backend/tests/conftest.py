from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure `backend/` is on sys.path so `import pipeline_board.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from pipeline_board.settings import get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def _board_env(monkeypatch):
    # Tests must not pick up a developer's board configuration.
    for name in (
        "APP_ENV",
        "FISCAL_YEAR_START_MONTH",
        "BOARD_DEFAULT_VIEW",
        "BOARD_QUARTERS_PAST",
        "BOARD_QUARTERS_FUTURE",
        "BOARD_SHOW_ALL_QUARTERS",
        "QUARTER_CLOSE_DATE_ANCHOR",
        "CUSTOMER_VALUE_TIERS",
        "MAX_CUSTOM_VIEWS",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
