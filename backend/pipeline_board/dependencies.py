from __future__ import annotations

from functools import lru_cache

from .modules.board.board_service import BoardService
from .repositories.opportunities_repo import InMemoryOpportunityStore
from .repositories.preferences_repo import InMemoryPreferenceStore
from .repositories.views_repo import InMemoryViewStore
from .settings import get_settings


@lru_cache(maxsize=1)
def get_board_service() -> BoardService:
    """
    Process-wide board service over in-memory stores.

    Deployments backed by real persistence override this dependency with a
    service built on their own store implementations.
    """
    return BoardService(
        opportunities=InMemoryOpportunityStore(),
        views=InMemoryViewStore(),
        preferences=InMemoryPreferenceStore(),
        settings=get_settings(),
    )
