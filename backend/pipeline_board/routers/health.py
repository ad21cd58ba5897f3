from __future__ import annotations

from fastapi import APIRouter

from ..modules.board.fiscal_calendar import fiscal_year_start_month_name
from ..settings import get_settings

router = APIRouter()


@router.get("/", tags=["health"])
def health():
    settings = get_settings()
    return {
        "message": "Pipeline Board API",
        "version": "1.0.0",
        "status": "running",
        "port": settings.port,
        "environment": settings.normalized_environment,
        "fiscalYearStart": fiscal_year_start_month_name(settings.fiscal_year_start_month),
        "defaultView": settings.default_view,
        "endpoints": [
            "GET /api/board",
            "POST /api/board/reassign",
            "PUT /api/board/preferences",
            "GET /api/views",
            "POST /api/views",
            "POST /api/views/{viewId}/activate",
            "POST /api/views/built-in/{kind}/select",
            "POST /api/views/duplicate",
            "POST /api/views/{viewId}/duplicate",
        ],
    }
