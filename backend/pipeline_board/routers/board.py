from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, Field

from ..dependencies import get_board_service
from ..modules.board.board_filter import BoardFilter
from ..modules.board.board_service import BoardService
from ..modules.board.reassignment import NoOp

router = APIRouter(tags=["board"])


class ReassignRequest(BaseModel):
    opportunityId: str = Field(..., min_length=1)
    sourceColumnId: str | None = None
    targetColumnId: str = Field(..., min_length=1)


class PreferencesRequest(BaseModel):
    showAllQuarters: bool


@router.get("/board")
async def get_board(
    quarter: str | None = None,
    search: str | None = None,
    service: BoardService = Depends(get_board_service),
):
    await service.ensure_loaded()
    board = service.board(quarter=quarter, search=search)
    return {
        **board.to_api(),
        "filter": BoardFilter.of(quarter, search).to_api(),
        "quarters": service.quarter_options(),
    }


@router.post("/board/reassign")
async def reassign(
    body: ReassignRequest,
    background: BackgroundTasks,
    service: BoardService = Depends(get_board_service),
):
    await service.ensure_loaded()
    outcome = await service.on_reassign(
        body.opportunityId,
        body.sourceColumnId,
        body.targetColumnId,
        schedule=background.add_task,
    )
    if outcome.error is not None:
        # Local state is already rolled back; the handler renders a retryable 502.
        raise outcome.error

    mutation = outcome.mutation
    return {
        "ok": True,
        "status": outcome.status,
        "mutation": None
        if isinstance(mutation, NoOp)
        else {"type": type(mutation).__name__, "fields": mutation.as_patch()},
        "noopReason": mutation.reason if isinstance(mutation, NoOp) else None,
        "board": service.board().to_api(),
    }


@router.put("/board/preferences")
async def update_preferences(body: PreferencesRequest, service: BoardService = Depends(get_board_service)):
    await service.ensure_loaded()
    return service.set_show_all_quarters(body.showAllQuarters).to_api()
