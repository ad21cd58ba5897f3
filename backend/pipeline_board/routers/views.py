from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..dependencies import get_board_service
from ..modules.board.board_service import BoardService
from ..modules.board.view_activation import ActiveCustomView

router = APIRouter(tags=["views"])


class CreateViewRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    columnTitles: list[str] = Field(default_factory=list)
    isDefault: bool = False


class DuplicateViewRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    sourceViewId: str | None = None


def _views_payload(service: BoardService) -> dict:
    state = service.activation_state()
    board = service.board()
    return {
        "views": [v.model_dump(mode="json") for v in service.views()],
        "activeViewId": board.view.id,
        "activeCustomViewId": state.view_id if isinstance(state, ActiveCustomView) else None,
    }


@router.get("/views")
async def list_views(service: BoardService = Depends(get_board_service)):
    await service.ensure_loaded()
    return _views_payload(service)


@router.post("/views", status_code=201)
async def create_view(body: CreateViewRequest, service: BoardService = Depends(get_board_service)):
    await service.ensure_loaded()
    view = await service.create_custom_view(body.name, body.columnTitles, is_default=body.isDefault)
    return {"view": view.model_dump(mode="json")}


@router.post("/views/duplicate", status_code=201)
async def duplicate_view(body: DuplicateViewRequest, service: BoardService = Depends(get_board_service)):
    await service.ensure_loaded()
    view = await service.duplicate_view_as_custom(body.name, source_view_id=body.sourceViewId)
    return {"view": view.model_dump(mode="json")}


@router.post("/views/{viewId}/duplicate", status_code=201)
async def duplicate_view_by_id(
    viewId: str, body: DuplicateViewRequest, service: BoardService = Depends(get_board_service)
):
    await service.ensure_loaded()
    view = await service.duplicate_view_as_custom(body.name, source_view_id=viewId)
    return {"view": view.model_dump(mode="json")}


@router.post("/views/built-in/{kind}/select")
async def select_built_in_view(kind: str, service: BoardService = Depends(get_board_service)):
    await service.ensure_loaded()
    try:
        board = await service.select_built_in(kind)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {"ok": True, "board": board.to_api()}


@router.post("/views/{viewId}/activate")
async def activate_view(viewId: str, service: BoardService = Depends(get_board_service)):
    await service.ensure_loaded()
    board = await service.select_custom(viewId)
    return {"ok": True, "board": board.to_api()}
