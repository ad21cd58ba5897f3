from __future__ import annotations

from contextvars import ContextVar

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
# Set for the lifetime of a BoardSession so engine logs can be correlated per board.
board_session_id_var: ContextVar[str | None] = ContextVar("board_session_id", default=None)


def get_request_id() -> str | None:
    return request_id_var.get()


def get_board_session_id() -> str | None:
    return board_session_id_var.get()
