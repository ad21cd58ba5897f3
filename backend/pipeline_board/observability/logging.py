from __future__ import annotations

import logging
import sys

import structlog

from .context import get_board_session_id, get_request_id


def _add_context_ids(_: logging.Logger, __: str, event_dict: dict) -> dict:
    rid = get_request_id()
    if rid:
        event_dict["request_id"] = rid
    sid = get_board_session_id()
    if sid:
        event_dict.setdefault("board_session_id", sid)
    return event_dict


def _shared_processors() -> list:
    # Applied to structlog events and to plain stdlib records alike.
    return [
        _add_context_ids,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


_CONFIGURED = False


def configure_logging(*, level: str | int = "INFO") -> None:
    """
    JSON logs on stdout for both structlog and stdlib loggers (uvicorn included).
    Safe to call more than once.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_shared_processors(),
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(str(level).upper() if isinstance(level, str) else level)

    for name in ("uvicorn", "uvicorn.error"):
        log = logging.getLogger(name)
        log.handlers = []
        log.propagate = True
    # Requests are already logged by AccessLogMiddleware.
    logging.getLogger("uvicorn.access").disabled = True

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True


def get_logger(name: str | None = None):
    return structlog.get_logger(name)
