from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .errors import (
    ActivationFailed,
    BoardError,
    StoreConflict,
    StoreError,
    StoreNotFound,
    StoreUnavailable,
    StoreValidation,
    ViewLimitExceeded,
    ViewNotFound,
    WriteFailure,
)
from .middleware.access_log import AccessLogMiddleware
from .middleware.request_context import RequestContextMiddleware
from .observability.logging import configure_logging, get_logger
from .problem_details import problem_response
from .routers.board import router as board_router
from .routers.health import router as health_router
from .routers.views import router as views_router
from .settings import get_settings


def create_app() -> FastAPI:
    settings = get_settings()
    # Logging must be configured before the app starts handling requests.
    configure_logging(level=settings.log_level)
    log = get_logger("startup")

    app = FastAPI(
        title="Pipeline Board API",
        version="1.0.0",
        default_response_class=ORJSONResponse,
        redirect_slashes=False,
    )

    log.info("app_starting", settings=settings.to_log_safe_dict())

    # Last added is outermost.
    app.add_middleware(AccessLogMiddleware, exclude_paths={"/"})
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StoreError, _store_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(BoardError, _board_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(board_router, prefix="/api")
    app.include_router(views_router, prefix="/api")

    return app


def _store_error_handler(request: Request, exc: StoreError) -> Response:
    status_code = 500
    title = "Storage Error"

    if isinstance(exc, StoreValidation):
        status_code = 400
        title = "Bad Request"
    elif isinstance(exc, StoreNotFound):
        status_code = 404
        title = "Not Found"
    elif isinstance(exc, StoreConflict):
        status_code = 409
        title = "Conflict"
    elif isinstance(exc, StoreUnavailable):
        status_code = 503
        title = "Service Unavailable"

    extensions = {
        "operation": exc.operation,
        "store": exc.store,
        "key": exc.key,
        "retryable": bool(exc.retryable),
    }
    return problem_response(
        request=request,
        status_code=status_code,
        title=title,
        detail=exc.message,
        extensions={k: v for k, v in extensions.items() if v is not None},
    )


def _board_error_handler(request: Request, exc: BoardError) -> Response:
    status_code = 500
    title = "Board Error"
    extensions: dict[str, object] = {}

    if isinstance(exc, WriteFailure):
        status_code = 502
        title = "Write Failed"
        extensions = {"retryable": bool(exc.retryable), "opportunityId": exc.opportunity_id}
        if exc.mutation is not None:
            extensions["mutation"] = type(exc.mutation).__name__
    elif isinstance(exc, ActivationFailed):
        status_code = 502
        title = "View Activation Failed"
        extensions = {"retryable": True, "viewId": exc.view_id}
    elif isinstance(exc, ViewNotFound):
        status_code = 404
        title = "View Not Found"
        extensions = {"viewId": exc.view_id}
    elif isinstance(exc, ViewLimitExceeded):
        status_code = 409
        title = "View Limit Reached"
        extensions = {"limit": exc.limit}

    return problem_response(
        request=request,
        status_code=status_code,
        title=title,
        detail=exc.message,
        extensions={k: v for k, v in extensions.items() if v is not None} or None,
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    status_code = int(getattr(exc, "status_code", 500) or 500)
    detail = getattr(exc, "detail", None)

    safe_detail = str(detail) if detail is not None else None
    if status_code == 404 and not safe_detail:
        safe_detail = "Route not found"

    return problem_response(request=request, status_code=status_code, detail=safe_detail)


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    errors: list[dict[str, object]] = []
    for e in exc.errors():
        loc = e.get("loc") or ()
        errors.append(
            {
                "location": list(loc) if isinstance(loc, (list, tuple)) else [],
                "path": ".".join([str(x) for x in loc if x != "body"]),
                "message": e.get("msg", "Invalid value"),
                "type": e.get("type"),
            }
        )
    return problem_response(
        request=request,
        status_code=422,
        title="Validation Failed",
        detail="Request validation failed",
        errors=errors,
    )


def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    get_logger("unhandled").exception(
        "unhandled_exception",
        http_method=str(getattr(request, "method", "") or "").upper() or None,
        path=str(getattr(getattr(request, "url", None), "path", "") or ""),
    )
    return problem_response(
        request=request,
        status_code=500,
        title="Internal Server Error",
        detail=str(exc) if exc else None,
    )


app = create_app()
