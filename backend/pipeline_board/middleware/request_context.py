from __future__ import annotations

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.context import request_id_var


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Request-id plumbing: reuse an inbound X-Request-Id or mint a UUIDv4, keep
    it on request.state and in a contextvar for logging, and echo it back.
    """

    header_name = "X-Request-Id"

    async def dispatch(self, request: Request, call_next):
        inbound = request.headers.get(self.header_name)
        request_id = (str(inbound).strip() if inbound else "") or str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers[self.header_name] = request_id
            return response
        finally:
            request_id_var.reset(token)
