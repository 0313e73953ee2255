"""
X-Request-ID propagation for the REST API.

The id from the request header (or a fresh UUID4) is echoed on the
response and attached to every log record emitted while the request is
served. WebSocket traffic is not touched: BaseHTTPMiddleware only wraps
HTTP requests.
"""

import logging
import uuid
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """The id of the request being served, or "" outside a request."""
    return request_id_var.get()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class CorrelationIdFilter(logging.Filter):
    """Sets record.request_id ("-" outside a request) for the formatters."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True
