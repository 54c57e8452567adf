"""ASGI middleware for the Oversight API.

RequestIdMiddleware binds X-Request-ID to a ContextVar. The same value is
passed to the worker as the scan's trace id, so API and worker log lines
for one scan can be joined on it. SecurityHeadersMiddleware stamps the
hardening headers onto every response.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Client ids end up in log lines and task kwargs; anything else is replaced.
_CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

RESPONSE_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    # scan records change while a job runs
    "Cache-Control": "no-store",
}

_current_request_id: ContextVar[str] = ContextVar("oversight_request_id", default="")

Dispatch = Callable[[Request], Awaitable[Response]]


def get_request_id() -> str:
    """ID of the request being served; empty outside a request."""
    return _current_request_id.get()


def resolve_request_id(supplied: str | None) -> str:
    if supplied and _CLIENT_ID_PATTERN.match(supplied):
        return supplied
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Dispatch) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        reset_token = _current_request_id.set(request_id)
        try:
            response = await call_next(request)
        finally:
            _current_request_id.reset(reset_token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Dispatch) -> Response:
        response = await call_next(request)
        for name, value in RESPONSE_HEADERS.items():
            response.headers.setdefault(name, value)
        return response
