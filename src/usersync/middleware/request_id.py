"""Request ID middleware — correlate backend log lines per request.

Learn: The ID comes from the caller's X-Request-ID header when present,
otherwise a fresh UUID. It is bound into structlog's contextvars, so
every log event emitted while handling the request carries request_id,
and echoed back in the response header.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each user API request with an ID shared by its log lines.

    A blank incoming header counts as missing. Besides request_id, the
    method and path are bound so userGet and userPost lines are easy to
    tell apart without the access log.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER, "").strip() or uuid.uuid4().hex

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
