"""Request correlation middleware."""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from spotlink.infrastructure.observability import set_correlation_id


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tag every request (and every log line it produces) with one id.

    An incoming X-Request-ID is reused so ids survive a reverse proxy.
    """

    def __init__(self, app: ASGIApp, *, header_name: str = "X-Request-ID") -> None:
        super().__init__(app)
        self._header_name = header_name

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        incoming = request.headers.get(self._header_name, "").strip()
        correlation_id = set_correlation_id(incoming or None)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        if self._header_name not in response.headers:
            response.headers[self._header_name] = correlation_id
        return response
