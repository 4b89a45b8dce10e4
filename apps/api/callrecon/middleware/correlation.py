import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware

TRACE_HEADER = "X-Trace-Id"
PROVIDER_REQUEST_HEADER = "X-Cloudonix-Request-Id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a trace id to every log line emitted while handling a request.

    Provider callbacks carry their own request id, which is reused so a
    webhook can be matched against the provider's delivery logs.
    """

    async def dispatch(self, request, call_next):
        trace_id = (
            request.headers.get(TRACE_HEADER)
            or request.headers.get(PROVIDER_REQUEST_HEADER)
            or str(uuid.uuid4())
        )
        structlog.contextvars.bind_contextvars(trace_id=trace_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("trace_id")
        response.headers[TRACE_HEADER] = trace_id
        return response
