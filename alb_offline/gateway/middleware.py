"""
Where: alb_offline/gateway/middleware.py
What: Listener middleware for path normalization, trace ids and access logs.
Why: Keep per-request bookkeeping out of the ALB route handlers.
"""

import logging
import time

from fastapi import Request

from alb_offline.common.core.request_context import (
    clear_trace_id,
    generate_request_id,
    set_trace_id,
)
from alb_offline.common.core.trace import TraceId

logger = logging.getLogger("gateway.main")


def _bind_trace(header):
    """Adopt the caller's X-Amzn-Trace-Id, or mint one like the balancer does."""
    if header:
        try:
            return set_trace_id(header)
        except ValueError as exc:
            logger.warning("Failed to parse incoming X-Amzn-Trace-Id: '%s', error: %s", header, exc)
    return set_trace_id(str(TraceId.generate()))


async def strip_trailing_slash_middleware(request: Request, call_next):
    """Serve `/dev/users/42/` from the `/dev/users/42` route instead of redirecting."""
    path = request.scope["path"]
    if len(path) > 1 and path.endswith("/"):
        request.scope["path"] = path[:-1]
        raw_path = request.scope.get("raw_path")
        if raw_path and raw_path.endswith(b"/"):
            request.scope["raw_path"] = raw_path[:-1]
    return await call_next(request)


async def trace_propagation_middleware(request: Request, call_next):
    """Bind trace and request ids for the duration of one listener request."""
    started = time.perf_counter()
    trace_id = _bind_trace(request.headers.get("X-Amzn-Trace-Id"))
    request_id = generate_request_id()

    try:
        response = await call_next(request)
        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "trace_id": trace_id,
                "aws_request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query_params": str(request.query_params),
                "status": response.status_code,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                "user_agent": request.headers.get("user-agent"),
                "client_ip": request.client.host if request.client else None,
            },
        )
        return response
    finally:
        clear_trace_id()
