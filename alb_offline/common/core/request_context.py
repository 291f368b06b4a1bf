"""
Per-request identifiers for the ALB listener.

The trace header and the Lambda request id live in ContextVars so that log
records emitted from handler threads and tasks can be correlated with the
HTTP request that triggered them.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

from .trace import TraceId

_trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)
_request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_trace_id() -> Optional[str]:
    return _trace_id_var.get()


def get_request_id() -> Optional[str]:
    return _request_id_var.get()


def set_trace_id(header: str) -> str:
    """
    Normalize an X-Amzn-Trace-Id value and bind it to the current request.

    Raises ValueError when the header has no ``Root`` field; the caller
    decides whether to mint a fresh id instead.
    """
    normalized = str(TraceId.parse(header))
    _trace_id_var.set(normalized)
    return normalized


def generate_request_id() -> str:
    """Bind a fresh ``awsRequestId`` to the current request and return it."""
    request_id = str(uuid.uuid4())
    _request_id_var.set(request_id)
    return request_id


def clear_trace_id() -> None:
    """Forget both identifiers once the response has been sent."""
    _trace_id_var.set(None)
    _request_id_var.set(None)
