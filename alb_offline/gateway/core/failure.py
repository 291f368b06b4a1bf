"""
Failure Classifier

Turns an exception raised by a function into an HTTP status code and the
Lambda-style error body ({errorMessage, errorType, stackTrace}).

Status code convention: a function signals the status it wants by embedding
exactly three digits in square brackets in its error message, e.g.
``raise ValueError("not found [404]")``. Anything else maps to 502, which is
what the load balancer answers when a target fails.
"""

import logging
import re
import traceback
from typing import Any, Callable, List, Optional

from pydantic import BaseModel

from alb_offline.common.core.logging_config import NOTICE

logger = logging.getLogger("gateway.failure")

DEFAULT_ERROR_STATUS = 502
STATUS_CODE_PATTERN = re.compile(r"\[(\d{3})]")
OFFLINE_INFO = (
    "If you believe this is an issue with alb-offline please submit it "
    "on the project issue tracker, thanks."
)


class ErrorBody(BaseModel):
    errorMessage: str
    errorType: str
    stackTrace: Optional[List[str]] = None
    offlineInfo: Optional[str] = None


class ClassifiedFailure(BaseModel):
    status_code: int
    body: ErrorBody


# ===========================================
# Dispatch boundary
# ===========================================


def invoke_within_boundary(handler: Callable, *args: Any) -> Any:
    """Call a synchronous handler. Frames above this one are hidden from traces."""
    return handler(*args)


async def await_within_boundary(handler: Callable, *args: Any) -> Any:
    """Await a coroutine handler. Frames above this one are hidden from traces."""
    return await handler(*args)


_BOUNDARY_CODES = frozenset(
    {invoke_within_boundary.__code__, await_within_boundary.__code__}
)


def get_stack_trace(exc: BaseException) -> Optional[List[str]]:
    """
    Reduce the exception's trace to trimmed lines, starting below the
    innermost dispatch boundary frame.

    Traces reported from outside the process (``stack_trace`` attribute) are
    used as they are.
    """
    remote_trace = getattr(exc, "stack_trace", None)
    if remote_trace is not None:
        return _trim_lines(remote_trace)

    tb = exc.__traceback__
    if tb is None:
        return None

    start = tb
    cursor = tb
    while cursor is not None:
        if cursor.tb_frame.f_code in _BOUNDARY_CODES:
            start = cursor.tb_next
        cursor = cursor.tb_next

    lines = traceback.format_exception_only(type(exc), exc)
    if start is not None:
        lines.extend(traceback.format_tb(start))
    return _trim_lines(lines)


def _trim_lines(chunks: List[str]) -> List[str]:
    lines = []
    for chunk in chunks:
        for line in str(chunk).splitlines():
            if line.strip():
                lines.append(line.strip())
    return lines


# ===========================================
# Classification
# ===========================================


def get_error_message(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if message is None:
        return str(exc)
    return str(message)


def get_error_type(exc: BaseException) -> str:
    return getattr(exc, "error_type", None) or type(exc).__name__


def extract_status_code(message: str) -> int:
    """Return the bracketed 3-digit status code in message, or 502."""
    found = STATUS_CODE_PATTERN.search(message)
    if found:
        return int(found.group(1))
    return DEFAULT_ERROR_STATUS


def classify_failure(exc: BaseException, hide_stack_traces: bool = False) -> ClassifiedFailure:
    """
    Derive the status code and error body for a failed invocation.
    """
    error_message = get_error_message(exc)
    status_code = extract_status_code(error_message)
    stack_trace = get_stack_trace(exc)

    logger.log(NOTICE, f"Failure: {error_message}")

    if not hide_stack_traces:
        logger.error("\n".join(stack_trace or [error_message]))

    return ClassifiedFailure(
        status_code=status_code,
        body=ErrorBody(
            errorMessage=error_message,
            errorType=get_error_type(exc),
            stackTrace=stack_trace,
        ),
    )


def build_error_reply(status_code: int, message: str, exc: BaseException) -> ClassifiedFailure:
    """
    Error body with a caller-supplied status and message, used for load faults
    and response contract violations.
    """
    logger.log(NOTICE, message)
    logger.error(f"{get_error_type(exc)}: {exc}")

    return ClassifiedFailure(
        status_code=status_code,
        body=ErrorBody(
            errorMessage=message,
            errorType=get_error_type(exc),
            stackTrace=get_stack_trace(exc),
            offlineInfo=OFFLINE_INFO,
        ),
    )


def build_bad_gateway_reply(message: str, exc: BaseException) -> ClassifiedFailure:
    # the load balancer answers 502 when the target fails
    return build_error_reply(DEFAULT_ERROR_STATUS, message, exc)
