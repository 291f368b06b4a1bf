"""
Custom exception classes.

Represent errors related to Lambda invocation through the load balancer.
"""

import logging
from typing import List, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class LambdaInvokeError(Exception):
    """Base exception class for Lambda invocation."""

    pass


class FunctionError(LambdaInvokeError):
    """
    Error reported by the function itself from outside this process
    (Lambda RIE or an isolated worker), carried as message/type/trace.
    """

    def __init__(
        self,
        message: str,
        error_type: Optional[str] = None,
        stack_trace: Optional[List[str]] = None,
    ):
        self.message = message
        self.error_type = error_type or "Error"
        self.stack_trace = stack_trace
        super().__init__(message)


class LoadFaultError(LambdaInvokeError):
    """Raised when handler code cannot be loaded in an isolated worker."""

    is_load_fault = True

    def __init__(self, function_name: str, cause: str, stack_trace: Optional[List[str]] = None):
        self.function_name = function_name
        self.cause = cause
        self.stack_trace = stack_trace
        super().__init__(f"Error while loading {function_name}: {cause}")


class LambdaExecutionError(LambdaInvokeError):
    """Raised when the function endpoint cannot be reached."""

    def __init__(self, function_name: str, cause: Exception):
        self.function_name = function_name
        self.cause = cause

        super().__init__(f"Lambda execution failed for {function_name}: {cause}")


class ContractViolationError(LambdaInvokeError):
    """Raised when a function result breaks the response body contract."""

    pass


# ===========================================
# Exception Handlers
# ===========================================


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unhandled exceptions.
    """
    logger.error(
        f"Global exception handler caught: {exc}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal Server Error", "detail": str(exc)},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handler for HTTPException.
    """
    return JSONResponse(
        status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers
    )
