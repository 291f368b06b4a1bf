"""
Lambda function backends.

A LambdaFunction is the invocable unit handed out per request:
set_event(event) then await run_handler().

- LocalLambdaFunction: imports "module.attr" and calls it in this process.
- IsolatedLambdaFunction: loads and calls the handler in a worker process;
  a handler that cannot be loaded there raises LoadFaultError.
- RemoteLambdaFunction: POSTs the event to a Lambda RIE endpoint.
"""

import asyncio
import importlib
import inspect
import json
import logging
import os
import time
import uuid
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from concurrent.futures.process import BrokenProcessPool
from typing import Any, Callable, Dict, Optional

import httpx

from alb_offline.common.core.request_context import get_request_id

from ..core.exceptions import FunctionError, LambdaExecutionError, LoadFaultError
from ..core.failure import (
    await_within_boundary,
    get_error_message,
    get_error_type,
    get_stack_trace,
    invoke_within_boundary,
)
from ..models.function import FunctionEntity

logger = logging.getLogger("gateway.lambda_function")

RIE_INVOKE_PATH = "/2015-03-31/functions/function/invocations"


class LambdaContext:
    """Context object passed to handlers as the second argument."""

    def __init__(
        self,
        function_name: str,
        timeout: int,
        memory_limit_in_mb: int = 1024,
        aws_request_id: Optional[str] = None,
    ):
        self.function_name = function_name
        self.function_version = "$LATEST"
        self.invoked_function_arn = (
            f"arn:aws:lambda:us-east-1:123456789012:function:{function_name}"
        )
        self.memory_limit_in_mb = memory_limit_in_mb
        self.aws_request_id = aws_request_id or str(uuid.uuid4())
        self.log_group_name = f"/aws/lambda/{function_name}"
        self.log_stream_name = time.strftime("%Y/%m/%d/[$LATEST]") + uuid.uuid4().hex
        self.timeout = timeout
        self._deadline = time.monotonic() + timeout

    def get_remaining_time_in_millis(self) -> int:
        return max(0, int((self._deadline - time.monotonic()) * 1000))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "function_name": self.function_name,
            "timeout": self.timeout,
            "memory_limit_in_mb": self.memory_limit_in_mb,
            "aws_request_id": self.aws_request_id,
        }


def load_handler(handler_path: str) -> Callable:
    """Import "package.module.attr" and return the attribute."""
    module_name, _, attr = handler_path.rpartition(".")
    if not module_name:
        raise ImportError(f"Handler '{handler_path}' must be in the form 'module.function'")

    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ImportError(f"Handler '{attr}' missing on module '{module_name}'") from e


class LambdaFunction(ABC):
    def __init__(self, entity: FunctionEntity, timeout: int):
        self.entity = entity
        self.timeout = entity.timeout or timeout
        self._event: Optional[Dict[str, Any]] = None

    @property
    def name(self) -> str:
        return self.entity.name

    def set_event(self, event: Dict[str, Any]) -> None:
        self._event = event

    def create_context(self) -> LambdaContext:
        return LambdaContext(
            function_name=self.name,
            timeout=self.timeout,
            memory_limit_in_mb=self.entity.memory_size,
            aws_request_id=get_request_id(),
        )

    @abstractmethod
    async def run_handler(self) -> Any:
        """Invoke the function with the current event and return its result."""


class LocalLambdaFunction(LambdaFunction):
    async def run_handler(self) -> Any:
        handler = load_handler(self.entity.handler)
        context = self.create_context()

        if inspect.iscoroutinefunction(handler):
            return await await_within_boundary(handler, self._event, context)
        return await asyncio.to_thread(invoke_within_boundary, handler, self._event, context)


def run_isolated(
    handler_path: str,
    event: Dict[str, Any],
    context_fields: Dict[str, Any],
    environment: Dict[str, str],
) -> Dict[str, Any]:
    """
    Worker-process entry point. Returns a picklable outcome instead of raising.

    The function's environment is applied for this call only. Workers are
    reused across functions, so the previous variables are restored afterwards.
    """
    saved_environ = dict(os.environ)
    os.environ.update(environment)
    try:
        return _run_in_worker(handler_path, event, context_fields)
    finally:
        for key in set(os.environ) - set(saved_environ):
            del os.environ[key]
        os.environ.update(saved_environ)


def _run_in_worker(
    handler_path: str, event: Dict[str, Any], context_fields: Dict[str, Any]
) -> Dict[str, Any]:
    try:
        handler = load_handler(handler_path)
    except Exception as e:
        return {
            "status": "load_error",
            "errorMessage": get_error_message(e),
            "errorType": get_error_type(e),
            "stackTrace": get_stack_trace(e),
        }

    context = LambdaContext(**context_fields)
    try:
        if inspect.iscoroutinefunction(handler):
            result = asyncio.run(await_within_boundary(handler, event, context))
        else:
            result = invoke_within_boundary(handler, event, context)
    except Exception as e:
        return {
            "status": "error",
            "errorMessage": get_error_message(e),
            "errorType": get_error_type(e),
            "stackTrace": get_stack_trace(e),
        }

    return {"status": "ok", "result": result}


class IsolatedLambdaFunction(LambdaFunction):
    def __init__(
        self,
        entity: FunctionEntity,
        timeout: int,
        executor: Executor,
        on_broken: Optional[Callable[[Executor], None]] = None,
    ):
        """
        Args:
            executor: worker pool the handler runs in
            on_broken: called with the executor when its worker died mid-call,
                so the owner can replace the pool for later requests
        """
        super().__init__(entity, timeout)
        self.executor = executor
        self.on_broken = on_broken

    async def run_handler(self) -> Any:
        loop = asyncio.get_running_loop()
        try:
            outcome = await loop.run_in_executor(
                self.executor,
                run_isolated,
                self.entity.handler,
                self._event,
                self.create_context().to_dict(),
                self.entity.environment,
            )
        except BrokenProcessPool as e:
            logger.error(f"Worker process for {self.name} terminated abruptly: {e}")
            if self.on_broken is not None:
                self.on_broken(self.executor)
            raise FunctionError(
                f"Worker process for {self.name} terminated abruptly", get_error_type(e)
            ) from e

        if outcome["status"] == "load_error":
            raise LoadFaultError(self.name, outcome["errorMessage"], outcome["stackTrace"])
        if outcome["status"] == "error":
            raise FunctionError(
                outcome["errorMessage"], outcome["errorType"], outcome["stackTrace"]
            )
        return outcome["result"]


class RemoteLambdaFunction(LambdaFunction):
    def __init__(
        self,
        entity: FunctionEntity,
        timeout: int,
        client: Optional[httpx.AsyncClient] = None,
        invoke_timeout: float = 30.0,
    ):
        super().__init__(entity, timeout)
        self.client = client
        self.invoke_timeout = invoke_timeout

    @property
    def invoke_url(self) -> str:
        return f"{self.entity.url.rstrip('/')}{RIE_INVOKE_PATH}"

    async def run_handler(self) -> Any:
        if self.client is None:
            async with httpx.AsyncClient() as client:
                response = await self._post(client)
        else:
            response = await self._post(self.client)

        return self.parse_response(response)

    async def _post(self, client: httpx.AsyncClient) -> httpx.Response:
        logger.info(f"Invoking {self.name} at {self.invoke_url}")
        try:
            return await client.post(
                self.invoke_url,
                content=json.dumps(self._event).encode("utf-8"),
                headers={"Content-Type": "application/json"},
                timeout=self.invoke_timeout,
            )
        except httpx.RequestError as e:
            logger.error(
                f"Lambda invocation failed for function '{self.name}'",
                extra={
                    "function_name": self.name,
                    "target_url": self.invoke_url,
                    "error_type": type(e).__name__,
                    "error_detail": str(e),
                },
            )
            raise LambdaExecutionError(self.name, e) from e

    def parse_response(self, response: httpx.Response) -> Any:
        """
        Return the function result, or raise FunctionError for errors the
        RIE reports (X-Amz-Function-Error header or an error payload).
        """
        try:
            payload = response.json()
        except json.JSONDecodeError:
            logger.warning(
                "Failed to parse RIE response as JSON.",
                extra={"snippet": response.text[:200], "status_code": response.status_code},
            )
            raise FunctionError(
                f"Invalid response from function {self.name}: {response.text[:200]}",
                "InvalidResponseError",
            )

        is_error_payload = (
            isinstance(payload, dict) and "errorMessage" in payload and "errorType" in payload
        )
        if response.headers.get("X-Amz-Function-Error") or is_error_payload:
            if not isinstance(payload, dict):
                payload = {"errorMessage": str(payload)}
            raise FunctionError(
                str(payload.get("errorMessage", "")),
                payload.get("errorType"),
                payload.get("stackTrace"),
            )

        return payload
