"""
Invocation Dispatcher - Service Layer

Standardizes the flow: InputContext -> ALB event -> function -> HTTP response.

    Idle -> Dispatching -> Awaiting Result -> Completed | Failed -> Responding

No timeout or cancellation is applied here; a running invocation is awaited
until it returns or raises.
"""

import logging
import sys
from typing import Any

from fastapi.responses import Response

from alb_offline.common.core.logging_config import NOTICE

from ..config import AlbConfig
from ..core.diagnostics import record_last_request
from ..core.event_builder import EventBuilder
from ..core.exceptions import ContractViolationError
from ..core.failure import build_bad_gateway_reply, classify_failure
from ..core.response_translator import (
    build_error_response,
    build_response,
    log_output,
    translate_result,
)
from ..models.context import InputContext
from ..models.route import LastRequestOptions, RouteDescriptor
from .function_provider import FunctionProvider

logger = logging.getLogger("gateway.dispatcher")


class InvocationDispatcher:
    """
    Orchestrates one request from the matched route to the HTTP response.
    """

    def __init__(self, provider: FunctionProvider, event_builder: EventBuilder, config: AlbConfig):
        self.provider = provider
        self.event_builder = event_builder
        self.config = config

    async def dispatch(self, route: RouteDescriptor, context: InputContext) -> Response:
        record_last_request(
            LastRequestOptions(
                headers=context.headers,
                method=context.method.lower(),
                payload=context.body,
                url=context.url,
            )
        )

        logger.log(NOTICE, f"{route.method} {context.raw_path} (λ: {route.function_key})")

        event = self.event_builder.build(context)

        lambda_function = self.provider.get(route.function_key)
        if lambda_function is None:
            # Routes are only created for known functions.
            logger.critical(
                f"No function registered for key '{route.function_key}'",
                extra={"function_key": route.function_key},
            )
            sys.exit(1)

        lambda_function.set_event(event)

        try:
            result = await lambda_function.run_handler()
        except Exception as err:
            logger.debug("_____ HANDLER RESOLVED _____")
            return self._handle_failure(route.function_key, err)

        logger.debug("_____ HANDLER RESOLVED _____")
        return self._handle_success(result)

    def _handle_failure(self, function_key: str, err: Exception) -> Response:
        # The worker could not even load the handler: there is nothing to classify.
        if getattr(err, "is_load_fault", False):
            return build_error_response(
                build_bad_gateway_reply(f"Error while loading {function_key}", err)
            )

        failure = classify_failure(err, hide_stack_traces=self.config.HIDE_STACK_TRACES)

        if self.config.PRINT_OUTPUT:
            log_output(failure.status_code, None, failed=True)

        return build_error_response(failure)

    def _handle_success(self, result: Any) -> Response:
        try:
            translated = translate_result(result)
        except ContractViolationError as e:
            # The violation is in the function result, not in our frames.
            return build_error_response(build_bad_gateway_reply(str(e), e.with_traceback(None)))

        if self.config.PRINT_OUTPUT:
            log_output(200, result)

        return build_response(translated)
