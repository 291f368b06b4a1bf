"""
Where: alb_offline/gateway/server.py
What: Route table for ALB triggers on the FastAPI listener.
Why: Translate declarative (method, path) conditions into listener routes once at startup.
"""

import logging
from typing import Dict, List, Optional, Tuple

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import Response
from fastapi.routing import APIRoute

from alb_offline.common.core.logging_config import NOTICE

from .config import MAX_PAYLOAD_BYTES, AlbConfig
from .core.diagnostics import get_last_request_options
from .core.route_paths import generate_alb_path, invoke_path, route_specificity
from .models.context import InputContext
from .models.function import AlbTrigger
from .models.route import ANY_METHOD, LastRequestOptions, RouteDescriptor
from .services.dispatcher import InvocationDispatcher

logger = logging.getLogger("gateway.server")

# HEAD is left to the listener, which answers it from the GET route.
ANY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class AlbHttpServer:
    def __init__(self, app: FastAPI, dispatcher: InvocationDispatcher, options: AlbConfig):
        self._app = app
        self._dispatcher = dispatcher
        self._options = options
        self._terminal_info: List[RouteDescriptor] = []
        self._registered: Dict[Tuple[str, str], RouteDescriptor] = {}
        self._ordered_routes: List[Tuple[Tuple, APIRoute]] = []

    @property
    def routes(self) -> List[RouteDescriptor]:
        """Registered routes, for the startup printout."""
        return list(self._terminal_info)

    @property
    def last_request_options(self) -> Optional[LastRequestOptions]:
        return get_last_request_options()

    def create_routes(self, function_key: str, alb_event: AlbTrigger) -> Optional[RouteDescriptor]:
        """
        Register the listener route for one ALB trigger.

        Returns:
            The RouteDescriptor, or None when nothing was registered
        """
        method = alb_event.conditions.method[0].upper()
        path = alb_event.conditions.path[0]

        prepend_stage = not self._options.NO_PREPEND_STAGE_IN_URL
        stage = self._options.STAGE
        listener_path = generate_alb_path(path, stage, prepend_stage, self._options.PREFIX)
        listener_method = ANY_METHOD if method == "ANY" else method

        # The listener cannot register HEAD separately from GET.
        if listener_method == "HEAD":
            logger.log(NOTICE, "HEAD method event detected. Skipping route mapping")
            return None

        route_key = (listener_method, listener_path)
        if route_key in self._registered:
            logger.warning(
                f"Route {method} {listener_path} already mapped to "
                f"'{self._registered[route_key].function_key}', skipping '{function_key}'"
            )
            return None

        descriptor = RouteDescriptor(
            function_key=function_key,
            method=listener_method,
            path=listener_path,
            invoke_path=invoke_path(function_key),
            server=self._options.base_url,
            stage=stage if prepend_stage else None,
        )

        max_body_bytes = None if listener_method in ("HEAD", "GET") else MAX_PAYLOAD_BYTES

        self._app.add_api_route(
            listener_path,
            self._make_handler(descriptor, max_body_bytes),
            methods=ANY_METHODS if listener_method == ANY_METHOD else [listener_method],
            name=f"{function_key} {method} {path}",
            include_in_schema=False,
        )
        sort_key = (listener_method == ANY_METHOD, route_specificity(listener_path))
        self._order_route(self._app.router.routes[-1], sort_key)

        self._registered[route_key] = descriptor
        self._terminal_info.append(descriptor)

        return descriptor

    def _order_route(self, route: APIRoute, sort_key: Tuple) -> None:
        """
        Keep ALB routes sorted so the listener's first match is the most specific.

        Method-specific routes come before any-method ones. Within each group
        literal segments beat parameters and parameters beat catch-alls.
        Routes with equal keys keep declaration order.
        """
        later = [r for key, r in self._ordered_routes if key > sort_key]
        self._ordered_routes.append((sort_key, route))
        if not later:
            return

        routes = self._app.router.routes
        routes.remove(route)
        routes.insert(min(routes.index(r) for r in later), route)

    def _make_handler(self, descriptor: RouteDescriptor, max_body_bytes: Optional[int]):
        options = self._options
        dispatcher = self._dispatcher

        async def alb_handler(request: Request) -> Response:
            body = None
            if max_body_bytes is not None:
                body = await read_body(request, max_body_bytes)

            context = build_input_context(request, descriptor, body, options)
            return await dispatcher.dispatch(descriptor, context)

        return alb_handler

    def write_routes_terminal(self) -> None:
        for route in self._terminal_info:
            method = "ANY" if route.method == ANY_METHOD else route.method
            logger.log(
                NOTICE,
                f"{method} | {route.server}{route.path}",
                extra={"invoke_path": route.invoke_path, "stage": route.stage},
            )
            logger.log(NOTICE, f"POST | {route.server}{route.invoke_path}")


async def read_body(request: Request, max_bytes: int) -> bytes:
    """
    Read the raw payload, rejecting anything over max_bytes with 413.
    """
    too_large = HTTPException(
        status_code=413,
        detail=f"Payload content length greater than maximum allowed: {max_bytes}",
    )

    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > max_bytes:
        raise too_large

    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > max_bytes:
            raise too_large
        chunks.append(chunk)

    return b"".join(chunks)


def parse_query_string(query: str) -> Tuple[Dict[str, str], Dict[str, List[str]]]:
    """
    Split a raw query string. Values stay URL-encoded, as the load balancer
    forwards them.
    """
    single: Dict[str, str] = {}
    multi: Dict[str, List[str]] = {}
    for pair in query.split("&"):
        if not pair:
            continue
        name, _, value = pair.partition("=")
        single[name] = value
        multi.setdefault(name, []).append(value)
    return single, multi


def build_input_context(
    request: Request, descriptor: RouteDescriptor, body: Optional[bytes], options: AlbConfig
) -> InputContext:
    headers: Dict[str, str] = {}
    multi_headers: Dict[str, List[str]] = {}
    for raw_name, raw_value in request.headers.raw:
        name = raw_name.decode("latin-1").lower()
        value = raw_value.decode("latin-1")
        headers[name] = value
        multi_headers.setdefault(name, []).append(value)

    query_params, multi_query_params = parse_query_string(request.url.query)

    return InputContext(
        function_key=descriptor.function_key,
        method=request.method,
        raw_path=request.url.path,
        url=str(request.url),
        headers=headers,
        multi_headers=multi_headers,
        query_params=query_params,
        multi_query_params=multi_query_params,
        body=body,
        stage=options.STAGE,
        prepend_stage=not options.NO_PREPEND_STAGE_IN_URL,
        prefix=options.PREFIX,
    )
