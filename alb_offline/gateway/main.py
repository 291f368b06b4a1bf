"""
ALB Offline - Application Load Balancer compatible server

Replicates how an AWS Application Load Balancer invokes Lambda targets and
relays their results, using the functions declared in functions.yml.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from alb_offline import __version__

from .config import AlbConfig, config
from .core.event_builder import AlbEventBuilder
from .core.logging_config import setup_logging
from .exceptions import register_exception_handlers
from .lifecycle import manage_lifespan
from .middleware import strip_trailing_slash_middleware, trace_propagation_middleware
from .server import AlbHttpServer
from .services.dispatcher import InvocationDispatcher
from .services.function_provider import FunctionProvider
from .services.function_registry import FunctionRegistry

# Logger setup
setup_logging()
logger = logging.getLogger("gateway.main")


def create_app(
    alb_config: Optional[AlbConfig] = None, registry: Optional[FunctionRegistry] = None
) -> FastAPI:
    """
    Assemble the listener and register one route per declared ALB trigger.
    """
    alb_config = alb_config or config

    if registry is None:
        registry = FunctionRegistry(alb_config.FUNCTIONS_CONFIG_PATH)
        registry.load_functions_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with manage_lifespan(app, alb_config):
            yield

    app = FastAPI(
        title="ALB Offline",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.middleware("http")(trace_propagation_middleware)
    app.middleware("http")(strip_trailing_slash_middleware)
    register_exception_handlers(app)

    provider = FunctionProvider(registry, alb_config)
    dispatcher = InvocationDispatcher(provider, AlbEventBuilder(), alb_config)
    alb_server = AlbHttpServer(app, dispatcher, alb_config)

    for function_key, entity in registry.items():
        for trigger in entity.alb_triggers:
            alb_server.create_routes(function_key, trigger)

    app.state.function_registry = registry
    app.state.function_provider = provider
    app.state.dispatcher = dispatcher
    app.state.alb_server = alb_server

    return app


app = create_app()


def run() -> None:
    import uvicorn

    ssl_options = {}
    if config.HTTPS_PROTOCOL:
        ssl_options = {"ssl_certfile": config.SSL_CERT_PATH, "ssl_keyfile": config.SSL_KEY_PATH}

    uvicorn.run(app, host=config.HOST, port=config.ALB_PORT, log_config=None, **ssl_options)


if __name__ == "__main__":
    run()
