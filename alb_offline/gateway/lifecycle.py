"""
Where: alb_offline/gateway/lifecycle.py
What: Startup/shutdown orchestration for shared resources.
Why: Keep main.py focused on app assembly while preserving lifecycle behavior.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from alb_offline.common.core.logging_config import NOTICE

from .config import AlbConfig

logger = logging.getLogger("gateway.main")


@asynccontextmanager
async def manage_lifespan(app: FastAPI, alb_config: AlbConfig) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    client = httpx.AsyncClient(
        timeout=alb_config.LAMBDA_INVOKE_TIMEOUT, verify=alb_config.VERIFY_SSL
    )
    provider = app.state.function_provider
    provider.attach_client(client)

    try:
        app.state.alb_server.write_routes_terminal()
        logger.log(NOTICE, f"Offline [http for alb] listening on {alb_config.base_url}")
        yield
    finally:
        provider.shutdown()
        provider.attach_client(None)

        logger.info("ALB server shutting down, closing http client.")
        await client.aclose()
