import os

# Config is initialized at import time, so environment overrides go first.
os.environ.setdefault("LOG_CONFIG_PATH", "/tmp/alb-offline-missing-logging.yml")
os.environ.setdefault("FUNCTIONS_CONFIG_PATH", "/tmp/alb-offline-missing-functions.yml")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from alb_offline.gateway.config import AlbConfig  # noqa: E402
from alb_offline.gateway.core.diagnostics import clear_last_request  # noqa: E402
from alb_offline.gateway.services.function_registry import FunctionRegistry  # noqa: E402
from alb_offline.gateway.tests.factories import alb_function  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_last_request():
    clear_last_request()
    yield
    clear_last_request()


@pytest.fixture
def alb_config():
    return AlbConfig(_env_file=None, STAGE="dev", HOST="localhost", ALB_PORT=3003)


@pytest.fixture
def registry():
    registry = FunctionRegistry(config_path="/tmp/alb-offline-unused.yml")
    registry.register(alb_function("getUser", "get_user", "GET", "/users/{id}"))
    registry.register(alb_function("echo", "echo", "ANY", "/echo"))
    registry.register(alb_function("notFound", "not_found", "GET", "/missing"))
    registry.register(alb_function("boom", "plain_error", "GET", "/boom"))
    registry.register(alb_function("unserialized", "unserialized_body", "GET", "/unserialized"))
    registry.register(alb_function("text", "text_result", "GET", "/text"))
    registry.register(alb_function("binary", "binary_result", "GET", "/binary"))
    registry.register(alb_function("inspect", "inspect_event", "POST", "/inspect"))
    registry.register(alb_function("noBody", "no_body", "GET", "/no-body"))
    return registry


@pytest.fixture
def main_app(alb_config, registry):
    from alb_offline.gateway.main import create_app

    return create_app(alb_config, registry)


@pytest_asyncio.fixture
async def async_client(main_app):
    transport = httpx.ASGITransport(app=main_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://localhost:3003") as client:
        yield client
