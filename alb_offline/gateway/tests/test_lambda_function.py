import json
import multiprocessing
import os
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from unittest.mock import patch

import httpx
import pytest
import respx

from alb_offline.gateway.config import AlbConfig
from alb_offline.gateway.core.exceptions import (
    FunctionError,
    LambdaExecutionError,
    LoadFaultError,
)
from alb_offline.gateway.services.function_provider import FunctionProvider
from alb_offline.gateway.services.function_registry import FunctionRegistry
from alb_offline.gateway.services.lambda_function import (
    IsolatedLambdaFunction,
    LambdaContext,
    LocalLambdaFunction,
    RemoteLambdaFunction,
    load_handler,
    run_isolated,
)
from alb_offline.gateway.tests.factories import HANDLERS, alb_function
from alb_offline.gateway.tests.handlers import get_user

EVENT = {"httpMethod": "GET", "path": "/users/42", "body": None, "isBase64Encoded": False}
RIE_URL = "http://lambda-rie:8080/2015-03-31/functions/function/invocations"


def _remote_entity():
    return alb_function("remote", None, "GET", "/remote", url="http://lambda-rie:8080/")


# ---------------------------------------------------------------------------
# Handler loading and context
# ---------------------------------------------------------------------------


def test_load_handler():
    assert load_handler(f"{HANDLERS}.get_user") is get_user


def test_load_handler_missing_attribute():
    with pytest.raises(ImportError, match="missing on module"):
        load_handler(f"{HANDLERS}.does_not_exist")


def test_load_handler_without_module():
    with pytest.raises(ImportError, match="module.function"):
        load_handler("handler")


def test_lambda_context_fields():
    context = LambdaContext("getUser", timeout=6, memory_limit_in_mb=256, aws_request_id="req-1")

    assert context.function_name == "getUser"
    assert context.aws_request_id == "req-1"
    assert context.memory_limit_in_mb == 256
    assert context.invoked_function_arn.endswith(":function:getUser")
    assert 0 < context.get_remaining_time_in_millis() <= 6000
    assert LambdaContext(**context.to_dict()).aws_request_id == "req-1"


# ---------------------------------------------------------------------------
# Local
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_local_function_runs_sync_handler():
    function = LocalLambdaFunction(alb_function("getUser", "get_user", "GET", "/u"), timeout=6)
    function.set_event(EVENT)

    assert await function.run_handler() == {"statusCode": 200, "body": '{"id":42}'}


@pytest.mark.asyncio
async def test_local_function_runs_async_handler():
    function = LocalLambdaFunction(alb_function("a", "async_result", "GET", "/a"), timeout=6)
    function.set_event(EVENT)

    assert await function.run_handler() == {"body": "from a coroutine"}


@pytest.mark.asyncio
async def test_local_function_propagates_handler_error():
    function = LocalLambdaFunction(alb_function("a", "async_error", "GET", "/a"), timeout=6)
    function.set_event(EVENT)

    with pytest.raises(KeyError, match=r"missing \[400\]"):
        await function.run_handler()


@pytest.mark.asyncio
async def test_local_function_context_uses_entity_timeout():
    entity = alb_function("inspect", "inspect_event", "POST", "/i", timeout=3, memory_size=128)
    function = LocalLambdaFunction(entity, timeout=6)
    function.set_event(EVENT)

    with patch(
        "alb_offline.gateway.services.lambda_function.get_request_id", return_value="req-42"
    ):
        result = await function.run_handler()

    data = json.loads(result["body"])
    assert data["function_name"] == "inspect"
    assert data["aws_request_id"] == "req-42"
    assert function.timeout == 3


# ---------------------------------------------------------------------------
# Isolated
# ---------------------------------------------------------------------------


def test_run_isolated_ok():
    context = LambdaContext("getUser", timeout=6).to_dict()

    outcome = run_isolated(f"{HANDLERS}.get_user", EVENT, context, {})

    assert outcome == {"status": "ok", "result": {"statusCode": 200, "body": '{"id":42}'}}


def test_run_isolated_handler_error():
    context = LambdaContext("notFound", timeout=6).to_dict()

    outcome = run_isolated(f"{HANDLERS}.not_found", EVENT, context, {})

    assert outcome["status"] == "error"
    assert outcome["errorMessage"] == "not found [404]"
    assert outcome["errorType"] == "ValueError"
    assert outcome["stackTrace"][0] == "ValueError: not found [404]"
    assert any("in not_found" in line for line in outcome["stackTrace"])


def test_run_isolated_load_error():
    context = LambdaContext("broken", timeout=6).to_dict()

    outcome = run_isolated("alb_offline_missing_module.handler", EVENT, context, {})

    assert outcome["status"] == "load_error"
    assert outcome["errorType"] == "ModuleNotFoundError"


def _env_seen(outcome):
    return json.loads(outcome["result"]["body"])


def test_run_isolated_applies_environment():
    context = LambdaContext("env", timeout=6).to_dict()

    with patch.dict(os.environ, {}):
        outcome = run_isolated(
            f"{HANDLERS}.read_env", EVENT, context, {"ALB_OFFLINE_TEST_VAR": "1"}
        )

        assert _env_seen(outcome)["ALB_OFFLINE_TEST_VAR"] == "1"
        assert "ALB_OFFLINE_TEST_VAR" not in os.environ
        assert "ALB_OFFLINE_SET_BY_HANDLER" not in os.environ


def test_run_isolated_environment_does_not_leak_between_functions():
    context = LambdaContext("env", timeout=6).to_dict()

    with patch.dict(os.environ, {}):
        run_isolated(f"{HANDLERS}.read_env", EVENT, context, {"ALB_OFFLINE_TEST_VAR": "1"})
        outcome = run_isolated(
            f"{HANDLERS}.read_env", EVENT, context, {"ALB_OFFLINE_OTHER_VAR": "2"}
        )

    assert _env_seen(outcome) == {"ALB_OFFLINE_TEST_VAR": None, "ALB_OFFLINE_OTHER_VAR": "2"}


def test_run_isolated_restores_overridden_variable():
    context = LambdaContext("env", timeout=6).to_dict()

    with patch.dict(os.environ, {"ALB_OFFLINE_TEST_VAR": "outer"}):
        outcome = run_isolated(
            f"{HANDLERS}.read_env", EVENT, context, {"ALB_OFFLINE_TEST_VAR": "inner"}
        )

        assert _env_seen(outcome)["ALB_OFFLINE_TEST_VAR"] == "inner"
        assert os.environ["ALB_OFFLINE_TEST_VAR"] == "outer"


@pytest.mark.asyncio
async def test_isolated_function_result():
    entity = alb_function("getUser", "get_user", "GET", "/u")
    with ThreadPoolExecutor(max_workers=1) as executor:
        function = IsolatedLambdaFunction(entity, timeout=6, executor=executor)
        function.set_event(EVENT)

        assert await function.run_handler() == {"statusCode": 200, "body": '{"id":42}'}


@pytest.mark.asyncio
async def test_isolated_function_error_carries_trace():
    entity = alb_function("notFound", "not_found", "GET", "/u")
    with ThreadPoolExecutor(max_workers=1) as executor:
        function = IsolatedLambdaFunction(entity, timeout=6, executor=executor)
        function.set_event(EVENT)

        with pytest.raises(FunctionError) as exc_info:
            await function.run_handler()

    assert exc_info.value.message == "not found [404]"
    assert exc_info.value.error_type == "ValueError"
    assert exc_info.value.stack_trace[0] == "ValueError: not found [404]"


@pytest.mark.asyncio
async def test_isolated_function_load_fault():
    entity = alb_function("broken", "does_not_exist", "GET", "/u")
    with ThreadPoolExecutor(max_workers=1) as executor:
        function = IsolatedLambdaFunction(entity, timeout=6, executor=executor)
        function.set_event(EVENT)

        with pytest.raises(LoadFaultError) as exc_info:
            await function.run_handler()

    assert exc_info.value.is_load_fault is True
    assert exc_info.value.function_name == "broken"


class BrokenExecutor(Executor):
    """Pool whose worker already died: every submit fails."""

    def __init__(self):
        self.shut_down = False

    def submit(self, fn, /, *args, **kwargs):
        raise BrokenProcessPool("A child process terminated abruptly")

    def shutdown(self, wait=True, *, cancel_futures=False):
        self.shut_down = True


@pytest.mark.asyncio
async def test_isolated_function_broken_pool_is_function_error():
    entity = alb_function("getUser", "get_user", "GET", "/u")
    executor = BrokenExecutor()
    seen = []
    function = IsolatedLambdaFunction(entity, timeout=6, executor=executor, on_broken=seen.append)
    function.set_event(EVENT)

    with pytest.raises(FunctionError) as exc_info:
        await function.run_handler()

    assert exc_info.value.message == "Worker process for getUser terminated abruptly"
    assert exc_info.value.error_type == "BrokenProcessPool"
    assert seen == [executor]


@pytest.mark.asyncio
async def test_isolated_function_recovers_after_worker_crash():
    spawn = multiprocessing.get_context("spawn")
    pools = [ProcessPoolExecutor(max_workers=1, mp_context=spawn)]
    crashed = alb_function("crash", "crash", "GET", "/c")
    healthy = alb_function("getUser", "get_user", "GET", "/u")

    def replace_pool(broken):
        broken.shutdown(wait=False)
        pools.append(ProcessPoolExecutor(max_workers=1, mp_context=spawn))

    try:
        function = IsolatedLambdaFunction(
            crashed, timeout=6, executor=pools[-1], on_broken=replace_pool
        )
        function.set_event(EVENT)
        with pytest.raises(FunctionError, match="terminated abruptly"):
            await function.run_handler()

        assert len(pools) == 2
        function = IsolatedLambdaFunction(healthy, timeout=6, executor=pools[-1])
        function.set_event(EVENT)
        assert await function.run_handler() == {"statusCode": 200, "body": '{"id":42}'}
    finally:
        for pool in pools:
            pool.shutdown(wait=True)


# ---------------------------------------------------------------------------
# Remote (Lambda RIE)
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@respx.mock
async def test_remote_function_success():
    route = respx.post(RIE_URL).mock(
        return_value=httpx.Response(200, json={"statusCode": 200, "body": "ok"})
    )

    async with httpx.AsyncClient() as client:
        function = RemoteLambdaFunction(_remote_entity(), timeout=6, client=client)
        function.set_event(EVENT)
        result = await function.run_handler()

    assert result == {"statusCode": 200, "body": "ok"}
    assert json.loads(route.calls.last.request.content) == EVENT


@pytest.mark.asyncio
@respx.mock
async def test_remote_function_without_shared_client():
    respx.post(RIE_URL).mock(return_value=httpx.Response(200, json="plain"))

    function = RemoteLambdaFunction(_remote_entity(), timeout=6)
    function.set_event(EVENT)

    assert await function.run_handler() == "plain"


@pytest.mark.asyncio
@respx.mock
async def test_remote_function_error_header():
    payload = {
        "errorMessage": "denied [403]",
        "errorType": "AccessDenied",
        "stackTrace": ["  File \"/var/task/app.py\", line 3, in handler"],
    }
    respx.post(RIE_URL).mock(
        return_value=httpx.Response(
            200, json=payload, headers={"X-Amz-Function-Error": "Unhandled"}
        )
    )

    function = RemoteLambdaFunction(_remote_entity(), timeout=6)
    function.set_event(EVENT)

    with pytest.raises(FunctionError) as exc_info:
        await function.run_handler()

    assert exc_info.value.message == "denied [403]"
    assert exc_info.value.error_type == "AccessDenied"
    assert exc_info.value.stack_trace == payload["stackTrace"]


@pytest.mark.asyncio
@respx.mock
async def test_remote_function_error_payload_without_header():
    respx.post(RIE_URL).mock(
        return_value=httpx.Response(200, json={"errorMessage": "bad", "errorType": "Error"})
    )

    function = RemoteLambdaFunction(_remote_entity(), timeout=6)
    function.set_event(EVENT)

    with pytest.raises(FunctionError, match="bad"):
        await function.run_handler()


@pytest.mark.asyncio
@respx.mock
async def test_remote_function_invalid_json():
    respx.post(RIE_URL).mock(return_value=httpx.Response(200, content=b"<html>"))

    function = RemoteLambdaFunction(_remote_entity(), timeout=6)
    function.set_event(EVENT)

    with pytest.raises(FunctionError) as exc_info:
        await function.run_handler()

    assert exc_info.value.error_type == "InvalidResponseError"


@pytest.mark.asyncio
@respx.mock
async def test_remote_function_connection_error():
    respx.post(RIE_URL).mock(side_effect=httpx.ConnectError("refused"))

    function = RemoteLambdaFunction(_remote_entity(), timeout=6)
    function.set_event(EVENT)

    with pytest.raises(LambdaExecutionError) as exc_info:
        await function.run_handler()

    assert exc_info.value.function_name == "remote"


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


def _provider(**overrides):
    registry = FunctionRegistry(config_path="/tmp/alb-offline-unused.yml")
    registry.register(alb_function("local", "get_user", "GET", "/l"))
    registry.register(_remote_entity())
    return FunctionProvider(registry, AlbConfig(_env_file=None, **overrides))


def test_provider_selects_backend():
    provider = _provider()

    assert isinstance(provider.get("local"), LocalLambdaFunction)
    assert isinstance(provider.get("remote"), RemoteLambdaFunction)
    assert provider.get("unknown") is None


def test_provider_returns_fresh_instances():
    provider = _provider()

    assert provider.get("local") is not provider.get("local")


def test_provider_child_processes():
    provider = _provider(USE_CHILD_PROCESSES=True)
    try:
        function = provider.get("local")
        assert isinstance(function, IsolatedLambdaFunction)
        assert function.executor is provider.executor
    finally:
        provider.shutdown()

    assert provider._executor is None


@pytest.mark.asyncio
async def test_provider_replaces_broken_pool():
    provider = _provider(USE_CHILD_PROCESSES=True)
    broken = BrokenExecutor()
    provider._executor = broken

    function = provider.get("local")
    function.set_event(EVENT)
    with pytest.raises(FunctionError):
        await function.run_handler()

    assert broken.shut_down is True
    assert provider._executor is None

    try:
        assert isinstance(provider.executor, ProcessPoolExecutor)
        assert provider.get("local").executor is provider.executor
    finally:
        provider.shutdown()


def test_provider_reset_ignores_stale_pool():
    provider = _provider(USE_CHILD_PROCESSES=True)
    try:
        current = provider.executor
        provider.reset_executor(BrokenExecutor())

        assert provider.executor is current
    finally:
        provider.shutdown()
