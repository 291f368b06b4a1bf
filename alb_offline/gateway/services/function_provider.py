"""
Function provider

Hands out a fresh invocable unit per request so concurrent invocations share
no event state.
"""

import logging
from concurrent.futures import Executor, ProcessPoolExecutor
from typing import Optional

import httpx

from ..config import AlbConfig
from .function_registry import FunctionRegistry
from .lambda_function import (
    IsolatedLambdaFunction,
    LambdaFunction,
    LocalLambdaFunction,
    RemoteLambdaFunction,
)

logger = logging.getLogger("gateway.function_provider")


class FunctionProvider:
    def __init__(
        self,
        registry: FunctionRegistry,
        config: AlbConfig,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            registry: FunctionRegistry instance
            config: AlbConfig instance
            client: Shared httpx.AsyncClient for RIE backends (optional)
        """
        self.registry = registry
        self.config = config
        self.client = client
        self._executor: Optional[ProcessPoolExecutor] = None

    def attach_client(self, client: Optional[httpx.AsyncClient]) -> None:
        self.client = client

    @property
    def executor(self) -> ProcessPoolExecutor:
        if self._executor is None:
            self._executor = ProcessPoolExecutor()
        return self._executor

    def get(self, function_key: str) -> Optional[LambdaFunction]:
        """
        Resolve the invocable unit for a function key.

        Returns:
            LambdaFunction, or None when the key is unknown
        """
        entity = self.registry.get_function_config(function_key)
        if entity is None:
            return None

        if entity.url:
            return RemoteLambdaFunction(
                entity,
                timeout=self.config.FUNCTION_TIMEOUT,
                client=self.client,
                invoke_timeout=self.config.LAMBDA_INVOKE_TIMEOUT,
            )

        if self.config.USE_CHILD_PROCESSES:
            return IsolatedLambdaFunction(
                entity,
                timeout=self.config.FUNCTION_TIMEOUT,
                executor=self.executor,
                on_broken=self.reset_executor,
            )

        return LocalLambdaFunction(entity, timeout=self.config.FUNCTION_TIMEOUT)

    def shutdown(self) -> None:
        if self._executor is not None:
            logger.info("Shutting down function worker processes.")
            self._executor.shutdown(wait=True)
            self._executor = None

    def reset_executor(self, broken: Executor) -> None:
        """
        Drop a pool whose worker died so the next request starts a new one.
        Requests that saw the same broken pool only reset it once.
        """
        if self._executor is not broken:
            return
        logger.warning("Function worker pool is broken, starting a new one on next request.")
        self._executor = None
        broken.shutdown(wait=False)
