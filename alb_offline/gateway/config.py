"""
ALB gateway configuration definition.

Loads configuration from environment variables and provides a Pydantic model.
Uses pydantic-settings for type safety and defaults.
"""

import sys
from pydantic import Field
from alb_offline.common.core.config import BaseAppConfig

# Raised from the listener's 1 MiB default to exceed what managed load balancers accept.
MAX_PAYLOAD_BYTES = 1024 * 1024 * 10


class AlbConfig(BaseAppConfig):
    """
    Configuration management for the ALB gateway.
    """

    # Server settings
    HOST: str = Field(default="localhost", description="Listen host")
    ALB_PORT: int = Field(default=3003, description="Listen port for the ALB server")
    HTTPS_PROTOCOL: bool = Field(default=False, description="Serve over TLS")
    SSL_CERT_PATH: str = Field(default="config/ssl/server.crt", description="SSL cert path")
    SSL_KEY_PATH: str = Field(default="config/ssl/server.key", description="SSL key path")

    # Routing
    STAGE: str = Field(default="dev", description="Stage name used as the path prefix")
    NO_PREPEND_STAGE_IN_URL: bool = Field(
        default=False, description="Do not prepend the stage segment to route paths"
    )
    PREFIX: str = Field(default="", description="Extra path prefix for every route")

    # Function definitions
    FUNCTIONS_CONFIG_PATH: str = Field(
        default="config/functions.yml", description="Lambda function definition file path"
    )
    FUNCTION_TIMEOUT: int = Field(default=6, description="Default function timeout (seconds)")
    LAMBDA_INVOKE_TIMEOUT: float = Field(
        default=30.0, description="HTTP timeout for RIE invocations (seconds)"
    )
    USE_CHILD_PROCESSES: bool = Field(
        default=False, description="Load and run local handlers in a worker process"
    )

    # Output
    HIDE_STACK_TRACES: bool = Field(default=False, description="Do not log failure traces")
    PRINT_OUTPUT: bool = Field(default=False, description="Log every function result")

    @property
    def base_url(self) -> str:
        scheme = "https" if self.HTTPS_PROTOCOL else "http"
        return f"{scheme}://{self.HOST}:{self.ALB_PORT}"


# Load config as a singleton.
# pydantic-settings reads environment variables during instantiation.
try:
    config = AlbConfig()
except Exception as e:
    sys.stderr.write(f"Failed to load configuration: {e}\n")
    raise
