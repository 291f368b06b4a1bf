"""
Settings shared by every alb-offline service.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseAppConfig(BaseSettings):
    """Logging and outbound TLS knobs, read from the environment or ``.env``."""

    LOG_LEVEL: str = Field(default="INFO", description="Root log level for setup_logging")
    LOG_CONFIG_PATH: str = Field(
        default="config/alb_log.yaml", description="dictConfig YAML for the listener"
    )
    VERIFY_SSL: bool = Field(
        default=False, description="Verify certificates when calling remote RIE endpoints"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )
