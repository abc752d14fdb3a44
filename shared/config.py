"""
Shared configuration management for the Backrest repository services.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="BACKREST_",
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Response cache. Presence of ``cache`` (even empty) turns caching on;
    # its value is the "<maxEntries>:<retention>" policy string.
    cache: Optional[str] = Field(default=None)
    redis_host: Optional[str] = Field(default=None)
    redis_port: int = Field(default=6379)
    redis_db: int = Field(default=0)
    redis_pool_size: int = Field(default=10)
    redis_pool_timeout: float = Field(default=5.0)
    redis_socket_timeout: float = Field(default=5.0)

    # Data sources
    catalog_file: Optional[str] = Field(default=None)
    assets_dir: Optional[str] = Field(default=None, validation_alias="BACKREST_ASSETS")

    @property
    def cache_enabled(self) -> bool:
        return self.cache is not None


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int = Field(default=4567, validation_alias="BACKREST_SVC_PORT")
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: Optional[int] = None, **kwargs):
        if port is not None:
            kwargs["port"] = port
        super().__init__(service_name=service_name, **kwargs)


def get_config(service_name: str, port: Optional[int] = None, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
