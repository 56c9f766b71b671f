"""
Shared configuration management for the Unified ERP backend.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ERP_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    postgres_dsn: str = Field(default="postgres://localhost:5432/erp")

    # Downstream ERP services
    employee_service_url: str = Field(default="http://localhost:8081")
    invoice_service_url: str = Field(default="http://localhost:8082")
    quiz_service_url: str = Field(default="http://localhost:8083")
    job_service_url: str = Field(default="http://localhost:8084")
    crud_service_url: str = Field(default="http://localhost:8085")
    proxy_timeout_seconds: float = Field(default=30.0, gt=0)

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_requests: int = Field(default=100, ge=1)
    rate_limit_window_seconds: int = Field(default=60, ge=1)
    rate_limit_strict: bool = Field(
        default=False,
        description="Increment before checking, closing the read-then-increment race",
    )
    rate_limit_socket_timeout: Optional[float] = Field(default=None, gt=0)

    # Audit
    audit_enabled: bool = Field(default=False)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
