"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.

List-valued settings (``CAPGATE_ALLOWED_COMMANDS``, ``CAPGATE_ALLOWED_PATH_ROOTS``)
are read from the environment as JSON arrays, e.g. ``["echo", "ls"]``.
"""

from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from capgate.gateway.policy.models import (
    CachePolicy,
    ExecutionLimits,
    GatewayPolicy,
    RateLimitPolicy,
    SecurityPolicy,
)

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class RateLimitConfig(BaseModel):
    """Sliding-window rate limit configuration."""

    max_requests: int = Field(
        default=60, alias="CAPGATE_RATE_LIMIT_MAX_REQUESTS", description="Admissions per caller per window"
    )
    window_seconds: float = Field(
        default=60.0, alias="CAPGATE_RATE_LIMIT_WINDOW_SECONDS", description="Sliding window length in seconds"
    )

    model_config = {"populate_by_name": True}


class CacheConfig(BaseModel):
    """Result cache configuration."""

    capacity: int = Field(default=256, alias="CAPGATE_CACHE_CAPACITY", description="Maximum cached results")
    ttl_seconds: float = Field(
        default=300.0, alias="CAPGATE_CACHE_TTL_SECONDS", description="Default time-to-live of a cached result"
    )

    model_config = {"populate_by_name": True}


class ExecutionConfig(BaseModel):
    """Execution limits configuration."""

    max_execution_time_seconds: float = Field(
        default=30.0, alias="CAPGATE_MAX_EXECUTION_TIME_SECONDS", description="Wall-clock budget per execution"
    )
    max_output_bytes: int = Field(
        default=1_000_000, alias="CAPGATE_MAX_OUTPUT_BYTES", description="Output ceiling per execution in bytes"
    )
    max_concurrent_executions: int = Field(
        default=32, alias="CAPGATE_MAX_CONCURRENT_EXECUTIONS", description="Executions allowed to run at once"
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Server Configuration
    # =====================================================================
    server_host: str = Field(
        default="0.0.0.0",
        description="Gateway server host address to bind to",
        alias="CAPGATE_SERVER_HOST",
    )
    server_port: int = Field(
        default=8000,
        description="Gateway server port number",
        alias="CAPGATE_SERVER_PORT",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="CAPGATE_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log line format (simple, detailed, json)",
        alias="CAPGATE_LOG_FORMAT",
    )
    log_file_dir: str = Field(
        default="logs",
        description="Directory for the log file when file logging is enabled",
        alias="CAPGATE_LOG_FILE_DIR",
    )
    enable_file_logging: bool = Field(
        default=False,
        description="Also write logs to <log_file_dir>/capgate.log",
        alias="CAPGATE_ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Gateway Configuration
    # =====================================================================
    default_caller_identity: str = Field(
        default="anonymous",
        description="Identity used when a request carries none; empty string requires callers to identify",
        alias="CAPGATE_DEFAULT_CALLER_IDENTITY",
    )
    rate_limit_max_requests: int = Field(default=60, ge=1, alias="CAPGATE_RATE_LIMIT_MAX_REQUESTS")
    rate_limit_window_seconds: float = Field(default=60.0, gt=0.0, alias="CAPGATE_RATE_LIMIT_WINDOW_SECONDS")
    cache_capacity: int = Field(default=256, ge=1, alias="CAPGATE_CACHE_CAPACITY")
    cache_ttl_seconds: float = Field(default=300.0, gt=0.0, alias="CAPGATE_CACHE_TTL_SECONDS")
    max_execution_time_seconds: float = Field(default=30.0, gt=0.0, alias="CAPGATE_MAX_EXECUTION_TIME_SECONDS")
    max_output_bytes: int = Field(default=1_000_000, ge=1, alias="CAPGATE_MAX_OUTPUT_BYTES")
    max_concurrent_executions: int = Field(default=32, ge=1, alias="CAPGATE_MAX_CONCURRENT_EXECUTIONS")
    allowed_commands: List[str] = Field(
        default_factory=list,
        description="Executables that command capabilities may run",
        alias="CAPGATE_ALLOWED_COMMANDS",
    )
    allowed_path_roots: Optional[List[str]] = Field(
        default=None,
        description="Directories absolute path arguments must fall under",
        alias="CAPGATE_ALLOWED_PATH_ROOTS",
    )
    working_directory: Optional[str] = Field(
        default=None,
        description="Working directory for subprocesses and file capabilities",
        alias="CAPGATE_WORKING_DIRECTORY",
    )
    max_argument_bytes: int = Field(default=64_000, ge=1, alias="CAPGATE_MAX_ARGUMENT_BYTES")
    sweep_interval_seconds: float = Field(default=30.0, gt=0.0, alias="CAPGATE_SWEEP_INTERVAL_SECONDS")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def rate_limit(self) -> RateLimitConfig:
        """Get rate limit configuration from environment variables."""
        return RateLimitConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def cache(self) -> CacheConfig:
        """Get result cache configuration from environment variables."""
        return CacheConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def execution(self) -> ExecutionConfig:
        """Get execution limits configuration from environment variables."""
        return ExecutionConfig.model_validate(self.model_dump(by_alias=True))

    def to_gateway_policy(self) -> GatewayPolicy:
        """Convert the flat settings into the gateway's policy object."""
        rate_limit = self.rate_limit
        cache = self.cache
        execution = self.execution
        return GatewayPolicy(
            default_caller_identity=self.default_caller_identity or None,
            rate_limit=RateLimitPolicy(
                max_requests=rate_limit.max_requests,
                window_seconds=rate_limit.window_seconds,
            ),
            cache=CachePolicy(capacity=cache.capacity, ttl_seconds=cache.ttl_seconds),
            execution=ExecutionLimits(
                max_execution_time=execution.max_execution_time_seconds,
                max_output_size=execution.max_output_bytes,
            ),
            security=SecurityPolicy(
                allowed_commands=list(self.allowed_commands),
                allowed_path_roots=list(self.allowed_path_roots) if self.allowed_path_roots is not None else None,
                max_argument_bytes=self.max_argument_bytes,
                working_directory=self.working_directory,
            ),
            max_concurrent_executions=execution.max_concurrent_executions,
            sweep_interval_seconds=self.sweep_interval_seconds,
        )


settings = Settings()
