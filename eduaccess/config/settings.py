"""Service settings, read from the environment (or ``.env``)."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="eduaccess", description="Service name (logs, files)")
    app_version: str = Field(default="0.1.0", description="Reported by /health")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=True, description="Reported by /health/ready")
    api_host: str = Field(default="0.0.0.0", description="Bind address for `eduaccess`")
    api_port: int = Field(default=8010, description="Bind port for `eduaccess`")

    # Bearer tokens (issued by the identity service, verified here)
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        description="Shared HS256 secret, at least 32 characters",
    )
    auth_algorithm: str = Field(default="HS256", description="Token signature algorithm")
    auth_access_token_expire_minutes: int = Field(
        default=15, description="Lifetime of tokens minted by create_access_token"
    )

    # Redis: decision cache only, so timeouts are short
    redis_url: str = Field(
        default="redis://localhost:6379/2",
        description="Decision cache database",
    )
    redis_max_connections: int = Field(default=20, description="Pool size")
    redis_socket_timeout: float = Field(
        default=0.5, description="Per-command timeout (seconds)"
    )
    redis_socket_connect_timeout: float = Field(
        default=2.0, description="Connect timeout (seconds)"
    )
    redis_retry_on_timeout: bool = Field(default=False, description="Retry a timed-out command")
    redis_health_check_interval: int = Field(
        default=30, description="Seconds between idle connection checks"
    )

    # Cassandra: access read model and audit table
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Contact points"
    )
    cassandra_port: int = Field(default=9042, description="Native protocol port")
    cassandra_keyspace: str = Field(
        default="eduaccess", description="Keyspace holding the access tables"
    )
    cassandra_username: str | None = Field(default=None, description="Auth user")
    cassandra_password: str | None = Field(default=None, description="Auth password")
    cassandra_protocol_version: int = Field(default=4, description="Native protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout (seconds)"
    )

    # Access resolution
    access_resolve_timeout_seconds: float | None = Field(
        default=5.0,
        description="Upper bound for one access resolution (None = no limit)",
    )
    access_require_published: bool = Field(
        default=True,
        description="Deny unpublished content to everyone except its creator",
    )
    access_teacher_claims_enabled: bool = Field(
        default=True,
        description="Let students use their linked teacher's subscription benefits",
    )
    access_cache_enabled: bool = Field(
        default=True, description="Cache access decisions in Redis"
    )
    access_cache_ttl_seconds: int = Field(
        default=300, description="Maximum lifetime of a cached access decision"
    )
    access_audit_enabled: bool = Field(
        default=True, description="Record served access decisions in Cassandra"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Root log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Console renderer (files are always JSON)"
    )
    log_include_caller_info: bool = Field(
        default=False, description="Add filename, line and function to events"
    )
    log_dir: str = Field(default="logs", description="Directory for rotating log files")
    log_file_max_bytes: int = Field(
        default=20 * 1024 * 1024, description="Rotate after this many bytes"
    )
    log_file_backup_count: int = Field(
        default=10, description="Rotated files kept per log"
    )
    log_requests: bool = Field(
        default=True, description="Emit one request_completed line per request"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health"],
        description="Path prefixes never request-logged",
    )

    # CORS (the storefront calls /v1/access directly)
    cors_origins: list[str] = Field(default=["*"], description="Allowed origins")
    cors_allow_credentials: bool = Field(default=False, description="Send credentials")
    cors_allow_methods: list[str] = Field(
        default=["GET", "DELETE"], description="Allowed methods"
    )
    cors_allow_headers: list[str] = Field(
        default=["Authorization", "X-Request-ID"], description="Allowed headers"
    )
    cors_max_age: int = Field(default=3600, description="Preflight cache (seconds)")

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
