# backend/commerce/config.py
from typing import List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .enums import LogLevel


class Settings(BaseSettings):
    environment: str = "development"
    # Database
    database_url: str = Field(..., description="PostgreSQL connection string")
    db_pool_size: int = Field(
        default=20,
        ge=5,
        le=100,
        description="Database connection pool size",
    )
    db_max_overflow: int = Field(
        default=30,
        ge=5,
        le=100,
        description="Maximum overflow connections",
    )
    db_pool_timeout: int = Field(
        default=30,
        ge=5,
        le=300,
        description="Database connection timeout in seconds",
    )

    # Redis (cache store and job stores share one server)
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, ge=1, le=65535, description="Redis port")
    redis_db: int = Field(default=0, ge=0, le=15, description="Redis database index")
    redis_password: Optional[str] = Field(default=None, description="Redis password")

    # Job queues
    replenishment_queue_name: str = Field(
        default="payments-queue",
        description="Job store holding replenishment payment schedulers",
    )
    holiday_promotion_queue_name: str = Field(
        default="holidayPromotionJobQueue",
        description="Job store holding yearly holiday promotion schedulers",
    )
    birthday_promotion_queue_name: str = Field(
        default="customerBirthdayPromocodeJobQueue",
        description="Job store holding yearly birthday promotion schedulers",
    )
    job_attempts: int = Field(
        default=5, ge=1, le=20, description="Attempts per executed cycle"
    )
    job_backoff_delay_ms: int = Field(
        default=5000,
        ge=0,
        le=600000,
        description="Base delay for exponential retry backoff in milliseconds",
    )
    job_failed_retention_seconds: int = Field(
        default=24 * 3600,
        ge=0,
        description="How long failed job records are kept",
    )
    jobstore_poll_seconds: int = Field(
        default=30,
        ge=1,
        le=3600,
        description="Worker wakeup interval for picking up new job descriptors",
    )
    promotion_concurrency: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum in-flight external calls during promotion fan-out",
    )

    # Payment service
    payment_service_url: str = Field(
        default="http://localhost:8100", description="Payment service base URL"
    )
    payment_service_timeout: float = Field(
        default=10.0, gt=0, le=120, description="Payment service timeout in seconds"
    )

    # API
    api_host: str = Field(default="0.0.0.0", description="API host to bind to")
    api_port: int = Field(
        default=8000, ge=1, le=65535, description="API port to bind to"
    )
    api_reload: bool = Field(
        default=False, description="Enable auto-reload for development"
    )

    # CORS - can be set via CORS_ORIGINS env var as comma-separated string
    cors_origins: Union[str, List[str]] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins. Can be comma-separated string.",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert cors_origins to a list of strings"""
        if isinstance(self.cors_origins, str):
            return [origin.strip() for origin in self.cors_origins.split(",")]
        return self.cors_origins

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path (optional)"
    )

    @property
    def redis_connect_args(self) -> dict:
        """Connection keyword arguments shared by every Redis client."""
        args = {"host": self.redis_host, "port": self.redis_port, "db": self.redis_db}
        if self.redis_password:
            args["password"] = self.redis_password
        return args

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v) -> LogLevel:
        """Validate log level is one of the allowed values"""
        if isinstance(v, LogLevel):
            return v
        allowed_levels = LogLevel.__members__.keys()
        v_upper = str(v).upper()
        if v_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(allowed_levels)}"
            )
        return LogLevel[v_upper]

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values"""
        allowed_envs = ["development", "staging", "production"]
        v_lower = v.lower()
        if v_lower not in allowed_envs:
            raise ValueError(
                f"Invalid environment '{v}'. Must be one of: {', '.join(allowed_envs)}"
            )
        return v_lower

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


# Global settings instance
settings = Settings()  # type: ignore[call-arg]
