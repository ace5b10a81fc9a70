from dataclasses import dataclass
from typing import Optional

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

from planwave.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "planwave"
    APP_ENV: str = "development"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"  # console | json

    # Executor defaults
    MAX_PARALLEL_STEPS: int = 5
    STEP_TIMEOUT_SECONDS: float = 30.0
    MAX_ATTEMPTS: int = 3  # total tool attempts per step, first try included
    RETRY_BACKOFF_SECONDS: float = 1.0
    RETRY_MAX_BACKOFF_SECONDS: float = 10.0
    FAIL_FAST: bool = False

    model_config = ConfigDict(
        env_file=".env",
        env_prefix="PLANWAVE_",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()


@dataclass
class ExecutorConfig:
    """
    Runtime knobs for PlanExecutor.

    Attributes:
        max_parallel_steps: Upper bound on steps running at once within a wave
        step_timeout_seconds: Timeout for a single tool attempt (None disables it)
        max_attempts: Total attempts per step, first try included
        retry_backoff_seconds: Base of the exponential backoff between attempts
        retry_max_backoff_seconds: Cap on a single backoff wait
        fail_fast: Stop dispatching later waves once any step has failed

    Example:
        ```python
        config = ExecutorConfig(max_parallel_steps=2, max_attempts=1)
        executor = PlanExecutor(registry, config)
        ```
    """

    max_parallel_steps: int = 5
    step_timeout_seconds: Optional[float] = 30.0
    max_attempts: int = 3
    retry_backoff_seconds: float = 1.0
    retry_max_backoff_seconds: float = 10.0
    fail_fast: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_parallel_steps < 1:
            raise ConfigurationError("max_parallel_steps must be at least 1")

        if self.step_timeout_seconds is not None and self.step_timeout_seconds <= 0:
            raise ConfigurationError("step_timeout_seconds must be greater than 0")

        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")

        if self.retry_backoff_seconds < 0:
            raise ConfigurationError("retry_backoff_seconds must be non-negative")

        if self.retry_max_backoff_seconds < self.retry_backoff_seconds:
            raise ConfigurationError(
                "retry_max_backoff_seconds must be >= retry_backoff_seconds"
            )

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "ExecutorConfig":
        source = source or settings
        return cls(
            max_parallel_steps=source.MAX_PARALLEL_STEPS,
            step_timeout_seconds=source.STEP_TIMEOUT_SECONDS,
            max_attempts=source.MAX_ATTEMPTS,
            retry_backoff_seconds=source.RETRY_BACKOFF_SECONDS,
            retry_max_backoff_seconds=source.RETRY_MAX_BACKOFF_SECONDS,
            fail_fast=source.FAIL_FAST,
        )
