from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Algorithm = Literal["dedup", "sliding_window", "token_bucket"]


class Settings(BaseSettings):
    """Toolkit settings loaded from environment variables.

    All settings can be configured via ``ADMISSION_*`` environment variables
    or a .env file.
    """

    # Dedup cache settings
    dedup_capacity: int = 1000
    dedup_threshold_seconds: float = 10

    # Sliding window settings (fixed 60 second window)
    sliding_window_limit: int = 60

    # Token bucket settings
    token_bucket_capacity: float = 10
    token_bucket_refill_rate: float = 1.0  # tokens per second

    # Algorithm used by the RateLimiter facade when none is given
    default_algorithm: Algorithm = "sliding_window"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("dedup_capacity", "sliding_window_limit")
    @classmethod
    def validate_count_positive(cls, v: int) -> int:
        """Validate capacity and limit values are at least 1."""
        if v < 1:
            raise ValueError("capacity and limit values must be at least 1")
        return v

    @field_validator(
        "dedup_threshold_seconds",
        "token_bucket_capacity",
        "token_bucket_refill_rate",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return v

    model_config = SettingsConfigDict(
        env_prefix="ADMISSION_", env_file=".env", extra="ignore"
    )


# Global settings instance
settings = Settings()
