"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from issue_bridge.core.durations import parse_duration


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables.

    Every field maps to ``ISSUE_BRIDGE_<FIELD_NAME>``.
    """

    # Server Configuration
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8765, ge=1024, le=65535)

    # Accounts (JSON list of account objects)
    accounts_file: Optional[str] = Field(default=None)

    # Tracker API
    api_base_path: str = Field(default="/rest/api/latest")
    request_timeout: float = Field(default=30.0, ge=1.0, le=300.0)

    # Retry / backoff
    max_retries: int = Field(default=5, ge=0, le=10)
    backoff_base_ms: int = Field(default=1000, ge=1)
    backoff_cap_ms: int = Field(default=30000, ge=1)

    # Result cache
    cache_time: str = Field(default="15m")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)
    log_requests_responses: bool = Field(default=False)
    log_images_fetch: bool = Field(default=False)

    @field_validator("cache_time")
    @classmethod
    def validate_cache_time(cls, v):
        """Reject cache durations the parser cannot read."""
        if parse_duration(v) <= 0:
            raise ValueError("cache_time must be a positive duration")
        return v

    @field_validator("api_base_path")
    @classmethod
    def validate_api_base_path(cls, v):
        """Keep a single leading slash and no trailing slash."""
        v = v.strip().strip("/")
        return f"/{v}" if v else ""

    @property
    def cache_ttl_ms(self) -> int:
        """Result cache TTL in milliseconds."""
        return parse_duration(self.cache_time)

    model_config = {
        "env_prefix": "ISSUE_BRIDGE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
