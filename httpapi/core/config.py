"""Application configuration helpers."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os

DEFAULT_MAX_BODY_BYTES = 1024 * 1024
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_VALIDATION_MESSAGE = "Validation failed"


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    return int(raw)


@dataclass(frozen=True)
class HttpApiSettings:
    """Runtime settings for request decoding and envelope writing."""

    max_body_bytes: int
    log_level: str
    validation_message: str

    def __post_init__(self) -> None:
        if self.max_body_bytes < 0:
            raise ValueError("max_body_bytes must be >= 0")
        if not self.validation_message:
            raise ValueError("validation_message must not be empty")


@lru_cache(maxsize=1)
def get_settings() -> HttpApiSettings:
    """Load HTTP API settings from the environment."""
    return HttpApiSettings(
        max_body_bytes=_get_int_env("HTTPAPI_MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES),
        log_level=os.getenv("HTTPAPI_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        validation_message=os.getenv("HTTPAPI_VALIDATION_MESSAGE", DEFAULT_VALIDATION_MESSAGE),
    )
