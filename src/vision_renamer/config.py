"""Runtime settings for vision-renamer."""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "http://localhost:1234"
DEFAULT_PROBE_TIMEOUT = 5.0


class Settings(BaseSettings):
    """
    Settings loaded from ``VISION_RENAMER_*`` environment variables or a local ``.env``.

    Only ``base_url`` is normally set by users; the rest are knobs for slow
    servers and debugging.
    """

    model_config = SettingsConfigDict(
        env_prefix="VISION_RENAMER_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    base_url: str = DEFAULT_BASE_URL
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    request_timeout: Optional[float] = None
    log_level: str = "WARNING"

    @field_validator("base_url", mode="before")
    @classmethod
    def _default_when_blank(cls, value: Optional[str]) -> str:
        if value is None or not str(value).strip():
            return DEFAULT_BASE_URL
        return str(value).strip().rstrip("/")


def get_settings(**overrides) -> Settings:
    """Build settings, letting explicit (non-None) overrides win over the environment."""
    return Settings(**{key: value for key, value in overrides.items() if value is not None})
