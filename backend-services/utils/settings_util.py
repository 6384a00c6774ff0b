"""
Runtime configuration.

Values come from environment variables (a ``.env`` file is loaded by the app
module at import time). ``get_settings`` is cached; tests that change the
environment call ``get_settings.cache_clear()``.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_CAPTURE_BYTES = 1_048_576


class ScrubSettings(BaseSettings):
    model_config = SettingsConfigDict(extra='ignore', case_sensitive=False)

    max_capture_bytes: int = Field(DEFAULT_MAX_CAPTURE_BYTES, ge=0)
    capture_opaque_bodies: bool = True
    fault_response_title: str = 'Server error'
    extra_sensitive_fields: str = ''

    log_format: str = 'plain'
    log_level: str = 'INFO'
    logs_dir: str | None = None

    enable_demo_routes: bool = True
    host: str = '0.0.0.0'
    port: int = 8000
    dev_reload: bool = False

    @property
    def extra_rules(self) -> frozenset[str]:
        return frozenset(
            p.strip().lower() for p in self.extra_sensitive_fields.split(',') if p.strip()
        )


@lru_cache
def get_settings() -> ScrubSettings:
    return ScrubSettings()
