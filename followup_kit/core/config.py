"""Environment-driven runtime configuration.

Values are read once and cached; tests that tweak the environment call
:func:`reset_settings_cache` afterwards.
"""

from __future__ import annotations

import dataclasses
import os
from functools import lru_cache
from zoneinfo import ZoneInfo

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclasses.dataclass(frozen=True)
class Settings:
    """Runtime configuration for the follow-up pipeline."""

    database_url: str | None = None
    business_timezone: str = "Europe/Berlin"
    scheduler_interval_seconds: float = 60.0
    scheduler_autostart: bool = True
    dispatch_concurrency: int = 4
    trigger_rate_limit: str = "10/minute"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 20.0
    classification_temperature: float = 0.3
    answer_temperature: float = 0.7
    answer_max_tokens: int = 200
    persona_name: str = "Markus"
    company_name: str = "Tomato Talent"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.business_timezone)

    @property
    def llm_enabled(self) -> bool:
        return bool(self.openai_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from the environment (and a local ``.env`` file)."""

    load_dotenv()
    interval = float(os.getenv("FOLLOW_UP_INTERVAL_SECONDS", "60"))
    if interval <= 0:
        raise RuntimeError("FOLLOW_UP_INTERVAL_SECONDS must be positive.")
    concurrency = int(os.getenv("FOLLOW_UP_DISPATCH_CONCURRENCY", "4"))
    if concurrency < 1:
        raise RuntimeError("FOLLOW_UP_DISPATCH_CONCURRENCY must be at least 1.")
    settings = Settings(
        database_url=os.getenv("DATABASE_URL"),
        business_timezone=os.getenv("BUSINESS_TIMEZONE", "Europe/Berlin"),
        scheduler_interval_seconds=interval,
        scheduler_autostart=_env_bool("FOLLOW_UP_SCHEDULER_AUTOSTART", True),
        dispatch_concurrency=concurrency,
        trigger_rate_limit=os.getenv("FOLLOW_UP_TRIGGER_RATE_LIMIT", "10/minute"),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        openai_timeout_seconds=float(os.getenv("OPENAI_TIMEOUT_SECONDS", "20")),
        persona_name=os.getenv("FOLLOW_UP_PERSONA_NAME", "Markus"),
        company_name=os.getenv("FOLLOW_UP_COMPANY_NAME", "Tomato Talent"),
    )
    # Unknown zones fail here rather than at the first dispatch pass.
    ZoneInfo(settings.business_timezone)
    return settings


def reset_settings_cache() -> None:
    """Clear cached settings; useful in tests when env vars change."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
