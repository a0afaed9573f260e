"""Config models and loader.

This module defines Pydantic models for file- and environment-based
configuration. The engine core reads no configuration; these settings only
build the calendar context and tune the HTTP/CLI surfaces. JSON parsing
prefers `orjson` when available and falls back to the standard library's
`json` module otherwise.
"""

from __future__ import annotations

import json as _json
from pathlib import Path
from typing import Any, Callable, List, Optional

try:
    import orjson as _orjson_mod  # type: ignore[assignment]
except ImportError:  # pragma: no cover - optional dependency
    _orjson_mod = None  # type: ignore[assignment]
    _loads_orjson: Optional[Callable[[bytes], Any]] = None
else:

    def _loads_orjson(buf: bytes) -> Any:
        loader = getattr(_orjson_mod, "loads")  # type: ignore[assignment]
        return loader(buf)


from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.utils.calendar import StatsCalendar, load_timezone


def load_json(path: Path) -> Any:
    """Parse a JSON file, using `orjson` when installed."""
    raw = path.read_bytes()
    if _loads_orjson is not None:
        return _loads_orjson(raw)
    return _json.loads(raw.decode("utf-8"))


class EngineConfig(BaseModel):
    """File-based engine configuration.

    Attributes
    ----------
    timezone: str
        IANA name of the site reporting timezone.
    first_weekday: int
        First day of the week for weekly buckets, 0 = Monday.
    top_list_limit: int
        Default number of items returned by top-list merges.
    """

    timezone: str = Field("UTC", description="Site reporting timezone")
    first_weekday: int = Field(0, ge=0, le=6)
    top_list_limit: int = Field(10, ge=1)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        load_timezone(value)
        return value

    def calendar(self) -> StatsCalendar:
        return StatsCalendar(
            timezone=load_timezone(self.timezone), first_weekday=self.first_weekday
        )

    @staticmethod
    def load(path: Path) -> "EngineConfig":
        """Load engine config from a JSON file."""
        return EngineConfig.model_validate(load_json(path))


class EnvSettings(BaseSettings):
    """Environment-driven settings and .env support.

    Attributes
    ----------
    log_level: str
        Logging level name (e.g., "DEBUG", "INFO"). Defaults to "INFO".
    timezone: str
        Default site timezone when a request does not name one.
    first_weekday: int
        Default first weekday, 0 = Monday.
    http_token: Optional[str]
        Bearer token required by tool endpoints. Auth is disabled when unset.
    cors_origins: str
        Comma-separated list of allowed CORS origins.
    top_list_limit: int
        Default top-list size when a request does not set one.
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="STATS_ENGINE_")

    log_level: str = Field("INFO")
    timezone: str = Field("UTC")
    first_weekday: int = Field(0, ge=0, le=6)
    http_token: Optional[str] = Field(
        None,
        description="Bearer token for /tools endpoints",
    )
    cors_origins: str = Field(
        "",
        description="Comma-separated list of allowed CORS origins",
    )
    top_list_limit: int = Field(10, ge=1)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        load_timezone(value)
        return value

    def calendar(self) -> StatsCalendar:
        return StatsCalendar(
            timezone=load_timezone(self.timezone), first_weekday=self.first_weekday
        )

    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
