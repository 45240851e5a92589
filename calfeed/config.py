from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on", "y"}


def _env_int(env: Mapping[str, str], name: str) -> int | None:
    value = env.get(name)
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


@dataclass(slots=True)
class Settings:
    """Configuration shared by the request wrapper and the feed adapter."""

    cookie_name: str = "BITRIX_SM"
    site_id: str = "s1"
    language_id: str = "en"
    forum_id: int | None = None
    calendar_path: str = "/company/personal/user/#user_id#/calendar/"
    managed_cache: bool = True
    directory_index: str = "index.php"

    @property
    def cookie_prefix(self) -> str:
        return f"{self.cookie_name}_"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            cookie_name=env.get("CALFEED_COOKIE_NAME", defaults.cookie_name),
            site_id=env.get("CALFEED_SITE_ID", defaults.site_id),
            language_id=env.get("CALFEED_LANGUAGE_ID", defaults.language_id),
            forum_id=_env_int(env, "CALFEED_FORUM_ID"),
            calendar_path=env.get("CALFEED_CALENDAR_PATH", defaults.calendar_path),
            managed_cache=_env_bool(env.get("CALFEED_MANAGED_CACHE"), defaults.managed_cache),
            directory_index=env.get("CALFEED_DIRECTORY_INDEX", defaults.directory_index),
        )
