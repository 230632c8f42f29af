"""Runtime settings.

Defaults can be set through `WALKIN_QUEUE_*` environment variables; command
line flags override them.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .clock import DEFAULT_TIMEZONE
from .errors import ConfigError
from .mqtt_topics import DEFAULT_NAMESPACE

ENV_PREFIX = "WALKIN_QUEUE_"

_TRUE = {"1", "true", "yes", "on"}


def _env(environ: Mapping[str, str], key: str, default: str | None = None) -> str | None:
    value = environ.get(ENV_PREFIX + key)
    return value if value not in (None, "") else default


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = _env(environ, key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{ENV_PREFIX}{key} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8081
    timezone: str = DEFAULT_TIMEZONE
    mqtt_host: str | None = None
    mqtt_port: int = 1883
    namespace: str = DEFAULT_NAMESPACE
    notify_rejections: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            host=_env(env, "HOST", defaults.host) or defaults.host,
            port=_env_int(env, "PORT", defaults.port),
            timezone=_env(env, "TIMEZONE", defaults.timezone) or defaults.timezone,
            mqtt_host=_env(env, "MQTT_HOST"),
            mqtt_port=_env_int(env, "MQTT_PORT", defaults.mqtt_port),
            namespace=_env(env, "NAMESPACE", defaults.namespace) or defaults.namespace,
            notify_rejections=(_env(env, "NOTIFY_REJECTIONS", "") or "").lower() in _TRUE,
            log_level=(_env(env, "LOG_LEVEL", defaults.log_level) or defaults.log_level).upper(),
        )

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> "Settings":
        for name, port in (("port", self.port), ("mqtt_port", self.mqtt_port)):
            if not 0 <= port <= 65535:
                raise ConfigError(f"{name} must be between 0 and 65535, got {port}")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"unknown timezone {self.timezone!r}") from e
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError(f"unknown log level {self.log_level!r}")
        if not self.namespace or any(c in self.namespace for c in "+#"):
            raise ConfigError(f"invalid MQTT namespace {self.namespace!r}")
        return self
