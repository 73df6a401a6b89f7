"""Runtime configuration for geosim."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from geosim._constants import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_LATITUDE,
    DEFAULT_LONGITUDE,
    ROUTING_PROFILE,
    ROUTING_URL,
)
from geosim.exceptions import GeoSimConfigError
from geosim.models.position import Position


def _env_number(env: dict[str, str] | os._Environ[str], key: str, cast: type) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise GeoSimConfigError(f"{key} must be a {cast.__name__}, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class GeoSimConfig:
    """Process-wide settings.

    Scenario files describe *what* to simulate; these settings describe where
    to fetch routes from and the defaults applied to every route simulator
    that does not set its own.

    Parameters
    ----------
    config_path : str
        Scenario JSON file used by the CLI.
    routing_url : str
        Base URL of the OSRM-style routing provider.
    routing_profile : str
        Provider profile, e.g. ``"driving"``.
    update_interval_ms : int
        Default tick interval.
    max_retries : int
        Default retries after the first failed route fetch.
    fetch_timeout_ms : int
        Default timeout per fetch attempt.
    log_level : str
        Level name passed to :func:`geosim._logging.setup_logging`.
    default_latitude, default_longitude : float
        Position given to entities before any simulator moves them.
    """

    config_path: str = DEFAULT_CONFIG_PATH
    routing_url: str = ROUTING_URL
    routing_profile: str = ROUTING_PROFILE
    update_interval_ms: int = 1000
    max_retries: int = 3
    fetch_timeout_ms: int = 10_000
    log_level: str = "INFO"
    default_latitude: float = DEFAULT_LATITUDE
    default_longitude: float = DEFAULT_LONGITUDE

    def __post_init__(self) -> None:
        if self.update_interval_ms <= 0:
            raise GeoSimConfigError("update_interval_ms must be positive")
        if self.max_retries < 0:
            raise GeoSimConfigError("max_retries must not be negative")
        if self.fetch_timeout_ms <= 0:
            raise GeoSimConfigError("fetch_timeout_ms must be positive")

    @property
    def default_position(self) -> Position:
        return Position(latitude=self.default_latitude, longitude=self.default_longitude)

    def route_defaults(self) -> dict[str, Any]:
        """Route simulator option defaults derived from this config."""
        return {
            "server_url": self.routing_url,
            "profile": self.routing_profile,
            "update_interval_ms": self.update_interval_ms,
            "max_retries": self.max_retries,
            "fetch_timeout_ms": self.fetch_timeout_ms,
        }

    @classmethod
    def from_env(cls, **overrides: Any) -> GeoSimConfig:
        """Create configuration from ``GEOSIM_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "GEOSIM_CONFIG_PATH": "config_path",
            "GEOSIM_ROUTING_URL": "routing_url",
            "GEOSIM_ROUTING_PROFILE": "routing_profile",
            "GEOSIM_LOG_LEVEL": "log_level",
        }
        _ENV_NUMBER_MAP: dict[str, tuple[str, type]] = {
            "GEOSIM_UPDATE_INTERVAL_MS": ("update_interval_ms", int),
            "GEOSIM_MAX_RETRIES": ("max_retries", int),
            "GEOSIM_FETCH_TIMEOUT_MS": ("fetch_timeout_ms", int),
            "GEOSIM_DEFAULT_LATITUDE": ("default_latitude", float),
            "GEOSIM_DEFAULT_LONGITUDE": ("default_longitude", float),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val and field_name not in overrides:
                config_kwargs[field_name] = val.strip()

        for env_key, (field_name, cast) in _ENV_NUMBER_MAP.items():
            if field_name in overrides:
                continue
            val = _env_number(env, env_key, cast)
            if val is not None:
                config_kwargs[field_name] = val

        config_kwargs.update(overrides)
        if "log_level" in config_kwargs:
            config_kwargs["log_level"] = str(config_kwargs["log_level"]).upper()

        return cls(**config_kwargs)
