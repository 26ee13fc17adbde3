"""Client configuration for pysteem."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pysteem._constants import (
    ADMISSION_INTERVAL,
    DEFAULT_API_IDS,
    DEFAULT_URL,
    MAX_IN_FLIGHT,
    STREAM_INTERVAL,
)
from pysteem.exceptions import SteemConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(value)
    except ValueError as exc:
        raise SteemConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class SteemConfig:
    """Client configuration.

    Parameters
    ----------
    url : str
        WebSocket URL of the node.
    api_ids : dict[str, int | None]
        Known sub-API names and their numeric ids.  Ids are refreshed from
        the node on startup when ``resolve_api_ids`` is enabled.
    id : int
        First request identity handed out by the dispatcher.
    max_in_flight : int
        Maximum number of requests awaiting a response at once.
    admission_interval : float
        Seconds between admission re-checks while the cap is reached.
    stream_interval : float
        Seconds between chain-head polls in block streams.
    request_timeout : float or None
        Seconds to wait for a response before failing with
        :class:`~pysteem.exceptions.SteemTimeoutError`.  ``None`` waits
        forever.
    resolve_api_ids : bool
        Look up every configured API name on the node after connecting.
    heartbeat : float or None
        WebSocket ping interval in seconds, passed to aiohttp.
    """

    url: str = DEFAULT_URL
    api_ids: dict[str, int | None] = dataclasses.field(default_factory=lambda: dict(DEFAULT_API_IDS))
    id: int = 0
    max_in_flight: int = MAX_IN_FLIGHT
    admission_interval: float = ADMISSION_INTERVAL
    stream_interval: float = STREAM_INTERVAL
    request_timeout: float | None = None
    resolve_api_ids: bool = True
    heartbeat: float | None = None

    def __post_init__(self) -> None:
        if not self.url:
            raise SteemConfigError("url must be non-empty")
        if self.max_in_flight < 1:
            raise SteemConfigError(f"max_in_flight must be at least 1, got {self.max_in_flight}")
        if self.admission_interval <= 0:
            raise SteemConfigError("admission_interval must be positive")
        if self.stream_interval <= 0:
            raise SteemConfigError("stream_interval must be positive")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise SteemConfigError("request_timeout must be positive or None")

    @classmethod
    def from_env(cls, **overrides: Any) -> SteemConfig:
        """Create configuration from ``STEEM_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        url = env.get("STEEM_URL")
        if url is not None:
            config_kwargs["url"] = url

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "STEEM_MAX_IN_FLIGHT": ("max_in_flight", int),
            "STEEM_STREAM_INTERVAL": ("stream_interval", float),
            "STEEM_REQUEST_TIMEOUT": ("request_timeout", float),
            "STEEM_HEARTBEAT": ("heartbeat", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)

        if "resolve_api_ids" not in overrides:
            config_kwargs["resolve_api_ids"] = _env_bool(env.get("STEEM_RESOLVE_API_IDS"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
