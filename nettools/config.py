"""Environment-driven configuration for NetTools."""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Runtime settings. Every field can be overridden with a NETTOOLS_* variable."""

    endpoint: str = "ws://localhost:8080/ws"
    doh_url: str = "https://cloudflare-dns.com/dns-query"
    doh_timeout_ms: int = 5000
    rate_limit: int = 10
    rate_window_ms: int = 60_000
    reconnect_delay_ms: int = 3000
    reconnect_backoff: float = 2.0
    reconnect_max_ms: int = 30_000
    snapshot_path: str | None = None
    executor: str = "remote"  # "remote" or "fake"


def _env_number(environ, name: str, default, cast):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Non-positive %s=%r, using default %s", name, raw, default)
        return default
    return value


def load_settings(environ=None) -> Settings:
    """Build Settings from environment variables.

    Environment Variables:
        NETTOOLS_ENDPOINT: Executor WebSocket URL
        NETTOOLS_DOH_URL: DNS-over-HTTPS JSON endpoint
        NETTOOLS_DOH_TIMEOUT_MS: Resolvability check timeout
        NETTOOLS_RATE_LIMIT: Commands admitted per window
        NETTOOLS_RATE_WINDOW_MS: Rate limit window length
        NETTOOLS_RECONNECT_DELAY_MS: First reconnect delay
        NETTOOLS_RECONNECT_BACKOFF: Reconnect delay multiplier (1.0 = fixed)
        NETTOOLS_RECONNECT_MAX_MS: Reconnect delay cap
        NETTOOLS_SNAPSHOT_PATH: INI file for the session snapshot
        NETTOOLS_EXECUTOR: "fake" to use the simulated executor

    Invalid numbers fall back to the default with a warning.
    """
    if environ is None:
        environ = os.environ

    defaults = Settings()
    backoff = _env_number(environ, "NETTOOLS_RECONNECT_BACKOFF", defaults.reconnect_backoff, float)
    if backoff < 1.0:
        logger.warning("NETTOOLS_RECONNECT_BACKOFF must be >= 1.0, using 1.0")
        backoff = 1.0

    return Settings(
        endpoint=environ.get("NETTOOLS_ENDPOINT", defaults.endpoint),
        doh_url=environ.get("NETTOOLS_DOH_URL", defaults.doh_url),
        doh_timeout_ms=_env_number(environ, "NETTOOLS_DOH_TIMEOUT_MS", defaults.doh_timeout_ms, int),
        rate_limit=_env_number(environ, "NETTOOLS_RATE_LIMIT", defaults.rate_limit, int),
        rate_window_ms=_env_number(environ, "NETTOOLS_RATE_WINDOW_MS", defaults.rate_window_ms, int),
        reconnect_delay_ms=_env_number(
            environ, "NETTOOLS_RECONNECT_DELAY_MS", defaults.reconnect_delay_ms, int
        ),
        reconnect_backoff=backoff,
        reconnect_max_ms=_env_number(
            environ, "NETTOOLS_RECONNECT_MAX_MS", defaults.reconnect_max_ms, int
        ),
        snapshot_path=environ.get("NETTOOLS_SNAPSHOT_PATH") or None,
        executor=environ.get("NETTOOLS_EXECUTOR", defaults.executor).strip().lower() or "remote",
    )
