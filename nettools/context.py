"""Explicitly owned wiring of the NetTools session engine."""

import logging
from dataclasses import dataclass

from PySide6.QtCore import QSettings

from nettools.channel import ChannelManager
from nettools.config import Settings
from nettools.dispatcher import Dispatcher
from nettools.fake_executor import FakeExecutorSocket
from nettools.ratelimit import RateLimiter
from nettools.resolver import DohResolver
from nettools.session_store import SessionStore
from nettools.validation import Resolver, ValidationService

logger = logging.getLogger(__name__)

ORGANIZATION = "NetTools"
APPLICATION = "nettools"


@dataclass
class NetToolsContext:
    """One of each component, constructed once at startup and passed around."""

    settings: Settings
    channel: ChannelManager
    rate_limiter: RateLimiter
    validator: ValidationService
    store: SessionStore
    dispatcher: Dispatcher

    def start(self):
        self.channel.start()

    def stop(self):
        self.channel.stop()


def open_snapshot_settings(settings: Settings) -> QSettings:
    """QSettings holding the session snapshot (INI file if configured)."""
    if settings.snapshot_path:
        return QSettings(settings.snapshot_path, QSettings.Format.IniFormat)
    return QSettings(ORGANIZATION, APPLICATION)


def build_context(
    settings: Settings,
    *,
    socket_factory=None,
    resolver: Resolver | None = None,
    snapshot_settings: QSettings | None = None,
    clock=None,
) -> NetToolsContext:
    """Construct and wire every component for the given settings.

    Keyword arguments replace the networked collaborators, which is how
    tests and the simulated executor plug in.
    """
    if socket_factory is None and settings.executor == "fake":
        logger.info("Using simulated executor (NETTOOLS_EXECUTOR=fake)")
        socket_factory = FakeExecutorSocket

    if resolver is None:
        resolver = DohResolver(url=settings.doh_url, timeout_ms=settings.doh_timeout_ms)

    if snapshot_settings is None:
        snapshot_settings = open_snapshot_settings(settings)

    clock_kwargs = {"clock": clock} if clock is not None else {}

    channel = ChannelManager(
        settings.endpoint,
        reconnect_delay_ms=settings.reconnect_delay_ms,
        backoff_factor=settings.reconnect_backoff,
        max_reconnect_delay_ms=settings.reconnect_max_ms,
        socket_factory=socket_factory,
    )
    rate_limiter = RateLimiter(
        capacity=settings.rate_limit, window_ms=settings.rate_window_ms, **clock_kwargs
    )
    validator = ValidationService(resolver, **clock_kwargs)
    store = SessionStore(snapshot_settings)
    dispatcher = Dispatcher(validator, rate_limiter, channel, store)

    return NetToolsContext(
        settings=settings,
        channel=channel,
        rate_limiter=rate_limiter,
        validator=validator,
        store=store,
        dispatcher=dispatcher,
    )
