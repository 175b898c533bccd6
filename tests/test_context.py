"""End-to-end tests: context wiring with the simulated executor."""

from functools import partial

from nettools.config import Settings
from nettools.context import build_context
from nettools.fake_executor import FakeExecutor, FakeExecutorSocket
from nettools.models import Kind


def make_context(resolver, snapshot_settings, clock, **overrides):
    executor = FakeExecutor(seed=21)
    executor.loss_probability = 0.0
    settings = Settings(executor="fake", **overrides)
    return build_context(
        settings,
        socket_factory=partial(FakeExecutorSocket, executor, interval_ms=0),
        resolver=resolver,
        snapshot_settings=snapshot_settings,
        clock=clock,
    )


def test_ping_run_end_to_end(resolver, snapshot_settings, clock):
    context = make_context(resolver, snapshot_settings, clock)
    context.start()
    assert context.channel.is_connected()

    context.dispatcher.submit(Kind.PING, "example.com", {"count": "3"})
    resolver.resolve("example.com", True)

    session = context.store.get(Kind.PING)
    assert session.running is False
    assert session.raw_output[0].startswith("PING example.com")
    assert session.summary_seen is True
    assert session.aggregates.sent == 3
    assert session.aggregates.loss_percent == 0.0

    context.stop()
    assert not context.channel.is_connected()


def test_dig_run_records_history(resolver, snapshot_settings, clock):
    context = make_context(resolver, snapshot_settings, clock)
    context.start()

    context.dispatcher.submit(Kind.DIG, "93.184.216.34", {"type": "ns"})

    session = context.store.get(Kind.DIG)
    assert session.running is False
    assert session.aggregates.record_count == 2
    assert session.history[0].record_type == "NS"


def test_rate_limit_from_settings(resolver, snapshot_settings, clock):
    context = make_context(resolver, snapshot_settings, clock, rate_limit=1)
    rejections = []
    context.dispatcher.rejected.connect(lambda kind, reason, message: rejections.append(message))
    context.start()

    context.dispatcher.submit(Kind.TRACEROUTE, "10.0.0.1", {"maxHops": "5"})
    context.dispatcher.submit(Kind.TRACEROUTE, "10.0.0.1", {"maxHops": "5"})

    assert len(rejections) == 1
    assert rejections[0].startswith("Rate limit exceeded")


def test_submit_before_start_is_not_connected(resolver, snapshot_settings, clock):
    context = make_context(resolver, snapshot_settings, clock)

    context.dispatcher.submit(Kind.PING, "example.com", {"count": "1"})

    assert context.store.get(Kind.PING).raw_output == ["Error: not connected"]
    assert context.rate_limiter.remaining() == 10
