"""Tests for the simulated executor."""

import json

import pytest
from PySide6.QtCore import QUrl

from nettools.fake_executor import FakeExecutor, FakeExecutorSocket
from nettools.models import Command, Hop, Kind, Session
from nettools.parsers import parser_for


def run_through_parser(kind, target, lines):
    session = Session(kind=kind, target=target)
    result = parser_for(kind).consume(session, "\n".join(lines))
    return result


class TestFakeExecutor:
    """Test FakeExecutor output shape and determinism."""

    def test_deterministic_with_seed(self):
        command = Command(Kind.PING, "example.com", {"count": "5"})

        first = FakeExecutor(seed=42).generate_output(command)
        second = FakeExecutor(seed=42).generate_output(command)

        assert first == second

    def test_empty_target_raises(self):
        with pytest.raises(ValueError):
            FakeExecutor(seed=1).generate_output(Command(Kind.PING, "  ", {"count": "1"}))

    def test_ping_output_parses(self):
        executor = FakeExecutor(seed=7)
        executor.loss_probability = 0.0

        lines = executor.generate_output(Command(Kind.PING, "example.com", {"count": "4"}))
        result = run_through_parser(Kind.PING, "example.com", lines)

        assert lines[0].startswith("PING example.com")
        assert result.summary_seen is True
        assert result.stats.sent == 4
        assert result.stats.received == 4
        assert all(sample.round_trip_ms > 0 for sample in result.records)

    def test_ip_target_echoed_as_address(self):
        lines = FakeExecutor(seed=3).generate_output(Command(Kind.PING, "10.1.2.3", {"count": "1"}))

        assert lines[0] == "PING 10.1.2.3 (10.1.2.3) 56(84) bytes of data."

    @pytest.mark.parametrize("record_type,expected", [("A", 1), ("MX", 2), ("NS", 2), ("SOA", 1)])
    def test_dig_output_parses(self, record_type, expected):
        lines = FakeExecutor(seed=5).generate_output(
            Command(Kind.DIG, "example.com", {"type": record_type})
        )
        result = run_through_parser(Kind.DIG, "example.com", lines)

        assert result.stats.record_count == expected
        assert {record.record_type for record in result.records} == {record_type}
        assert all(record.name == "example.com." for record in result.records)

    def test_traceroute_output_parses(self):
        executor = FakeExecutor(seed=11)
        executor.hop_timeout_probability = 0.5

        lines = executor.generate_output(Command(Kind.TRACEROUTE, "example.com", {"maxHops": "30"}))
        result = run_through_parser(Kind.TRACEROUTE, "example.com", lines)

        hops = result.records
        assert all(isinstance(hop, Hop) for hop in hops)
        assert [hop.hop_number for hop in hops] == list(range(1, len(hops) + 1))
        assert hops[-1].hostname == "example.com"
        assert hops[-1].is_timeout is False

    def test_traceroute_respects_max_hops(self):
        lines = FakeExecutor(seed=2).generate_output(
            Command(Kind.TRACEROUTE, "example.com", {"maxHops": "2"})
        )

        assert len(lines) == 3


class TestFakeExecutorSocket:
    def test_streams_output_then_end_time(self):
        socket = FakeExecutorSocket(FakeExecutor(seed=9), interval_ms=0)
        frames = []
        connected = []
        socket.textMessageReceived.connect(frames.append)
        socket.connected.connect(lambda: connected.append(True))

        socket.open(QUrl("ws://fake/ws"))
        socket.sendTextMessage(
            json.dumps({"tool": "dig", "target": "example.com", "parameters": {"type": "A"}})
        )

        assert connected == [True]
        decoded = [json.loads(frame) for frame in frames]
        assert all(d["tool"] == "dig" and d["target"] == "example.com" for d in decoded)
        assert "output" in decoded[0]
        assert "endTime" in decoded[-1]
        assert len(socket.sent_frames) == 1

    def test_close_stops_stream(self):
        socket = FakeExecutorSocket(FakeExecutor(seed=9), interval_ms=0)
        frames = []
        disconnected = []
        socket.textMessageReceived.connect(frames.append)
        socket.disconnected.connect(lambda: disconnected.append(True))

        socket.open(QUrl("ws://fake/ws"))
        socket.close()
        socket.sendTextMessage(
            json.dumps({"tool": "ping", "target": "example.com", "parameters": {"count": "1"}})
        )

        assert frames == []
        assert disconnected == [True]
