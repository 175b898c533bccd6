"""Simulated executor for NetTools development and testing."""

import json
import logging
import random
import time

from PySide6.QtCore import QObject, QTimer, Signal

from nettools.models import Command, Kind
from nettools.validation import is_ip_literal

logger = logging.getLogger(__name__)


class FakeExecutor:
    """Generates realistic ping, dig and traceroute output for a command."""

    def __init__(self, seed: int | None = None):
        """Initialize with optional random seed for deterministic output."""
        self._random = random.Random(seed)

        # Simulation parameters
        self.base_latency = 25.0  # Base latency in ms
        self.latency_variance = 5.0  # Normal variance
        self.spike_probability = 0.05  # 5% chance of latency spike
        self.spike_multiplier = 3.0  # Spike makes latency 3x higher
        self.loss_probability = 0.02  # 2% chance of packet loss
        self.hop_timeout_probability = 0.1  # 10% chance a hop does not answer

    def generate_output(self, command: Command) -> list[str]:
        """Return the output lines the real tool would print, echo line first."""
        if not command.target or not command.target.strip():
            raise ValueError("Target cannot be empty")

        if command.kind is Kind.PING:
            return self._ping_output(command)
        if command.kind is Kind.DIG:
            return self._dig_output(command)
        return self._traceroute_output(command)

    def _latency(self, scale: float = 1.0) -> float:
        if self._random.random() < self.spike_probability:
            latency = self.base_latency * self.spike_multiplier + self._random.gauss(
                0, self.latency_variance
            )
        else:
            latency = self.base_latency + self._random.gauss(0, self.latency_variance)
        return round(max(0.1, latency * scale), 3)

    def _address(self, target: str) -> str:
        if is_ip_literal(target):
            return target
        return f"203.0.113.{self._random.randint(1, 254)}"

    def _ping_output(self, command: Command) -> list[str]:
        target = command.target
        address = self._address(target)
        count = int(command.parameters.get("count", "4"))

        lines = [f"PING {target} ({address}) 56(84) bytes of data."]
        latencies = []
        for seq in range(1, count + 1):
            if self._random.random() < self.loss_probability:
                continue
            latency = self._latency()
            latencies.append(latency)
            lines.append(f"64 bytes from {address}: icmp_seq={seq} ttl=56 time={latency} ms")

        loss = round((count - len(latencies)) / count * 100)
        lines.append(f"--- {target} ping statistics ---")
        lines.append(
            f"{count} packets transmitted, {len(latencies)} received, {loss}% packet loss, "
            f"time {count * 1000}ms"
        )
        if latencies:
            mean = sum(latencies) / len(latencies)
            lines.append(
                f"rtt min/avg/max/mdev = {min(latencies):.3f}/{mean:.3f}/{max(latencies):.3f}/0.000 ms"
            )
        return lines

    def _dig_output(self, command: Command) -> list[str]:
        target = command.target
        record_type = command.parameters.get("type", "A").upper()

        values = {
            "A": [f"203.0.113.{self._random.randint(1, 254)}"],
            "AAAA": [f"2001:db8::{self._random.randint(1, 0xFFFF):x}"],
            "MX": [f"10 mail.{target}.", f"20 mail2.{target}."],
            "NS": [f"ns1.{target}.", f"ns2.{target}."],
            "TXT": ['"v=spf1 -all"'],
            "SOA": [f"ns1.{target}. hostmaster.{target}. 2024010101 7200 3600 1209600 3600"],
        }[record_type]

        ttl = self._random.choice([60, 300, 3600, 86400])
        lines = [f"; <<>> DiG 9.18.24 <<>> +nocomments +noquestion {record_type} {target}"]
        lines.append(";; global options: +cmd")
        lines.extend(f"{target}.\t\t{ttl}\tIN\t{record_type}\t{value}" for value in values)
        lines.append(f";; Query time: {int(self._latency())} msec")
        return lines

    def _traceroute_output(self, command: Command) -> list[str]:
        target = command.target
        address = self._address(target)
        max_hops = int(command.parameters.get("maxHops", "30"))
        hop_total = min(max_hops, self._random.randint(4, 10))

        lines = [f"traceroute to {target} ({address}), {max_hops} hops max, 60 byte packets"]
        for number in range(1, hop_total + 1):
            last = number == hop_total
            if not last and self._random.random() < self.hop_timeout_probability:
                lines.append(f"{number:2d}  * * *")
                continue

            hostname, hop_address = (target, address) if last else (
                f"hop{number}.example.net",
                f"198.51.100.{number}",
            )
            probes = "  ".join(
                f"{self._latency(scale=number / hop_total)} ms" for _ in range(3)
            )
            lines.append(f"{number:2d}  {hostname} ({hop_address})  {probes}")
        return lines


class FakeExecutorSocket(QObject):
    """QWebSocket stand-in that answers commands with FakeExecutor output.

    With interval_ms=0 every frame is delivered synchronously, which keeps
    tests free of event-loop timing. Otherwise frames are spaced out with
    QTimer like a real streaming executor.
    """

    connected = Signal()
    disconnected = Signal()
    textMessageReceived = Signal(str)
    errorOccurred = Signal(object)

    def __init__(self, executor: FakeExecutor | None = None, interval_ms: int = 200, parent=None):
        super().__init__(parent)
        self.executor = executor if executor is not None else FakeExecutor()
        self.interval_ms = interval_ms
        self.sent_frames = []
        self._open = False

    def open(self, url):
        logger.debug("Fake executor socket opening: %s", url.toString())
        self._open = True
        self._deliver(self.connected.emit)

    def close(self):
        if not self._open:
            return
        self._open = False
        self.disconnected.emit()

    def errorString(self) -> str:
        return ""

    def sendTextMessage(self, text: str) -> int:
        self.sent_frames.append(text)
        request = json.loads(text)
        command = Command(
            kind=Kind(request["tool"]),
            target=request["target"],
            parameters=request.get("parameters") or {},
        )

        header = {
            "tool": command.kind.value,
            "target": command.target,
            "parameters": command.parameters,
        }
        frames = [json.dumps({**header, "output": line}) for line in self.executor.generate_output(command)]
        frames.append(json.dumps({**header, "endTime": time.time()}))

        self._stream(frames)
        return len(text)

    def _stream(self, frames: list[str]):
        if self.interval_ms <= 0:
            for frame in frames:
                if not self._open:
                    return
                self.textMessageReceived.emit(frame)
            return

        def emit_next(index=0):
            if not self._open or index >= len(frames):
                return
            self.textMessageReceived.emit(frames[index])
            QTimer.singleShot(self.interval_ms, lambda: emit_next(index + 1))

        QTimer.singleShot(self.interval_ms, emit_next)

    def _deliver(self, emit):
        if self.interval_ms <= 0:
            emit()
        else:
            QTimer.singleShot(0, emit)
