"""Data models for NetTools diagnostic sessions."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Kind(str, Enum):
    """Diagnostic tool kinds understood by the remote executor."""

    PING = "ping"
    DIG = "dig"
    TRACEROUTE = "traceroute"


DEFAULT_PARAMETERS = {
    Kind.PING: {"count": "4"},
    Kind.DIG: {"type": "A"},
    Kind.TRACEROUTE: {"maxHops": "30"},
}


@dataclass(frozen=True)
class Command:
    """A validated command ready to be sent to the executor."""

    kind: Kind
    target: str
    parameters: dict[str, str]


# Inbound messages. The concrete class is the discriminant.


@dataclass(frozen=True)
class Fragment:
    """One line (or batch of lines) of tool output."""

    kind: Kind
    target: str
    parameters: dict[str, str]
    text: str


@dataclass(frozen=True)
class ErrorEvent:
    """Executor-reported failure for a run."""

    kind: Kind
    message: str


@dataclass(frozen=True)
class Completion:
    """Marks the end of a run."""

    kind: Kind
    target: str
    parameters: dict[str, str]
    ended_at: float | None


InboundMessage = Fragment | ErrorEvent | Completion


# Parsed records


@dataclass
class PingSample:
    """A single echo reply. round_trip_ms is None when no time was reported."""

    sequence: int
    round_trip_ms: float | None
    received_at: datetime


@dataclass
class DnsRecord:
    """One resource record from the dig answer section."""

    name: str
    ttl_seconds: int
    record_type: str
    value: str
    observed_at: datetime


@dataclass
class Hop:
    """One intermediate node in a path trace, keyed by hop_number."""

    hop_number: int
    hostname: str | None
    address: str | None
    latency_ms: float | None
    is_timeout: bool

    def __post_init__(self):
        """Ensure a timed-out hop carries no host or latency."""
        if self.is_timeout:
            self.hostname = None
            self.address = None
            self.latency_ms = None


# Aggregates


@dataclass
class PingStats:
    sent: int = 0
    received: int = 0
    loss_percent: float | None = None
    min_ms: float | None = None
    max_ms: float | None = None
    mean_ms: float | None = None
    jitter_ms: float | None = None


@dataclass
class DigStats:
    record_count: int = 0


@dataclass
class TracerouteStats:
    hop_count: int = 0
    timeout_count: int = 0
    mean_latency_ms: float | None = None
    max_latency_ms: float | None = None
    furthest_hop: int = 0


@dataclass
class DigQuery:
    """A completed dig lookup kept in the recent-queries list."""

    target: str
    record_type: str
    completed_at: datetime
    record_count: int


@dataclass
class Session:
    """Per-kind state: the current (or last) run and its parsed results."""

    kind: Kind
    target: str = ""
    parameters: dict[str, str] = field(default_factory=dict)
    raw_output: list[str] = field(default_factory=list)
    running: bool = False
    records: list = field(default_factory=list)
    aggregates: PingStats | DigStats | TracerouteStats | None = None
    summary_seen: bool = False
    history: list[DigQuery] = field(default_factory=list)

    @property
    def output_text(self) -> str:
        """Raw output joined into a single displayable string."""
        return "\n".join(self.raw_output)
