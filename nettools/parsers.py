"""Incremental parsers for streamed ping, dig and traceroute output.

Each parser turns newline-delimited output fragments into typed records and
recomputes its aggregate statistics from the full record list. Parsers are
pure: consume() reads the session and returns new values without mutating it.
"""

import logging
import re
import statistics
from abc import ABC, abstractmethod
from datetime import datetime
from typing import NamedTuple

from nettools.models import (
    DigStats,
    DnsRecord,
    Hop,
    Kind,
    PingSample,
    PingStats,
    Session,
    TracerouteStats,
)

logger = logging.getLogger(__name__)

_LATENCY_PATTERN = re.compile(r"time\s*=\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)
_PING_SUCCESS_MARKER = "bytes from"
_PING_SUMMARY_PATTERN = re.compile(r"\d+\s+packets transmitted")
_DIG_RECORD_PATTERN = re.compile(r"^(\S+)\s+(\d+)\s+IN\s+(\S+)\s+(.+)$")
_HOP_PATTERN = re.compile(
    r"^\s*(\d+)\s+(?:(\S+)\s+\(([0-9A-Fa-f:.]+)\)|(\*))(?:\s+(\d+(?:\.\d+)?)\s+ms)?"
)


def parse_ping_latency_ms(output: str) -> float | None:
    """Parse latency value from ping output (pure function).

    Tolerates case and spacing around "=" and before the unit, as in
    "time=12.3 ms", "time = 12.3 ms" or "TIME=12ms".

    Examples:
        >>> parse_ping_latency_ms("time=12.3 ms")
        12.3
        >>> parse_ping_latency_ms("Request timed out.")
    """
    if not output:
        return None

    match = _LATENCY_PATTERN.search(output)
    if match:
        try:
            return float(match.group(1))
        except (ValueError, IndexError):
            return None

    return None


def parse_dig_record(line: str, target: str) -> DnsRecord | None:
    """Parse one ``name ttl IN type value...`` answer line.

    A bare ``@`` name is replaced by the queried target and the value is
    re-joined with single spaces.

    Examples:
        >>> parse_dig_record("@ 300 IN A 93.184.216.34", "example.com").name
        'example.com'
    """
    if "IN" not in line:
        return None

    match = _DIG_RECORD_PATTERN.match(line.strip())
    if not match:
        return None

    name, ttl, record_type, value = match.groups()
    return DnsRecord(
        name=target if name == "@" else name,
        ttl_seconds=int(ttl),
        record_type=record_type,
        value=" ".join(value.split()),
        observed_at=datetime.now(),
    )


def parse_hop(line: str) -> Hop | None:
    """Parse a traceroute hop line, or return None if it is not a complete hop.

    Examples:
        >>> parse_hop("1 * ").is_timeout
        True
        >>> parse_hop("1 gw.local (10.0.0.1) 2.3 ms").latency_ms
        2.3
        >>> parse_hop("3") is None
        True
    """
    match = _HOP_PATTERN.match(line)
    if not match:
        return None

    hop_number, hostname, address, timeout_mark, latency = match.groups()
    return Hop(
        hop_number=int(hop_number),
        hostname=hostname,
        address=address,
        latency_ms=float(latency) if latency is not None else None,
        is_timeout=timeout_mark is not None,
    )


def compute_ping_stats(records: list[PingSample]) -> PingStats:
    """Recompute ping statistics over every sample of the run.

    Jitter is the population standard deviation of all latencies, and is
    None until at least two latencies have been seen.
    """
    latencies = [r.round_trip_ms for r in records if r.round_trip_ms is not None]
    sent = len(records)
    received = len(latencies)

    stats = PingStats(sent=sent, received=received)
    if sent:
        stats.loss_percent = (sent - received) / sent * 100.0
    if latencies:
        stats.min_ms = min(latencies)
        stats.max_ms = max(latencies)
        stats.mean_ms = statistics.fmean(latencies)
    if len(latencies) >= 2:
        stats.jitter_ms = statistics.pstdev(latencies)
    return stats


def compute_traceroute_stats(records: list[Hop]) -> TracerouteStats:
    latencies = [h.latency_ms for h in records if not h.is_timeout and h.latency_ms is not None]

    return TracerouteStats(
        hop_count=len(records),
        timeout_count=sum(1 for h in records if h.is_timeout),
        mean_latency_ms=statistics.fmean(latencies) if latencies else None,
        max_latency_ms=max(latencies) if latencies else None,
        furthest_hop=max((h.hop_number for h in records), default=0),
    )


def compute_dig_stats(records: list[DnsRecord]) -> DigStats:
    return DigStats(record_count=len(records))


class ConsumeResult(NamedTuple):
    """New output lines plus the updated records and statistics."""

    lines: list[str]
    records: list
    stats: PingStats | DigStats | TracerouteStats
    summary_seen: bool


class StreamParser(ABC):
    """Shared line discipline for all diagnostic kinds.

    The first line of a run echoes the invoked command and is never parsed.
    Lines that match nothing are kept as output only.
    """

    kind: Kind

    @abstractmethod
    def parse_line(self, line: str, session: Session, records: list):
        """Return a record for line, or None if the line carries no data."""
        ...

    def merge(self, records: list, record) -> None:
        records.append(record)

    @abstractmethod
    def compute_stats(self, records: list):
        ...

    def is_summary(self, line: str) -> bool:
        return False

    def consume(self, session: Session, text: str) -> ConsumeResult:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        records = list(session.records)
        summary_seen = session.summary_seen
        echo_pending = not session.raw_output

        for line in lines:
            if echo_pending:
                echo_pending = False
                continue

            if self.is_summary(line):
                summary_seen = True
                continue

            record = self.parse_line(line, session, records)
            if record is None:
                logger.debug("Unmatched %s line: %s", self.kind.value, line[:100])
                continue
            self.merge(records, record)

        return ConsumeResult(lines, records, self.compute_stats(records), summary_seen)


class PingParser(StreamParser):
    kind = Kind.PING

    def parse_line(self, line, session, records):
        if _PING_SUCCESS_MARKER not in line:
            return None
        return PingSample(
            sequence=len(records) + 1,
            round_trip_ms=parse_ping_latency_ms(line),
            received_at=datetime.now(),
        )

    def is_summary(self, line):
        return bool(_PING_SUMMARY_PATTERN.search(line))

    def compute_stats(self, records):
        return compute_ping_stats(records)


class DigParser(StreamParser):
    kind = Kind.DIG

    def parse_line(self, line, session, records):
        return parse_dig_record(line, session.target)

    def compute_stats(self, records):
        return compute_dig_stats(records)


class TracerouteParser(StreamParser):
    kind = Kind.TRACEROUTE

    def parse_line(self, line, session, records):
        return parse_hop(line)

    def merge(self, records, record):
        # A hop may be reported again (e.g. timeout, then resolved)
        for index, existing in enumerate(records):
            if existing.hop_number == record.hop_number:
                records[index] = record
                return
        records.append(record)

    def compute_stats(self, records):
        return compute_traceroute_stats(records)


PARSERS = {
    Kind.PING: PingParser(),
    Kind.DIG: DigParser(),
    Kind.TRACEROUTE: TracerouteParser(),
}


def parser_for(kind: Kind) -> StreamParser:
    return PARSERS[Kind(kind)]
