"""Target and parameter validation for diagnostic commands."""

import ipaddress
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from nettools.errors import Rejection
from nettools.models import Kind

logger = logging.getLogger(__name__)

MAX_HOST_LENGTH = 253
MAX_LABEL_LENGTH = 63
DIG_RECORD_TYPES = ("A", "AAAA", "MX", "NS", "TXT", "SOA")
PING_COUNT_RANGE = (1, 10)
TRACEROUTE_HOPS_RANGE = (1, 30)
RESOLUTION_CACHE_TTL_S = 5 * 60

_INVALID_HOST_CHARS = re.compile(r"[^A-Za-z0-9.-]")
_INVALID_LITERAL_CHARS = re.compile(r"[^A-Za-z0-9.:-]")
_DOMAIN_PATTERN = re.compile(r"^(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,}$")
_LABEL_PATTERN = re.compile(r"^(?:[A-Za-z0-9]|[A-Za-z0-9][A-Za-z0-9-]*[A-Za-z0-9])$")
_INTEGER_PATTERN = re.compile(r"^\d+$")

_PARAMETER_MESSAGES = {
    Kind.PING: "Ping count must be between 1 and 10",
    Kind.DIG: "Invalid DNS record type",
    Kind.TRACEROUTE: "Max hops must be between 1 and 30",
}


def normalize_host(host: str) -> str:
    """Strip a single trailing dot. Whitespace is left for validate_host to reject."""
    if host.endswith("."):
        host = host[:-1]
    return host


def is_ip_literal(host: str) -> bool:
    """Return True if host is an IPv4 or IPv6 address literal without a scope id."""
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return getattr(address, "scope_id", None) is None


def validate_host(host: str) -> bool:
    """Check that host is an IP literal or an RFC 1123 dotted domain name (pure function).

    The colon of an IPv6 literal is the only character allowed outside
    ``[A-Za-z0-9.-]``. Scoped IPv6 addresses (``fe80::1%eth0``) are rejected.

    Examples:
        >>> validate_host("8.8.8.8")
        True
        >>> validate_host("fe80::1%eth0")
        False
        >>> validate_host("example.com.")
        True
        >>> validate_host("bad_host.com")
        False
        >>> validate_host("localhost")
        False
    """
    if not host or not isinstance(host, str):
        return False

    host = normalize_host(host)

    if len(host) == 0 or len(host) > MAX_HOST_LENGTH:
        return False

    if _INVALID_LITERAL_CHARS.search(host):
        return False

    if is_ip_literal(host):
        return True

    if _INVALID_HOST_CHARS.search(host):
        return False

    if not _DOMAIN_PATTERN.match(host):
        return False

    return all(
        len(label) <= MAX_LABEL_LENGTH and _LABEL_PATTERN.match(label)
        for label in host.split(".")
    )


def _parse_int_in_range(value, bounds: tuple[int, int]) -> bool:
    if value is None:
        return False
    text = str(value).strip()
    if not _INTEGER_PATTERN.match(text):
        return False
    low, high = bounds
    return low <= int(text) <= high


def validate_parameters(kind, parameters) -> bool:
    """Check tool-specific parameters (pure function).

    ping needs ``count`` in [1, 10], dig needs ``type`` in the supported
    record types (any case), traceroute needs ``maxHops`` in [1, 30].
    Unknown kinds never validate.
    """
    if not isinstance(parameters, dict):
        return False

    try:
        kind = Kind(kind)
    except ValueError:
        return False

    if kind is Kind.PING:
        return _parse_int_in_range(parameters.get("count"), PING_COUNT_RANGE)
    if kind is Kind.DIG:
        record_type = parameters.get("type")
        return isinstance(record_type, str) and record_type.upper() in DIG_RECORD_TYPES
    if kind is Kind.TRACEROUTE:
        return _parse_int_in_range(parameters.get("maxHops"), TRACEROUTE_HOPS_RANGE)
    return False


def parameter_error_message(kind) -> str:
    """Human-readable message for a parameter failure of the given kind."""
    try:
        return _PARAMETER_MESSAGES[Kind(kind)]
    except ValueError:
        return Rejection.INVALID_PARAMETERS.message


def normalize_parameters(kind: Kind, parameters: dict) -> dict[str, str]:
    """Return a copy with string values and an upper-cased dig record type."""
    normalized = {key: str(value).strip() for key, value in parameters.items()}
    if kind is Kind.DIG and "type" in normalized:
        normalized["type"] = normalized["type"].upper()
    return normalized


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a command. rejection is None on success."""

    rejection: Rejection | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.rejection is None

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def failure(cls, rejection: Rejection, message: str | None = None) -> "ValidationResult":
        return cls(rejection=rejection, message=message or rejection.message)


class Resolver(Protocol):
    """Protocol for asynchronous name-resolution checks."""

    def lookup(self, name: str, callback: Callable[[bool], None]):
        """Start a lookup and return a handle with an ``abort()`` method.

        ``callback`` is invoked once with True if the name resolves. It is
        not invoked for an aborted lookup.
        """
        ...


@dataclass
class _PendingCheck:
    generation: int
    target: str
    handle: object = None


class ValidationService:
    """Validates commands, including an optional cached resolvability check.

    At most one resolvability check is pending per kind. Starting another
    validation for the same kind, or calling invalidate(), supersedes it and
    its eventual result is discarded (generation id check).
    """

    def __init__(
        self,
        resolver: Resolver | None = None,
        cache_ttl_s: float = RESOLUTION_CACHE_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.resolver = resolver
        self.cache_ttl_s = cache_ttl_s
        self._clock = clock

        self._cache = {}  # {host: (resolvable, stored_at)}
        self._pending = {}  # {Kind: _PendingCheck}
        self._generation_id = 0

    def check(self, kind, target: str, parameters) -> ValidationResult:
        """Synchronous syntax and parameter check (no network access)."""
        if not validate_host(target):
            return ValidationResult.failure(Rejection.INVALID_HOST)

        if not validate_parameters(kind, parameters):
            return ValidationResult.failure(
                Rejection.INVALID_PARAMETERS, parameter_error_message(kind)
            )

        return ValidationResult.success()

    def validate(
        self,
        kind: Kind,
        target: str,
        parameters,
        callback: Callable[[ValidationResult], None],
    ) -> None:
        """Validate fully and deliver the result to callback.

        The callback runs synchronously unless a resolvability lookup is
        needed and not cached.
        """
        self.invalidate(kind)

        result = self.check(kind, target, parameters)
        if not result.ok:
            callback(result)
            return

        host = normalize_host(target)
        if is_ip_literal(host) or self.resolver is None:
            callback(ValidationResult.success())
            return

        cached = self._cached_resolution(host)
        if cached is not None:
            logger.debug("Resolution cache hit: host=%s, resolvable=%s", host, cached)
            callback(self._resolution_result(cached))
            return

        self._generation_id += 1
        pending = _PendingCheck(generation=self._generation_id, target=host)
        self._pending[kind] = pending

        logger.debug(
            "Resolving host: kind=%s, host=%s, generation_id=%d",
            kind.value,
            host,
            pending.generation,
        )

        handle = self.resolver.lookup(
            host,
            lambda resolvable: self._on_resolved(
                kind, pending.generation, host, resolvable, callback
            ),
        )

        # The resolver may have answered synchronously
        if self._pending.get(kind) is pending:
            pending.handle = handle

    def invalidate(self, kind: Kind) -> None:
        """Discard (and abort) any pending resolvability check for kind."""
        pending = self._pending.pop(kind, None)
        if pending is None:
            return

        logger.debug(
            "Validation invalidated: kind=%s, host=%s, generation_id=%d",
            kind.value,
            pending.target,
            pending.generation,
        )
        if pending.handle is not None:
            pending.handle.abort()

    def pending_target(self, kind: Kind) -> str | None:
        """Host currently being resolved for kind, if any."""
        pending = self._pending.get(kind)
        return pending.target if pending else None

    def clear_cache(self) -> None:
        self._cache.clear()

    def _cached_resolution(self, host: str) -> bool | None:
        entry = self._cache.get(host)
        if entry is None:
            return None

        resolvable, stored_at = entry
        if self._clock() - stored_at < self.cache_ttl_s:
            return resolvable

        del self._cache[host]
        return None

    def _on_resolved(self, kind, generation, host, resolvable, callback):
        self._cache[host] = (resolvable, self._clock())

        pending = self._pending.get(kind)
        if pending is None or pending.generation != generation:
            logger.debug(
                "Ignoring stale resolution: kind=%s, host=%s, generation_id=%d",
                kind.value,
                host,
                generation,
            )
            return

        del self._pending[kind]
        logger.debug("Resolution finished: host=%s, resolvable=%s", host, resolvable)
        callback(self._resolution_result(resolvable))

    @staticmethod
    def _resolution_result(resolvable: bool) -> ValidationResult:
        if resolvable:
            return ValidationResult.success()
        return ValidationResult.failure(Rejection.UNRESOLVABLE_HOST)
