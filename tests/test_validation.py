"""Tests for target/parameter validation and the resolvability check."""

import pytest

from nettools.errors import Rejection
from nettools.models import Kind
from nettools.validation import (
    ValidationService,
    normalize_parameters,
    validate_host,
    validate_parameters,
)


class TestValidateHost:
    @pytest.mark.parametrize(
        "host",
        [
            "8.8.8.8",
            "255.255.255.255",
            "::1",
            "2001:db8::8a2e:370:7334",
            "example.com",
            "example.com.",
            "sub-domain.example.co.uk",
            "a1.b2.io",
        ],
    )
    def test_valid_hosts(self, host):
        assert validate_host(host) is True

    @pytest.mark.parametrize(
        "host",
        [
            "",
            None,
            "localhost",  # no dotted domain
            "example.c",  # final label too short
            "example.123",  # final label not alphabetic
            "-example.com",
            "example-.com",
            "exa_mple.com",
            "example.com/path",
            "example .com",
            "256.1.1.1",
            "a" * 64 + ".com",  # label longer than 63
            "fe80::1%eth0",  # scoped IPv6
            "fe80::1%a b|c",
            " example.com",
            "example.com\n",
            "::1;ls",
        ],
    )
    def test_invalid_hosts(self, host):
        assert validate_host(host) is False

    def test_length_limit(self):
        label = "a" * 60
        host = ".".join([label] * 4) + ".com"  # 247 chars
        assert validate_host(host) is True

        too_long = "a" * 50 + "." + host
        assert len(too_long) > 253
        assert validate_host(too_long) is False


class TestValidateParameters:
    @pytest.mark.parametrize("count", ["1", "4", "10", 5])
    def test_ping_count_in_range(self, count):
        assert validate_parameters(Kind.PING, {"count": count}) is True

    @pytest.mark.parametrize("count", ["0", "11", "-1", "abc", "4.5", "", None])
    def test_ping_count_out_of_range(self, count):
        assert validate_parameters(Kind.PING, {"count": count}) is False

    @pytest.mark.parametrize("record_type", ["A", "aaaa", "Mx", "NS", "txt", "SOA"])
    def test_dig_types(self, record_type):
        assert validate_parameters(Kind.DIG, {"type": record_type}) is True

    @pytest.mark.parametrize("record_type", ["CNAME", "PTR", "", None, 1])
    def test_dig_unsupported_types(self, record_type):
        assert validate_parameters(Kind.DIG, {"type": record_type}) is False

    @pytest.mark.parametrize("hops,expected", [("1", True), ("30", True), ("0", False), ("31", False)])
    def test_traceroute_max_hops(self, hops, expected):
        assert validate_parameters(Kind.TRACEROUTE, {"maxHops": hops}) is expected

    def test_unknown_kind(self):
        assert validate_parameters("nmap", {"count": "1"}) is False

    def test_not_a_mapping(self):
        assert validate_parameters(Kind.PING, None) is False

    def test_normalize_parameters(self):
        assert normalize_parameters(Kind.DIG, {"type": "mx"}) == {"type": "MX"}
        assert normalize_parameters(Kind.PING, {"count": 4}) == {"count": "4"}


class TestValidationServiceCheck:
    def test_invalid_host_reported_first(self):
        result = ValidationService().check(Kind.PING, "bad host", {"count": "99"})

        assert result.ok is False
        assert result.rejection is Rejection.INVALID_HOST

    def test_parameter_failure_message_per_kind(self):
        service = ValidationService()

        result = service.check(Kind.TRACEROUTE, "example.com", {"maxHops": "99"})

        assert result.rejection is Rejection.INVALID_PARAMETERS
        assert result.message == "Max hops must be between 1 and 30"


class TestResolvability:
    """Test the cached, cancellable resolvability check."""

    def _validate(self, service, kind, target, parameters):
        results = []
        service.validate(kind, target, parameters, results.append)
        return results

    @pytest.mark.parametrize("target", ["93.184.216.34", "2001:db8::1"])
    def test_ip_literal_skips_lookup(self, resolver, target):
        service = ValidationService(resolver)

        results = self._validate(service, Kind.PING, target, {"count": "4"})

        assert len(results) == 1 and results[0].ok
        assert resolver.lookups == []

    def test_resolvable_host(self, resolver):
        service = ValidationService(resolver)

        results = self._validate(service, Kind.PING, "example.com", {"count": "4"})
        assert results == []
        assert service.pending_target(Kind.PING) == "example.com"

        resolver.resolve("example.com", True)

        assert len(results) == 1 and results[0].ok
        assert service.pending_target(Kind.PING) is None

    def test_unresolvable_host(self, resolver):
        service = ValidationService(resolver)

        results = self._validate(service, Kind.DIG, "nope.invalid", {"type": "A"})
        resolver.resolve("nope.invalid", False)

        assert results[0].rejection is Rejection.UNRESOLVABLE_HOST
        assert results[0].message == "Unable to resolve hostname"

    def test_invalid_input_never_looks_up(self, resolver):
        service = ValidationService(resolver)

        results = self._validate(service, Kind.PING, "exa_mple.com", {"count": "4"})

        assert results[0].rejection is Rejection.INVALID_HOST
        assert resolver.lookups == []

    def test_result_cached_for_five_minutes(self, resolver, clock):
        service = ValidationService(resolver, clock=clock)

        self._validate(service, Kind.PING, "example.com", {"count": "4"})
        resolver.resolve("example.com", True)

        clock.advance(299)
        results = self._validate(service, Kind.PING, "example.com", {"count": "4"})
        assert results[0].ok
        assert resolver.lookups == []

        clock.advance(2)
        results = self._validate(service, Kind.PING, "example.com", {"count": "4"})
        assert results == []
        assert len(resolver.lookups) == 1

    def test_trailing_dot_shares_cache_entry(self, resolver):
        service = ValidationService(resolver)

        self._validate(service, Kind.PING, "example.com.", {"count": "4"})
        resolver.resolve("example.com", True)

        results = self._validate(service, Kind.PING, "example.com", {"count": "4"})
        assert results[0].ok

    def test_new_validation_supersedes_pending_one(self, resolver):
        """Test a stale result for an abandoned target never reaches its callback."""
        service = ValidationService(resolver)

        first = self._validate(service, Kind.PING, "old.example.com", {"count": "4"})
        second = self._validate(service, Kind.PING, "new.example.com", {"count": "4"})

        assert resolver.lookups[0].aborted is True

        resolver.resolve_stale("old.example.com", True)
        assert first == []
        assert service.pending_target(Kind.PING) == "new.example.com"

        resolver.resolve("new.example.com", False)
        assert second[0].rejection is Rejection.UNRESOLVABLE_HOST

    def test_invalidate_discards_result(self, resolver):
        service = ValidationService(resolver)

        results = self._validate(service, Kind.PING, "example.com", {"count": "4"})
        service.invalidate(Kind.PING)
        resolver.resolve_stale("example.com", True)

        assert results == []

    def test_pending_checks_are_per_kind(self, resolver):
        service = ValidationService(resolver)

        ping_results = self._validate(service, Kind.PING, "a.example.com", {"count": "4"})
        dig_results = self._validate(service, Kind.DIG, "b.example.com", {"type": "A"})

        resolver.resolve("a.example.com", True)
        resolver.resolve("b.example.com", True)

        assert ping_results[0].ok
        assert dig_results[0].ok

    def test_synchronous_resolver(self):
        """Test a resolver that answers inside lookup() is handled."""

        class ImmediateResolver:
            def lookup(self, name, callback):
                callback(True)
                return None

        service = ValidationService(ImmediateResolver())
        results = self._validate(service, Kind.PING, "example.com", {"count": "4"})

        assert results[0].ok
        assert service.pending_target(Kind.PING) is None
