"""
Unit tests for IP address anonymization.
"""

import pytest

from services.anonymizer import anonymize_ip


class TestIPv4:

    def test_last_octet_zeroed(self):
        assert anonymize_ip("203.0.113.57") == "203.0.113.0"

    def test_already_anonymized_is_stable(self):
        assert anonymize_ip("203.0.113.0") == "203.0.113.0"

    def test_surrounding_whitespace_ignored(self):
        assert anonymize_ip("  192.168.1.254 ") == "192.168.1.0"

    @pytest.mark.parametrize("raw", ["256.1.1.1", "1.2.3", "10.0.0.1.5"])
    def test_invalid_ipv4_is_empty(self, raw):
        assert anonymize_ip(raw) == ""


class TestIPv6:

    def test_last_group_replaced(self):
        assert anonymize_ip("2001:db8::8a2e:370:7334") == "2001:db8::8a2e:370:0000"

    def test_full_form(self):
        assert (
            anonymize_ip("2001:0db8:85a3:0000:0000:8a2e:0370:7334")
            == "2001:0db8:85a3:0000:0000:8a2e:0370:0000"
        )

    def test_zone_id_dropped(self):
        assert anonymize_ip("fe80::1%eth0") == "fe80::0000"

    def test_ipv4_mapped_tail_zeroes_octet(self):
        assert anonymize_ip("::ffff:192.0.2.10") == "::ffff:192.0.2.0"


class TestGarbage:

    @pytest.mark.parametrize("raw", [None, "", "   ", "localhost", "not-an-ip", 12345])
    def test_not_an_address(self, raw):
        assert anonymize_ip(raw) == ""
