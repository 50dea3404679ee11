"""
IP address anonymization applied before any consent data is stored.

IPv4 keeps the first three octets and zeroes the last one
(``203.0.113.57`` -> ``203.0.113.0``). IPv6 keeps every group except the
last, which becomes ``0000`` (``2001:db8::8a2e:370:7334`` ->
``2001:db8::8a2e:370:0000``). Anything that does not parse as an
address anonymizes to the empty string.
"""

import ipaddress
from typing import Optional

IPV4_ZERO_SEGMENT = "0"
IPV6_ZERO_SEGMENT = "0000"


def _anonymize_ipv4(address: str) -> str:
    head, _, _ = address.rpartition(".")
    return f"{head}.{IPV4_ZERO_SEGMENT}"


def _anonymize_ipv6(address: str) -> str:
    # IPv4-embedded tail (::ffff:192.0.2.10): zero the dotted octet instead
    tail = address.rsplit(":", 1)[1]
    if "." in tail:
        head = address[:len(address) - len(tail)]
        return head + _anonymize_ipv4(tail)

    head, _, _ = address.rpartition(":")
    return f"{head}:{IPV6_ZERO_SEGMENT}"


def anonymize_ip(raw: Optional[str]) -> str:
    """
    Return the anonymized form of a client address.

    Args:
        raw: Address as received (may be None or garbage)

    Returns:
        Anonymized address, or "" when the input is not an IP address
    """
    if not raw or not isinstance(raw, str):
        return ""

    candidate = raw.strip()
    # Zone ids (fe80::1%eth0) identify a local interface, never stored
    candidate = candidate.split("%", 1)[0]

    try:
        parsed = ipaddress.ip_address(candidate)
    except ValueError:
        return ""

    if parsed.version == 4:
        return _anonymize_ipv4(candidate)
    return _anonymize_ipv6(candidate)
