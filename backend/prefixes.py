"""
Address and label parsing.

Turns operator text into typed values: prefixes (always masked), dotted
masks, gateway addresses and MPLS label stacks.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Optional

from errors import MalformedInput
from rib import Afi, IPAddress, IPNetwork

MPLS_MAX_LABELS = 16
MPLS_MIN_RESERVED_LABEL = 0
MPLS_MAX_RESERVED_LABEL = 15
MPLS_MAX_UNRESERVED_LABEL = 1048575

_RESERVED_LABEL_NAMES = {
    0: "IPv4 Explicit Null",
    1: "Router Alert",
    2: "IPv6 Explicit Null",
    3: "implicit-null",
    7: "Entropy Label Indicator",
    13: "Generic Associated Channel",
    14: "OAM Alert",
    15: "Extension",
}

_LABEL_SEP_RE = re.compile(r"[/,]")


def afi_of(value: IPNetwork | IPAddress) -> Afi:
    return Afi.IP if value.version == 4 else Afi.IP6


def parse_prefix(text: str, afi: Optional[Afi] = None) -> IPNetwork:
    """
    Parse 'A.B.C.D/M', 'X:X::X:X/M' or a bare address (host prefix).

    Host bits are masked off. Raises ValueError if the text does not parse
    or belongs to the wrong family.
    """
    network = ipaddress.ip_network(text.strip(), strict=False)
    if afi is not None and afi_of(network) != afi:
        raise ValueError(f"{text} is not an {afi.value} prefix")
    return network


def apply_mask(address: str | IPAddress, prefixlen: int) -> IPNetwork:
    """Network of `address` with every bit past `prefixlen` cleared."""
    return ipaddress.ip_network(f"{address}/{prefixlen}", strict=False)


def masklen(mask_text: str) -> int:
    """Length of a dotted IPv4 mask, counting leading one bits."""
    mask = int(ipaddress.IPv4Address(mask_text.strip()))
    length = 0
    bit = 1 << 31
    while bit and mask & bit:
        length += 1
        bit >>= 1
    return length


def parse_address(text: str, afi: Afi) -> IPAddress:
    """Raises ValueError unless text is an address of the given family."""
    if afi == Afi.IP:
        return ipaddress.IPv4Address(text.strip())
    return ipaddress.IPv6Address(text.strip())


def parse_labels(text: str) -> tuple[int, ...]:
    """
    Parse a label stack such as '16/17' (',' is accepted as separator too).

    Raises MalformedInput with code too_many_labels, reserved_label or
    malformed_label.
    """
    labels: list[int] = []
    for token in _LABEL_SEP_RE.split(text.strip()):
        if len(labels) == MPLS_MAX_LABELS:
            raise MalformedInput(
                "too_many_labels",
                f"% Too many labels. Enter {MPLS_MAX_LABELS} or fewer",
            )
        if not token.isdigit():
            raise MalformedInput("malformed_label", "% Malformed label(s)")
        label = int(token)
        if MPLS_MIN_RESERVED_LABEL <= label <= MPLS_MAX_RESERVED_LABEL:
            raise MalformedInput(
                "reserved_label",
                f"% Cannot use reserved label(s) ({MPLS_MIN_RESERVED_LABEL}-{MPLS_MAX_RESERVED_LABEL})",
            )
        if label > MPLS_MAX_UNRESERVED_LABEL:
            raise MalformedInput("malformed_label", "% Malformed label(s)")
        labels.append(label)
    return tuple(labels)


def label_to_str(label: int) -> str:
    if label in _RESERVED_LABEL_NAMES:
        return _RESERVED_LABEL_NAMES[label]
    if label <= MPLS_MAX_RESERVED_LABEL:
        return "Reserved"
    return str(label)


def labels_to_str(labels: tuple[int, ...] | list[int], pretty: bool = False) -> str:
    """'16/17'; with pretty, reserved values are spelled out."""
    if pretty:
        return "/".join(label_to_str(label) for label in labels)
    return "/".join(str(label) for label in labels)


def classful_length(address: ipaddress.IPv4Address) -> Optional[int]:
    """Natural mask length of a class A/B/C address, None for class D/E."""
    addr = int(address)
    if not addr & 0x80000000:
        return 8
    if addr & 0xC0000000 == 0x80000000:
        return 16
    if addr & 0xE0000000 == 0xC0000000:
        return 24
    return None


def prefix_str(prefix: IPNetwork, src: Optional[IPNetwork] = None) -> str:
    if src is not None and src.prefixlen:
        return f"{prefix} from {src}"
    return str(prefix)
