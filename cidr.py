"""
Address/CIDR model
Addresses are plain ints of a fixed width (32 for IPv4, 128 for IPv6)
"""

import ipaddress
from dataclasses import dataclass
from typing import List

from errors import MalformedCIDR

IPV4_WIDTH = 32
IPV6_WIDTH = 128

_WIDTHS = {4: IPV4_WIDTH, 6: IPV6_WIDTH}
_ADDRESS_TYPES = {IPV4_WIDTH: ipaddress.IPv4Address, IPV6_WIDTH: ipaddress.IPv6Address}


def address_width(version: int) -> int:
    """Address width in bits for an IP version (4 or 6)"""
    try:
        return _WIDTHS[version]
    except KeyError:
        raise ValueError(f"Unknown IP version: {version}") from None


def version_for_width(width: int) -> int:
    return 4 if width == IPV4_WIDTH else 6


def is_power_of_two(n: int) -> bool:
    return n > 0 and n & (n - 1) == 0


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (1 for n <= 1)"""
    if n <= 1:
        return 1
    return 1 << (n - 1).bit_length()


def prefix_for_size(size: int, width: int) -> int:
    if not is_power_of_two(size):
        raise ValueError(f"Block size {size} is not a power of two")
    return width - (size.bit_length() - 1)


def format_address(addr: int, width: int) -> str:
    try:
        return str(_ADDRESS_TYPES[width](addr))
    except KeyError:
        raise ValueError(f"Unsupported address width: {width}") from None


def format_cidr(addr: int, prefix_length: int, width: int) -> str:
    """Inverse of parse_cidr: dotted-quad for IPv4, colon-hex for IPv6"""
    return f"{format_address(addr, width)}/{prefix_length}"


@dataclass(frozen=True)
class Cidr:
    network: int
    prefix_length: int
    width: int

    @property
    def size(self) -> int:
        return 1 << (self.width - self.prefix_length)

    @property
    def end(self) -> int:
        """First address past the block"""
        return self.network + self.size

    @property
    def version(self) -> int:
        return version_for_width(self.width)

    def contains(self, other: "Cidr") -> bool:
        return (
            self.width == other.width
            and self.network <= other.network
            and other.end <= self.end
        )

    def overlaps(self, other: "Cidr") -> bool:
        return (
            self.width == other.width
            and self.network < other.end
            and other.network < self.end
        )

    def __str__(self):
        return format_cidr(self.network, self.prefix_length, self.width)


def parse_cidr(text: str) -> Cidr:
    """
    Parse 'address/prefix' into a Cidr.
    Host bits are masked off, so 10.1.2.3/16 parses as 10.1.0.0/16.
    """
    if not isinstance(text, str) or "/" not in text:
        raise MalformedCIDR(text, "expected address/prefix")

    address, _, prefix = text.strip().partition("/")
    try:
        ip = ipaddress.ip_address(address.strip())
    except ValueError as e:
        raise MalformedCIDR(text, str(e)) from e

    width = ip.max_prefixlen
    prefix = prefix.strip()
    if not (prefix.isascii() and prefix.isdigit()):
        raise MalformedCIDR(text, f"prefix '{prefix}' is not a number")

    prefix_length = int(prefix)
    if prefix_length > width:
        raise MalformedCIDR(text, f"prefix /{prefix_length} is outside 0-{width}")

    host_bits = width - prefix_length
    network = (int(ip) >> host_bits) << host_bits
    return Cidr(network, prefix_length, width)


def range_to_cidrs(start: int, size: int, width: int) -> List[Cidr]:
    """Minimal list of aligned CIDRs exactly covering [start, start + size)"""
    if size <= 0:
        return []
    address_type = _ADDRESS_TYPES[width]
    networks = ipaddress.summarize_address_range(
        address_type(start), address_type(start + size - 1)
    )
    return [
        Cidr(int(net.network_address), net.prefixlen, width) for net in networks
    ]


def format_range(start: int, size: int, width: int) -> str:
    """A single CIDR when the range is one aligned block, else 'first-last'"""
    if is_power_of_two(size) and start % size == 0:
        return format_cidr(start, prefix_for_size(size, width), width)
    first = format_address(start, width)
    last = format_address(start + size - 1, width)
    return f"{first}-{last}"
