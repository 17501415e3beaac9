"""Byte-order swaps and IPv4 addresses held as network-order integers.

An address integer keeps the first octet in its lowest byte, which is how
the address is laid out in memory in network order on a little-endian host:
127.0.0.1 is 0x0100007F.
"""

from __future__ import annotations

import ipaddress

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def _swap(value: int, size: int) -> int:
    mask = (1 << (8 * size)) - 1
    return int.from_bytes((value & mask).to_bytes(size, "little"), "big")


def ltonl(value: int) -> int:
    """Convert a uint32 from local (little-endian) to network order."""
    return _swap(value, 4)


def ntoll(value: int) -> int:
    """Convert a uint32 from network to local (little-endian) order."""
    return _swap(value, 4)


def ltons(value: int) -> int:
    """Convert a uint16 from local (little-endian) to network order."""
    return _swap(value, 2)


def ntols(value: int) -> int:
    """Convert a uint16 from network to local (little-endian) order."""
    return _swap(value, 2)


def inet_ntoa(nip: int) -> ipaddress.IPv4Address:
    """Turn a network-order address integer into an IPv4 address."""
    return ipaddress.IPv4Address((nip & 0xFFFFFFFF).to_bytes(4, "little"))


def _to_ipv4(ip: IPAddress | str) -> ipaddress.IPv4Address | None:
    if isinstance(ip, str):
        try:
            ip = ipaddress.ip_address(ip)
        except ValueError:
            return None
    if isinstance(ip, ipaddress.IPv4Address):
        return ip
    if isinstance(ip, ipaddress.IPv6Address):
        return ip.ipv4_mapped
    return None


def inet_aton(ip: IPAddress | str) -> int:
    """Turn an address into its network-order integer; 0 if it is not IPv4."""
    v4 = _to_ipv4(ip)
    if v4 is None:
        return 0
    return int.from_bytes(v4.packed, "little")


def inet_ntos(nip: int) -> str:
    """Turn a network-order address integer into dotted-quad text."""
    return str(inet_ntoa(nip))


def inet_ston(text: str) -> int:
    """Parse IPv4 text into its network-order integer; 0 if it is not IPv4."""
    return inet_aton(text)