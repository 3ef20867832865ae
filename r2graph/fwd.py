"""Forwarding objects: interfaces, adjacencies and the IPv4 route table."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import IntEnum
from ipaddress import IPv4Address
from typing import Iterator, Union

ETH_TYPE_ARP = 0x0806
ETH_TYPE_IPV4 = 0x0800
ARP_HWTYPE_ETH = 0x0001
ARP_OPCODE_REQ = 0x0001
ARP_OPCODE_REPLY = 0x0002
ETH_ALEN = 6
ETHER_HDR_LEN = 14
ETHER_MTU = 1500
BCAST_MAC = b"\xff" * ETH_ALEN
ZERO_MAC = b"\x00" * ETH_ALEN
ZERO_IP = IPv4Address("0.0.0.0")
IPHDR_MIN_LEN = 20
IPHDR_DADDR_OFF = 16
MAX_INTERFACES = 4 * 1024
DEFAULT_BANDWIDTH_MB = 10 * 1024

_MAX_MASKLEN = 32
_HEX_BYTE = re.compile(r"\+?[0-9a-fA-F]+")
_DECIMAL = re.compile(r"\+?[0-9]+")


class EthOffsets(IntEnum):
    """Byte offsets of ethernet and ARP fields within a frame."""

    DADDR = 0
    SADDR = 6
    TYPE = 12
    HWTYPE = 14
    PROTO = 16
    HW_SZ = 18
    PROTO_SZ = 19
    OPCODE = 20
    SENDER_MAC = 22
    SENDER_IP = 28
    TARGET_MAC = 32
    TARGET_IP = 38


@dataclass(frozen=True)
class Adjacency:
    """Where a packet goes next: a next hop address and an output interface."""

    nhop: IPv4Address
    ifindex: int


@dataclass(frozen=True)
class Interface:
    """Driver-independent parameters of an interface."""

    ifname: str
    ifindex: int
    l2_addr: bytes
    headroom: int
    bandwidth_mb: int = DEFAULT_BANDWIDTH_MB
    mtu: int = ETHER_MTU
    ipv4_addr: IPv4Address = ZERO_IP
    mask_len: int = 0

    def with_v4addr(self, addr: IPv4Address, mask_len: int) -> "Interface":
        """Return a copy of this interface carrying a new IPv4 address."""
        return replace(self, ipv4_addr=IPv4Address(addr), mask_len=mask_len)


@dataclass(frozen=True)
class IPv4Leaf:
    """A route table entry pointing at the next forwarding object."""

    next: Union["IPv4Leaf", Adjacency, Interface]


def _network(ip: IPv4Address, masklen: int) -> int:
    if not 0 <= masklen <= _MAX_MASKLEN:
        raise ValueError(f"mask length {masklen} out of range")
    mask = ((1 << masklen) - 1) << (_MAX_MASKLEN - masklen)
    return int(IPv4Address(ip)) & mask


class IPv4Table:
    """Longest-prefix-match table of IPv4 prefixes."""

    def __init__(self) -> None:
        self._routes: dict[tuple[int, int], IPv4Leaf] = {}

    def add(self, ip: IPv4Address, masklen: int, leaf: IPv4Leaf) -> bool:
        """Insert or replace a route; True if the prefix was not present before."""
        key = (_network(ip, masklen), masklen)
        existed = key in self._routes
        self._routes[key] = leaf
        return not existed

    def delete(self, ip: IPv4Address, masklen: int) -> bool:
        """Remove a route; True if it was present."""
        key = (_network(ip, masklen), masklen)
        return self._routes.pop(key, None) is not None

    def longest_match(
        self, addr: IPv4Address
    ) -> tuple[IPv4Address, int, IPv4Leaf] | None:
        """Return (prefix, masklen, leaf) of the most specific route covering addr."""
        for masklen in range(_MAX_MASKLEN, -1, -1):
            net = _network(addr, masklen)
            leaf = self._routes.get((net, masklen))
            if leaf is not None:
                return IPv4Address(net), masklen, leaf
        return None

    def __iter__(self) -> Iterator[tuple[IPv4Address, int, IPv4Leaf]]:
        for (net, masklen), leaf in sorted(self._routes.items(), key=lambda kv: kv[0]):
            yield IPv4Address(net), masklen, leaf

    def __len__(self) -> int:
        return len(self._routes)


def str_to_mac(mac: str) -> bytes:
    """Parse a colon separated hex MAC address; raise ValueError if malformed."""
    octets = bytearray()
    for part in mac.split(":"):
        if not _HEX_BYTE.fullmatch(part):
            raise ValueError(f"bad MAC address {mac!r}")
        value = int(part, 16)
        if value > 0xFF:
            raise ValueError(f"bad MAC address {mac!r}")
        octets.append(value)
    if len(octets) != ETH_ALEN:
        raise ValueError(f"bad MAC address {mac!r}")
    return bytes(octets)


def ip_mask_decode(ip_and_mask: str) -> tuple[IPv4Address, int]:
    """Parse 'a.b.c.d/len' into an address and a mask length."""
    parts = ip_and_mask.split("/")
    if len(parts) != 2:
        raise ValueError(f"bad IP/MASK {ip_and_mask!r}")
    addr_text, mask_text = parts
    try:
        addr = IPv4Address(addr_text)
    except ValueError as exc:
        raise ValueError(f"bad IP/MASK {ip_and_mask!r}") from exc
    if not _DECIMAL.fullmatch(mask_text):
        raise ValueError(f"bad IP/MASK {ip_and_mask!r}")
    masklen = int(mask_text)
    if masklen > 0xFFFFFFFF:
        raise ValueError(f"bad IP/MASK {ip_and_mask!r}")
    return addr, masklen