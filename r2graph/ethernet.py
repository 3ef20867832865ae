"""Ethernet encapsulation and decapsulation, with ARP and MAC learning.

The decap side takes frames received on an interface: it strips the ethernet
header from IPv4 frames addressed to the interface, answers ARP requests for
the interface's address and learns sender MACs from ARP. The encap side adds
an ethernet header to outgoing IPv4 packets, or produces an ARP request when
the next hop's MAC is not yet known.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from ipaddress import IPv4Address
from typing import Any, Callable, Iterator, Optional

from . import names
from .fwd import (
    ARP_HWTYPE_ETH,
    ARP_OPCODE_REPLY,
    ARP_OPCODE_REQ,
    BCAST_MAC,
    ETH_ALEN,
    ETH_TYPE_ARP,
    ETH_TYPE_IPV4,
    ETHER_HDR_LEN,
    IPHDR_DADDR_OFF,
    IPHDR_MIN_LEN,
    ZERO_IP,
    ZERO_MAC,
    EthOffsets,
    Interface,
)
from .msg import EthMacAddMsg, ModifyInterfaceMsg

# Ethernet header followed by an ARP body for IPv4 over ethernet.
_ARP_FRAME = struct.Struct("!6s6sHHHBBH6s4s6s4s")
ARP_FRAME_LEN = _ARP_FRAME.size
_IPV4_ALEN = 4


class DecapNext(IntEnum):
    """Where the decap node sends a frame next."""

    DROP = 0
    L3_IPV4_PARSE = 1
    TX = 2


@dataclass(frozen=True)
class DecapResult:
    """A frame or packet produced by the decap node and where it goes."""

    next: DecapNext
    data: bytes


@dataclass
class DecapCounters:
    """Error counters of the decap node."""

    unknown_ethtype: int = 0
    unknown_arp: int = 0
    not_my_mac: int = 0
    bad_mac: int = 0
    mac_send_fail: int = 0


@dataclass
class EncapCounters:
    """Error counters of the encap node."""

    bad_mac: int = 0


@dataclass
class MacTable:
    """IPv4 address to MAC address mappings; the first mapping for an address wins."""

    _macs: dict[IPv4Address, bytes] = field(default_factory=dict)

    def add(self, ip: IPv4Address, mac: bytes) -> bool:
        """Record a mapping; True if the address was new. Short MACs raise ValueError."""
        mac = bytes(mac)
        if len(mac) < ETH_ALEN:
            raise ValueError(f"MAC address of {len(mac)} bytes is too short")
        ip = IPv4Address(ip)
        if ip in self._macs:
            return False
        self._macs[ip] = mac
        return True

    def get(self, ip: IPv4Address) -> Optional[bytes]:
        """Return the MAC for ``ip``, or None if it is not known."""
        return self._macs.get(IPv4Address(ip))

    def __contains__(self, ip: object) -> bool:
        return ip in self._macs

    def __len__(self) -> int:
        return len(self._macs)

    def __iter__(self) -> Iterator[IPv4Address]:
        return iter(self._macs)


def _own_mac(intf: Interface) -> bytes:
    return bytes(intf.l2_addr[:ETH_ALEN])


def _arp_frame(
    intf: Interface,
    dst_mac: bytes,
    opcode: int,
    target_mac: bytes,
    target_ip: IPv4Address,
) -> bytes:
    own = _own_mac(intf)
    return _ARP_FRAME.pack(
        bytes(dst_mac[:ETH_ALEN]),
        own,
        ETH_TYPE_ARP,
        ARP_HWTYPE_ETH,
        ETH_TYPE_IPV4,
        ETH_ALEN,
        _IPV4_ALEN,
        opcode,
        own,
        intf.ipv4_addr.packed,
        bytes(target_mac[:ETH_ALEN]),
        IPv4Address(target_ip).packed,
    )


def build_arp_request(intf: Interface, target_ip: IPv4Address) -> bytes:
    """Broadcast ARP request from ``intf`` asking for the MAC of ``target_ip``."""
    return _arp_frame(intf, BCAST_MAC, ARP_OPCODE_REQ, ZERO_MAC, target_ip)


def build_arp_reply(
    intf: Interface, target_ip: IPv4Address, target_mac: bytes
) -> bytes:
    """ARP reply from ``intf`` telling ``target_ip`` at ``target_mac`` our MAC."""
    return _arp_frame(intf, target_mac, ARP_OPCODE_REPLY, target_mac, target_ip)


def encap_ipv4(intf: Interface, dst_mac: bytes, payload: bytes) -> bytes:
    """Prefix an IPv4 packet with an ethernet header from ``intf`` to ``dst_mac``."""
    dst_mac = bytes(dst_mac)
    if len(dst_mac) < ETH_ALEN:
        raise ValueError(f"MAC address of {len(dst_mac)} bytes is too short")
    return dst_mac + _own_mac(intf) + ETH_TYPE_IPV4.to_bytes(2, "big") + bytes(payload)


def _u16(frame: bytes, offset: int) -> int:
    return int.from_bytes(frame[offset : offset + 2], "big")


def _ip_at(frame: bytes, offset: int) -> IPv4Address:
    return IPv4Address(bytes(frame[offset : offset + _IPV4_ALEN]))


def _mac_at(frame: bytes, offset: int) -> bytes:
    return bytes(frame[offset : offset + ETH_ALEN])


class EthDecap:
    """Ethernet input for one interface: ARP handling, MAC learning, IPv4 demux.

    ``on_learn`` is called with an EthMacAddMsg for every newly learned MAC;
    an exception from it is counted as ``mac_send_fail``.
    """

    def __init__(
        self,
        intf: Interface,
        on_learn: Optional[Callable[[EthMacAddMsg], Any]] = None,
    ) -> None:
        self.intf = intf
        self.on_learn = on_learn
        self.macs = MacTable()
        self.counters = DecapCounters()

    @property
    def name(self) -> str:
        """Graph node name of this decap node."""
        return names.l2_eth_decap(self.intf.ifindex)

    def mac_add(self, ip: IPv4Address, mac: bytes) -> None:
        """Record a MAC learned elsewhere; short MACs are counted as bad."""
        try:
            self.macs.add(ip, mac)
        except ValueError:
            self.counters.bad_mac += 1

    def control_msg(self, thread: int, message: Any) -> None:
        """Apply an interface change or a learned MAC from the control plane."""
        if isinstance(message, ModifyInterfaceMsg):
            self.intf = message.intf
        elif isinstance(message, EthMacAddMsg):
            self.mac_add(message.ip, message.mac)
        else:
            raise TypeError(f"unexpected message {type(message).__name__}")

    def _learn(self, ip: IPv4Address, mac: bytes) -> None:
        if not self.macs.add(ip, mac):
            return
        if self.on_learn is None:
            return
        try:
            self.on_learn(EthMacAddMsg(self.intf.ifindex, ip, mac))
        except Exception:  # any delivery failure is only counted
            self.counters.mac_send_fail += 1

    def _process_arp(self, frame: bytes) -> Optional[DecapResult]:
        if len(frame) < ARP_FRAME_LEN:
            self.counters.unknown_arp += 1
            return None
        op = _u16(frame, EthOffsets.OPCODE)
        proto = _u16(frame, EthOffsets.PROTO)
        if proto != ETH_TYPE_IPV4 or op not in (ARP_OPCODE_REQ, ARP_OPCODE_REPLY):
            self.counters.unknown_arp += 1
            return None
        if _ip_at(frame, EthOffsets.TARGET_IP) != self.intf.ipv4_addr:
            self.counters.unknown_arp += 1
            return None
        if (
            op == ARP_OPCODE_REPLY
            and _mac_at(frame, EthOffsets.TARGET_MAC) != _own_mac(self.intf)
        ):
            self.counters.unknown_arp += 1
            return None
        src_ip = _ip_at(frame, EthOffsets.SENDER_IP)
        src_mac = _mac_at(frame, EthOffsets.SENDER_MAC)
        self._learn(src_ip, src_mac)
        if op == ARP_OPCODE_REPLY:
            return None
        return DecapResult(DecapNext.TX, build_arp_reply(self.intf, src_ip, src_mac))

    def handle_frame(self, frame: bytes) -> Optional[DecapResult]:
        """Process one received frame; None if it was consumed or dropped."""
        frame = bytes(frame)
        if len(frame) < ETHER_HDR_LEN:
            raise ValueError(f"frame of {len(frame)} bytes has no ethernet header")
        ethtype = _u16(frame, EthOffsets.TYPE)
        if ethtype == ETH_TYPE_ARP:
            return self._process_arp(frame)
        if _mac_at(frame, EthOffsets.DADDR) != _own_mac(self.intf):
            self.counters.not_my_mac += 1
            return None
        if ethtype == ETH_TYPE_IPV4:
            return DecapResult(DecapNext.L3_IPV4_PARSE, frame[ETHER_HDR_LEN:])
        self.counters.unknown_ethtype += 1
        return None


class EthEncap:
    """Ethernet output for one interface."""

    def __init__(self, intf: Interface) -> None:
        self.intf = intf
        self.macs = MacTable()
        self.counters = EncapCounters()

    @property
    def name(self) -> str:
        """Graph node name of this encap node."""
        return names.l2_eth_encap(self.intf.ifindex)

    def mac_add(self, ip: IPv4Address, mac: bytes) -> None:
        """Record a MAC for a next hop; short MACs are counted as bad."""
        try:
            self.macs.add(ip, mac)
        except ValueError:
            self.counters.bad_mac += 1

    def control_msg(self, thread: int, message: Any) -> None:
        """Apply an interface change or a learned MAC from the control plane."""
        if isinstance(message, ModifyInterfaceMsg):
            self.intf = message.intf
        elif isinstance(message, EthMacAddMsg):
            self.mac_add(message.ip, message.mac)
        else:
            raise TypeError(f"unexpected message {type(message).__name__}")

    def handle_packet(self, payload: bytes, out_l3addr: IPv4Address) -> bytes:
        """Return the frame to transmit for an IPv4 packet towards ``out_l3addr``.

        With a known MAC this is the encapsulated packet; otherwise it is an
        ARP request, and the packet itself is dropped. A zero next hop means
        the destination is connected, so the packet's own destination is asked for.
        """
        out_l3addr = IPv4Address(out_l3addr)
        mac = self.macs.get(out_l3addr)
        if mac is not None:
            return encap_ipv4(self.intf, mac, payload)
        if out_l3addr == ZERO_IP:
            if len(payload) < IPHDR_MIN_LEN:
                raise ValueError(f"IPv4 header of {len(payload)} bytes is too short")
            target = _ip_at(payload, IPHDR_DADDR_OFF)
        else:
            target = out_l3addr
        return build_arp_request(self.intf, target)