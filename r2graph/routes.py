"""IPv4 route management with a pair of mirrored route tables.

One table is in use by the forwarding threads while the other takes the
change; the updated table is then published for the forwarding threads and
the same change is applied to the table they were using, keeping both in sync.
"""

from __future__ import annotations

import threading
from enum import Enum
from ipaddress import IPv4Address
from typing import Callable, Optional, TextIO

from .fwd import Adjacency, IPv4Leaf, IPv4Table, ip_mask_decode
from .ifd import InterfaceRegistry
from .msg import IPv4TableMsg

IfnameLookup = Callable[[int], Optional[str]]

_UNKNOWN_IFNAME = "Unknown_ifindex"


class RouteError(Exception):
    """A route request that cannot be carried out."""


class V4Table(Enum):
    """Which of the two route tables forwarding threads are using."""

    TABLE1 = 1
    TABLE2 = 2


def _ifname(ifname_of: IfnameLookup, ifindex: int) -> str:
    name = ifname_of(ifindex)
    return _UNKNOWN_IFNAME if name is None else name


class RouteTables:
    """Two mirrored IPv4 tables; ``publish`` receives each newly active table."""

    def __init__(self, publish: Callable[[IPv4TableMsg], None]) -> None:
        self.table1 = IPv4Table()
        self.table2 = IPv4Table()
        self.active = V4Table.TABLE1
        self._publish = publish
        self._lock = threading.Lock()

    def _update(
        self,
        ip: IPv4Address,
        masklen: int,
        nhop: IPv4Address,
        ifindex: int,
        add: bool,
    ) -> None:
        leaf = IPv4Leaf(Adjacency(IPv4Address(nhop), ifindex))

        def apply(table: IPv4Table) -> None:
            if add:
                table.add(IPv4Address(ip), masklen, leaf)
            else:
                table.delete(IPv4Address(ip), masklen)

        with self._lock:
            if self.active is V4Table.TABLE1:
                standby, in_use, now_active = self.table2, self.table1, V4Table.TABLE2
            else:
                standby, in_use, now_active = self.table1, self.table2, V4Table.TABLE1
            apply(standby)
            self.active = now_active
            self._publish(IPv4TableMsg(standby))
            apply(in_use)

    def add_route(
        self, ip: IPv4Address, masklen: int, nhop: IPv4Address, ifindex: int
    ) -> None:
        """Add a route to ip/masklen via nhop out of ifindex."""
        self._update(ip, masklen, nhop, ifindex, True)

    def del_route(
        self, ip: IPv4Address, masklen: int, nhop: IPv4Address, ifindex: int
    ) -> None:
        """Remove the route to ip/masklen."""
        self._update(ip, masklen, nhop, ifindex, False)

    def show_one(
        self, table: IPv4Table, addr: IPv4Address, ifname_of: IfnameLookup
    ) -> str:
        """Describe the route ``table`` uses for ``addr``; empty if there is none."""
        match = table.longest_match(IPv4Address(addr))
        if match is None:
            return ""
        prefix, mask, leaf = match
        adj = leaf.next
        if not isinstance(adj, Adjacency):
            return ""
        return (
            "Destination\t\tNextHop\t\tInterface\n"
            f"{prefix}/{mask}\t\t{adj.nhop}\t\t"
            f"{_ifname(ifname_of, adj.ifindex)}[{adj.ifindex}]\n"
        )

    @staticmethod
    def _entries(table: IPv4Table, ifname_of: IfnameLookup) -> list[str]:
        entries = []
        for prefix, masklen, leaf in table:
            adj = leaf.next
            if not isinstance(adj, Adjacency):
                continue
            entries.append(
                f'{{ "prefix": "{prefix}", "masklen": {masklen}, '
                f'"nhop": "{adj.nhop}", '
                f'"ifname": "{_ifname(ifname_of, adj.ifindex)}", '
                f'"ifindex": {adj.ifindex}}}'
            )
        return entries

    def dump_json(self, file: TextIO, ifname_of: IfnameLookup) -> None:
        """Write both tables to a text file as JSON."""
        with self._lock:
            first = self._entries(self.table1, ifname_of)
            second = self._entries(self.table2, ifname_of)
        file.write('{\n"table1":[\n')
        file.write(",\n".join(first))
        file.write('\n],\n"table2":[\n')
        file.write(",\n".join(second))
        file.write("\n]\n}\n")


class RouteApis:
    """Route requests in text form, checked against the known interfaces."""

    def __init__(self, tables: RouteTables, interfaces: InterfaceRegistry) -> None:
        self.tables = tables
        self.interfaces = interfaces

    def _decode(
        self, ip_mask: str, nhop: str, ifname: str
    ) -> tuple[IPv4Address, int, IPv4Address, int]:
        try:
            ip, mask = ip_mask_decode(ip_mask)
        except ValueError as exc:
            raise RouteError("Unable to decode IP/MASK") from exc
        try:
            nhop_ip = IPv4Address(nhop)
        except ValueError as exc:
            raise RouteError("Unable to decode NHOP") from exc
        intf = self.interfaces.get(ifname)
        if intf is None:
            raise RouteError(f"Cannot find interface {ifname}")
        return ip, mask, nhop_ip, intf.ifindex

    def add_route(self, ip_mask: str, nhop: str, ifname: str) -> None:
        """Add a route given as 'a.b.c.d/len', a next hop and an interface name."""
        ip, mask, nhop_ip, ifindex = self._decode(ip_mask, nhop, ifname)
        try:
            self.tables.add_route(ip, mask, nhop_ip, ifindex)
        except ValueError as exc:
            raise RouteError("Unable to decode IP/MASK") from exc

    def del_route(self, ip_mask: str, nhop: str, ifname: str) -> None:
        """Delete a route given as 'a.b.c.d/len', a next hop and an interface name."""
        ip, mask, nhop_ip, ifindex = self._decode(ip_mask, nhop, ifname)
        try:
            self.tables.del_route(ip, mask, nhop_ip, ifindex)
        except ValueError as exc:
            raise RouteError("Unable to decode IP/MASK") from exc

    def show(self, prefix: str, filename: str) -> str:
        """Show the route for an address, or with 'all' dump every route to a file."""
        try:
            addr = IPv4Address(prefix)
        except ValueError:
            addr = None
        if addr is not None:
            lookup = self.interfaces.get_name
            return (
                "Table1:\n"
                + self.tables.show_one(self.tables.table1, addr, lookup)
                + "Table2:\n"
                + self.tables.show_one(self.tables.table2, addr, lookup)
            )
        if prefix == "all":
            try:
                with open(filename, "w", encoding="utf-8") as file:
                    self.tables.dump_json(file, self.interfaces.get_name)
            except OSError as exc:
                raise RouteError(f"couldn't create {filename}: {exc}") from exc
            return ""
        raise RouteError(f"Option should be ip address or keyword 'all': {prefix}")