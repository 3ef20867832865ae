"""Messages passed from the control plane to forwarding threads."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from ipaddress import IPv4Address
from typing import Any, Optional

from .fwd import Interface, IPv4Table
from .graph import Gclient, GnodeInit


@dataclass
class GnodeAddMsg:
    """Ask a forwarding thread to add a node to its graph."""

    node: Gclient
    init: GnodeInit

    def clone(self) -> "GnodeAddMsg":
        """Return a copy with a cloned client and fresh node counters."""
        return GnodeAddMsg(self.node.clone(), self.init.clone())


@dataclass(frozen=True)
class EpollAddMsg:
    """Ask ``thread`` to poll on descriptor ``fd`` (None if there is none)."""

    fd: Optional[int]
    thread: int


@dataclass(frozen=True)
class Sc:
    """A two-piece linear service curve: slope m1 for d nanoseconds, then m2."""

    m1: int = 0
    d: int = 0
    m2: int = 0


@dataclass(frozen=True)
class Curves:
    """Realtime, upper limit and fair share service curves of a class."""

    r_sc: Optional[Sc] = None
    u_sc: Optional[Sc] = None
    f_sc: Sc = field(default_factory=Sc)


@dataclass(frozen=True)
class ClassAddMsg:
    """Ask the interface node owning ``ifindex`` to create a scheduler class."""

    ifindex: int
    name: str
    parent: str
    qlimit: int
    is_leaf: bool
    curves: Curves


@dataclass(frozen=True)
class IPv4TableMsg:
    """Hand a new IPv4 route table to the forwarding node."""

    table: IPv4Table


@dataclass(frozen=True)
class ModifyInterfaceMsg:
    """Replace the interface parameters held by the interface's nodes."""

    intf: Interface


@dataclass(frozen=True)
class EthMacAddMsg:
    """A learned mapping from an IPv4 address to a MAC address on an interface."""

    ifindex: int
    ip: IPv4Address
    mac: bytes


_SHARED_MESSAGES = (
    EpollAddMsg,
    ClassAddMsg,
    IPv4TableMsg,
    ModifyInterfaceMsg,
    EthMacAddMsg,
)


def clone_message(message: Any) -> Any:
    """Return a copy of a message suitable for sending to another thread.

    Node additions get a cloned client; other messages are copied shallowly,
    so tables, interfaces and MAC bytes are shared between the copies.
    """
    if isinstance(message, GnodeAddMsg):
        return message.clone()
    if isinstance(message, _SHARED_MESSAGES):
        return replace(message)
    raise TypeError(f"not a message: {type(message).__name__}")