"""Packet processing graph: client nodes, per-node packet queues and a run loop.

Every forwarding thread owns one graph. Graphs in different threads are clones
of each other: the clients are cloned and every clone gets its own queues and
counters.
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from .names import DROP

VEC_SIZE = 256
"""Maximum number of packets queued to one node; further packets are dropped."""

NO_WAKEUP = sys.maxsize
"""Wakeup value meaning that no further work is scheduled."""


class Gclient(ABC):
    """A feature that can be placed in the graph as a node."""

    @abstractmethod
    def clone(self) -> "Gclient":
        """Return a copy of this client for use in another graph."""

    @abstractmethod
    def dispatch(self, thread: int, dispatch: "Dispatch") -> None:
        """Process the packets queued to this node."""

    def control_msg(self, thread: int, message: Any) -> None:
        """Handle a message from the control plane; ignored by default."""


@dataclass
class GnodeCounters:
    """Generic per-node counters kept by the graph."""

    enqueued: int = 0
    drops: int = 0


@dataclass
class GnodeInit:
    """What a client must specify to be added to a graph."""

    name: str
    next_names: list[str] = field(default_factory=list)
    counters: GnodeCounters = field(default_factory=GnodeCounters)

    def clone(self) -> "GnodeInit":
        """Return a copy with the same names and fresh counters."""
        return GnodeInit(self.name, list(self.next_names))


class Dispatch:
    """Gives one node its queued packets and lets it queue packets to its next nodes."""

    def __init__(
        self,
        node: int,
        queues: list[deque],
        counters: list[GnodeCounters],
        next_nodes: list[int],
    ) -> None:
        self._node = node
        self._queues = queues
        self._counters = counters
        self._next_nodes = next_nodes
        self.work = False
        self.when = NO_WAKEUP

    def pop(self) -> Any | None:
        """Return the next packet queued to this node, or None if there is none."""
        queue = self._queues[self._node]
        return queue.popleft() if queue else None

    def push(self, node: int, pkt: Any) -> bool:
        """Queue a packet to the next node at position ``node``; False if dropped."""
        target = self._next_nodes[node]
        queue = self._queues[target]
        if len(queue) >= VEC_SIZE:
            self._counters[target].drops += 1
            return False
        queue.append(pkt)
        if target <= self._node:
            # The target already ran in this pass, so another pass is needed now.
            self.work = True
            self.when = 0
        self._counters[target].enqueued += 1
        return True

    def wakeup(self, wakeup: int) -> None:
        """Say that this node has work in ``wakeup`` nanoseconds (0 means now)."""
        if self.work:
            self.when = min(self.when, wakeup)
        else:
            self.work = True
            self.when = wakeup


class DropNode(Gclient):
    """Node that discards every packet it receives, counting them."""

    def __init__(self) -> None:
        self.count = 0

    def clone(self) -> "DropNode":
        return DropNode()

    def dispatch(self, thread: int, dispatch: Dispatch) -> None:
        while dispatch.pop() is not None:
            self.count += 1


@dataclass
class _Gnode:
    client: Gclient
    name: str
    next_names: list[str]
    next_nodes: list[int] = field(default_factory=list)


class Graph:
    """A set of client nodes with edges between them, run by one thread.

    A new graph holds a single node, the drop node, at index 0. Next names
    that do not resolve to a node resolve to the drop node.
    """

    def __init__(self, thread: int) -> None:
        self.thread = thread
        self._nodes: list[_Gnode] = []
        self._queues: list[deque] = []
        self._counters: list[GnodeCounters] = []
        self._indices: dict[str, int] = {}
        self.counters: dict[str, GnodeCounters] = {}
        self.add(DropNode(), GnodeInit(DROP))

    def clone(self, thread: int) -> "Graph":
        """Return a copy of this graph for ``thread`` with cloned clients."""
        copy = Graph(thread)
        copy._nodes = [
            _Gnode(n.client.clone(), n.name, list(n.next_names), list(n.next_nodes))
            for n in self._nodes
        ]
        copy._queues = [deque() for _ in self._nodes]
        copy._counters = [GnodeCounters() for _ in self._nodes]
        copy._indices = dict(self._indices)
        copy.counters = {
            name: copy._counters[index] for name, index in copy._indices.items()
        }
        return copy

    def add(self, client: Gclient, init: GnodeInit) -> bool:
        """Add a client node; False if a node of that name is already present."""
        if init.name in self._indices:
            return False
        self._nodes.append(_Gnode(client, init.name, list(init.next_names)))
        self._queues.append(deque())
        self._counters.append(init.counters)
        self._indices[init.name] = len(self._nodes) - 1
        self.counters[init.name] = init.counters
        return True

    def _index(self, name: str) -> int:
        return self._indices.get(name, 0)

    def finalize(self) -> None:
        """Resolve every node's next names to node indices."""
        for node in self._nodes:
            node.next_nodes = [self._index(name) for name in node.next_names]

    def run(self) -> tuple[bool, int]:
        """Dispatch every node once; return (more work pending, nanoseconds until it)."""
        work = False
        nsecs = NO_WAKEUP
        for index, node in enumerate(self._nodes):
            dispatch = Dispatch(index, self._queues, self._counters, node.next_nodes)
            node.client.dispatch(self.thread, dispatch)
            if dispatch.work:
                work = True
                nsecs = min(nsecs, dispatch.when)
        return work, nsecs

    def control_msg(self, name: str, message: Any) -> bool:
        """Deliver a control message to the named node; False if there is no such node."""
        index = self._index(name)
        if index == 0:
            return False
        self._nodes[index].client.control_msg(self.thread, message)
        return True