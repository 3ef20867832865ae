# r2graph

`r2graph` is the forwarding core of a small software router, written as plain Python
objects. It has no runtime dependencies.

## What is in it

- `r2graph.names` holds the well-known node names (`DROP`, `ENCAPMUX`, `L3_IPV4_FWD`, …)
  and builds per-interface names with `rx_tx`, `l2_eth_decap` and `l2_eth_encap`.
- `r2graph.fwd` holds the forwarding objects. These are `Interface` (frozen; use
  `with_v4addr` to get a copy with a new address), `Adjacency`, `IPv4Leaf` and
  `IPv4Table`, which is a longest-prefix-match table. It also has the parsers
  `str_to_mac` and `ip_mask_decode` and the Ethernet, ARP and IPv4 header constants.
- `r2graph.graph` is the packet graph. It provides `Gclient`, `Dispatch`, `GnodeInit`,
  `GnodeCounters`, `DropNode` and `Graph`.
- `r2graph.msg` holds the control messages: `GnodeAddMsg`, `EpollAddMsg`,
  `IPv4TableMsg`, `ModifyInterfaceMsg`, `EthMacAddMsg` and `ClassAddMsg`. It also has
  the service-curve types `Sc` and `Curves`, and `clone_message`.
- `r2graph.ifd` has `InterfaceRegistry`, `InterfaceError` and `unwrap_curves`.
- `r2graph.routes` has `RouteTables` (two mirrored IPv4 tables), `RouteApis` and
  `RouteError`.
- `r2graph.ethernet` handles Ethernet framing. It has `EthDecap`, `EthEncap`,
  `MacTable`, `build_arp_request`, `build_arp_reply` and `encap_ipv4`.
- `r2graph.log` is a ring buffer of fixed-size binary records. It has `Logger` and
  `LogEntry`.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Node names

```python
from r2graph import names

names.rx_tx(3)         # "rx_tx:3"
names.l2_eth_decap(3)  # "l2_eth_decap:3"
names.l2_eth_encap(3)  # "l2_eth_encap:3"
```

## Parsing addresses

Both parsers raise `ValueError` on malformed input.

```python
from r2graph.fwd import ip_mask_decode, str_to_mac

str_to_mac("02:00:00:00:00:01")   # b"\x02\x00\x00\x00\x00\x01"
ip_mask_decode("10.1.0.0/16")     # (IPv4Address('10.1.0.0'), 16)
ip_mask_decode("10.1.0.0")        # ValueError: no mask length
```

## The packet graph

A new `Graph(thread)` holds one node, the `DropNode`, at index 0. To add a node, call
`add(client, GnodeInit(name, next_names))`. It returns `False` if a node with that name
is already in the graph. `finalize()` resolves each node's next names to node indices.
A next name that matches no node resolves to the drop node.

`run()` dispatches every node once, in the order they were added. It returns a pair:
whether more work is pending, and the number of nanoseconds until that work is due.

Inside `dispatch`, a client calls `Dispatch.pop()` to take its own queued packets. It
calls `Dispatch.push(i, pkt)` to queue a packet to its `i`-th next node. Each queue holds
at most `VEC_SIZE` (256) packets. A push to a full queue returns `False` and is counted
in that node's `GnodeCounters.drops`; the counters are available by name in
`Graph.counters`.

`Graph.clone(thread)` copies the graph with cloned clients and fresh queues and
counters. `Graph.control_msg(name, message)` passes a message to the named node's
client.

```python
from r2graph.graph import Gclient, GnodeInit, Graph

class Source(Gclient):
    def clone(self):
        return Source()

    def dispatch(self, thread, dispatch):
        dispatch.push(0, b"packet")   # next name 0 is "sink"

class Sink(Gclient):
    def __init__(self):
        self.seen = []

    def clone(self):
        return Sink()

    def dispatch(self, thread, dispatch):
        while (pkt := dispatch.pop()) is not None:
            self.seen.append(pkt)

sink = Sink()
graph = Graph(0)
graph.add(Source(), GnodeInit("source", ["sink"]))
graph.add(sink, GnodeInit("sink"))
graph.finalize()
graph.run()
sink.seen   # [b"packet"]
```

## Interfaces and routes

```python
from r2graph.fwd import Interface, str_to_mac
from r2graph.ifd import InterfaceRegistry
from r2graph.routes import RouteApis, RouteTables

published = []
registry = InterfaceRegistry()
registry.add(Interface("eth0", 0, str_to_mac("02:00:00:00:00:01"), headroom=100))
tables = RouteTables(publish=published.append)
apis = RouteApis(tables, registry)

apis.add_route("10.0.0.0/8", "192.0.2.1", "eth0")
print(apis.show("10.1.2.3", ""))   # route for the address in Table1 and Table2
apis.show("all", "routes.json")    # writes both tables to routes.json as JSON
```

`InterfaceRegistry.add` raises `InterfaceError` if the interface's name or index is
already registered. `next_thread(n)` hands out thread numbers round-robin.
`set_ip(ifname, "a.b.c.d/len")` stores an updated interface and returns the pair
`(previous, updated)`. It does not change any routes; the caller decides what to do with
connected routes. `unwrap_curves` turns a mapping with optional `r_sc`, `u_sc` and
`f_sc` entries into `Curves`.

Every change made through `RouteTables.add_route` or `del_route` is applied first to the
idle table. That table is then passed to `publish` as an `IPv4TableMsg`, and the same
change is applied to the other table. `RouteApis` raises `RouteError` on bad input or on
an unknown interface.

## Ethernet and ARP

`EthDecap(intf, on_learn).handle_frame(frame)` processes one received frame:

- An IPv4 frame addressed to the interface yields a `DecapResult` pointing at
  `L3_IPV4_PARSE` and carrying the frame without its Ethernet header.
- An ARP request for the interface's address yields an ARP reply pointing at `TX`.
- Sender MACs learned from ARP are reported to `on_learn` as `EthMacAddMsg`.
- Any other frame returns `None` and is counted in `counters`.

`EthEncap(intf).handle_packet(payload, out_l3addr)` returns the encapsulated frame when
the next hop's MAC is known. Otherwise it returns an ARP request for the next hop, or for
the packet's own destination address when the next hop is `0.0.0.0`.

## Logging

```python
from r2graph.log import LogEntry, Logger

rx = LogEntry("rx %d %d", sizes=(1, 4))
logger = Logger("demo", entry_size=32, entry_count=4)
logger.log(rx, 7, 300)
with open("logs.json", "wb") as f:
    logger.serialize(f)
```

Each record holds a 32-bit log-point index, a 64-bit nanosecond timestamp and the
values, packed little-endian. Values that overflow a record are dropped. After the last
record the log wraps around to the first. `stop()` turns logging off.

## What this package does not do

It does not send or receive packets on real interfaces. There is no interface I/O node,
no socket or poll-mode driver, and no packet scheduler. The graph carries whatever
objects its clients push. `EthDecap` and `EthEncap` work on `bytes` and are not graph
clients themselves. There are no IPv4 parse or forward graph nodes, no
forwarding-thread launcher, no configuration-file reader, no remote API server and no
command-line program.