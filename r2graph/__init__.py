"""Packet-forwarding graph, IPv4 route tables, Ethernet/ARP handling and a binary event log."""

__version__ = "0.1.0"

__all__ = ["names", "fwd", "graph", "msg", "log", "ifd", "routes", "ethernet"]