"""Well-known graph node names and helpers for per-interface node names."""

DROP = "drop"
IFMUX = "ifmux"
ENCAPMUX = "encapmux"
RX_TX = "rx_tx:"
L2_ETH_DECAP = "l2_eth_decap:"
L2_ETH_ENCAP = "l2_eth_encap:"
L3_IPV4_PARSE = "l3_ipv4_parse"
L3_IPV4_FWD = "l3_ipv4_fwd"


def rx_tx(ifindex: int) -> str:
    """Name of the interface I/O node for ``ifindex``."""
    return f"{RX_TX}{ifindex}"


def l2_eth_decap(ifindex: int) -> str:
    """Name of the ethernet decapsulation node for ``ifindex``."""
    return f"{L2_ETH_DECAP}{ifindex}"


def l2_eth_encap(ifindex: int) -> str:
    """Name of the ethernet encapsulation node for ``ifindex``."""
    return f"{L2_ETH_ENCAP}{ifindex}"