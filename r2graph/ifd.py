"""Registry of the interfaces known to the control plane."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .fwd import ZERO_IP, Interface, ip_mask_decode
from .msg import Curves, Sc


class InterfaceError(Exception):
    """An interface request that cannot be carried out."""


class InterfaceRegistry:
    """Interfaces by name and index, plus round-robin thread assignment."""

    def __init__(self) -> None:
        self._last_thread = 0
        self._by_name: dict[str, Interface] = {}
        self._names: dict[int, str] = {}

    def add(self, interface: Interface) -> None:
        """Register an interface; raise InterfaceError if its name or index is taken."""
        if interface.ifname in self._by_name or interface.ifindex in self._names:
            raise InterfaceError(
                f"Interface {interface.ifname}, index {interface.ifindex} exists"
            )
        self._by_name[interface.ifname] = interface
        self._names[interface.ifindex] = interface.ifname

    def get(self, ifname: str) -> Optional[Interface]:
        """Return the interface called ``ifname``, or None."""
        return self._by_name.get(ifname)

    def get_name(self, ifindex: int) -> Optional[str]:
        """Return the name of the interface with index ``ifindex``, or None."""
        return self._names.get(ifindex)

    def next_thread(self, nthreads: int) -> int:
        """Return the thread for the next interface, spreading them round-robin."""
        if nthreads <= 0:
            raise ValueError("number of threads must be positive")
        thread = self._last_thread
        self._last_thread = (thread + 1) % nthreads
        return thread

    def set_ip(self, ifname: str, ip_and_mask: str) -> tuple[Interface, Interface]:
        """Give an interface a new IPv4 address; return (previous, updated)."""
        intf = self._by_name.get(ifname)
        if intf is None:
            raise InterfaceError(f"Cannot find interface {ifname}")
        try:
            addr, masklen = ip_mask_decode(ip_and_mask)
        except ValueError as exc:
            raise InterfaceError(f"Bad IP/MASK {ip_and_mask}") from exc
        if addr == ZERO_IP or masklen == 0:
            raise InterfaceError(f"ZERO IP/MASK {ip_and_mask}")
        updated = intf.with_v4addr(addr, masklen)
        self._by_name[ifname] = updated
        return intf, updated


def _curve(spec: Mapping[str, Any]) -> Sc:
    def value(key: str) -> int:
        raw = spec.get(key)
        return 0 if raw is None else int(raw)

    return Sc(m1=value("m1"), d=value("d"), m2=value("m2"))


def unwrap_curves(curves: Mapping[str, Any]) -> Curves:
    """Build scheduler service curves from a request's optional curve fields.

    ``curves`` may hold ``r_sc``, ``u_sc`` and ``f_sc``, each a mapping with
    optional ``m1``, ``d`` and ``m2``. Missing realtime and upper limit curves
    stay absent; a missing fair share curve is all zeroes.
    """
    r_spec = curves.get("r_sc")
    u_spec = curves.get("u_sc")
    f_spec = curves.get("f_sc")
    return Curves(
        r_sc=None if r_spec is None else _curve(r_spec),
        u_sc=None if u_spec is None else _curve(u_spec),
        f_sc=Sc() if f_spec is None else _curve(f_spec),
    )