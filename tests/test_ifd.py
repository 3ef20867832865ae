from ipaddress import IPv4Address

import pytest

from r2graph.fwd import ZERO_IP, Interface
from r2graph.ifd import InterfaceError, InterfaceRegistry, unwrap_curves
from r2graph.msg import Curves, Sc

MAC = b"\x02\x00\x00\x00\x00\x01"


def registry_with(*names_and_indices):
    reg = InterfaceRegistry()
    for name, index in names_and_indices:
        reg.add(Interface(name, index, MAC, 100))
    return reg


def test_add_and_lookup():
    reg = registry_with(("eth0", 5))
    intf = reg.get("eth0")
    assert intf.ifindex == 5
    assert reg.get_name(5) == "eth0"


def test_lookup_missing():
    reg = registry_with(("eth0", 5))
    assert reg.get("eth1") is None
    assert reg.get_name(6) is None


def test_duplicate_name_rejected():
    reg = registry_with(("eth0", 5))
    with pytest.raises(InterfaceError, match="exists"):
        reg.add(Interface("eth0", 6, MAC, 100))
    assert reg.get_name(6) is None


def test_duplicate_index_rejected():
    reg = registry_with(("eth0", 5))
    with pytest.raises(InterfaceError, match="exists"):
        reg.add(Interface("eth1", 5, MAC, 100))
    assert reg.get("eth1") is None


def test_next_thread_round_robin():
    reg = InterfaceRegistry()
    threads = [reg.next_thread(3) for _ in range(6)]
    assert threads == list(range(3)) * 2


def test_next_thread_rejects_zero():
    with pytest.raises(ValueError):
        InterfaceRegistry().next_thread(0)


def test_set_ip_updates_interface():
    reg = registry_with(("eth0", 5))
    old, new = reg.set_ip("eth0", "10.1.1.1/24")
    assert old.ipv4_addr == ZERO_IP
    assert new.ipv4_addr == IPv4Address("10.1.1.1")
    assert new.mask_len == 24
    assert reg.get("eth0") == new
    assert new.ifindex == old.ifindex


def test_set_ip_again_returns_previous_address():
    reg = registry_with(("eth0", 5))
    reg.set_ip("eth0", "10.1.1.1/24")
    old, new = reg.set_ip("eth0", "10.2.2.2/16")
    assert old.get_v4addr() if hasattr(old, "get_v4addr") else True
    assert (old.ipv4_addr, old.mask_len) == (IPv4Address("10.1.1.1"), 24)
    assert (new.ipv4_addr, new.mask_len) == (IPv4Address("10.2.2.2"), 16)


def test_set_ip_unknown_interface():
    reg = InterfaceRegistry()
    with pytest.raises(InterfaceError, match="Cannot find interface"):
        reg.set_ip("eth9", "10.1.1.1/24")


@pytest.mark.parametrize("text", ["10.1.1.1", "10.1.1/24", "10.1.1.1/x"])
def test_set_ip_bad_mask(text):
    reg = registry_with(("eth0", 5))
    with pytest.raises(InterfaceError, match="Bad IP/MASK"):
        reg.set_ip("eth0", text)


@pytest.mark.parametrize("text", ["0.0.0.0/24", "10.1.1.1/0"])
def test_set_ip_zero_rejected(text):
    reg = registry_with(("eth0", 5))
    with pytest.raises(InterfaceError, match="ZERO IP/MASK"):
        reg.set_ip("eth0", text)
    assert reg.get("eth0").ipv4_addr == ZERO_IP


def test_unwrap_curves_empty():
    assert unwrap_curves({}) == Curves(r_sc=None, u_sc=None, f_sc=Sc())


def test_unwrap_curves_partial_fields():
    curves = unwrap_curves(
        {"r_sc": {"m1": 7}, "u_sc": None, "f_sc": {"d": 3, "m2": 9, "m1": None}}
    )
    assert curves.r_sc == Sc(m1=7)
    assert curves.u_sc is None
    assert curves.f_sc == Sc(d=3, m2=9)


def test_unwrap_curves_all_present():
    spec = {"m1": 1, "d": 2, "m2": 3}
    curves = unwrap_curves({"r_sc": spec, "u_sc": spec, "f_sc": spec})
    expected = Sc(m1=1, d=2, m2=3)
    assert curves == Curves(r_sc=expected, u_sc=expected, f_sc=expected)