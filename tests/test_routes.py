import io
import json
from ipaddress import IPv4Address

import pytest

from r2graph.fwd import Adjacency, Interface
from r2graph.ifd import InterfaceRegistry
from r2graph.routes import RouteApis, RouteError, RouteTables, V4Table

NET = IPv4Address("10.0.0.0")
NHOP = IPv4Address("1.1.1.1")
MAC = b"\x02\x00\x00\x00\x00\x01"


def make_tables():
    published = []
    return RouteTables(published.append), published


def make_apis():
    tables, published = make_tables()
    reg = InterfaceRegistry()
    reg.add(Interface("eth0", 3, MAC, 100))
    return RouteApis(tables, reg), tables, published


def names(ifindex):
    return {3: "eth0"}.get(ifindex)


def test_add_route_publishes_standby_and_syncs_both():
    tables, published = make_tables()
    tables.add_route(NET, 8, NHOP, 3)
    assert len(published) == 1
    assert published[0].table is tables.table2
    assert tables.active is V4Table.TABLE2
    for table in (tables.table1, tables.table2):
        prefix, masklen, leaf = table.longest_match(IPv4Address("10.1.2.3"))
        assert (prefix, masklen) == (NET, 8)
        assert leaf.next == Adjacency(NHOP, 3)


def test_tables_alternate():
    tables, published = make_tables()
    tables.add_route(NET, 8, NHOP, 3)
    tables.add_route(IPv4Address("192.168.0.0"), 16, NHOP, 3)
    assert published[1].table is tables.table1
    assert tables.active is V4Table.TABLE1
    assert len(tables.table1) == len(tables.table2) == 2


def test_del_route_removes_from_both():
    tables, _ = make_tables()
    tables.add_route(NET, 8, NHOP, 3)
    tables.del_route(NET, 8, NHOP, 3)
    assert len(tables.table1) == 0
    assert len(tables.table2) == 0
    assert tables.table1.longest_match(IPv4Address("10.1.2.3")) is None


def test_bad_masklen_changes_nothing():
    tables, published = make_tables()
    with pytest.raises(ValueError):
        tables.add_route(NET, 40, NHOP, 3)
    assert published == []
    assert tables.active is V4Table.TABLE1


def test_show_one_format():
    tables, _ = make_tables()
    tables.add_route(NET, 8, NHOP, 3)
    text = tables.show_one(tables.table1, IPv4Address("10.9.9.9"), names)
    assert text == (
        "Destination\t\tNextHop\t\tInterface\n10.0.0.0/8\t\t1.1.1.1\t\teth0[3]\n"
    )


def test_show_one_unknown_interface_and_no_match():
    tables, _ = make_tables()
    tables.add_route(NET, 8, NHOP, 42)
    text = tables.show_one(tables.table2, IPv4Address("10.9.9.9"), names)
    assert "Unknown_ifindex[42]" in text
    assert tables.show_one(tables.table2, IPv4Address("11.0.0.1"), names) == ""


def test_dump_json_round_trip():
    tables, _ = make_tables()
    tables.add_route(NET, 8, NHOP, 3)
    tables.add_route(IPv4Address("20.0.0.0"), 8, NHOP, 42)
    out = io.StringIO()
    tables.dump_json(out, names)
    data = json.loads(out.getvalue())
    assert data["table1"] == data["table2"]
    entries = {entry["prefix"]: entry for entry in data["table1"]}
    assert entries["10.0.0.0"] == {
        "prefix": "10.0.0.0",
        "masklen": 8,
        "nhop": "1.1.1.1",
        "ifname": "eth0",
        "ifindex": 3,
    }
    assert entries["20.0.0.0"]["ifname"] == "Unknown_ifindex"


def test_dump_json_empty():
    tables, _ = make_tables()
    out = io.StringIO()
    tables.dump_json(out, names)
    assert json.loads(out.getvalue()) == {"table1": [], "table2": []}


def test_api_add_and_show():
    apis, tables, published = make_apis()
    apis.add_route("10.0.0.0/8", "1.1.1.1", "eth0")
    assert len(published) == 1
    text = apis.show("10.4.4.4", "unused")
    assert text.startswith("Table1:\n")
    assert text.count("10.0.0.0/8\t\t1.1.1.1\t\teth0[3]\n") == 2
    assert "Table2:\n" in text


def test_api_del_route():
    apis, tables, _ = make_apis()
    apis.add_route("10.0.0.0/8", "1.1.1.1", "eth0")
    apis.del_route("10.0.0.0/8", "1.1.1.1", "eth0")
    assert apis.show("10.4.4.4", "unused") == "Table1:\nTable2:\n"


@pytest.mark.parametrize(
    "ip_mask, nhop, ifname, message",
    [
        ("10.0.0.0", "1.1.1.1", "eth0", "Unable to decode IP/MASK"),
        ("10.0.0.0/8", "1.1.1", "eth0", "Unable to decode NHOP"),
        ("10.0.0.0/8", "1.1.1.1", "eth7", "Cannot find interface eth7"),
        ("10.0.0.0/40", "1.1.1.1", "eth0", "Unable to decode IP/MASK"),
    ],
)
def test_api_errors(ip_mask, nhop, ifname, message):
    apis, _, published = make_apis()
    with pytest.raises(RouteError, match=message):
        apis.add_route(ip_mask, nhop, ifname)
    with pytest.raises(RouteError, match=message):
        apis.del_route(ip_mask, nhop, ifname)
    assert published == []


def test_api_show_all_writes_file(tmp_path):
    apis, _, _ = make_apis()
    apis.add_route("10.0.0.0/8", "1.1.1.1", "eth0")
    path = tmp_path / "routes.json"
    assert apis.show("all", str(path)) == ""
    data = json.loads(path.read_text())
    assert [e["prefix"] for e in data["table1"]] == ["10.0.0.0"]
    assert data["table2"][0]["ifname"] == "eth0"


def test_api_show_all_bad_file(tmp_path):
    apis, _, _ = make_apis()
    target = tmp_path / "missing" / "routes.json"
    with pytest.raises(RouteError, match="couldn't create"):
        apis.show("all", str(target))


def test_api_show_bad_option():
    apis, _, _ = make_apis()
    with pytest.raises(RouteError, match="keyword 'all'"):
        apis.show("everything", "unused")