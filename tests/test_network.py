import base64
import gc
import hashlib
import os
import socket
from collections import namedtuple
from datetime import datetime
from unittest import mock

import psutil
import pytest

from warpmesh.network import (
    BOOTSTRAP_OWNER,
    AddrInfo,
    Connectedness,
    Multiaddr,
    NodeInfo,
    NodeStats,
    PeerID,
    Reachability,
    WarpError,
    WarpPubInfo,
    addr_info_from_p2p_addr,
    addr_info_from_string,
    b58decode,
    b58encode,
    from_bytes_to_peer_id,
    from_string_to_peer_id,
    get_cpu_stats,
    get_mac_addr,
    get_memory_stats,
    get_network_io,
    human_size,
    is_public_multiaddress,
    is_relay_address,
    is_relay_multiaddress,
    new_multiaddr,
)

Addr = namedtuple("Addr", "family address")
IOCounters = namedtuple("IOCounters", "bytes_sent bytes_recv")

SHA_MH = bytes([0x12, 0x20]) + hashlib.sha256(b"node-key").digest()
IDENTITY_MH = bytes([0x00, 0x05]) + b"abcde"


@pytest.fixture
def peer_id():
    return from_bytes_to_peer_id(SHA_MH)


def test_b58_known_example():
    assert b58encode(b"hello world") == "StV1DL6CwTryKyV"


@pytest.mark.parametrize("data", [b"", b"\0\0\x05", b"\xff" * 10, SHA_MH])
def test_b58_round_trip(data):
    assert b58decode(b58encode(data)) == data


def test_b58_rejects_bad_char():
    with pytest.raises(ValueError):
        b58decode("0OIl")


def test_peer_id_string_round_trip(peer_id):
    assert peer_id.raw == SHA_MH
    assert from_string_to_peer_id(str(peer_id)) == peer_id


def test_identity_peer_id_round_trip():
    pid = from_bytes_to_peer_id(IDENTITY_MH)
    assert len(pid) == len(IDENTITY_MH)
    assert from_string_to_peer_id(str(pid)) == pid


def test_peer_id_from_cid(peer_id):
    cid = bytes([0x01, 0x72]) + SHA_MH
    text = "b" + base64.b32encode(cid).decode().lower().rstrip("=")
    assert from_string_to_peer_id(text) == peer_id


def test_peer_id_from_cid_wrong_codec():
    cid = bytes([0x01, 0x70]) + SHA_MH
    text = "b" + base64.b32encode(cid).decode().lower().rstrip("=")
    assert from_string_to_peer_id(text) is None


@pytest.mark.parametrize("text", ["", "Qm!!!", "xyz", "1"])
def test_bad_peer_id_strings(text):
    assert from_string_to_peer_id(text) is None


@pytest.mark.parametrize("data", [b"", bytes([0x12, 0x20, 0x01]), SHA_MH + b"\x00"])
def test_bad_peer_id_bytes(data):
    assert from_bytes_to_peer_id(data) is None


def test_empty_peer_id_fails_validation():
    with pytest.raises(WarpError, match="empty peer ID"):
        PeerID(b"").validate()


def test_multiaddr_round_trip():
    text = "/ip4/1.2.3.4/tcp/4001"
    assert str(new_multiaddr(text)) == text
    assert new_multiaddr(text) == Multiaddr(text + "/")


def test_multiaddr_values(peer_id):
    maddr = Multiaddr(f"/ip4/1.2.3.4/tcp/4001/p2p/{peer_id}/p2p-circuit")
    assert maddr.value_for_protocol("tcp") == "4001"
    assert maddr.value_for_protocol("ip4") == "1.2.3.4"
    assert maddr.value_for_protocol("p2p-circuit") == ""
    with pytest.raises(KeyError):
        maddr.value_for_protocol("udp")


def test_multiaddr_ipfs_alias(peer_id):
    assert str(Multiaddr(f"/ipfs/{peer_id}")) == f"/p2p/{peer_id}"


def test_multiaddr_unix_path():
    assert Multiaddr("/unix/tmp/node.sock").value_for_protocol("unix") == "/tmp/node.sock"
    assert str(Multiaddr("/unix/tmp/node.sock")) == "/unix/tmp/node.sock"


@pytest.mark.parametrize(
    "text",
    ["", "/", "ip4/1.2.3.4", "/ip4/999.1.1.1", "/bogus/1", "/tcp", "/tcp/70000", "/p2p/xyz"],
)
def test_multiaddr_invalid(text):
    with pytest.raises(ValueError):
        new_multiaddr(text)


def test_addr_info_from_string(peer_id):
    info = addr_info_from_string(f"/ip4/1.2.3.4/tcp/4001/p2p/{peer_id}")
    assert info.id == peer_id
    assert info.addrs == [Multiaddr("/ip4/1.2.3.4/tcp/4001")]


def test_addr_info_without_transport(peer_id):
    info = addr_info_from_p2p_addr(Multiaddr(f"/p2p/{peer_id}"))
    assert info.addrs == []
    assert str(info) == f"{{{peer_id}: []}}"


def test_addr_info_requires_p2p():
    with pytest.raises(ValueError):
        addr_info_from_string("/ip4/1.2.3.4/tcp/4001")


def test_addr_info_str(peer_id):
    a = Multiaddr("/ip4/1.2.3.4/tcp/1")
    b = Multiaddr("/ip6/::1/tcp/2")
    assert str(AddrInfo(peer_id, [a, b])) == f"{{{peer_id}: [{a} {b}]}}"


@pytest.mark.parametrize(
    "text",
    ["/ip4/8.8.8.8/tcp/1", "/ip6/2001:4860::8888/tcp/1"],
)
def test_public_addresses(text):
    assert is_public_multiaddress(Multiaddr(text)) is True


@pytest.mark.parametrize(
    "text",
    [
        "/ip4/10.1.2.3/tcp/1",
        "/ip4/172.16.5.5/tcp/1",
        "/ip4/192.168.1.1/tcp/1",
        "/ip4/100.64.0.1/tcp/1",
        "/ip4/127.0.0.1/tcp/1",
        "/ip4/169.254.1.1/tcp/1",
        "/ip4/0.0.0.0/tcp/1",
        "/ip4/224.0.0.1/tcp/1",
        "/ip6/::1/tcp/1",
        "/ip6/fe80::1/tcp/1",
        "/ip6/::ffff:10.0.0.1/tcp/1",
        "/dns4/example.com/tcp/1",
    ],
)
def test_non_public_addresses(text):
    assert is_public_multiaddress(Multiaddr(text)) is False


def test_relay_detection(peer_id):
    text = f"/ip4/1.2.3.4/tcp/1/p2p/{peer_id}/p2p-circuit"
    assert is_relay_address(text) is True
    assert is_relay_multiaddress(Multiaddr(text)) is True
    assert is_relay_multiaddress(Multiaddr("/ip4/1.2.3.4/tcp/1")) is False


def test_node_info_is_bootstrap(peer_id):
    assert NodeInfo(owner_id=BOOTSTRAP_OWNER, id=peer_id).is_bootstrap() is True
    assert NodeInfo(owner_id="someone", id=peer_id).is_bootstrap() is False


def test_node_stats_and_pub_info_defaults(peer_id):
    stats = NodeStats(node_id=peer_id, peers_online=3)
    assert stats.peers_online == 3 and stats.bytes_sent == 0 and stats.cpu_stats == {}
    assert WarpPubInfo(id=peer_id).addrs == []


def test_enums_match_states():
    assert Connectedness(4) is Connectedness.LIMITED
    assert Reachability(1) is Reachability.PUBLIC


def test_human_size():
    assert human_size(1000) == "1kB"
    assert human_size(1_500_000) == "1.5MB"
    assert human_size(0).endswith("B") and not human_size(999).endswith("kB")


def test_get_mac_addr():
    fake = {
        "lo": [Addr(psutil.AF_LINK, "00:00:00:00:00:00")],
        "eth0": [Addr(psutil.AF_LINK, "02:00:00:00:00:01"), Addr(socket.AF_INET, "192.0.2.1")],
        "eth1": [Addr(psutil.AF_LINK, "02:00:00:00:00:02")],
    }
    with mock.patch("psutil.net_if_addrs", return_value=fake):
        assert get_mac_addr() == "02:00:00:00:00:01,02:00:00:00:00:02"


def test_get_mac_addr_error():
    with mock.patch("psutil.net_if_addrs", side_effect=OSError("boom")):
        assert get_mac_addr() == ""


def test_memory_stats_last_gc():
    gc.collect()
    stats = get_memory_stats()
    assert set(stats) == {"heap", "stack", "last_gc"}
    parsed = datetime.strptime(stats["last_gc"], "%Y-%m-%d %H:%M:%S")
    assert abs((datetime.now() - parsed).total_seconds()) < 60


def test_cpu_stats():
    with mock.patch("psutil.cpu_percent", return_value=12.5):
        stats = get_cpu_stats()
    assert stats == {"num": str(os.cpu_count() or 1), "usage": "12.5"}


def test_cpu_stats_whole_number():
    with mock.patch("psutil.cpu_percent", return_value=12.0):
        assert get_cpu_stats()["usage"] == "12"


def test_cpu_stats_error():
    with mock.patch("psutil.cpu_percent", side_effect=psutil.Error("boom")):
        assert "usage" not in get_cpu_stats()


def test_network_io():
    with mock.patch("psutil.net_io_counters", return_value=IOCounters(10, 20)):
        assert get_network_io() == (10, 20)
    with mock.patch("psutil.net_io_counters", return_value=None):
        assert get_network_io() == (0, 0)
    with mock.patch("psutil.net_io_counters", side_effect=OSError("boom")):
        assert get_network_io() == (0, 0)