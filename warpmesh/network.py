"""Peer identities, multiaddresses and host statistics for a warpnet node."""

from __future__ import annotations

import base64
import gc
import ipaddress
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import Iterator

import psutil

logger = logging.getLogger(__name__)

BOOTSTRAP_OWNER = "bootstrap"
WARPNET_NAME = "warpnet"
NOISE_ID = "/noise"
PERMANENT_ADDR_TTL_SECONDS = (1 << 63) - 1 - 1000


class WarpError(Exception):
    """An error raised by the warpnet layer."""


ERR_NODE_IS_OFFLINE = WarpError("node is offline")
ERR_USER_IS_OFFLINE = WarpError("user is offline")
ERR_ALL_DIALS_FAILED = WarpError("all dials failed")


class Reachability(IntEnum):
    """Whether a node can be reached from the public internet."""

    UNKNOWN = 0
    PUBLIC = 1
    PRIVATE = 2


class Connectedness(IntEnum):
    """State of the connection to a peer."""

    NOT_CONNECTED = 0
    CONNECTED = 1
    CAN_CONNECT = 2
    CANNOT_CONNECT = 3
    LIMITED = 4


_PRIVATE_BLOCKS = tuple(
    ipaddress.ip_network(block)
    for block in (
        "10.0.0.0/8",  # VPN
        "172.16.0.0/12",
        "192.168.0.0/16",  # private network
        "100.64.0.0/10",  # CG-NAT
        "127.0.0.0/8",  # local
        "169.254.0.0/16",  # link-local
    )
)

_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_LIBP2P_KEY_CODEC = 0x72
_MAX_VARINT_LEN = 9


def b58encode(data: bytes) -> str:
    """Encode bytes with the base58btc alphabet."""
    zeros = len(data) - len(data.lstrip(b"\0"))
    number = int.from_bytes(data, "big")
    digits = []
    while number:
        number, rem = divmod(number, 58)
        digits.append(_B58_ALPHABET[rem])
    return "1" * zeros + "".join(reversed(digits))


def b58decode(text: str) -> bytes:
    """Decode a base58btc string; raise ValueError on a bad character."""
    number = 0
    for char in text:
        index = _B58_ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"invalid base58 character: {char!r}")
        number = number * 58 + index
    zeros = len(text) - len(text.lstrip("1"))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\0" * zeros + body


def _read_uvarint(data: bytes, pos: int) -> tuple[int, int]:
    value = 0
    for shift_index in range(_MAX_VARINT_LEN):
        if pos >= len(data):
            raise ValueError("varint truncated")
        byte = data[pos]
        pos += 1
        value |= (byte & 0x7F) << (7 * shift_index)
        if not byte & 0x80:
            if byte == 0 and shift_index > 0:
                raise ValueError("varint not minimally encoded")
            return value, pos
    raise ValueError("varint too long")


def _check_multihash(raw: bytes) -> None:
    _code, pos = _read_uvarint(raw, 0)
    length, pos = _read_uvarint(raw, pos)
    if len(raw) - pos != length:
        raise ValueError("multihash length inconsistent")


@dataclass(frozen=True)
class PeerID:
    """A peer identity: the raw multihash of the peer's public key."""

    raw: bytes = b""

    def validate(self) -> None:
        if not self.raw:
            raise WarpError("empty peer ID")

    def __len__(self) -> int:
        return len(self.raw)

    def __str__(self) -> str:
        return b58encode(self.raw)


def _decode_cid_bytes(text: str) -> bytes:
    prefix, body = text[:1], text[1:]
    if prefix in ("b", "B"):
        return base64.b32decode(body + "=" * (-len(body) % 8), casefold=True)
    if prefix == "z":
        return b58decode(body)
    if prefix in ("f", "F"):
        return bytes.fromhex(body)
    raise ValueError(f"unsupported multibase prefix: {prefix!r}")


def _decode_peer_id(text: str) -> PeerID:
    if text.startswith(("Qm", "1")):
        raw = b58decode(text)
        _check_multihash(raw)
        return PeerID(raw)
    if not text:
        raise ValueError("empty peer ID string")
    data = _decode_cid_bytes(text)
    version, pos = _read_uvarint(data, 0)
    if version != 1:
        raise ValueError(f"unsupported CID version: {version}")
    codec, pos = _read_uvarint(data, pos)
    if codec != _LIBP2P_KEY_CODEC:
        raise ValueError(f"can't convert CID of type {codec:#x} to a peer ID")
    raw = data[pos:]
    _check_multihash(raw)
    return PeerID(raw)


def from_string_to_peer_id(text: str) -> PeerID | None:
    """Parse a textual peer ID, returning None when it is malformed."""
    try:
        return _decode_peer_id(text)
    except ValueError:
        return None


def from_bytes_to_peer_id(data: bytes) -> PeerID | None:
    """Build a peer ID from a raw multihash, returning None when it is malformed."""
    try:
        _check_multihash(bytes(data))
    except ValueError:
        return None
    return PeerID(bytes(data))


def _port(value: str) -> str:
    number = int(value)
    if not 0 <= number <= 0xFFFF:
        raise ValueError(f"port out of range: {value}")
    return str(number)


def _non_empty(value: str) -> str:
    if not value:
        raise ValueError("empty protocol value")
    return value


_VALUE_PROTOCOLS = {
    "ip4": lambda v: str(ipaddress.IPv4Address(v)),
    "ip6": lambda v: str(ipaddress.IPv6Address(v)),
    "tcp": _port,
    "udp": _port,
    "dns": _non_empty,
    "dns4": _non_empty,
    "dns6": _non_empty,
    "dnsaddr": _non_empty,
    "p2p": lambda v: str(_decode_peer_id(v)),
    "sni": _non_empty,
    "certhash": _non_empty,
    "ip6zone": _non_empty,
    "onion": _non_empty,
    "onion3": _non_empty,
}
_FLAG_PROTOCOLS = frozenset(
    {
        "p2p-circuit",
        "quic",
        "quic-v1",
        "ws",
        "wss",
        "webtransport",
        "tls",
        "noise",
        "http",
        "https",
        "webrtc",
        "webrtc-direct",
        "utp",
        "udt",
    }
)
_PATH_PROTOCOLS = frozenset({"unix"})
_ALIASES = {"ipfs": "p2p"}

Component = tuple[str, "str | None"]


class Multiaddr:
    """A parsed, normalised multiaddress such as /ip4/1.2.3.4/tcp/4001."""

    __slots__ = ("_components",)

    def __init__(self, text: str) -> None:
        self._components = tuple(self._parse(text))

    @classmethod
    def _from_components(cls, components: tuple[Component, ...]) -> Multiaddr:
        obj = cls.__new__(cls)
        obj._components = tuple(components)
        return obj

    @staticmethod
    def _parse(text: str) -> list[Component]:
        if not text:
            raise ValueError("empty multiaddr")
        if not text.startswith("/"):
            raise ValueError(f"multiaddr must begin with /: {text!r}")
        parts: Iterator[str] = iter(text.rstrip("/").split("/")[1:])
        components: list[Component] = []
        for raw_name in parts:
            name = _ALIASES.get(raw_name, raw_name)
            if name in _PATH_PROTOCOLS:
                components.append((name, "/" + "/".join(parts)))
                break
            if name in _FLAG_PROTOCOLS:
                components.append((name, None))
                continue
            validator = _VALUE_PROTOCOLS.get(name)
            if validator is None:
                raise ValueError(f"no protocol with name {raw_name!r}")
            value = next(parts, None)
            if value is None:
                raise ValueError(f"unexpected end of multiaddr after {name!r}")
            components.append((name, validator(value)))
        if not components:
            raise ValueError("empty multiaddr")
        return components

    @property
    def components(self) -> tuple[Component, ...]:
        return self._components

    def value_for_protocol(self, name: str) -> str:
        """Return the value of the first component with this protocol name."""
        name = _ALIASES.get(name, name)
        for proto, value in self._components:
            if proto == name:
                return value or ""
        raise KeyError(name)

    def __str__(self) -> str:
        pieces = []
        for name, value in self._components:
            if value is None:
                pieces.append(f"/{name}")
            elif name in _PATH_PROTOCOLS:
                pieces.append(f"/{name}{value}")
            else:
                pieces.append(f"/{name}/{value}")
        return "".join(pieces)

    def __repr__(self) -> str:
        return f"Multiaddr({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Multiaddr):
            return NotImplemented
        return self._components == other._components

    def __hash__(self) -> int:
        return hash(self._components)


def new_multiaddr(text: str) -> Multiaddr:
    """Parse a multiaddress; raise ValueError when it is malformed."""
    return Multiaddr(text)


@dataclass
class AddrInfo:
    """A peer ID together with the addresses it can be reached at."""

    id: PeerID
    addrs: list[Multiaddr] = field(default_factory=list)

    def __str__(self) -> str:
        addrs = " ".join(str(a) for a in self.addrs)
        return f"{{{self.id}: [{addrs}]}}"


def addr_info_from_p2p_addr(maddr: Multiaddr) -> AddrInfo:
    """Split a multiaddress ending in /p2p/<id> into peer ID and transport."""
    components = maddr.components
    if not components or components[-1][0] != "p2p":
        raise ValueError(f"invalid p2p multiaddr: {maddr}")
    peer_id = _decode_peer_id(components[-1][1] or "")
    transport = components[:-1]
    addrs = [Multiaddr._from_components(transport)] if transport else []
    return AddrInfo(id=peer_id, addrs=addrs)


def addr_info_from_string(text: str) -> AddrInfo:
    return addr_info_from_p2p_addr(new_multiaddr(text))


@dataclass
class WarpPubInfo:
    id: PeerID
    addrs: list[str] = field(default_factory=list)


@dataclass
class NodeInfo:
    owner_id: str
    id: PeerID
    version: str | None = None
    addresses: list[str] = field(default_factory=list)
    start_time: datetime | None = None
    relay_state: str = ""
    bootstrap_peers: list[AddrInfo] = field(default_factory=list)

    def is_bootstrap(self) -> bool:
        return self.owner_id == BOOTSTRAP_OWNER


@dataclass
class NodeStats:
    user_id: str = ""
    node_id: PeerID = field(default_factory=PeerID)
    version: str | None = None
    public_addresses: str = ""
    relay_state: str = ""
    start_time: str = ""
    network_state: str = ""
    database_stats: dict[str, str] = field(default_factory=dict)
    consensus_stats: dict[str, str] = field(default_factory=dict)
    memory_stats: dict[str, str] = field(default_factory=dict)
    cpu_stats: dict[str, str] = field(default_factory=dict)
    bytes_sent: int = 0
    bytes_received: int = 0
    peers_online: int = 0
    peers_stored: int = 0


def is_public_multiaddress(maddr: Multiaddr) -> bool:
    """Tell whether the first IP in the address is publicly routable."""
    try:
        ip_text = maddr.value_for_protocol("ip4")
    except KeyError:
        try:
            ip_text = maddr.value_for_protocol("ip6")
        except KeyError:
            return False
    ip = ipaddress.ip_address(ip_text)
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    if ip.is_loopback or ip.is_link_local or ip.is_multicast or ip.is_unspecified:
        return False
    return not any(ip in block for block in _PRIVATE_BLOCKS if block.version == ip.version)


def is_relay_address(addr: str) -> bool:
    return "p2p-circuit" in addr


def is_relay_multiaddress(maddr: Multiaddr) -> bool:
    return "p2p-circuit" in str(maddr)


_DECIMAL_UNITS = ("B", "kB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")


def human_size(size: float) -> str:
    """Format a byte count with decimal units and four significant digits."""
    size = float(size)
    index = 0
    while size >= 1000.0 and index < len(_DECIMAL_UNITS) - 1:
        size /= 1000.0
        index += 1
    return "%.4g%s" % (size, _DECIMAL_UNITS[index])


def _format_float(value: float) -> str:
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def get_mac_addr() -> str:
    """Return the hardware addresses of all interfaces, comma separated."""
    try:
        interfaces = psutil.net_if_addrs()
    except (psutil.Error, OSError):
        return ""
    found = []
    for addresses in interfaces.values():
        for addr in addresses:
            if addr.family != psutil.AF_LINK or not addr.address:
                continue
            if not addr.address.replace(":", "").replace("-", "").strip("0"):
                continue
            found.append(addr.address)
    return ",".join(found)


_gc_state = {"last": 0.0}


def _record_gc(phase: str, _info: dict) -> None:
    if phase == "stop":
        _gc_state["last"] = time.time()


gc.callbacks.append(_record_gc)


def _stack_bytes() -> int:
    try:
        with open("/proc/self/status", encoding="ascii") as status:
            for line in status:
                if line.startswith("VmStk:"):
                    return int(line.split()[1]) * 1024
    except (OSError, ValueError, IndexError):
        pass
    return 0


def get_memory_stats() -> dict[str, str]:
    """Return heap and stack usage and the time of the last collection."""
    try:
        heap = psutil.Process().memory_info().rss
    except (psutil.Error, OSError):
        heap = 0
    last_gc = datetime.fromtimestamp(_gc_state["last"]).strftime("%Y-%m-%d %H:%M:%S")
    return {
        "heap": human_size(heap),
        "stack": human_size(_stack_bytes()),
        "last_gc": last_gc,
    }


def get_cpu_stats() -> dict[str, str]:
    """Return the CPU count and, when measurable, the usage percentage."""
    stats = {"num": str(os.cpu_count() or 1)}
    try:
        percent = psutil.cpu_percent(interval=1.0)
    except (psutil.Error, OSError) as exc:
        logger.error("could not get CPU usage percent: %s", exc)
        return stats
    if percent is None:
        return stats
    stats["usage"] = _format_float(float(percent))
    return stats


def get_network_io() -> tuple[int, int]:
    """Return total bytes sent and received over all interfaces."""
    try:
        counters = psutil.net_io_counters(pernic=False)
    except (psutil.Error, OSError) as exc:
        logger.error("could not get network io counters: %s", exc)
        return 0, 0
    if counters is None:
        return 0, 0
    return int(counters.bytes_sent), int(counters.bytes_recv)