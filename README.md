# warpmesh

Building blocks for a peer-to-peer network node. There are four modules.

## `warpmesh.network`: peers, addresses and host statistics

- `PeerID` wraps the raw multihash bytes of a peer's key.
  - `str(peer_id)` gives its base58 form.
  - `validate()` raises `WarpError` if the ID is empty.
- `from_string_to_peer_id(text)` parses the text forms of a peer ID. It accepts base58 (`Qm...`, `1...`) and CIDv1 with the libp2p-key codec in base32, base58 or hex multibase. `from_bytes_to_peer_id(data)` builds an ID from a raw multihash. Both return `None` when the input is malformed.
- `b58encode` and `b58decode` convert bytes to and from base58btc.
- `Multiaddr` / `new_multiaddr(text)` parse and normalise multiaddresses such as `/ip4/1.2.3.4/tcp/4001/p2p/<id>`.
  - Supported protocols: ip4, ip6, tcp, udp, the dns variants, p2p (`ipfs` is an alias), unix, and flag protocols such as `p2p-circuit`, `quic-v1`, `ws` and `tls`.
  - A malformed or unknown address raises `ValueError`.
  - `value_for_protocol(name)` returns a component's value, or raises `KeyError` if the protocol is absent.
- `AddrInfo` pairs a `PeerID` with a list of `Multiaddr`. `addr_info_from_p2p_addr` and `addr_info_from_string` split an address that ends in `/p2p/<id>`.
- `is_public_multiaddress(maddr)` looks at the first ip4 (or else ip6) component.
  - It returns false for loopback, link-local, multicast and unspecified addresses.
  - It also returns false for the IPv4 ranges 10/8, 172.16/12, 192.168/16, 100.64/10 (CG-NAT), 127/8 and 169.254/16.
  - An address with no IP component also gives false.
- `is_relay_address(text)` and `is_relay_multiaddress(maddr)` detect `p2p-circuit` relay addresses.
- `NodeInfo` (with `is_bootstrap()`), `NodeStats` and `WarpPubInfo` are plain data classes.
- Host statistics (use `psutil`):
  - `get_memory_stats()` gives resident memory, stack size (read from `/proc` on Linux, otherwise 0) and the time of the last garbage collection.
  - `get_cpu_stats()` gives the CPU count and the usage over a one-second sample.
  - `get_network_io()` gives total bytes sent and received.
  - `get_mac_addr()` gives the interface hardware addresses, comma separated.
  - `human_size(n)` formats byte counts in decimal units.
- Enums: `Reachability` and `Connectedness`.

## `warpmesh.relay`: relay resource limits

`default_resources()` returns a frozen `Resources` value:

- Each circuit has a `RelayLimit` of 5 minutes and 32 MiB.
- Reservations last one hour.
- At most 128 reservations and 16 circuits.
- 4096-byte buffers.
- At most 8 reservations per IP and 32 per ASN.

## `warpmesh.routes`: route names

`WarpRoute` is a `str` subclass for protocol paths such as `/private/get/tweet/0.0.0`.

- `protocol_id()` returns the route as a protocol ID.
- `is_private()` and `is_get()` check whether the route contains those words.
- `is_valid_route(route)` requires all of these:
  - a leading `/`;
  - one of `get`, `delete` or `post`;
  - one of `private` or `public`.
- `routes_to_protocol_ids`, `route_from_protocol_id` and `routes_from_protocol_ids` convert between routes and protocol IDs.

## `warpmesh.stream`: request/response over a stream

`send(node, server_info, route, data, *, allow_limited=False, timeout=60.0)` does one exchange:

1. Opens a stream through `node.new_stream(...)`.
2. Writes `data`, if it is not `None`.
3. Closes the write side.
4. Reads the whole response and returns it as bytes.
5. Closes the stream in every case.

`send` raises `StreamError` (a `WarpError`) in these cases:

- the parameters are missing;
- the peer ID is longer than 52 bytes;
- the stream cannot be opened, written or read;
- the response is empty.

An empty peer ID raises `WarpError`.

`StreamPool(node)` wraps a node.

- `send(peer, route, data)` checks the peer's connectedness first. If it is `Connectedness.LIMITED`, the stream is opened with `allow_limited=True`.
- After `close()`, or on leaving a `with` block, `send` raises `StreamError`.

The node must provide the `NodeStreamer` protocol:

- `new_stream(peer_id, protocol_id, *, allow_limited, timeout)` returns an object with `write`, `read`, `close_write` and `close`.
- `connectedness(peer_id)` returns a `Connectedness`.

## Install

```
pip install warpmesh
```

## Example

```python
import io

from warpmesh.network import (
    AddrInfo,
    Connectedness,
    from_bytes_to_peer_id,
    is_public_multiaddress,
    new_multiaddr,
)
from warpmesh.routes import WarpRoute, is_valid_route
from warpmesh.stream import StreamPool

route = WarpRoute("/public/get/info/0.0.0")
assert is_valid_route(route)
assert route.is_get() and not route.is_private()

assert not is_public_multiaddress(new_multiaddr("/ip4/192.168.1.10/tcp/4001"))


class EchoStream:
    def __init__(self):
        self._sent = bytearray()
        self._reply = io.BytesIO()

    def write(self, data):
        self._sent += data
        return len(data)

    def close_write(self):
        self._reply = io.BytesIO(bytes(self._sent))

    def read(self, size):
        return self._reply.read(size)

    def close(self):
        pass


class LoopbackNode:
    def new_stream(self, peer_id, protocol_id, *, allow_limited, timeout):
        return EchoStream()

    def connectedness(self, peer_id):
        return Connectedness.CONNECTED


peer = AddrInfo(id=from_bytes_to_peer_id(b"\x00\x04node"))
with StreamPool(LoopbackNode()) as pool:
    assert pool.send(peer, route, b"ping") == b"ping"
```

## What this package does not do

This package has no real network node. It provides:

- no transports or encryption;
- no peer discovery or DHT;
- no stream handlers or server side;
- no command-line program.

`warpmesh.relay` only describes relay limits; it does not run a relay. To exchange data with real peers, you must supply your own object that implements `NodeStreamer`.

## Tests

```
pip install -e ".[test]"
pytest
```