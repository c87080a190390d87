"""Request/response exchange with a peer over a single protocol stream."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

from warpmesh.network import (
    ERR_ALL_DIALS_FAILED,
    AddrInfo,
    Connectedness,
    PeerID,
    WarpError,
)
from warpmesh.routes import WarpRoute

logger = logging.getLogger(__name__)

_MAX_PEER_ID_LEN = 52
_DEFAULT_TIMEOUT = 60.0  # circuit streams may take a long time
_READ_CHUNK = 4096


class StreamError(WarpError):
    """A stream could not be opened, written or answered."""


class Stream(Protocol):
    """A bidirectional byte stream to a peer."""

    def write(self, data: bytes) -> int: ...

    def read(self, size: int) -> bytes: ...

    def close_write(self) -> None: ...

    def close(self) -> None: ...


class NodeStreamer(Protocol):
    """A node that can open streams to peers and report their connectedness."""

    def new_stream(
        self,
        peer_id: PeerID,
        protocol_id: str,
        *,
        allow_limited: bool,
        timeout: float,
    ) -> Stream: ...

    def connectedness(self, peer_id: PeerID) -> Connectedness: ...


class StreamPool:
    """Sends requests to peers through a node until closed."""

    def __init__(self, node: NodeStreamer) -> None:
        self._node = node
        self._closed = False

    def send(self, peer: AddrInfo, route: WarpRoute, data: bytes | None) -> bytes:
        if self._closed:
            raise StreamError("stream pool closed")
        allow_limited = False
        if self._node.connectedness(peer.id) == Connectedness.LIMITED:
            logger.debug("stream: peer %s has limited connection", peer.id)
            allow_limited = True
        return send(
            self._node,
            peer,
            route,
            data,
            allow_limited=allow_limited,
            timeout=_DEFAULT_TIMEOUT,
        )

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> StreamPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _is_all_dials_failed(exc: BaseException | None) -> bool:
    seen = set()
    while exc is not None and id(exc) not in seen:
        if exc is ERR_ALL_DIALS_FAILED:
            return True
        seen.add(id(exc))
        exc = exc.__cause__ or exc.__context__
    return False


@contextmanager
def _opened(stream: Stream) -> Iterator[Stream]:
    try:
        yield stream
    finally:
        try:
            stream.close()
        except (OSError, WarpError) as exc:
            logger.error("stream: closing: %s", exc)


def _read_all(stream: Stream) -> bytes:
    chunks = []
    while chunk := stream.read(_READ_CHUNK):
        chunks.append(chunk)
    return b"".join(chunks)


def send(
    node: NodeStreamer | None,
    server_info: AddrInfo | None,
    route: WarpRoute,
    data: bytes | None,
    *,
    allow_limited: bool = False,
    timeout: float = _DEFAULT_TIMEOUT,
) -> bytes:
    """Write data on a new stream for route and return the whole response."""
    if node is None or server_info is None or not str(server_info) or not route:
        raise StreamError("stream: parameters improperly configured")

    peer_id = server_info.id
    if len(peer_id) > _MAX_PEER_ID_LEN:
        raise StreamError(f"stream: node id is too long: {peer_id}")
    peer_id.validate()

    route = WarpRoute(route)
    try:
        stream = node.new_stream(
            peer_id,
            route.protocol_id(),
            allow_limited=allow_limited,
            timeout=timeout,
        )
    except (OSError, WarpError) as exc:
        logger.debug("stream: new: failed to create stream: %s", exc)
        reason = ERR_ALL_DIALS_FAILED if _is_all_dials_failed(exc) else exc
        raise StreamError(f"stream: new: {reason}") from exc

    with _opened(stream):
        write_error: Exception | None = None
        if data is not None:
            logger.debug("stream: sent to %s data with size %d", route, len(data))
            try:
                stream.write(data)
            except (OSError, WarpError) as exc:
                write_error = exc
        try:
            stream.close_write()
        except (OSError, WarpError) as exc:
            logger.error("stream: close write: %s", exc)
        if write_error is not None:
            logger.error("stream: writing: %s", write_error)
            raise StreamError(f"stream: writing: {write_error}") from write_error

        try:
            response = _read_all(stream)
        except (OSError, WarpError) as exc:
            logger.debug("stream: reading response from %s: %s", peer_id, exc)
            raise StreamError(
                f"stream: reading response from {peer_id}: {exc}"
            ) from exc

    if not response:
        addrs = "[" + " ".join(str(a) for a in server_info.addrs) + "]"
        raise StreamError(
            f"stream: protocol {route.protocol_id()}, peer ID {peer_id}, "
            f"addresses {addrs}: empty response"
        )
    return response