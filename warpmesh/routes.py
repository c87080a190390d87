"""Stream routes: protocol identifiers that name the handlers of a node."""

from __future__ import annotations

from typing import Iterable


class WarpRoute(str):
    """A route such as /private/get/tweet, usable directly as a protocol ID."""

    __slots__ = ()

    def protocol_id(self) -> str:
        return str(self)

    def is_private(self) -> bool:
        return "private" in self

    def is_get(self) -> bool:
        return "get" in self


def is_valid_route(route: str) -> bool:
    """Tell whether a route is absolute, names a method and a visibility."""
    if not route.startswith("/"):
        return False
    if not any(method in route for method in ("get", "delete", "post")):
        return False
    return any(scope in route for scope in ("private", "public"))


def routes_to_protocol_ids(routes: Iterable[WarpRoute]) -> list[str]:
    return [WarpRoute(route).protocol_id() for route in routes]


def route_from_protocol_id(protocol_id: str) -> WarpRoute:
    return WarpRoute(protocol_id)


def routes_from_protocol_ids(protocol_ids: Iterable[str]) -> list[WarpRoute]:
    return [WarpRoute(protocol_id) for protocol_id in protocol_ids]