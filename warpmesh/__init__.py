"""Peer IDs, multiaddresses, relay limits, route names and request/response streams for a P2P node."""

__version__ = "0.1.0"
__all__ = ["network", "relay", "routes", "stream"]