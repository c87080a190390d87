"""Resource limits for a circuit relay that forwards traffic between peers behind NAT."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

DEFAULT_RELAY_DATA_LIMIT = 32 << 20  # 32 MiB
DEFAULT_RELAY_DURATION_LIMIT = timedelta(minutes=5)


@dataclass(frozen=True)
class RelayLimit:
    """Per-circuit limits on duration and relayed bytes."""

    duration: timedelta = DEFAULT_RELAY_DURATION_LIMIT
    data: int = DEFAULT_RELAY_DATA_LIMIT


@dataclass(frozen=True)
class Resources:
    """Limits on reservations and circuits a relay will serve."""

    limit: RelayLimit | None = field(default_factory=RelayLimit)
    reservation_ttl: timedelta = timedelta(hours=1)
    max_reservations: int = 128
    max_circuits: int = 16
    buffer_size: int = 4096
    max_reservations_per_ip: int = 8
    max_reservations_per_asn: int = 32


def default_resources() -> Resources:
    """Return the relay resources a warpnet node runs with."""
    return Resources()