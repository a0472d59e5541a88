"""Network model shared by the routing algorithms."""

from __future__ import annotations

from dataclasses import dataclass, field

NO_LINK = -1


@dataclass
class Network:
    """Nodes numbered from 0; links[u][v] is the latency, or -1 for no link."""

    links: list[list[int]] = field(default_factory=list)

    def __post_init__(self) -> None:
        size = len(self.links)
        for row in self.links:
            if len(row) != size:
                raise ValueError("link matrix must be square")

    def size(self) -> int:
        """Number of nodes in the network."""
        return len(self.links)


@dataclass(frozen=True)
class Flow:
    source: int
    destination: int


@dataclass
class Path:
    """Sequence of node indices and its total latency."""

    nodes: list[int] = field(default_factory=list)
    latency: int = 0


@dataclass
class PathWithIP:
    """Path expressed as addresses, with its latency and scheduling weight."""

    ip_list: list[str] = field(default_factory=list)
    latency: int = 0
    weight: int = 0