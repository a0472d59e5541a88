"""Directed capacity/latency graph used by the flow-path algorithms."""

from __future__ import annotations

import math
from dataclasses import dataclass, field


@dataclass
class Edge:
    capacity: float = 0.0
    latency: float = 0.0
    flow: float = 0.0


@dataclass
class Path:
    """Node sequence with its bottleneck flow and total latency."""

    nodes: list[int] = field(default_factory=list)
    flow: float = 0.0
    latency: float = 0.0

    def copy(self) -> Path:
        return Path(list(self.nodes), self.flow, self.latency)


class Graph:
    """Directed graph with per-edge capacity, latency, flow and usage count."""

    def __init__(self, nodes: int, source: int, sink: int) -> None:
        self.nodes = nodes
        self.source = source
        self.sink = sink
        self.edges: dict[int, dict[int, Edge]] = {i: {} for i in range(nodes)}
        self.edge_usage: dict[int, dict[int, int]] = {i: {} for i in range(nodes)}

    def add_edge(self, u: int, v: int, capacity: float, latency: float) -> None:
        """Add or replace the edge u -> v with no flow and no usage."""
        if u not in self.edges:
            raise ValueError(f"node {u} is not in the graph")
        self.edges[u][v] = Edge(capacity, latency, 0.0)
        self.edge_usage[u][v] = 0

    def copy(self) -> Graph:
        clone = Graph(self.nodes, self.source, self.sink)
        for u, targets in self.edges.items():
            clone.edges.setdefault(u, {})
            for v, edge in targets.items():
                clone.edges[u][v] = Edge(edge.capacity, edge.latency, edge.flow)
        for u, usages in self.edge_usage.items():
            clone.edge_usage.setdefault(u, {}).update(usages)
        return clone

    def residual(self) -> Graph:
        """Residual graph: forward edges with spare capacity, backward edges
        carrying cancellable flow at negative latency."""
        result = Graph(self.nodes, self.source, self.sink)
        for u, usages in self.edge_usage.items():
            result.edge_usage.setdefault(u, {}).update(usages)

        for u, targets in self.edges.items():
            for v, edge in targets.items():
                if edge.capacity > edge.flow:
                    result.add_edge(u, v, edge.capacity - edge.flow, edge.latency)
                    result.edge_usage[u][v] = self.edge_usage.get(u, {}).get(v, 0)
                if edge.flow > 0:
                    result.add_edge(v, u, edge.flow, -edge.latency)
                    result.edge_usage[v][u] = 0
        return result

    def update_edge_usage(self, path: Path) -> None:
        """Count one more use of every edge along the path."""
        for u, v in zip(path.nodes, path.nodes[1:]):
            usages = self.edge_usage.setdefault(u, {})
            usages[v] = usages.get(v, 0) + 1

    def path_latency(self, nodes: list[int]) -> float:
        """Sum of the latencies of the existing edges along nodes."""
        return sum(
            self.edges[u][v].latency
            for u, v in zip(nodes, nodes[1:])
            if v in self.edges.get(u, {})
        )

    def max_flow(self, nodes: list[int]) -> float:
        """Smallest spare capacity along nodes; 0 for fewer than two nodes."""
        if len(nodes) < 2:
            return 0.0
        best = math.inf
        for u, v in zip(nodes, nodes[1:]):
            edge = self.edges.get(u, {}).get(v)
            if edge is not None:
                best = min(best, edge.capacity - edge.flow)
        return best