"""Depth-first search for one feasible flow path under capacity and latency limits."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from overlayroute.carousel.graph import Graph, Path


class PathFinder:
    """Finds a source-to-sink path, preferring edges with more spare capacity.

    An edge is usable when it is not banned, has been used fewer than
    max_edge_usage times, carries less than theta_a of its capacity, and
    keeps the accumulated latency within theta_l.
    """

    def __init__(
        self, graph: Graph, theta_a: float, theta_l: float, max_edge_usage: int
    ) -> None:
        self.graph = graph
        self.theta_a = theta_a
        self.theta_l = theta_l
        self.max_edge_usage = max_edge_usage
        self.banned: set[tuple[int, int]] = set()

    def ban_arc(self, source: int, target: int) -> None:
        self.banned.add((source, target))

    def ban_arcs(self, arcs: Iterable[tuple]) -> None:
        """Ban arcs given as (source, target) or (source, target, reason)."""
        for source, target, *_ in arcs:
            self.banned.add((source, target))

    def unban_arc(self, source: int, target: int) -> None:
        self.banned.discard((source, target))

    def unban_arcs(self, arcs: Iterable[tuple]) -> None:
        for source, target, *_ in arcs:
            self.banned.discard((source, target))

    def is_arc_banned(self, source: int, target: int) -> bool:
        return (source, target) in self.banned

    def find_path(self) -> Path | None:
        """A feasible path with its bottleneck flow, or None."""
        nodes = self._search()
        if nodes is None or len(nodes) < 2:
            return None
        return Path(
            nodes=list(nodes),
            flow=self.graph.max_flow(nodes),
            latency=self.graph.path_latency(nodes),
        )

    def _neighbors(self, node: int) -> Iterator[int]:
        spare = [
            (target, edge.capacity - edge.flow)
            for target, edge in self.graph.edges.get(node, {}).items()
            if edge.capacity - edge.flow > 0
        ]
        spare.sort(key=lambda item: item[1], reverse=True)
        return iter([target for target, _ in spare])

    def _usable(self, node: int, target: int, latency: float) -> bool:
        graph = self.graph
        edge = graph.edges[node][target]
        if graph.edge_usage.get(node, {}).get(target, 0) >= self.max_edge_usage:
            return False
        if self.is_arc_banned(node, target):
            return False
        if edge.flow >= edge.capacity * self.theta_a:
            return False
        return latency + edge.latency <= self.theta_l

    def _search(self) -> list[int] | None:
        graph = self.graph
        path = [graph.source]
        if graph.source == graph.sink:
            return path
        visited = {graph.source}
        latencies = [0.0]
        frames = [self._neighbors(graph.source)]

        while frames:
            node = path[-1]
            for target in frames[-1]:
                if target in visited or not self._usable(node, target, latencies[-1]):
                    continue
                visited.add(target)
                path.append(target)
                latencies.append(latencies[-1] + graph.edges[node][target].latency)
                if target == graph.sink:
                    return path
                frames.append(self._neighbors(target))
                break
            else:
                frames.pop()
                visited.discard(path.pop())
                latencies.pop()
        return None