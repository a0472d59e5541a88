"""Shortest paths by Dijkstra and k shortest loopless paths by Yen's algorithm."""

from __future__ import annotations

from overlayroute.network import NO_LINK, Flow, Network, Path


def dijkstra(net: Network, source: int) -> list[list[Path]]:
    """All equal-cost shortest paths from source to every node.

    Entry i of the result lists the shortest paths to node i; it is empty
    when node i cannot be reached.
    """
    return _dijkstra(net.links, source)


def _dijkstra(links: list[list[int]], source: int) -> list[list[Path]]:
    n = len(links)
    results: list[list[Path]] = [[] for _ in range(n)]
    results[source] = [Path([source], 0)]

    latencies = list(links[source])
    visited = [False] * n
    visited[source] = True
    predecessors = [[source] for _ in range(n)]
    predecessors[source] = [-1]

    for _ in range(n - 1):
        candidates = [i for i in range(n) if not visited[i] and latencies[i] >= 0]
        if not candidates:
            break
        min_node = min(candidates, key=latencies.__getitem__)
        visited[min_node] = True
        base = latencies[min_node]
        results[min_node] = _trace_paths(min_node, source, predecessors, base)

        for i, link in enumerate(links[min_node]):
            if visited[i] or link < 0:
                continue
            candidate = base + link
            if latencies[i] < 0 or latencies[i] > candidate:
                latencies[i] = candidate
                predecessors[i] = [min_node]
            elif latencies[i] == candidate:
                predecessors[i].append(min_node)

    return results


def _trace_paths(
    node: int, source: int, predecessors: list[list[int]], latency: int
) -> list[Path]:
    paths: list[Path] = []

    def walk(chain: list[int]) -> None:
        if chain[-1] == source:
            paths.append(Path(list(reversed(chain)), latency))
            return
        for predecessor in predecessors[chain[-1]]:
            chain.append(predecessor)
            walk(chain)
            chain.pop()

    walk([node])
    return paths


def k_shortest(
    net: Network, flow: Flow, k: int, hop_threshold: int, theta: int
) -> list[Path]:
    """Up to k shortest paths for the flow, ordered by cost.

    Candidate paths with more than hop_threshold hops pay theta extra
    latency for every hop beyond the threshold.  The network is not modified.
    """
    accepted: list[Path] = []
    if k == 0:
        return accepted

    links = [list(row) for row in net.links]
    n = len(links)
    shortest = _dijkstra(links, flow.source)[flow.destination]
    if not shortest:
        return accepted
    accepted.append(_min_path(shortest))

    candidates = _PathHeap()
    while len(accepted) < k:
        previous = accepted[-1].nodes
        for i, spur_node in enumerate(previous[:-1]):
            root = previous[: i + 1]
            removed: dict[tuple[int, int], int] = {}

            for path in accepted:
                if len(path.nodes) > i + 1 and path.nodes[: i + 1] == root:
                    _cut(links, removed, path.nodes[i], path.nodes[i + 1])
            for node in root[:-1]:
                for head in range(n):
                    _cut(links, removed, head, node)

            spur_paths = _dijkstra(links, spur_node)[flow.destination]
            for (tail, head), latency in removed.items():
                links[tail][head] = latency

            if not spur_paths:
                continue
            total = root[:-1] + _min_path(spur_paths).nodes
            latency = sum(links[a][b] for a, b in zip(total, total[1:]))
            hops = len(total) - 1
            if hops > hop_threshold:
                latency += (hops - hop_threshold) * theta
            if not candidates.contains(total):
                candidates.push(Path(total, latency))

        if not candidates:
            break
        accepted.append(candidates.pop())

    return accepted


def _cut(
    links: list[list[int]], removed: dict[tuple[int, int], int], tail: int, head: int
) -> None:
    key = (tail, head)
    if key not in removed:
        removed[key] = links[tail][head]
        links[tail][head] = NO_LINK


def _path_less(p1: Path, p2: Path) -> bool:
    if p1.latency != p2.latency:
        return p1.latency < p2.latency
    return len(p1.nodes) < len(p2.nodes)


def _min_path(paths: list[Path]) -> Path:
    best = paths[0]
    for path in paths[1:]:
        if _path_less(path, best):
            best = path
    return best


class _PathHeap:
    """Binary min-heap of paths ordered by latency, then hop count."""

    def __init__(self) -> None:
        self._items: list[Path] = []

    def __len__(self) -> int:
        return len(self._items)

    def contains(self, nodes: list[int]) -> bool:
        return any(item.nodes == nodes for item in self._items)

    def push(self, path: Path) -> None:
        items = self._items
        items.append(path)
        son = len(items) - 1
        while son > 0:
            dad = (son - 1) // 2
            if not _path_less(items[son], items[dad]):
                break
            items[dad], items[son] = items[son], items[dad]
            son = dad

    def pop(self) -> Path:
        items = self._items
        top = items[0]
        items[0] = items[-1]
        items.pop()
        self._shift_down(0, len(items) - 1)
        return top

    def _shift_down(self, start: int, end: int) -> None:
        items = self._items
        dad = start
        son = dad * 2 + 1
        while son <= end:
            if son + 1 <= end and _path_less(items[son + 1], items[son]):
                son += 1
            if not _path_less(items[son], items[dad]):
                break
            items[dad], items[son] = items[son], items[dad]
            dad = son
            son = dad * 2 + 1