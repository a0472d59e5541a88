"""Console progress messages for the flow-path algorithms."""

from __future__ import annotations

from dataclasses import dataclass

from overlayroute.carousel.graph import Edge, Graph

INFO = 0
DEBUG = 1


@dataclass
class _Settings:
    enabled: bool = True
    level: int = INFO


_settings = _Settings()


def set_enabled(enabled: bool) -> None:
    _settings.enabled = bool(enabled)


def info(message: str) -> None:
    if _settings.enabled:
        print(f"Msg: {message}")


def section_start(name: str) -> None:
    if _settings.enabled:
        print(f"Start: {name}")


def section_end(name: str) -> None:
    if _settings.enabled:
        print(f"End: {name}")


def _edge(graph: Graph, u: int, v: int) -> Edge:
    return graph.edges.get(u, {}).get(v) or Edge()


def format_path(nodes: list[int], graph: Graph) -> str:
    """Path with flow/capacity on every edge, e.g. 0-2.0/10.0->1."""
    if len(nodes) < 2:
        return ""
    parts = [str(nodes[0])]
    for prev, curr in zip(nodes, nodes[1:]):
        edge = _edge(graph, prev, curr)
        parts.append(f"-{edge.flow:.1f}/{edge.capacity:.1f}->{curr}")
    return "".join(parts)


def format_residual_path(nodes: list[int], graph: Graph) -> str:
    """Path with remaining capacity on every edge, e.g. 0-8.0->1."""
    if len(nodes) < 2:
        return ""
    parts = [str(nodes[0])]
    for prev, curr in zip(nodes, nodes[1:]):
        edge = _edge(graph, prev, curr)
        parts.append(f"-{edge.capacity - edge.flow:.1f}->{curr}")
    return "".join(parts)


def path_to_string(nodes: list[int]) -> str:
    if len(nodes) < 2:
        return ""
    return "->".join(str(node) for node in nodes)