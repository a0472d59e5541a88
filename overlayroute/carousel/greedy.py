"""Greedy maximum-flow path collection and residual bookkeeping."""

from __future__ import annotations

from collections.abc import Iterable

from overlayroute.carousel import log
from overlayroute.carousel.graph import Edge, Graph, Path
from overlayroute.carousel.pathfinder import PathFinder


def update_residual_graph(graph: Graph, path: Path | None) -> None:
    """Add the path's flow to every edge on it and count their use."""
    if path is None or len(path.nodes) < 2:
        return
    for u, v in zip(path.nodes, path.nodes[1:]):
        targets = graph.edges.setdefault(u, {})
        edge = targets.setdefault(v, Edge())
        edge.flow += path.flow
    graph.update_edge_usage(path)


def total_flow(paths: Iterable[Path]) -> float:
    return sum((path.flow for path in paths), 0.0)


def greedy_mfpc(
    graph: Graph, theta_a: float, theta_l: float, max_edge_usage: int
) -> list[Path]:
    """Repeatedly take a feasible path until none remains; graph is not changed."""
    log.section_start("MFPC")
    log.info(
        f"MFPC start, thetaA: {theta_a:.2f}, thetaL: {theta_l:.2f}, "
        f"max edge usage: {max_edge_usage}"
    )

    paths: list[Path] = []
    working = graph.copy()
    while True:
        path = PathFinder(working, theta_a, theta_l, max_edge_usage).find_path()
        if path is None:
            log.info("no more feasible paths")
            break
        paths.append(path)
        update_residual_graph(working, path)

    log.info(f"MFPC found {len(paths)} paths, total flow: {total_flow(paths):.2f}")
    log.section_end("MFPC")
    return paths