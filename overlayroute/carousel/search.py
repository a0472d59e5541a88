"""Carousel greedy search for a set of feasible flow paths."""

from __future__ import annotations

from dataclasses import dataclass

from overlayroute.carousel import log
from overlayroute.carousel.graph import Graph, Path
from overlayroute.carousel.greedy import greedy_mfpc, total_flow, update_residual_graph
from overlayroute.carousel.pathfinder import PathFinder

Arc = tuple[int, int]


@dataclass
class PathFrequency:
    """How often a path has been chosen, and when it was first seen."""

    path: Path
    frequency: int = 1
    age: int = 0


def path_key(path: Path | None) -> str:
    """Identify a path by its nodes, e.g. "0->1->3"; empty for no nodes."""
    if path is None or not path.nodes:
        return ""
    return "->".join(str(node) for node in path.nodes)


def reset_path_flow(
    graph: Graph, path: Path | None, banned_arcs: set[Arc]
) -> list[Arc]:
    """Withdraw the path's flow and one use from each of its edges.

    Arcs whose flow drops to zero are removed from banned_arcs; those arcs
    are returned.
    """
    if path is None or len(path.nodes) < 2:
        return []

    unbanned: list[Arc] = []
    for u, v in zip(path.nodes, path.nodes[1:]):
        edge = graph.edges.get(u, {}).get(v)
        if edge is not None:
            edge.flow -= path.flow
            if edge.flow <= 0:
                edge.flow = 0.0
                if (u, v) in banned_arcs:
                    banned_arcs.discard((u, v))
                    unbanned.append((u, v))
        usages = graph.edge_usage.get(u)
        if usages is not None and usages.get(v, 0) > 0:
            usages[v] -= 1
    return unbanned


def _most_frequent(frequencies: dict[str, PathFrequency]) -> Path | None:
    if not frequencies:
        return None
    best = min(frequencies.values(), key=lambda pf: (-pf.frequency, pf.age))
    return best.path


def _record(frequencies: dict[str, PathFrequency], path: Path) -> None:
    key = path_key(path)
    entry = frequencies.get(key)
    if entry is not None:
        entry.frequency += 1
    else:
        frequencies[key] = PathFrequency(path.copy(), 1, len(frequencies))


def carousel_greedy(
    graph: Graph,
    theta_a: float,
    theta_l: float,
    max_edge_usage: int,
    alpha: int,
    beta: int,
) -> list[Path]:
    """Improve a greedy path set by repeatedly replacing its oldest path.

    The greedy solution is trimmed by its last beta paths, then for
    alpha times its size iterations the oldest path is dropped, its first
    arc and the arcs of the most frequent path are banned, and new paths
    are added while any can be found.  The best total flow seen wins.
    The graph is not modified.
    """
    log.section_start("Carousel Greedy")
    log.info(
        f"Carousel Greedy start, thetaA: {theta_a:.2f}, thetaL: {theta_l:.2f}, "
        f"max edge usage: {max_edge_usage}, alpha: {alpha}, beta: {beta}"
    )

    initial = greedy_mfpc(graph.copy(), theta_a, theta_l, max_edge_usage)
    if not initial:
        log.info("no initial solution, nothing to improve")
        return initial
    log.info(f"initial solution has {len(initial)} paths")

    frequencies: dict[str, PathFrequency] = {}
    for age, path in enumerate(initial):
        frequencies[path_key(path)] = PathFrequency(path.copy(), 1, age)

    current = [path.copy() for path in initial]
    best = list(current)
    best_objective = total_flow(best)
    log.info(f"initial total flow: {best_objective:.2f}")

    working = graph.copy()
    for path in current:
        update_residual_graph(working, path)

    banned_arcs: set[Arc] = set()

    if beta > 0 and len(current) > beta:
        log.info(f"removing the last {beta} paths")
        removed = current[-beta:]
        current = current[:-beta]
        for path in removed:
            reset_path_flow(working, path, banned_arcs)

    iterations = alpha * len(initial)
    if iterations <= 0:
        iterations = 1

    for _ in range(iterations):
        if not current:
            break

        oldest = current.pop(0)
        reset_path_flow(working, oldest, banned_arcs)
        frequent = _most_frequent(frequencies)

        to_disable: list[tuple[int, int, str]] = []
        if len(oldest.nodes) >= 2:
            arc = (oldest.nodes[0], oldest.nodes[1])
            to_disable.append((*arc, "first arc of removed path"))
            banned_arcs.add(arc)

        if frequent is not None and len(frequent.nodes) >= 2:
            for arc in zip(frequent.nodes, frequent.nodes[1:]):
                if any((a, b) == arc for a, b, _ in to_disable):
                    continue
                to_disable.append((*arc, "arc of most frequent path"))
                banned_arcs.add(arc)

        while True:
            finder = PathFinder(working.residual(), theta_a, theta_l, max_edge_usage)
            if to_disable:
                finder.ban_arcs(to_disable)
            new_path = finder.find_path()
            if new_path is None:
                break
            current.append(new_path)
            _record(frequencies, new_path)
            update_residual_graph(working, new_path)

        objective = total_flow(current)
        if objective > best_objective:
            best = list(current)
            best_objective = objective

    log.info(
        f"Carousel Greedy finished with {len(best)} paths, "
        f"total flow: {total_flow(best):.2f}"
    )
    log.section_end("Carousel Greedy")
    return best