"""Command line runner comparing greedy and carousel greedy path search."""

from __future__ import annotations

import argparse
import json
import os
import time
from dataclasses import dataclass
from typing import Any

from overlayroute.carousel import log
from overlayroute.carousel.graph import Graph, Path
from overlayroute.carousel.greedy import greedy_mfpc, total_flow
from overlayroute.carousel.search import carousel_greedy

SUMMARY_HEADER = (
    "GraphFile,NodeCount,EdgeCount,ThetaA,ThetaL,MaxEdgeUsage,Alpha,Beta,"
    "GreedyTime(ms),GreedyPathCount,GreedyTotalFlow,"
    "CarouselTime(ms),CarouselPathCount,CarouselTotalFlow,Improvement(%)\n"
)


@dataclass
class RunSummary:
    """Parameters and results of one run; times are in seconds."""

    graph_file: str = ""
    node_count: int = 0
    edge_count: int = 0
    theta_a: float = 0.0
    theta_l: float = 0.0
    max_edge_usage: int = 0
    alpha: int = 0
    beta: int = 0
    greedy_time: float = 0.0
    greedy_path_count: int = 0
    greedy_total_flow: float = 0.0
    carousel_time: float = 0.0
    carousel_path_count: int = 0
    carousel_total_flow: float = 0.0
    improvement: float = 0.0


def _whole_ms(seconds: float) -> float:
    return float(int(seconds * 1000))


def load_graph(path: str | os.PathLike) -> Graph:
    """Read a graph from JSON with nodes, source, sink and a list of edges."""
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    graph = Graph(int(data.get("nodes", 0)), int(data.get("source", 0)), int(data.get("sink", 0)))
    for edge in data.get("edges") or []:
        graph.add_edge(
            int(edge.get("from", 0)),
            int(edge.get("to", 0)),
            float(edge.get("capacity", 0.0)),
            float(edge.get("latency", 0.0)),
        )
    return graph


def sample_graph() -> Graph:
    """Built-in eight-node example with source 0 and sink 7."""
    graph = Graph(8, 0, 7)
    for u, v, capacity, latency in (
        (0, 1, 10.0, 1.0),
        (0, 2, 8.0, 2.0),
        (0, 3, 5.0, 1.0),
        (1, 4, 6.0, 2.0),
        (1, 5, 4.0, 1.0),
        (2, 4, 5.0, 1.0),
        (2, 5, 7.0, 3.0),
        (3, 5, 9.0, 2.0),
        (3, 6, 4.0, 1.0),
        (4, 7, 8.0, 3.0),
        (5, 7, 10.0, 2.0),
        (6, 7, 6.0, 1.0),
        (1, 2, 3.0, 1.0),
        (2, 3, 2.0, 1.0),
        (4, 5, 2.0, 1.0),
        (5, 6, 3.0, 1.0),
    ):
        graph.add_edge(u, v, capacity, latency)
    return graph


def count_edges(graph: Graph) -> int:
    return sum(len(targets) for targets in graph.edges.values())


def _graph_stem(graph_path: str) -> str:
    base = os.path.basename(str(graph_path).rstrip("/")) or "."
    dot = base.rfind(".")
    return base[:dot] if dot >= 0 else base


def save_carousel_paths(
    graph: Graph,
    graph_path: str,
    solution: list[Path],
    params: dict[str, Any],
    performance: dict[str, Any],
    output_dir: str | os.PathLike,
) -> str:
    """Store the solution in <output_dir>/<graph name>_paths.json.

    Results for different parameters accumulate in the same file.
    Returns the path of the file written.
    """
    output_path = os.path.join(output_dir, _graph_stem(graph_path) + "_paths.json")
    os.makedirs(output_dir, exist_ok=True)

    if os.path.exists(output_path):
        with open(output_path, encoding="utf-8") as handle:
            stored = json.load(handle)
        results = dict(stored.get("results") or {})
        graph_info = stored.get("graph_info", "")
    else:
        results = {}
        graph_info = f"nodes={graph.nodes}, source={graph.source}, sink={graph.sink}"

    key = (
        f"thetaA{params['thetaA']:.2f}_thetaL{params['thetaL']:.2f}"
        f"_maxEdge{params['maxEdgeUsage']}_alpha{params['alpha']}_beta{params['beta']}"
    )

    paths_data = []
    for path in solution:
        latencies = [
            graph.edges[u][v].latency
            for u, v in zip(path.nodes, path.nodes[1:])
            if v in graph.edges.get(u, {})
        ]
        paths_data.append(
            {"nodes": list(path.nodes), "flow": path.flow, "latency": latencies}
        )

    results[key] = {
        "parameters": dict(sorted(params.items())),
        "performance": dict(sorted(performance.items())),
        "paths": paths_data,
    }
    document = {"graph_info": graph_info, "results": dict(sorted(results.items()))}

    with open(output_path, "w", encoding="utf-8") as handle:
        json.dump(document, handle, indent=2)
    print(f"Carousel paths saved to: {output_path}")
    return output_path


def write_summary(summary: RunSummary, filename: str | os.PathLike) -> None:
    """Append one CSV row, writing the header first when the file is new."""
    exists = os.path.exists(filename)
    row = (
        f"{summary.graph_file},{summary.node_count},{summary.edge_count},"
        f"{summary.theta_a:.2f},{summary.theta_l:.2f},{summary.max_edge_usage},"
        f"{summary.alpha},{summary.beta},"
        f"{_whole_ms(summary.greedy_time):.2f},{summary.greedy_path_count},"
        f"{summary.greedy_total_flow:.2f},"
        f"{_whole_ms(summary.carousel_time):.2f},{summary.carousel_path_count},"
        f"{summary.carousel_total_flow:.2f},{summary.improvement:.2f}\n"
    )
    with open(filename, "a", encoding="utf-8") as handle:
        if not exists:
            handle.write(SUMMARY_HEADER)
        handle.write(row)
    print(f"Summary written to: {filename}")


def _run(name: str, search, *args) -> tuple[list[Path], float]:
    start = time.perf_counter()
    solution = search(*args)
    elapsed = time.perf_counter() - start
    print(f"\n{name} finished in {elapsed * 1000:.3f}ms")
    print(f"paths: {len(solution)}")
    print(f"total flow: {total_flow(solution):.2f}")
    return solution, elapsed


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compare greedy and carousel greedy flow path search."
    )
    parser.add_argument("--graph", default="", help="graph file (JSON)")
    parser.add_argument("--thetaA", type=float, default=0.8, help="capacity usage limit (0-1)")
    parser.add_argument("--thetaL", type=float, default=20.0, help="latency limit")
    parser.add_argument("--maxEdgeUsage", type=int, default=2, help="maximum uses of an edge")
    parser.add_argument("--alpha", type=int, default=2, help="iterations = alpha * |solution|")
    parser.add_argument("--beta", type=int, default=2, help="paths removed from the initial solution")
    parser.add_argument("--log", action="store_true", help="show progress messages")
    parser.add_argument("--greedy", action="store_true", help="run only the greedy search")
    parser.add_argument("--carousel", action="store_true", help="run only the carousel search")
    parser.add_argument("--summary", action="store_true", help="append a CSV summary row")
    parser.add_argument("--summary-file", default="results_summary.csv")
    parser.add_argument(
        "--save-paths", action=argparse.BooleanOptionalAction, default=True
    )
    parser.add_argument("--paths-dir", default="paths_results")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    log.set_enabled(args.log)

    if args.graph:
        try:
            graph = load_graph(args.graph)
        except (OSError, ValueError) as exc:
            print(f"failed to load graph: {exc}")
            return 1
        print(f"loaded graph: {args.graph}")
        print(f"nodes={graph.nodes}, edges={count_edges(graph)}")
    else:
        graph = sample_graph()
        print("using the built-in sample graph")

    print(
        f"parameters: thetaA={args.thetaA:.2f}, thetaL={args.thetaL:.2f}, "
        f"maxEdgeUsage={args.maxEdgeUsage}, alpha={args.alpha}, beta={args.beta}"
    )

    summary = RunSummary(
        graph_file=args.graph,
        node_count=graph.nodes,
        edge_count=count_edges(graph),
        theta_a=args.thetaA,
        theta_l=args.thetaL,
        max_edge_usage=args.maxEdgeUsage,
        alpha=args.alpha,
        beta=args.beta,
    )

    if not args.carousel:
        solution, elapsed = _run(
            "MFPC", greedy_mfpc, graph.copy(), args.thetaA, args.thetaL, args.maxEdgeUsage
        )
        summary.greedy_time = elapsed
        summary.greedy_path_count = len(solution)
        summary.greedy_total_flow = total_flow(solution)

    print("\n" + "=" * 50 + "\n")

    if not args.greedy:
        solution, elapsed = _run(
            "Carousel Greedy",
            carousel_greedy,
            graph.copy(),
            args.thetaA,
            args.thetaL,
            args.maxEdgeUsage,
            args.alpha,
            args.beta,
        )
        summary.carousel_time = elapsed
        summary.carousel_path_count = len(solution)
        summary.carousel_total_flow = total_flow(solution)

        if args.save_paths and solution:
            params = {
                "thetaA": args.thetaA,
                "thetaL": args.thetaL,
                "maxEdgeUsage": args.maxEdgeUsage,
                "alpha": args.alpha,
                "beta": args.beta,
            }
            performance = {
                "executionTime": _whole_ms(elapsed),
                "totalFlow": summary.carousel_total_flow,
                "pathCount": len(solution),
            }
            try:
                save_carousel_paths(
                    graph, args.graph, solution, params, performance, args.paths_dir
                )
            except (OSError, ValueError) as exc:
                print(f"failed to save paths: {exc}")

    if summary.greedy_total_flow > 0 and summary.carousel_total_flow > 0:
        summary.improvement = (
            (summary.carousel_total_flow - summary.greedy_total_flow)
            / summary.greedy_total_flow
            * 100
        )

    print("results:")
    if not args.carousel:
        print(
            f"MFPC: paths={summary.greedy_path_count}, "
            f"total flow={summary.greedy_total_flow:.2f}, "
            f"time={summary.greedy_time * 1000:.3f}ms"
        )
    if not args.greedy:
        print(
            f"Carousel Greedy: paths={summary.carousel_path_count}, "
            f"total flow={summary.carousel_total_flow:.2f}, "
            f"time={summary.carousel_time * 1000:.3f}ms"
        )
    if not args.greedy and not args.carousel:
        print(f"improvement: {summary.improvement:.2f}%")

    if args.summary:
        try:
            write_summary(summary, args.summary_file)
        except OSError as exc:
            print(f"failed to write summary: {exc}")

    return 0