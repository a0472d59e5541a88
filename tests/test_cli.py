import json

import pytest

from overlayroute.carousel import log
from overlayroute.carousel.cli import (
    RunSummary,
    count_edges,
    load_graph,
    main,
    sample_graph,
    save_carousel_paths,
    write_summary,
)
from overlayroute.carousel.greedy import greedy_mfpc, total_flow

log.set_enabled(False)

PARALLEL = {
    "nodes": 4,
    "source": 0,
    "sink": 3,
    "edges": [
        {"from": 0, "to": 1, "capacity": 10.0, "latency": 1.0},
        {"from": 0, "to": 2, "capacity": 5.0, "latency": 1.0},
        {"from": 1, "to": 3, "capacity": 10.0, "latency": 1.0},
        {"from": 2, "to": 3, "capacity": 5.0, "latency": 1.0},
    ],
}


def _write_graph(tmp_path):
    path = tmp_path / "parallel.json"
    path.write_text(json.dumps(PARALLEL), encoding="utf-8")
    return path


def _params():
    return {"thetaA": 0.8, "thetaL": 20.0, "maxEdgeUsage": 2, "alpha": 2, "beta": 2}


def test_sample_graph_shape():
    g = sample_graph()
    assert (g.nodes, g.source, g.sink) == (8, 0, 7)
    assert count_edges(g) == 16
    assert g.edges[0][1].capacity == 10.0


def test_load_graph_reads_edges(tmp_path):
    g = load_graph(_write_graph(tmp_path))
    assert (g.nodes, g.source, g.sink) == (4, 0, 3)
    assert count_edges(g) == len(PARALLEL["edges"])
    for edge in PARALLEL["edges"]:
        stored = g.edges[edge["from"]][edge["to"]]
        assert (stored.capacity, stored.latency, stored.flow) == (
            edge["capacity"],
            edge["latency"],
            0.0,
        )


def test_load_graph_invalid_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_graph(path)


def test_save_carousel_paths_writes_latencies(tmp_path, capsys):
    g = sample_graph()
    solution = greedy_mfpc(g.copy(), 0.8, 20.0, 2)
    out = save_carousel_paths(
        g, "graphs/sample.json", solution, _params(), {"pathCount": len(solution)}, tmp_path / "out"
    )
    assert out.endswith("sample_paths.json")
    document = json.loads(open(out, encoding="utf-8").read())
    key = "thetaA0.80_thetaL20.00_maxEdge2_alpha2_beta2"
    paths = document["results"][key]["paths"]
    assert len(paths) == len(solution)
    for stored, path in zip(paths, solution):
        assert stored["nodes"] == path.nodes
        assert stored["flow"] == path.flow
        expected = [g.edges[u][v].latency for u, v in zip(path.nodes, path.nodes[1:])]
        assert stored["latency"] == expected
    assert str(g.nodes) in document["graph_info"]


def test_save_carousel_paths_accumulates(tmp_path, capsys):
    g = sample_graph()
    solution = greedy_mfpc(g.copy(), 0.8, 20.0, 2)
    first = _params()
    second = dict(first, alpha=3)
    out_dir = tmp_path / "out"
    save_carousel_paths(g, "x.json", solution, first, {}, out_dir)
    out = save_carousel_paths(g, "x.json", solution, second, {}, out_dir)
    document = json.loads(open(out, encoding="utf-8").read())
    assert len(document["results"]) == 2
    assert document["results"]["thetaA0.80_thetaL20.00_maxEdge2_alpha3_beta2"][
        "parameters"
    ]["alpha"] == 3


def test_write_summary_header_once(tmp_path, capsys):
    target = tmp_path / "summary.csv"
    summary = RunSummary(graph_file="g.json", node_count=8, greedy_total_flow=1.5)
    write_summary(summary, target)
    write_summary(summary, target)
    lines = target.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert lines[0].startswith("GraphFile,NodeCount,EdgeCount")
    assert lines[1] == lines[2]
    fields = lines[1].split(",")
    assert len(fields) == len(lines[0].split(","))
    assert fields[0] == "g.json"
    assert fields[10] == "1.50"


def test_main_greedy_only_on_sample(tmp_path, capsys):
    target = tmp_path / "summary.csv"
    code = main(["--greedy", "--summary", "--summary-file", str(target)])
    assert code == 0
    row = target.read_text(encoding="utf-8").splitlines()[1].split(",")
    g = sample_graph()
    assert row[1] == str(g.nodes)
    assert row[2] == str(count_edges(g))
    assert row[9] == str(len(greedy_mfpc(g.copy(), 0.8, 20.0, 2)))
    assert row[12] == "0"


def test_main_carousel_saves_paths(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    graph_file = _write_graph(tmp_path)
    out_dir = tmp_path / "paths"
    code = main(["--carousel", "--graph", str(graph_file), "--paths-dir", str(out_dir)])
    assert code == 0
    document = json.loads((out_dir / "parallel_paths.json").read_text(encoding="utf-8"))
    result = document["results"]["thetaA0.80_thetaL20.00_maxEdge2_alpha2_beta2"]
    greedy = greedy_mfpc(load_graph(graph_file), 0.8, 20.0, 2)
    assert result["performance"]["totalFlow"] >= total_flow(greedy)
    assert result["performance"]["pathCount"] == len(result["paths"])


def test_main_no_save_paths(tmp_path, capsys):
    graph_file = _write_graph(tmp_path)
    out_dir = tmp_path / "paths"
    code = main(
        ["--graph", str(graph_file), "--paths-dir", str(out_dir), "--no-save-paths"]
    )
    assert code == 0
    assert not out_dir.exists()


def test_main_missing_graph_fails(tmp_path, capsys):
    assert main(["--graph", str(tmp_path / "missing.json")]) == 1