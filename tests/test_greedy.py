import pytest

from overlayroute.carousel import log
from overlayroute.carousel.graph import Graph, Path
from overlayroute.carousel.greedy import greedy_mfpc, total_flow, update_residual_graph


@pytest.fixture(autouse=True)
def _quiet():
    log.set_enabled(False)
    yield
    log.set_enabled(True)


def _graph():
    g = Graph(3, 0, 2)
    g.add_edge(0, 1, 10.0, 1.0)
    g.add_edge(1, 2, 5.0, 1.0)
    g.add_edge(0, 2, 3.0, 1.0)
    return g


def test_greedy_collects_paths():
    g = _graph()
    paths = greedy_mfpc(g, 1.0, 100.0, 5)
    assert [p.nodes for p in paths] == [[0, 1, 2], [0, 2]]
    assert [p.flow for p in paths] == [5.0, 3.0]
    assert total_flow(paths) == sum(p.flow for p in paths)


def test_greedy_leaves_input_untouched():
    g = _graph()
    greedy_mfpc(g, 1.0, 100.0, 5)
    assert all(edge.flow == 0.0 for targets in g.edges.values() for edge in targets.values())
    assert all(u == 0 for targets in g.edge_usage.values() for u in targets.values())


def test_greedy_respects_latency_limit():
    paths = greedy_mfpc(_graph(), 1.0, 1.0, 5)
    assert [p.nodes for p in paths] == [[0, 2]]


def test_greedy_with_no_route():
    g = Graph(3, 0, 2)
    g.add_edge(0, 1, 4.0, 1.0)
    assert greedy_mfpc(g, 1.0, 100.0, 5) == []


def test_total_flow_empty():
    assert total_flow([]) == 0


def test_update_residual_graph():
    g = _graph()
    path = Path([0, 1, 2], 2.0, 2.0)
    update_residual_graph(g, path)
    update_residual_graph(g, path)
    assert g.edges[0][1].flow == 4.0
    assert g.edges[1][2].flow == 4.0
    assert g.edge_usage[0][1] == 2
    assert g.edges[0][2].flow == 0.0


def test_update_residual_graph_ignores_short_paths():
    g = _graph()
    update_residual_graph(g, None)
    update_residual_graph(g, Path([0], 5.0, 0.0))
    assert g.edges[0][1].flow == 0.0
    assert g.edge_usage[0] == {1: 0, 2: 0}