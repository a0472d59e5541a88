from overlayroute.carousel import log
from overlayroute.carousel.graph import Graph, Path
from overlayroute.carousel.greedy import greedy_mfpc, total_flow
from overlayroute.carousel.search import (
    PathFrequency,
    carousel_greedy,
    path_key,
    reset_path_flow,
)

log.set_enabled(False)


def _parallel_graph():
    g = Graph(4, 0, 3)
    g.add_edge(0, 1, 10.0, 1.0)
    g.add_edge(0, 2, 5.0, 1.0)
    g.add_edge(1, 3, 10.0, 1.0)
    g.add_edge(2, 3, 5.0, 1.0)
    return g


def _single_edge_graph():
    g = Graph(2, 0, 1)
    g.add_edge(0, 1, 10.0, 1.0)
    return g


def test_path_key_joins_nodes():
    assert path_key(Path([0, 1, 2])) == "0->1->2"


def test_path_key_empty_and_single():
    assert path_key(None) == ""
    assert path_key(Path([])) == ""
    assert path_key(Path([5])) == "5"


def test_path_frequency_holds_path():
    pf = PathFrequency(Path([0, 1], 2.0, 1.0), 3, 4)
    assert (pf.path.nodes, pf.frequency, pf.age) == ([0, 1], 3, 4)


def test_reset_path_flow_clears_flow_and_unbans():
    g = _single_edge_graph()
    g.edges[0][1].flow = 4.0
    g.edge_usage[0][1] = 2
    banned = {(0, 1)}
    unbanned = reset_path_flow(g, Path([0, 1], 4.0, 1.0), banned)
    assert g.edges[0][1].flow == 0.0
    assert g.edge_usage[0][1] == 1
    assert banned == set()
    assert unbanned == [(0, 1)]


def test_reset_path_flow_partial_keeps_ban():
    g = _single_edge_graph()
    g.edges[0][1].flow = 10.0
    g.edge_usage[0][1] = 1
    banned = {(0, 1)}
    unbanned = reset_path_flow(g, Path([0, 1], 4.0, 1.0), banned)
    assert g.edges[0][1].flow == 6.0
    assert banned == {(0, 1)}
    assert unbanned == []


def test_reset_path_flow_usage_never_negative():
    g = _single_edge_graph()
    reset_path_flow(g, Path([0, 1], 3.0, 1.0), set())
    assert g.edge_usage[0][1] == 0
    assert g.edges[0][1].flow == 0.0


def test_reset_path_flow_ignores_short_path():
    g = _single_edge_graph()
    g.edges[0][1].flow = 7.0
    assert reset_path_flow(g, Path([0], 7.0, 0.0), set()) == []
    assert g.edges[0][1].flow == 7.0


def test_carousel_no_path_returns_empty():
    g = Graph(3, 0, 2)
    g.add_edge(0, 1, 5.0, 1.0)
    assert carousel_greedy(g, 0.8, 20.0, 2, 2, 2) == []


def test_carousel_single_edge_keeps_greedy_solution():
    g = _single_edge_graph()
    result = carousel_greedy(g, 0.8, 20.0, 2, 2, 2)
    assert [p.nodes for p in result] == [[0, 1]]
    assert total_flow(result) == g.edges[0][1].capacity


def test_carousel_at_least_as_good_as_greedy():
    g = _parallel_graph()
    greedy = greedy_mfpc(g.copy(), 0.8, 20.0, 2)
    result = carousel_greedy(g, 0.8, 20.0, 2, 2, 2)
    assert total_flow(result) >= total_flow(greedy)
    assert sorted(path_key(p) for p in result) == sorted(path_key(p) for p in greedy)


def test_carousel_with_beta_trimming():
    g = _parallel_graph()
    greedy = greedy_mfpc(g.copy(), 0.8, 20.0, 2)
    result = carousel_greedy(g, 0.8, 20.0, 2, 2, 1)
    assert total_flow(result) == total_flow(greedy)
    assert len(result) == len(greedy)


def test_carousel_does_not_modify_graph():
    g = _parallel_graph()
    carousel_greedy(g, 0.8, 20.0, 2, 2, 1)
    assert all(e.flow == 0.0 for targets in g.edges.values() for e in targets.values())
    assert all(
        count == 0 for usages in g.edge_usage.values() for count in usages.values()
    )


def test_carousel_paths_reach_sink():
    g = _parallel_graph()
    for path in carousel_greedy(g, 0.8, 20.0, 2, 3, 0):
        assert path.nodes[0] == g.source
        assert path.nodes[-1] == g.sink
        assert path.flow > 0