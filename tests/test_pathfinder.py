from overlayroute.carousel.graph import Graph
from overlayroute.carousel.pathfinder import PathFinder


def _diamond():
    g = Graph(4, 0, 3)
    g.add_edge(0, 1, 10.0, 1.0)
    g.add_edge(0, 2, 5.0, 1.0)
    g.add_edge(1, 3, 4.0, 1.0)
    g.add_edge(2, 3, 8.0, 1.0)
    return g


def test_prefers_larger_spare_capacity():
    g = _diamond()
    path = PathFinder(g, 1.0, 100.0, 5).find_path()
    assert path.nodes == [0, 1, 3]
    assert path.flow == 4.0
    assert path.latency == g.path_latency([0, 1, 3])


def test_banned_arc_is_avoided():
    finder = PathFinder(_diamond(), 1.0, 100.0, 5)
    finder.ban_arc(0, 1)
    assert finder.is_arc_banned(0, 1)
    assert finder.find_path().nodes == [0, 2, 3]
    finder.unban_arc(0, 1)
    assert not finder.is_arc_banned(0, 1)
    assert finder.find_path().nodes == [0, 1, 3]


def test_ban_arcs_accepts_reasons():
    finder = PathFinder(_diamond(), 1.0, 100.0, 5)
    finder.ban_arcs([(0, 1, "oldest"), (2, 3, "frequent")])
    assert finder.find_path() is None
    finder.unban_arcs([(2, 3)])
    assert finder.find_path().nodes == [0, 2, 3]


def test_latency_limit():
    assert PathFinder(_diamond(), 1.0, 1.0, 5).find_path() is None


def test_flow_threshold_blocks_edge():
    g = _diamond()
    g.edges[0][1].flow = 6.0
    path = PathFinder(g, 0.5, 100.0, 5).find_path()
    assert path.nodes == [0, 2, 3]


def test_usage_limit_blocks_edge():
    g = _diamond()
    g.edge_usage[0][1] = 2
    assert PathFinder(g, 1.0, 100.0, 2).find_path().nodes == [0, 2, 3]


def test_backtracks_from_dead_end():
    g = Graph(4, 0, 3)
    g.add_edge(0, 1, 10.0, 1.0)
    g.add_edge(0, 2, 3.0, 1.0)
    g.add_edge(2, 3, 3.0, 1.0)
    path = PathFinder(g, 1.0, 100.0, 5).find_path()
    assert path.nodes == [0, 2, 3]
    assert path.flow == 3.0


def test_source_equal_to_sink_gives_none():
    g = Graph(2, 0, 0)
    g.add_edge(0, 1, 1.0, 1.0)
    assert PathFinder(g, 1.0, 10.0, 1).find_path() is None