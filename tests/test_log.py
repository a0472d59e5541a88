import pytest

from overlayroute.carousel import log
from overlayroute.carousel.graph import Graph


@pytest.fixture(autouse=True)
def _restore_enabled():
    log.set_enabled(True)
    yield
    log.set_enabled(True)


def _graph():
    g = Graph(3, 0, 2)
    g.add_edge(0, 1, 10.0, 1.0)
    g.add_edge(1, 2, 5.0, 1.0)
    g.edges[0][1].flow = 2.0
    return g


def test_path_to_string():
    assert log.path_to_string([0, 1, 2]) == "0->1->2"
    assert log.path_to_string([3]) == ""


def test_format_path():
    assert log.format_path([0, 1, 2], _graph()) == "0-2.0/10.0->1-0.0/5.0->2"
    assert log.format_path([0], _graph()) == ""


def test_format_residual_path():
    assert log.format_residual_path([0, 1], _graph()) == "0-8.0->1"
    assert log.format_residual_path([], _graph()) == ""


def test_info_prints_when_enabled(capsys):
    log.info("hello there")
    out = capsys.readouterr().out
    assert out.startswith("Msg")
    assert "hello there" in out


def test_disabled_is_silent(capsys):
    log.set_enabled(False)
    log.info("hidden")
    log.section_start("MFPC")
    log.section_end("MFPC")
    assert capsys.readouterr().out == ""


def test_sections_name_themselves(capsys):
    log.section_start("MFPC")
    log.section_end("MFPC")
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert all("MFPC" in line for line in lines)