import io
import sys

import pytest

from uciadapter import GoParams, Output, SearchStats, StopReason
from uciadapter.models import average, percent, rate
from uciadapter.output import ensure_line_buffered_stdout


def test_go_params_pick_side_clock() -> None:
    params = GoParams(wtime=1000, btime=2000, winc=10, binc=20)
    assert params.time_left(True) == 1000
    assert params.time_left(False) == 2000
    assert params.increment(False) == 20
    assert GoParams(wtime=-50).time_left(True) == 0


def test_stop_reasons_combine() -> None:
    reasons = StopReason.FULL_STOP | StopReason.TIMEOUT
    assert reasons & StopReason.TIMEOUT
    assert reasons & ~StopReason.FULL_STOP == StopReason.TIMEOUT


def test_rates_handle_zero_denominators() -> None:
    assert rate(500, 0) == 0.0
    assert rate(500, 250) == 2000.0
    assert percent(1, 4) == 25.0
    assert percent(3, 0) == 0.0
    assert average(10, 0) == 0.0


def test_search_stats_info_line() -> None:
    stats = SearchStats(depth=4, seldepth=9, nodes=20000, msecs=500)
    assert stats.nps == 40000
    assert stats.info_line() == "info depth 4 seldepth 9 nodes 20000 time 500 nps 40000"

    stats.movenum = 3
    stats.move = "g1f3"
    assert stats.info_line().endswith(" currmovenumber 3 currmove g1f3")


def test_output_prefixes_info_lines() -> None:
    stream = io.StringIO()
    output = Output(stream)
    before = output.last_output
    output.send("readyok")
    output.info("first\nsecond")
    assert stream.getvalue().splitlines() == ["readyok", "info string first", "info string second"]
    assert output.last_output >= before


def test_output_follows_current_stdout(capsys: pytest.CaptureFixture[str]) -> None:
    Output().send("uciok")
    assert capsys.readouterr().out == "uciok\n"


def test_line_buffering_leaves_plain_streams_alone(monkeypatch: pytest.MonkeyPatch) -> None:
    stream = io.StringIO()
    monkeypatch.setattr("sys.stdout", stream)
    ensure_line_buffered_stdout()
    assert sys.stdout is stream
