import threading
import time

from uciadapter import AdapterConfig, GoParams, SearchControl, StopReason


def test_stop_flags_set_and_clear() -> None:
    control = SearchControl()
    assert not control.should_stop()
    control.request_stop(StopReason.TIMEOUT)
    assert control.timeout_occurred()
    assert not control.stop_requested()
    control.request_stop()
    assert control.reasons == StopReason.FULL_STOP | StopReason.TIMEOUT
    control.clear(StopReason.TIMEOUT)
    assert control.reasons == StopReason.FULL_STOP
    control.clear()
    assert control.reasons == StopReason.NONE


def test_begin_search_only_clears_timeout() -> None:
    control = SearchControl()
    control.request_stop(StopReason.FULL_STOP | StopReason.TIMEOUT)
    control.begin_search(stop_time=12.5)
    assert control.stop_requested()
    assert not control.timeout_occurred()
    assert control.is_searching()
    assert control.stop_time == 12.5


def test_elapsed_time_freezes_when_search_ends() -> None:
    control = SearchControl()
    control.begin_search(start_time=time.monotonic() - 0.2)
    control.end_search()
    frozen = control.elapsed_ms()
    assert frozen >= 200
    time.sleep(0.02)
    assert control.elapsed_ms() == frozen
    assert not control.is_searching()


def test_wait_for_change_wakes_on_stop() -> None:
    control = SearchControl()
    generation = control.generation
    threading.Timer(0.05, control.request_stop).start()
    assert control.wait_for_change(generation, 5.0)
    assert control.stop_requested()


def test_worker_slot_is_exclusive() -> None:
    control = SearchControl()
    first, second = object(), object()
    assert control.claim_worker(first)
    assert not control.claim_worker(second)
    control.release_worker(second)
    assert control.worker is first
    control.release_worker(first)
    assert control.claim_worker(second)


def test_stop_time_uses_movetime_and_clock(make_stub_engine) -> None:
    engine = make_stub_engine(AdapterConfig(default_moves_to_go=10, use_timer=False))
    assert engine.compute_stop_time(GoParams(movetime=500), 100.0) == 100.5
    assert engine.compute_stop_time(GoParams(wtime=30000), 100.0) == 103.0
    assert engine.compute_stop_time(GoParams(wtime=30000, movestogo=60), 100.0) == 100.5
    # the earlier of the two deadlines wins
    assert engine.compute_stop_time(GoParams(wtime=30000, movetime=1000), 100.0) == 101.0
    assert engine.compute_stop_time(GoParams(btime=5000), 100.0) == 0.0
    assert engine.compute_stop_time(GoParams(infinite=True, movetime=500), 100.0) == 0.0


def test_go_marks_search_window(stub_engine) -> None:
    assert stub_engine.go(GoParams(depth=2)) == ("e2e4", None)
    assert not stub_engine.is_searching()
    assert stub_engine.calls_named("go") == [("go", GoParams(depth=2))]
    assert not stub_engine.watchdog.is_running()


def test_perft_clears_timeout_but_not_full_stop(stub_engine) -> None:
    stub_engine.stop_searching(StopReason.TIMEOUT)
    assert stub_engine.perft(3) == 8000
    assert not stub_engine.should_stop()
    assert not stub_engine.is_searching()


def test_debug_log_goes_to_info_string(stub_engine, capsys) -> None:
    stub_engine.log_debug("hidden")
    stub_engine.set_debug(True)
    stub_engine.log_debug("shown")
    assert capsys.readouterr().out == "info string shown\n"
