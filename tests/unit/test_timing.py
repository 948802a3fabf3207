from automator.utils.timing import Stopwatch


def test_stopwatch_reading_is_frozen_on_exit():
    with Stopwatch() as sw:
        pass
    first = sw.elapsed_ms()
    assert sw.stop_ms is not None
    assert sw.elapsed_ms() == first
    assert sw.human() == f"{first} ms"


def test_stopwatch_human_switches_to_seconds():
    sw = Stopwatch(start_ms=0, stop_ms=2500)
    assert sw.human() == "2.500 s"
    assert Stopwatch(start_ms=10, stop_ms=15).human() == "5 ms"


def test_unstarted_stopwatch_reads_zero():
    assert Stopwatch().elapsed_ms() == 0
