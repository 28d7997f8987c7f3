import io

import pytest

from fakes import RecordingSink
from models import COMPLETED, ERROR, PROCESSING, ProgressUpdate
from progress import CallbackProgressSink, ProgressTracker, TerminalProgressSink, interpolate


def test_interpolate_spans_summary_watermarks():
    assert interpolate(0, 4) == 15
    assert interpolate(1, 4) == 33
    assert interpolate(4, 4) == 85
    assert interpolate(1, 3) == 39
    assert interpolate(0, 0) == 85


def test_tracker_never_goes_backwards():
    sink = RecordingSink()
    tracker = ProgressTracker(sink)

    tracker.processing("scan", 5)
    tracker.processing("modules", 15)
    tracker.processing("stale", 10)
    tracker.summarized(1, 2, "half")

    assert sink.values == [5, 15, 15, 50]


def test_tracker_sends_exactly_one_terminal_event():
    sink = RecordingSink()
    tracker = ProgressTracker(sink)

    tracker.processing("scan", 5)
    tracker.completed("done")

    assert tracker.error("late failure") is False
    with pytest.raises(RuntimeError):
        tracker.completed("again")
    with pytest.raises(RuntimeError):
        tracker.processing("after", 90)
    assert sink.statuses == [PROCESSING, COMPLETED]
    assert sink.values[-1] == 100


def test_error_event_has_zero_progress():
    sink = RecordingSink()
    tracker = ProgressTracker(sink)
    tracker.processing("scan", 5)

    assert tracker.error("Error: boom") is True

    assert sink.updates[-1] == ProgressUpdate(ERROR, "Error: boom", 0)


def test_progress_update_rejects_bad_values():
    with pytest.raises(ValueError):
        ProgressUpdate(PROCESSING, "x", 101)
    with pytest.raises(ValueError):
        ProgressUpdate("paused", "x", 10)


def test_callback_sink_forwards_updates():
    seen = []
    ProgressTracker(CallbackProgressSink(seen.append)).processing("scan", 5)

    assert seen == [ProgressUpdate(PROCESSING, "scan", 5)]


def test_terminal_sink_draws_bar_and_ends_line_on_terminal_event():
    stream = io.StringIO()
    sink = TerminalProgressSink(stream=stream, width=10)

    sink.emit(ProgressUpdate(PROCESSING, "Merging", 50))
    sink.emit(ProgressUpdate(COMPLETED, "Done", 100))

    assert stream.getvalue() == "\r[=====     ] 50% - Merging\r[==========] 100% - Done\n"
