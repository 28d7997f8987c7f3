"""
progress.py — Progress reporting for an overview run.

A run reports through a ProgressSink. ProgressTracker sits in front of the
sink and enforces the reporting rules:
  - processing/completed values never go backwards
  - exactly one terminal event (completed or error) per run
  - the summarizing phase is interpolated between fixed watermarks
"""

from __future__ import annotations
import math
import sys
from typing import Callable, Optional, Protocol, TextIO

from models import COMPLETED, ERROR, PROCESSING, ProgressUpdate


# Phase watermarks (percent)
SCAN_START = 5
MODULES_IDENTIFIED = 15
MERGE_START = 85
COMPLETE = 100


def interpolate(completed: int, total: int, low: int = MODULES_IDENTIFIED, high: int = MERGE_START) -> int:
    if total <= 0:
        return high
    span = high - low
    return min(high, low + math.ceil(span * completed / total))


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------

class ProgressSink(Protocol):
    def emit(self, update: ProgressUpdate) -> None: ...


class NullProgressSink:
    def emit(self, update: ProgressUpdate) -> None:
        pass


class CallbackProgressSink:
    def __init__(self, callback: Callable[[ProgressUpdate], None]):
        self.callback = callback

    def emit(self, update: ProgressUpdate) -> None:
        self.callback(update)


class TerminalProgressSink:
    """Single-line progress bar, redrawn in place."""

    def __init__(self, stream: Optional[TextIO] = None, width: int = 30):
        self.stream = stream or sys.stdout
        self.width = width

    def render(self, update: ProgressUpdate) -> str:
        filled = (update.progress * self.width) // 100
        bar = "[" + "=" * filled + " " * (self.width - filled) + "]"
        return f"{bar} {update.progress}% - {update.message}"

    def emit(self, update: ProgressUpdate) -> None:
        self.stream.write("\r" + self.render(update))
        if update.is_terminal:
            self.stream.write("\n")
        self.stream.flush()


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------

class ProgressTracker:
    def __init__(self, sink: Optional[ProgressSink] = None):
        self.sink = sink or NullProgressSink()
        self.progress = 0
        self.finished = False

    def _emit(self, update: ProgressUpdate):
        self.sink.emit(update)

    def processing(self, message: str, progress: int):
        if self.finished:
            raise RuntimeError("Progress reported after the run finished")
        self.progress = max(self.progress, min(progress, COMPLETE))
        self._emit(ProgressUpdate(PROCESSING, message, self.progress))

    def summarized(self, completed: int, total: int, message: str):
        self.processing(message, interpolate(completed, total))

    def completed(self, message: str):
        if self.finished:
            raise RuntimeError("Run already reported a terminal event")
        self.finished = True
        self.progress = COMPLETE
        self._emit(ProgressUpdate(COMPLETED, message, COMPLETE))

    def error(self, message: str) -> bool:
        """Report the terminal error. Returns False if a terminal event was already sent."""
        if self.finished:
            return False
        self.finished = True
        self._emit(ProgressUpdate(ERROR, message, 0))
        return True
