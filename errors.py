"""
errors.py — Exception taxonomy for overview generation.

Per-file and per-directory failures never show up here: the scanner and the
summarizer turn them into log lines and inline placeholder text. Only failures
that end a whole run are raised.
"""

from __future__ import annotations


class OverviewError(Exception):
    pass


class PreconditionError(OverviewError):
    """The repository path is missing or unreadable. Raised before any work starts."""


class CancellationError(OverviewError):
    """An in-flight LLM request was aborted by the caller."""


class PipelineError(OverviewError):
    """Unhandled failure while scanning, scheduling, merging or writing output."""


class ConfigError(OverviewError):
    pass
