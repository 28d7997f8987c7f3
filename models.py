"""
models.py — Data model shared by the scanner, agents and orchestrator.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union


# ---------------------------------------------------------------------------
# Module identification
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModuleSelection:
    reason: str
    module_path: str


@dataclass(frozen=True)
class Selections:
    selections: list[ModuleSelection]


@dataclass(frozen=True)
class NoSelections:
    pass


@dataclass(frozen=True)
class Malformed:
    raw_payload: Any
    reason: str


ModuleIdentificationResult = Union[Selections, NoSelections, Malformed]


# ---------------------------------------------------------------------------
# Summaries and progress
# ---------------------------------------------------------------------------

@dataclass
class DirectorySummaryTask:
    directory: Path
    summary: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.summary is not None

    def resolve(self, summary: str) -> None:
        if self.summary is not None:
            raise RuntimeError(f"Summary task for {self.directory} already resolved")
        self.summary = summary


PROCESSING = "processing"
COMPLETED = "completed"
ERROR = "error"

_STATUSES = (PROCESSING, COMPLETED, ERROR)


@dataclass(frozen=True)
class ProgressUpdate:
    status: str
    message: str
    progress: int

    def __post_init__(self):
        if self.status not in _STATUSES:
            raise ValueError(f"Unknown progress status: {self.status}")
        if not 0 <= self.progress <= 100:
            raise ValueError(f"Progress out of range: {self.progress}")

    @property
    def is_terminal(self) -> bool:
        return self.status in (COMPLETED, ERROR)


# ---------------------------------------------------------------------------
# Final result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CodebaseOverview:
    content: str
    repo_path: str
    created_at: datetime
    commit_hash: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {
            "content": self.content,
            "repoPath": self.repo_path,
            "createdAt": self.created_at.isoformat().replace("+00:00", "Z"),
        }
        if self.commit_hash:
            payload["commitHash"] = self.commit_hash
        return payload
