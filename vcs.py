"""
vcs.py — Version-control metadata for generated overviews.

Only one question is asked of the VCS: what commit is checked out? Any
failure (git missing, not a repository, timeout) yields None; the commit hash
is auxiliary metadata and never fails a run.
"""

from __future__ import annotations
import re
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Protocol


_COMMIT_RE = re.compile(r"^[0-9a-f]{40}([0-9a-f]{24})?$")


class Vcs(Protocol):
    def current_commit_hash(self, repo_path: Path) -> Optional[str]: ...


class GitVcs:
    def __init__(self, *, timeout: float = 10.0, verbose: bool = False):
        self.timeout = timeout
        self.verbose = verbose

    def _log(self, msg: str):
        if self.verbose:
            print(msg, flush=True)

    def current_commit_hash(self, repo_path: Path) -> Optional[str]:
        if not shutil.which("git"):
            self._log("  [vcs] git is not installed or not on PATH")
            return None

        try:
            result = subprocess.run(
                ["git", "rev-parse", "HEAD"],
                cwd=str(repo_path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            self._log(f"  [vcs] git rev-parse failed: {e}")
            return None

        if result.returncode != 0:
            self._log(f"  [vcs] git rev-parse failed:\n{result.stderr.strip()}")
            return None

        commit = result.stdout.strip()
        if not _COMMIT_RE.match(commit):
            self._log(f"  [vcs] unexpected rev-parse output: {commit!r}")
            return None
        return commit
