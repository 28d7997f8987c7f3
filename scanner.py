"""
scanner.py — Gitignore-aware repository scanning.

Builds two views of a directory:
  - a FileTree (indented name lines) used as prompt text
  - a SourceMap (repo-relative path -> file content) restricted to an
    extension allow-list, with oversized files replaced by a placeholder

Ignore rules follow .gitignore semantics (via pathspec) and are always
evaluated relative to the repository root, so a scan of `services/api`
prunes exactly what a whole-repo scan would prune there.
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

import pathspec

from config import DEFAULT_ALLOWED_EXTENSIONS, MAX_FILE_SIZE


# Always ignored, whether or not the repo has a .gitignore
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    ".git/", ".hg/", ".svn/",
    "node_modules/", "bower_components/",
    "__pycache__/", ".venv/", "venv/", ".tox/",
    ".mypy_cache/", ".pytest_cache/", ".ruff_cache/",
    "dist/", "build/", "target/", "out/", "coverage/",
    ".next/", ".nuxt/", ".turbo/", ".cache/",
    ".idea/", ".vscode/",
    ".DS_Store", "Thumbs.db",
    "package-lock.json", "yarn.lock", "pnpm-lock.yaml",
    "Cargo.lock", "poetry.lock", "go.sum",
    "*.min.js", "*.map",
)


def too_large_placeholder(size: int) -> str:
    return f"File too large to include ({size} bytes)"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TreeEntry:
    path: str
    name: str
    depth: int
    is_dir: bool

    def render(self) -> str:
        return "  " * self.depth + self.name + ("/" if self.is_dir else "")


@dataclass
class FileTree:
    entries: list[TreeEntry] = field(default_factory=list)

    def render(self) -> str:
        return "\n".join(e.render() for e in self.entries)

    def __str__(self) -> str:
        return self.render()

    def __len__(self) -> int:
        return len(self.entries)


SourceMap = dict[str, str]


@dataclass
class CollectedFiles:
    file_tree: FileTree
    source_map: SourceMap


# ---------------------------------------------------------------------------
# Ignore rules
# ---------------------------------------------------------------------------

def read_gitignore(path: Path) -> list[str]:
    # Raw lines: pathspec handles comments, blanks and escaped trailing spaces
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []
    return text.splitlines()


def build_ignore_spec(repo_root: Path, extra_patterns: Iterable[str] = ()) -> pathspec.PathSpec:
    patterns = list(DEFAULT_IGNORE_PATTERNS)
    patterns.extend(read_gitignore(repo_root / ".gitignore"))
    patterns.extend(extra_patterns)
    return pathspec.GitIgnoreSpec.from_lines(patterns)


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------

class RepoScanner:
    def __init__(
        self,
        repo_root: Path,
        *,
        allowed_extensions: Optional[Iterable[str]] = DEFAULT_ALLOWED_EXTENSIONS,
        max_file_size: int = MAX_FILE_SIZE,
        extra_ignores: Optional[Iterable[str]] = None,
        verbose: bool = False,
    ):
        self.repo_root = Path(repo_root).resolve()
        self.allowed_extensions = {ext.lower() for ext in (allowed_extensions or ())}
        self.max_file_size = max_file_size
        self.verbose = verbose
        self.ignore_spec = build_ignore_spec(self.repo_root, extra_ignores or ())

    def _log(self, msg: str):
        if self.verbose:
            print(msg, flush=True)

    def _rel(self, path: Path) -> str:
        return path.relative_to(self.repo_root).as_posix()

    def is_ignored(self, path: Path, is_dir: bool) -> bool:
        rel = self._rel(path)
        if rel == ".":
            return False
        return self.ignore_spec.match_file(rel + "/" if is_dir else rel)

    def is_allowed(self, path: Path) -> bool:
        if not self.allowed_extensions:
            return True
        return path.suffix.lower() in self.allowed_extensions

    def _walk(self, directory: Path, base: Path, entries: list[TreeEntry], files: list[Path]):
        try:
            children = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            self._log(f"  [scan] cannot list {directory}: {e}")
            return

        for child in children:
            path = Path(child.path)
            try:
                is_dir = child.is_dir(follow_symlinks=False)
                is_file = child.is_file(follow_symlinks=False)
            except OSError as e:
                self._log(f"  [scan] cannot stat {path}: {e}")
                continue

            if not (is_dir or is_file):
                continue
            # Pruned here so ignored subtrees are never walked
            if self.is_ignored(path, is_dir):
                continue

            rel = path.relative_to(base)
            if is_dir:
                entries.append(TreeEntry(rel.as_posix(), child.name, len(rel.parts) - 1, True))
                self._walk(path, base, entries, files)
            elif self.is_allowed(path):
                entries.append(TreeEntry(rel.as_posix(), child.name, len(rel.parts) - 1, False))
                files.append(path)

    def _read_source(self, path: Path) -> Optional[str]:
        try:
            size = path.stat().st_size
            if size > self.max_file_size:
                return too_large_placeholder(size)
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            self._log(f"  [scan] error reading file {path}: {e}")
            return None

    def _scan(self, directory: Optional[Path]) -> tuple[list[TreeEntry], list[Path]]:
        base = self.repo_root if directory is None else Path(directory).resolve()
        entries: list[TreeEntry] = []
        files: list[Path] = []
        if base == self.repo_root or not self.is_ignored(base, True):
            self._walk(base, base, entries, files)
        return entries, files

    def file_tree(self, directory: Optional[Path] = None) -> FileTree:
        """Tree of `directory` (default: the repo root) without reading any file."""
        entries, _ = self._scan(directory)
        return FileTree(entries)

    def collect(self, directory: Optional[Path] = None) -> CollectedFiles:
        """Scan `directory` (default: the repo root).

        Tree paths are relative to `directory`; SourceMap keys are relative
        to the repo root so results from several sub-scans line up.
        """
        entries, files = self._scan(directory)

        source_map: SourceMap = {}
        for f in files:
            content = self._read_source(f)
            if content is not None:
                source_map[self._rel(f)] = content

        return CollectedFiles(file_tree=FileTree(entries), source_map=source_map)

    def major_directories(self) -> list[Path]:
        """Top-level directories of the repo that survive the ignore rules."""
        try:
            children = sorted(os.scandir(self.repo_root), key=lambda e: e.name)
        except OSError as e:
            self._log(f"  [scan] error listing major directories: {e}")
            return []

        dirs: list[Path] = []
        for child in children:
            try:
                if not child.is_dir(follow_symlinks=False):
                    continue
            except OSError:
                continue
            path = Path(child.path)
            if not self.is_ignored(path, True):
                dirs.append(path)
        return dirs
