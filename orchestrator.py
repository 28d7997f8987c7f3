"""
orchestrator.py — Run loop for codebase overview generation.

Execution order:
  1. Check the repository path (the only fatal precondition)
  2. Scan the whole repository into a file tree
  3. Ask the LLM which directories are modules/services (fallback: top-level dirs)
  4. Summarize every directory in parallel, at most `max_concurrency` at a time
  5. Merge all directory summaries into one document
  6. Write the document, read the commit hash, report completion

Progress is reported through a ProgressSink at fixed watermarks:
scan 5% -> modules 15% -> one event per finished directory (15-85%)
-> merge 85% -> completed 100% (or a single error event).
"""

from __future__ import annotations
import asyncio
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

from agents import Summarizer, directory_error_summary
from config import DEFAULT_ALLOWED_EXTENSIONS, DEFAULT_MAX_CONCURRENCY, MAX_FILE_SIZE, OUTPUT_FILENAME, OverviewSettings
from errors import CancellationError, PipelineError, PreconditionError
from llm import AnthropicLLM, LLMClient, run_abortable
from models import CodebaseOverview, DirectorySummaryTask
from progress import MERGE_START, MODULES_IDENTIFIED, SCAN_START, ProgressSink, ProgressTracker
from scanner import RepoScanner
from vcs import GitVcs, Vcs


class OverviewOrchestrator:
    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        *,
        summarizer: Optional[Summarizer] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
        max_file_size: int = MAX_FILE_SIZE,
        extra_ignores: Optional[Iterable[str]] = None,
        scanner_factory: Optional[Callable[[Path], RepoScanner]] = None,
        vcs: Optional[Vcs] = None,
        progress_sink: Optional[ProgressSink] = None,
        progress_heartbeat_secs: float = 20.0,
        verbose: bool = False,
    ):
        if llm is None and summarizer is None:
            raise ValueError("OverviewOrchestrator needs an LLM client or a Summarizer")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")

        self.llm = llm
        self.summarizer = summarizer or Summarizer(llm, verbose=verbose)
        self.max_concurrency = max_concurrency
        self.allowed_extensions = tuple(allowed_extensions)
        self.max_file_size = max_file_size
        self.extra_ignores = list(extra_ignores or ())
        self.scanner_factory = scanner_factory or self._default_scanner
        self.vcs = vcs or GitVcs(verbose=verbose)
        self.progress_sink = progress_sink
        self.progress_heartbeat_secs = progress_heartbeat_secs
        self.verbose = verbose

    @classmethod
    def from_settings(
        cls,
        settings: OverviewSettings,
        *,
        llm: Optional[LLMClient] = None,
        progress_sink: Optional[ProgressSink] = None,
        vcs: Optional[Vcs] = None,
    ) -> "OverviewOrchestrator":
        settings.validate()
        if llm is None:
            llm = AnthropicLLM(
                api_key=settings.api_key,
                model=settings.model,
                max_tokens=settings.max_tokens,
                rate_limit_retries=settings.rate_limit_retries,
                verbose=settings.verbose,
            )
        return cls(
            llm,
            max_concurrency=settings.max_concurrency,
            allowed_extensions=settings.allowed_extensions,
            max_file_size=settings.max_file_size,
            vcs=vcs,
            progress_sink=progress_sink,
            progress_heartbeat_secs=settings.progress_heartbeat_secs,
            verbose=settings.verbose,
        )

    def _log(self, msg: str):
        if self.verbose:
            print(msg, flush=True)

    def _default_scanner(self, root: Path) -> RepoScanner:
        return RepoScanner(
            root,
            allowed_extensions=self.allowed_extensions,
            max_file_size=self.max_file_size,
            extra_ignores=self.extra_ignores,
            verbose=self.verbose,
        )

    @staticmethod
    def _display_name(root: Path, directory: Path) -> str:
        try:
            rel = directory.relative_to(root).as_posix()
        except ValueError:
            return str(directory)
        return rel if rel != "." else f"{root.name} (repository root)"

    # -----------------------------------------------------------------------
    # Preconditions and output
    # -----------------------------------------------------------------------

    @staticmethod
    def _check_repository(root: Path):
        if not root.exists():
            raise PreconditionError(f"Repository path does not exist: {root}")
        if not root.is_dir():
            raise PreconditionError(f"Repository path is not a directory: {root}")
        if not os.access(root, os.R_OK | os.X_OK):
            raise PreconditionError(f"Repository path is not accessible: {root}")

    def _write_output(self, document: str, output_dir: Path) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / OUTPUT_FILENAME
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(document)
        self._log(f"  Saved codebase overview to {path}")
        return path

    def _commit_hash(self, root: Path) -> Optional[str]:
        try:
            return self.vcs.current_commit_hash(root)
        except Exception as e:
            self._log(f"  Could not read commit hash: {e}")
            return None

    # -----------------------------------------------------------------------
    # Summarizing (bounded fan-out)
    # -----------------------------------------------------------------------

    async def _summarize_one(
        self,
        scanner: RepoScanner,
        directory: Path,
        *,
        repo_tree: str,
        system_description: str,
        abort: Optional[asyncio.Event],
    ) -> str:
        try:
            collected = await run_abortable(
                asyncio.to_thread(scanner.collect, directory),
                abort,
                what=f"Scan of {directory}",
            )
        except CancellationError:
            raise
        except Exception as e:
            self._log(f"  [scan] failed for {directory}: {e}")
            return directory_error_summary(directory, e)

        return await self.summarizer.summarize_directory(
            directory=directory,
            dir_file_tree=collected.file_tree.render(),
            file_contents=collected.source_map,
            repo_file_tree=repo_tree,
            system_description=system_description,
            abort=abort,
        )

    async def _heartbeat(self, status: Callable[[], str]):
        while True:
            await asyncio.sleep(self.progress_heartbeat_secs)
            self._log(f"  Summarizing heartbeat: {status()}")

    async def _summarize_directories(
        self,
        scanner: RepoScanner,
        directories: list[Path],
        *,
        root: Path,
        repo_tree: str,
        system_description: str,
        tracker: ProgressTracker,
        abort: Optional[asyncio.Event],
    ) -> dict[str, str]:
        tasks = [DirectorySummaryTask(directory=d) for d in directories]
        total = len(tasks)
        self._log(f"\n[Phase 3] Summarizing {total} directories (max {self.max_concurrency} in flight)...")

        semaphore = asyncio.Semaphore(self.max_concurrency)
        lock = asyncio.Lock()
        summaries: dict[str, str] = {}
        completed = 0
        in_flight = 0

        async def run_task(task: DirectorySummaryTask):
            nonlocal completed, in_flight
            async with semaphore:
                in_flight += 1
                try:
                    summary = await self._summarize_one(
                        scanner,
                        task.directory,
                        repo_tree=repo_tree,
                        system_description=system_description,
                        abort=abort,
                    )
                finally:
                    in_flight -= 1

            async with lock:
                task.resolve(summary)
                summaries[str(task.directory)] = summary
                completed += 1
                name = self._display_name(root, task.directory)
                tracker.summarized(completed, total, f"Summarized {name} ({completed}/{total})")
                self._log(f"  Phase 3 progress: {completed}/{total} ({name})")

        heartbeat = None
        if self.verbose and self.progress_heartbeat_secs > 0:
            heartbeat = asyncio.ensure_future(
                self._heartbeat(lambda: f"{completed}/{total} complete, {in_flight} in flight")
            )

        runners = [asyncio.ensure_future(run_task(t)) for t in tasks]
        try:
            await asyncio.gather(*runners)
        except BaseException:
            for r in runners:
                r.cancel()
            await asyncio.gather(*runners, return_exceptions=True)
            raise
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
                await asyncio.gather(heartbeat, return_exceptions=True)

        unresolved = [str(t.directory) for t in tasks if not t.resolved]
        if unresolved:
            raise RuntimeError(f"Directory summaries never resolved: {', '.join(unresolved)}")
        return summaries

    # -----------------------------------------------------------------------
    # Main entry point
    # -----------------------------------------------------------------------

    async def _generate(
        self,
        root: Path,
        tracker: ProgressTracker,
        *,
        system_description: str,
        output_dir: Optional[Path],
        abort: Optional[asyncio.Event],
    ) -> CodebaseOverview:
        self._log(f"\n[Phase 1] Scanning repository {root}...")
        tracker.processing("Scanning repository structure...", SCAN_START)
        scanner = self.scanner_factory(root)
        tree = await run_abortable(asyncio.to_thread(scanner.file_tree), abort, what="Repository scan")
        repo_tree = tree.render()
        self._log(f"  {len(tree)} tree entries")

        self._log("\n[Phase 2] Identifying modules...")
        directories = await self.summarizer.identify_modules(root, repo_tree, abort=abort)
        if directories:
            self._log(f"  Identified module directories: {', '.join(self._display_name(root, d) for d in directories)}")
        else:
            directories = await asyncio.to_thread(scanner.major_directories)
            self._log("  No module directories identified; falling back to top-level directories")
        if not directories:
            # Flat repo: the root is the only module
            directories = [root]
        tracker.processing(f"Identified {len(directories)} directories to analyze", MODULES_IDENTIFIED)

        summaries = await self._summarize_directories(
            scanner,
            directories,
            root=root,
            repo_tree=repo_tree,
            system_description=system_description,
            tracker=tracker,
            abort=abort,
        )

        self._log("\n[Phase 4] Merging summaries...")
        tracker.processing("Merging directory summaries...", MERGE_START)
        merge_input = {
            self._display_name(root, Path(directory)): summary
            for directory, summary in summaries.items()
        }
        document = await self.summarizer.merge_summaries(
            summaries=merge_input,
            repo_file_tree=repo_tree,
            system_description=system_description,
            abort=abort,
        )

        if output_dir is not None:
            self._write_output(document, Path(output_dir))

        overview = CodebaseOverview(
            content=document,
            repo_path=str(root),
            created_at=datetime.now(timezone.utc),
            commit_hash=self._commit_hash(root),
        )
        tracker.completed("Codebase overview generated successfully!")

        tracker_report = getattr(getattr(self.llm, "tracker", None), "report", None)
        if tracker_report is not None:
            self._log(f"\n[Done] {tracker_report()}")
        return overview

    async def run(
        self,
        repo_path: Path,
        *,
        system_description: str = "",
        output_dir: Optional[Path] = None,
        abort: Optional[asyncio.Event] = None,
    ) -> CodebaseOverview:
        tracker = ProgressTracker(self.progress_sink)
        root = Path(repo_path).expanduser().resolve()

        try:
            self._check_repository(root)
        except PreconditionError as e:
            tracker.error(f"Error: {e}")
            raise

        try:
            return await self._generate(
                root,
                tracker,
                system_description=system_description,
                output_dir=output_dir,
                abort=abort,
            )
        except (CancellationError, asyncio.CancelledError):
            self._log("\n[Cancelled] Overview generation cancelled")
            tracker.error("Overview generation cancelled")
            raise
        except Exception as e:
            self._log(f"\n[Error] {e}")
            tracker.error(f"Error: {e}")
            raise PipelineError(f"Failed to generate codebase overview for {root}: {e}") from e
