"""
agents.py — LLM agents for each stage of overview generation.

Stages:
- Module identification: one structured (tool) call over the whole-repo tree.
  Any failure degrades to an empty list so the caller can fall back to the
  top-level directories.
- Directory summary (map): one free-text call per directory. Failures become
  an inline error string so one bad directory never aborts the run.
- Merge (reduce): one free-text call over every directory summary. Failures
  become an inline error document.

Cancellation is never degraded: CancellationError and asyncio.CancelledError
always propagate.
"""

from __future__ import annotations
import asyncio
import json
from pathlib import Path
from typing import Any, Mapping, Optional

from errors import CancellationError
from llm import LLMClient, ToolCall, ToolSpec
from merge_example import MERGE_SUMMARIES_EXAMPLE
from models import Malformed, ModuleIdentificationResult, ModuleSelection, NoSelections, Selections
from prompts import (
    MODULE_IDENTIFICATION_SYSTEM_PROMPT,
    SELECTED_MODULES_SCHEMA,
    SELECTED_MODULES_TOOL,
    SUMMARIZATION_SYSTEM_PROMPT,
    DEFAULT_WORD_BUDGET,
    directory_summary_prompt,
    merge_summaries_prompt,
    module_identification_prompt,
)


SELECTED_MODULES_TOOL_SPEC = ToolSpec(
    name=SELECTED_MODULES_TOOL,
    description="Select the main service modules from the codebase",
    input_schema=SELECTED_MODULES_SCHEMA,
)


def directory_error_summary(directory: Any, error: BaseException) -> str:
    return f"Error generating summary for {directory}: {error}"


def merge_error_document(error: BaseException) -> str:
    return f"Error generating final document: {error}"


# ---------------------------------------------------------------------------
# Structured output parsing
# ---------------------------------------------------------------------------

def parse_module_selection(tool_call: Optional[ToolCall]) -> ModuleIdentificationResult:
    if tool_call is None:
        return NoSelections()
    if tool_call.name != SELECTED_MODULES_TOOL:
        return Malformed(tool_call, f"unexpected tool name: {tool_call.name!r}")

    args = tool_call.arguments
    if not isinstance(args, dict):
        return Malformed(args, "tool arguments are not an object")
    raw_selections = args.get("selections")
    if not isinstance(raw_selections, list):
        return Malformed(args, "`selections` is missing or not a list")
    if not raw_selections:
        return NoSelections()

    selections = [
        ModuleSelection(reason=item["reason"], module_path=item["modulePath"])
        for item in raw_selections
        if isinstance(item, dict)
        and isinstance(item.get("reason"), str)
        and isinstance(item.get("modulePath"), str)
        and item["modulePath"].strip()
    ]
    if not selections:
        return Malformed(args, "no selection has a string `reason` and `modulePath`")
    return Selections(selections)


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------

class Summarizer:
    def __init__(
        self,
        llm: LLMClient,
        *,
        word_budget: int = DEFAULT_WORD_BUDGET,
        merge_example: Optional[str] = MERGE_SUMMARIES_EXAMPLE,
        verbose: bool = False,
    ):
        self.llm = llm
        self.word_budget = word_budget
        self.merge_example = merge_example
        self.verbose = verbose

    def _log(self, msg: str):
        if self.verbose:
            print(msg, flush=True)

    # -----------------------------------------------------------------------
    # Module identification
    # -----------------------------------------------------------------------

    def _validate_selections(self, repo_root: Path, selections: list[ModuleSelection]) -> list[Path]:
        root = repo_root.resolve()
        dirs: list[Path] = []
        for selection in selections:
            rel = selection.module_path.strip()
            candidate = (root / rel.lstrip("/")).resolve()
            if candidate != root and root not in candidate.parents:
                self._log(f"  [modules] dropping '{rel}': outside the repository")
                continue
            try:
                if not candidate.is_dir():
                    if candidate.exists():
                        self._log(f"  [modules] dropping '{rel}': not a directory")
                    else:
                        self._log(f"  [modules] dropping '{rel}': does not exist in the repository")
                    continue
            except OSError as e:
                self._log(f"  [modules] dropping '{rel}': {e}")
                continue
            if candidate in dirs:
                continue
            dirs.append(candidate)
        return dirs

    async def identify_modules(
        self,
        repo_root: Path,
        repo_file_tree: str,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> list[Path]:
        """Ask the model which directories to analyse. Empty list means "use the fallback"."""
        prompt = module_identification_prompt(repo_file_tree=repo_file_tree)
        try:
            tool_call = await self.llm.generate_structured_completion(
                MODULE_IDENTIFICATION_SYSTEM_PROMPT,
                prompt,
                SELECTED_MODULES_TOOL_SPEC,
                abort=abort,
            )
        except CancellationError:
            self._log("  [modules] identification aborted")
            raise
        except Exception as e:
            self._log(f"  [modules] identification failed: {e}")
            return []

        result = parse_module_selection(tool_call)
        if isinstance(result, NoSelections):
            self._log("  [modules] no module directories identified")
            return []
        if isinstance(result, Malformed):
            self._log(f"  [modules] malformed selection ({result.reason}): {result.raw_payload!r}")
            return []

        if self.verbose:
            payload = [{"reason": s.reason, "modulePath": s.module_path} for s in result.selections]
            self._log(f"  [modules] structured output:\n{json.dumps(payload, indent=2)}")
        return self._validate_selections(repo_root, result.selections)

    # -----------------------------------------------------------------------
    # Directory summary (map)
    # -----------------------------------------------------------------------

    async def summarize_directory(
        self,
        *,
        directory: Path,
        dir_file_tree: str,
        file_contents: Mapping[str, str],
        repo_file_tree: str,
        system_description: str = "",
        abort: Optional[asyncio.Event] = None,
    ) -> str:
        prompt = directory_summary_prompt(
            system_description=system_description,
            repo_file_tree=repo_file_tree,
            directory=str(directory),
            dir_file_tree=dir_file_tree,
            file_contents=file_contents,
        )
        self._log(f"  Summarizing directory: {directory} ({len(file_contents)} files)")
        try:
            return await self.llm.generate_text_completion(
                SUMMARIZATION_SYSTEM_PROMPT,
                prompt,
                abort=abort,
            )
        except CancellationError:
            raise
        except Exception as e:
            self._log(f"  [summary] error for {directory}: {e}")
            return directory_error_summary(directory, e)

    # -----------------------------------------------------------------------
    # Merge (reduce)
    # -----------------------------------------------------------------------

    async def merge_summaries(
        self,
        *,
        summaries: Mapping[str, str],
        repo_file_tree: str,
        system_description: str = "",
        abort: Optional[asyncio.Event] = None,
    ) -> str:
        prompt = merge_summaries_prompt(
            system_description=system_description,
            repo_file_tree=repo_file_tree,
            summaries=summaries,
            example=self.merge_example,
            word_budget=self.word_budget,
        )
        self._log(f"  Merging {len(summaries)} directory summaries...")
        try:
            return await self.llm.generate_text_completion(
                SUMMARIZATION_SYSTEM_PROMPT,
                prompt,
                abort=abort,
            )
        except CancellationError:
            raise
        except Exception as e:
            self._log(f"  [merge] error: {e}")
            return merge_error_document(e)
