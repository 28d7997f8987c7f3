import asyncio
import re
from pathlib import Path
from typing import Optional

from llm import ToolCall, run_abortable
from models import ProgressUpdate


_DIRECTORY_RE = re.compile(r"^Processing Directory: (.+)$", re.MULTILINE)


def selections(*module_paths: str) -> ToolCall:
    return ToolCall(
        name="selectedModules",
        arguments={
            "selections": [
                {"reason": f"{p} looks like a service", "modulePath": p}
                for p in module_paths
            ]
        },
    )


class FakeLLM:
    """Scriptable LLM: directory prompts get `summary of <name>`, the merge prompt gets `merge_text`."""

    def __init__(
        self,
        *,
        tool_call: Optional[ToolCall] = None,
        structured_error: Optional[BaseException] = None,
        delays: Optional[dict[str, float]] = None,
        fail: tuple[str, ...] = (),
        merge_text: str = "final overview",
        merge_error: Optional[BaseException] = None,
    ):
        self.tool_call = tool_call
        self.structured_error = structured_error
        self.delays = delays or {}
        self.fail = set(fail)
        self.merge_text = merge_text
        self.merge_error = merge_error

        self.structured_prompts: list[str] = []
        self.directory_prompts: dict[str, str] = {}
        self.merge_prompts: list[str] = []
        self.events: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate_structured_completion(self, system_prompt, user_prompt, tool, *, abort=None):
        self.structured_prompts.append(user_prompt)
        if self.structured_error is not None:
            raise self.structured_error
        return self.tool_call

    async def generate_text_completion(self, system_prompt, user_prompt, *, abort=None):
        match = _DIRECTORY_RE.search(user_prompt)
        if match is None:
            self.merge_prompts.append(user_prompt)
            if self.merge_error is not None:
                raise self.merge_error
            return self.merge_text

        name = Path(match.group(1)).name
        self.directory_prompts[name] = user_prompt
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.events.append(("start", name))
        try:
            await run_abortable(asyncio.sleep(self.delays.get(name, 0.01)), abort)
            if name in self.fail:
                raise ConnectionError("network unreachable")
            return f"summary of {name}"
        finally:
            self.in_flight -= 1
            self.events.append(("end", name))

    @property
    def summarized(self) -> list[str]:
        return sorted(self.directory_prompts)


class RecordingSink:
    def __init__(self):
        self.updates: list[ProgressUpdate] = []

    def emit(self, update: ProgressUpdate) -> None:
        self.updates.append(update)

    @property
    def statuses(self) -> list[str]:
        return [u.status for u in self.updates]

    @property
    def values(self) -> list[int]:
        return [u.progress for u in self.updates]


class FakeVcs:
    def __init__(self, commit: Optional[str] = "a" * 40, error: Optional[Exception] = None):
        self.commit = commit
        self.error = error
        self.calls = 0

    def current_commit_hash(self, repo_path):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.commit


def make_repo(root: Path, files: dict[str, str]) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root
