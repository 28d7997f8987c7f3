import asyncio
import time
from pathlib import Path

import pytest

from errors import CancellationError
from fakes import FakeLLM, FakeVcs, RecordingSink, make_repo
from models import COMPLETED, ERROR
from orchestrator import OverviewOrchestrator
from scanner import RepoScanner


def _repo(tmp_path: Path, names: list[str]) -> Path:
    return make_repo(tmp_path / "repo", {f"{name}/main.py": f"# {name}\n" for name in names})


def _orchestrator(llm: FakeLLM, max_concurrency: int, sink=None) -> OverviewOrchestrator:
    return OverviewOrchestrator(
        llm,
        max_concurrency=max_concurrency,
        vcs=FakeVcs(),
        progress_sink=sink,
        verbose=False,
    )


@pytest.mark.parametrize("max_concurrency,count,expected", [(2, 6, 2), (10, 3, 3), (4, 4, 4)])
def test_in_flight_summaries_never_exceed_limit(tmp_path: Path, max_concurrency, count, expected):
    names = [f"svc{i}" for i in range(count)]
    repo = _repo(tmp_path, names)
    llm = FakeLLM(delays={name: 0.05 for name in names})

    asyncio.run(_orchestrator(llm, max_concurrency).run(repo))

    assert llm.max_in_flight == expected
    assert llm.summarized == names


def test_limit_of_one_runs_strictly_in_sequence(tmp_path: Path):
    names = ["a", "b", "c", "d", "e"]
    repo = _repo(tmp_path, names)
    llm = FakeLLM()

    asyncio.run(_orchestrator(llm, 1).run(repo))

    assert llm.max_in_flight == 1
    assert len(llm.events) == 2 * len(names)
    for i in range(0, len(llm.events), 2):
        kind, name = llm.events[i]
        assert kind == "start"
        assert llm.events[i + 1] == ("end", name)


def test_free_slot_is_refilled_before_slow_directory_finishes(tmp_path: Path):
    repo = _repo(tmp_path, ["a", "b", "c"])
    llm = FakeLLM(delays={"a": 0.3, "b": 0.02, "c": 0.02})

    asyncio.run(_orchestrator(llm, 2).run(repo))

    assert llm.events.index(("start", "c")) < llm.events.index(("end", "a"))


def test_every_scheduled_directory_reports_once_even_when_some_fail(tmp_path: Path):
    names = ["a", "b", "c", "d"]
    repo = _repo(tmp_path, names)
    llm = FakeLLM(fail=("b", "d"))
    sink = RecordingSink()

    overview = asyncio.run(_orchestrator(llm, 3, sink).run(repo))

    assert overview.content == "final overview"
    summarized_events = [u for u in sink.updates if u.message.startswith("Summarized ")]
    assert len(summarized_events) == len(names)
    prompt = llm.merge_prompts[0]
    for name in names:
        assert f"Walkthrough for {name}:" in prompt
    assert prompt.count("Error generating summary for") == 2


def test_abort_cancels_run_and_reports_single_error(tmp_path: Path):
    names = ["a", "b", "c"]
    repo = _repo(tmp_path, names)
    llm = FakeLLM(delays={name: 5.0 for name in names})
    sink = RecordingSink()
    orch = _orchestrator(llm, 2, sink)

    async def scenario():
        abort = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, abort.set)
        return await orch.run(repo, abort=abort)

    with pytest.raises(CancellationError):
        asyncio.run(scenario())

    assert llm.in_flight == 0
    assert llm.merge_prompts == []
    assert sink.statuses.count(ERROR) == 1
    assert COMPLETED not in sink.statuses
    assert sink.updates[-1].status == ERROR
    assert "cancelled" in sink.updates[-1].message


class _SlowScanner(RepoScanner):
    def __init__(self, root: Path, slow: str, delay: float):
        super().__init__(root)
        self.slow = slow
        self.delay = delay

    def collect(self, directory=None):
        if directory is not None and Path(directory).name == self.slow:
            time.sleep(self.delay)
        return super().collect(directory)


@pytest.mark.parametrize("names", [["a"], ["a", "b"]])
def test_abort_is_honoured_while_a_directory_scan_is_running(tmp_path: Path, names):
    repo = _repo(tmp_path, names)
    llm = FakeLLM(delays={"b": 5.0})
    orch = OverviewOrchestrator(
        llm,
        max_concurrency=2,
        scanner_factory=lambda root: _SlowScanner(root, "a", 0.5),
        vcs=FakeVcs(),
        verbose=False,
    )
    elapsed: list[float] = []

    async def scenario():
        abort = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, abort.set)
        start = time.monotonic()
        try:
            await orch.run(repo, abort=abort)
        finally:
            elapsed.append(time.monotonic() - start)

    with pytest.raises(CancellationError):
        asyncio.run(scenario())

    assert elapsed[0] < 0.25
    assert "a" not in llm.directory_prompts


def test_heartbeat_keeps_running_during_blocking_scan(tmp_path: Path):
    repo = _repo(tmp_path, ["a"])
    orch = OverviewOrchestrator(
        FakeLLM(),
        scanner_factory=lambda root: _SlowScanner(root, "a", 0.3),
        vcs=FakeVcs(),
        verbose=True,
        progress_heartbeat_secs=0.05,
    )
    orch.summarizer.verbose = False
    logs: list[str] = []
    orch._log = logs.append  # type: ignore[method-assign]

    asyncio.run(orch.run(repo))

    assert sum("Summarizing heartbeat:" in line for line in logs) >= 2
