"""
llm.py — LLM collaborator used by every agent.

The agents only depend on the LLMClient protocol:
  - generate_text_completion(system, prompt)            -> free text
  - generate_structured_completion(system, prompt, tool) -> ToolCall | None

AnthropicLLM is the production implementation on top of the Anthropic
Messages API; structured output uses a single forced tool call.

Every call accepts an optional abort event. When it fires, the in-flight
request is cancelled and CancellationError is raised, so callers can tell
"user cancelled" apart from an ordinary API failure.
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Optional, Protocol, TypeVar

import anthropic

from config import DEFAULT_MAX_TOKENS, DEFAULT_MODEL
from errors import CancellationError

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_schema: dict

    def to_anthropic(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments: Any


class LLMClient(Protocol):
    async def generate_text_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> str: ...

    async def generate_structured_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        tool: ToolSpec,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> Optional[ToolCall]: ...


# ---------------------------------------------------------------------------
# Usage tracking
# ---------------------------------------------------------------------------

@dataclass
class UsageTracker:
    input_tokens: int = 0
    output_tokens: int = 0
    api_calls: int = 0

    def add(self, input_tok: int, output_tok: int):
        self.input_tokens += input_tok
        self.output_tokens += output_tok
        self.api_calls += 1

    def report(self) -> str:
        return (
            f"API calls: {self.api_calls} | "
            f"Tokens in: {self.input_tokens:,} | Tokens out: {self.output_tokens:,}"
        )


# ---------------------------------------------------------------------------
# Abort handling
# ---------------------------------------------------------------------------

async def run_abortable(
    aw: Awaitable[T],
    abort: Optional[asyncio.Event],
    *,
    what: str = "LLM request",
) -> T:
    """Await `aw`, cancelling it and raising CancellationError if `abort` fires first."""
    if abort is None:
        return await aw

    task = asyncio.ensure_future(aw)
    if abort.is_set():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise CancellationError(f"{what} aborted before it started")

    waiter = asyncio.ensure_future(abort.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise CancellationError(f"{what} aborted")


# ---------------------------------------------------------------------------
# Anthropic implementation
# ---------------------------------------------------------------------------

class AnthropicLLM:
    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        rate_limit_retries: int = 0,
        rate_limit_backoff_secs: float = 30.0,
        verbose: bool = False,
    ):
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.rate_limit_retries = max(0, rate_limit_retries)
        self.rate_limit_backoff_secs = rate_limit_backoff_secs
        self.tracker = UsageTracker()
        self.verbose = verbose

    def _log(self, msg: str):
        if self.verbose:
            print(msg, flush=True)

    async def _create(self, request: dict, abort: Optional[asyncio.Event]):
        attempt = 0
        while True:
            try:
                response = await run_abortable(self.client.messages.create(**request), abort)
            except anthropic.RateLimitError:
                if attempt >= self.rate_limit_retries:
                    raise
                attempt += 1
                self._log(
                    f"  [llm] rate limited on {self.model}; retry {attempt}/{self.rate_limit_retries} "
                    f"in {self.rate_limit_backoff_secs:.0f}s"
                )
                await run_abortable(asyncio.sleep(self.rate_limit_backoff_secs), abort, what="rate-limit backoff")
                continue

            usage = getattr(response, "usage", None)
            if usage is not None:
                self.tracker.add(usage.input_tokens, usage.output_tokens)
            else:
                self.tracker.add(0, 0)
            return response

    def _request(self, system_prompt: str, user_prompt: str) -> dict:
        return dict(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )

    async def generate_text_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> str:
        response = await self._create(self._request(system_prompt, user_prompt), abort)
        chunks = [
            getattr(block, "text", "")
            for block in response.content
            if getattr(block, "type", "") == "text"
        ]
        return "\n\n".join(c.strip() for c in chunks if c.strip())

    async def generate_structured_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        tool: ToolSpec,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> Optional[ToolCall]:
        request = self._request(system_prompt, user_prompt)
        request["tools"] = [tool.to_anthropic()]
        request["tool_choice"] = {"type": "any"}

        response = await self._create(request, abort)
        for block in response.content:
            if getattr(block, "type", "") == "tool_use":
                return ToolCall(name=getattr(block, "name", ""), arguments=getattr(block, "input", None))
        return None
