"""
config.py — Runtime settings for overview generation.

Defaults live here; the CLI and the environment can override them.

Environment:
    ANTHROPIC_API_KEY                  — API key for the Anthropic client
    CODEBASE_OVERVIEW_MODEL            — model name (default: claude-sonnet-4-6)
    CODEBASE_OVERVIEW_MAX_CONCURRENCY  — max in-flight directory summaries (default: 8)
    CODEBASE_OVERVIEW_MAX_TOKENS       — max output tokens per LLM call (default: 8192)
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from errors import ConfigError


DEFAULT_MODEL = "claude-sonnet-4-6"
DEFAULT_MAX_CONCURRENCY = 8
DEFAULT_MAX_TOKENS = 8192
MAX_FILE_SIZE = 1024 * 1024  # 1 MiB
OUTPUT_FILENAME = "codebase-overview.md"

DEFAULT_ALLOWED_EXTENSIONS: tuple[str, ...] = (
    ".py", ".js", ".jsx", ".ts", ".tsx",
    ".java", ".go", ".rs", ".cs",
    ".yaml", ".yml",
)


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class OverviewSettings:
    model: str = DEFAULT_MODEL
    api_key: Optional[str] = None
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_tokens: int = DEFAULT_MAX_TOKENS
    max_file_size: int = MAX_FILE_SIZE
    allowed_extensions: tuple[str, ...] = field(default=DEFAULT_ALLOWED_EXTENSIONS)
    rate_limit_retries: int = 0
    progress_heartbeat_secs: float = 20.0
    verbose: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "OverviewSettings":
        if environ is None:
            environ = os.environ
        settings = cls(
            model=environ.get("CODEBASE_OVERVIEW_MODEL") or DEFAULT_MODEL,
            api_key=environ.get("ANTHROPIC_API_KEY") or None,
            max_concurrency=_env_int(environ, "CODEBASE_OVERVIEW_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY),
            max_tokens=_env_int(environ, "CODEBASE_OVERVIEW_MAX_TOKENS", DEFAULT_MAX_TOKENS),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.max_concurrency < 1:
            raise ConfigError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if self.max_tokens < 1:
            raise ConfigError(f"max_tokens must be >= 1, got {self.max_tokens}")
        if self.max_file_size < 1:
            raise ConfigError(f"max_file_size must be >= 1, got {self.max_file_size}")
        if self.rate_limit_retries < 0:
            raise ConfigError(f"rate_limit_retries must be >= 0, got {self.rate_limit_retries}")
