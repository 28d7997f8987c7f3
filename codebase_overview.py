#!/usr/bin/env python3
"""
codebase_overview.py — CLI entry point.

Usage:
    # Analyze the current directory, write ./output/codebase-overview.md
    python codebase_overview.py

    # Another repo, custom output directory
    python codebase_overview.py --repo-path /path/to/repo --output docs/

    # Describe the system to steer the summaries
    python codebase_overview.py -p /path/to/repo -s "Payments platform: API + workers"

    # Print only, don't write a file
    python codebase_overview.py -p /path/to/repo --no-output

Environment:
    ANTHROPIC_API_KEY                  — required (or pass --api-key)
    CODEBASE_OVERVIEW_MODEL            — default model
    CODEBASE_OVERVIEW_MAX_CONCURRENCY  — default max concurrent directory summaries
"""

from __future__ import annotations
import argparse
import asyncio
import sys
import time
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent))

from config import OUTPUT_FILENAME, OverviewSettings
from errors import CancellationError, ConfigError, PipelineError, PreconditionError
from orchestrator import OverviewOrchestrator
from progress import TerminalProgressSink


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codebase-overview",
        description="Generate a technical overview of a codebase using an LLM.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--repo-path", "-p", type=Path, default=Path.cwd(),
                        help="Path to the local directory to analyze (default: current directory)")
    parser.add_argument("--output", "-o", type=Path, default=Path.cwd() / "output",
                        help=f"Directory to save {OUTPUT_FILENAME} in (default: ./output)")
    parser.add_argument("--no-output", action="store_true",
                        help="Print the overview without writing a file")
    parser.add_argument("--model", "-m", default=None,
                        help="Model to use (default: CODEBASE_OVERVIEW_MODEL or claude-sonnet-4-6)")
    parser.add_argument("--system-description", "-s", default="",
                        help="A brief description of the system (optional)")
    parser.add_argument("--max-concurrency", type=int, default=None,
                        help="Max concurrent directory summaries (default: 8)")
    parser.add_argument("--api-key", default=None,
                        help="Anthropic API key (default: ANTHROPIC_API_KEY env var)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Print progress for each stage")
    return parser


def resolve_settings(args: argparse.Namespace, environ=None) -> OverviewSettings:
    settings = OverviewSettings.from_env(environ)
    if args.model:
        settings.model = args.model
    if args.api_key:
        settings.api_key = args.api_key
    if args.max_concurrency is not None:
        settings.max_concurrency = args.max_concurrency
    settings.verbose = args.verbose
    settings.validate()
    return settings


async def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = resolve_settings(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not settings.api_key:
        print("Error: ANTHROPIC_API_KEY environment variable not set.", file=sys.stderr)
        return 1

    repo_path = args.repo_path.resolve()
    output_dir = None if args.no_output else args.output.resolve()

    print(f"\n🔍 Analyzing codebase at: {repo_path}", flush=True)
    print(f"   Using model: {settings.model}", flush=True)
    if output_dir is not None:
        print(f"   Overview will be saved to: {output_dir / OUTPUT_FILENAME}", flush=True)

    orchestrator = OverviewOrchestrator.from_settings(settings, progress_sink=TerminalProgressSink())
    start = time.time()
    try:
        overview = await orchestrator.run(
            repo_path,
            system_description=args.system_description,
            output_dir=output_dir,
        )
    except PreconditionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except CancellationError:
        print("Overview generation cancelled.", file=sys.stderr)
        return 130
    except PipelineError as e:
        print(f"Error generating overview: {e}", file=sys.stderr)
        return 1

    elapsed = time.time() - start
    print(f"\n✅ Complete in {elapsed:.1f}s\n", flush=True)
    print("=" * 80)
    print(overview.content)

    if output_dir is not None:
        print(f"\n📄 Overview saved to: {output_dir / OUTPUT_FILENAME}")
    if overview.commit_hash:
        print(f"🔖 Commit: {overview.commit_hash}")
    print(f"\n💰 {orchestrator.llm.tracker.report()}")
    return 0


def run_cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nOverview generation cancelled.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run_cli()
