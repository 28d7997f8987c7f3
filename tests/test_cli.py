import asyncio
from pathlib import Path

from codebase_overview import build_parser, main, resolve_settings


def test_cli_flags_override_environment():
    args = build_parser().parse_args(["-m", "claude-opus-4-1", "--max-concurrency", "2", "--api-key", "sk-flag", "-v"])

    settings = resolve_settings(args, {"ANTHROPIC_API_KEY": "sk-env", "CODEBASE_OVERVIEW_MODEL": "env-model"})

    assert settings.model == "claude-opus-4-1"
    assert settings.api_key == "sk-flag"
    assert settings.max_concurrency == 2
    assert settings.verbose is True


def test_environment_used_when_flags_absent():
    args = build_parser().parse_args([])

    settings = resolve_settings(args, {"ANTHROPIC_API_KEY": "sk-env", "CODEBASE_OVERVIEW_MAX_CONCURRENCY": "5"})

    assert settings.api_key == "sk-env"
    assert settings.max_concurrency == 5
    assert settings.verbose is False


def test_missing_api_key_exits_with_error(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    assert asyncio.run(main(["-p", str(tmp_path), "--no-output"])) == 1
    assert "ANTHROPIC_API_KEY" in capsys.readouterr().err


def test_invalid_concurrency_exits_with_error(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")

    assert asyncio.run(main(["-p", str(tmp_path), "--max-concurrency", "0"])) == 1
    assert "max_concurrency" in capsys.readouterr().err


def test_missing_repository_exits_with_error(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")

    code = asyncio.run(main(["-p", str(tmp_path / "nope"), "--no-output"]))

    assert code == 1
    assert "does not exist" in capsys.readouterr().err
