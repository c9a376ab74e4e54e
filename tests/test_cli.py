"""Tests for the CLI entry point."""

import json
import sys
from unittest.mock import MagicMock

import pytest

from luna import cli


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    path = tmp_path / "data"
    monkeypatch.setenv("LUNA_DATA_DIR", str(path))
    monkeypatch.setenv("LUNA_ANTHROPIC_API_KEY", "")
    monkeypatch.chdir(tmp_path)  # keep any local .env out
    monkeypatch.setattr(cli, "setup_logging", MagicMock())
    return path


def _run(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["luna", *args])
    return cli.main()


def test_no_command_prints_usage(data_dir, monkeypatch, capsys):
    assert _run(monkeypatch) == 1
    assert "Usage" in capsys.readouterr().out


def test_unknown_command(data_dir, monkeypatch, capsys):
    assert _run(monkeypatch, "dance") == 1
    assert "Unknown command: dance" in capsys.readouterr().out


def test_init_creates_data_dir(data_dir, monkeypatch):
    assert _run(monkeypatch, "init") == 0
    assert data_dir.is_dir()


def test_debug_flag_is_consumed(data_dir, monkeypatch):
    assert _run(monkeypatch, "--debug", "init") == 0
    assert cli.setup_logging.call_args.kwargs["level"] == 10


def test_stats_prints_json(data_dir, monkeypatch, capsys):
    assert _run(monkeypatch, "stats") == 0
    stats = json.loads(capsys.readouterr().out)
    assert stats["memory"]["total"] == 0
    assert stats["threads"] == 0


def test_echo_responder_without_api_key(data_dir):
    settings = cli.get_settings()
    assert isinstance(cli._make_responder(settings), cli.ContextEchoResponder)
