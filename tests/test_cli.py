"""Tests for CLI module."""

from __future__ import annotations

import shutil

import pytest
from rich.console import Console
from typer.testing import CliRunner

from shellpop.cli import app

runner = CliRunner()


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at a temp dir with logging and history inside it."""
    import shellpop.config as cfg_module
    import shellpop.cli as cli_module

    config_file = tmp_path / "config.toml"
    config_file.write_text(
        "[shell]\n"
        'dialect = "posix"\n'
        'executable = "sh"\n'
        f'working_directory = "{tmp_path}"\n'
        "[history]\n"
        f'path = "{tmp_path / "history.txt"}"\n'
        "[logging]\n"
        f'file = "{tmp_path / "shellpop.log"}"\n'
    )
    monkeypatch.setattr(cfg_module, "CONFIG_FILE", config_file)
    monkeypatch.setattr(cfg_module, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(cli_module, "CONFIG_FILE", config_file)
    monkeypatch.setattr(cli_module, "console", Console(width=200))
    for name in ("SHELLPOP_DIALECT", "SHELLPOP_SHELL", "SHELLPOP_HISTORY_PATH", "SHELLPOP_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


class TestCli:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "shellpop v" in result.output

    def test_config_show(self, isolated_config):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "shell.dialect" in result.output
        assert "history.size" in result.output

    def test_config_set(self, isolated_config):
        from shellpop.config import load_config

        result = runner.invoke(app, ["config", "shell.timeout", "5"])
        assert result.exit_code == 0
        assert load_config().shell.timeout == 5.0

    def test_config_unknown_section(self, isolated_config):
        result = runner.invoke(app, ["config", "bot.token", "x"])
        assert result.exit_code == 1

    def test_config_bad_key_format(self, isolated_config):
        result = runner.invoke(app, ["config", "timeout", "5"])
        assert result.exit_code == 1

    def test_invalid_dialect(self, isolated_config, monkeypatch):
        monkeypatch.setenv("SHELLPOP_DIALECT", "fish")
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_history_empty(self, isolated_config):
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0
        assert "No history" in result.output

    def test_history_lists_entries(self, isolated_config):
        (isolated_config / "history.txt").write_text("git status\nls\ngit log\n", encoding="utf-8")
        result = runner.invoke(app, ["history", "-n", "2"])
        assert result.exit_code == 0
        assert "git status" not in result.output
        assert "ls" in result.output
        assert "git log" in result.output

    def test_history_match(self, isolated_config):
        (isolated_config / "history.txt").write_text("git status\nls\ngit log\n", encoding="utf-8")
        result = runner.invoke(app, ["history", "--match", "gi"])
        assert result.exit_code == 0
        assert result.output.strip() == "git log"

    def test_history_no_match(self, isolated_config):
        (isolated_config / "history.txt").write_text("ls\n", encoding="utf-8")
        result = runner.invoke(app, ["history", "--match", "git"])
        assert result.exit_code == 1
        assert "no match" in result.output

    def test_logs_no_file(self, isolated_config):
        result = runner.invoke(app, ["logs"])
        assert result.exit_code == 0
        assert "no log" in result.output.lower()

    def test_logs_reads_configured_file(self, isolated_config):
        (isolated_config / "shellpop.log").write_text("first\nsecond\n")
        result = runner.invoke(app, ["logs", "-n", "1"])
        assert result.exit_code == 0
        assert result.output.strip() == "second"

    def test_exec_missing_shell(self, isolated_config, monkeypatch):
        monkeypatch.setenv("SHELLPOP_SHELL", str(isolated_config / "no-such-shell"))
        result = runner.invoke(app, ["exec", "ls"])
        assert result.exit_code == 1
        assert "Could not start shell" in result.output

    @pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX shell")
    def test_exec_plain(self, isolated_config):
        result = runner.invoke(app, ["exec", "--plain", "printf '\\033[31mred\\033[0m\\n'"])
        assert result.exit_code == 0
        assert result.output.strip() == "red"
        assert "printf" in (isolated_config / "history.txt").read_text(encoding="utf-8")

    def test_default_theme_not_painted(self):
        from shellpop.cli import _styled
        from shellpop.config import AppConfig
        from shellpop.models import StyledSpan

        config = AppConfig()
        text = _styled(config, [StyledSpan("out", config.theme.foreground, config.theme.background)])
        assert text.spans[0].style.color is None
        assert text.spans[0].style.bgcolor is None
