"""
Tests for the command line entry point.
"""

import json

import pytest

from studyindexer import __main__ as cli
from studyindexer.config import IndexerConfig
from studyindexer.exceptions import AlreadyRunningError


@pytest.fixture(autouse=True)
def fixed_config(monkeypatch):
    config = IndexerConfig(languages=["en", "fi"])
    monkeypatch.setattr(cli, "get_config", lambda: config)
    return config


class TestMain:
    """Test subcommand dispatch and exit codes."""

    def test_count_prints_json(self, monkeypatch, capsys):
        """Test count prints per-language counts as JSON."""
        async def fake_count(config, language=None):
            return {"en": 3, "fi": 1}

        monkeypatch.setattr(cli, "count_documents", fake_count)

        cli.main(["count"])

        assert json.loads(capsys.readouterr().out) == {"en": 3, "fi": 1}

    def test_run_passes_incremental_flag(self, monkeypatch, capsys):
        """Test --incremental reaches run_harvest."""
        calls = []

        async def fake_run(config, repositories_file, incremental=False):
            calls.append((repositories_file, incremental))
            return {"job_id": "harvest-1"}

        monkeypatch.setattr(cli, "run_harvest", fake_run)

        cli.main(["--repositories", "repos.toml", "run", "--incremental"])

        assert calls == [("repos.toml", True)]
        assert json.loads(capsys.readouterr().out) == {"job_id": "harvest-1"}

    def test_missing_repositories_file_exits_1(self, tmp_path):
        """Test a missing repositories file exits with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["-r", str(tmp_path / "missing.toml"), "run"])

        assert exc_info.value.code == 1

    def test_already_running_exits_2(self, monkeypatch):
        """Test a concurrent run exits with status 2."""
        async def busy(config, repositories_file, incremental=False):
            raise AlreadyRunningError("A harvest is already in progress")

        monkeypatch.setattr(cli, "run_harvest", busy)

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["run"])

        assert exc_info.value.code == 2

    def test_command_is_required(self):
        """Test a subcommand must be given."""
        with pytest.raises(SystemExit):
            cli.main([])
