"""
Integration tests for the memora CLI.

Each test points MEMORA_DATABASE_URL at a temporary SQLite file.
"""

import json
import re

import pytest
from typer.testing import CliRunner

from memora.cli.main import app

pytestmark = pytest.mark.integration

UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")

runner = CliRunner()


@pytest.fixture
def cli_db(tmp_path, monkeypatch, clear_config_caches):
    monkeypatch.setenv("MEMORA_DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("MEMORA_LOG_LEVEL", "WARNING")
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0, result.output
    return tmp_path


@pytest.fixture
def imported(cli_db, sample_content):
    path = cli_db / "content.json"
    path.write_text(json.dumps(sample_content), encoding="utf-8")
    result = runner.invoke(app, ["import-items", str(path)])
    assert result.exit_code == 0, result.output
    return result


def start_session(student="alice"):
    result = runner.invoke(app, ["start-session", student])
    assert result.exit_code == 0, result.output
    return UUID_RE.search(result.output).group(0)


def test_init_db(cli_db):
    assert (cli_db / "cli.db").exists()


def test_import_items(imported):
    assert "Import Results" in imported.output
    assert "6" in imported.output


def test_import_missing_file(cli_db):
    result = runner.invoke(app, ["import-items", str(cli_db / "nope.json")])
    assert result.exit_code == 1
    assert "NOT_FOUND" in result.output


def test_review_flow(imported):
    session_id = start_session()

    result = runner.invoke(app, ["review", session_id, "fc-2", "--grade", "1"])
    assert result.exit_code == 0, result.output
    assert "relearning" in result.output
    assert "ku-osi" in result.output

    due = runner.invoke(app, ["due", "alice"])
    assert due.exit_code == 0, due.output
    assert "fc-2" in due.output

    stats = runner.invoke(app, ["stats", "alice", "--days", "1"])
    assert stats.exit_code == 0, stats.output
    assert "Reviews" in stats.output

    ended = runner.invoke(app, ["end-session", session_id])
    assert ended.exit_code == 0, ended.output
    assert "Items reviewed: 1" in ended.output


def test_review_rejects_bad_grade(imported):
    session_id = start_session()
    result = runner.invoke(app, ["review", session_id, "fc-1", "--grade", "7"])
    assert result.exit_code == 1
    assert "INVALID_GRADE" in result.output


def test_nothing_due(imported):
    result = runner.invoke(app, ["due", "bob"])
    assert result.exit_code == 0
    assert "No cards due" in result.output
