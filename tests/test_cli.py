"""
CLI tests using click's CliRunner against a temporary archive.
"""
import pytest
from click.testing import CliRunner

from message_archive.cli import cli
from message_archive.models import Chunk


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)  # keep a stray .env out of the settings
    monkeypatch.delenv("MESSAGE_ARCHIVE_DIR", raising=False)
    return CliRunner()


@pytest.fixture
def populated(archive, sample_chunks, sample_users):
    archive.write_chunks("C100", sample_chunks)
    archive.write_chunks("users", [Chunk.for_users(sample_users)])
    return archive


def test_channels_from_scan(runner, populated):
    result = runner.invoke(cli, ["channels", "--dir", str(populated.path)])
    assert result.exit_code == 0, result.output
    assert "C100" in result.output
    assert "general" in result.output


def test_channels_uses_archive_dir_setting(runner, populated, monkeypatch):
    monkeypatch.setenv("MESSAGE_ARCHIVE_DIR", str(populated.path))
    result = runner.invoke(cli, ["channels"])
    assert result.exit_code == 0, result.output
    assert "general" in result.output


def test_channels_missing_dir(runner, tmp_path):
    result = runner.invoke(cli, ["channels", "--dir", str(tmp_path / "missing")])
    assert result.exit_code == 1
    assert "Failed to read channels" in result.output


def test_users(runner, populated):
    result = runner.invoke(cli, ["users", "--dir", str(populated.path)])
    assert result.exit_code == 0, result.output
    assert "alice" in result.output
    assert "Bob Wilson" in result.output


def test_users_missing_file(runner, archive):
    result = runner.invoke(cli, ["users", "--dir", str(archive.path)])
    assert result.exit_code == 1


def test_messages(runner, populated):
    result = runner.invoke(cli, ["messages", "C100.json.gz", "--dir", str(populated.path)])
    assert result.exit_code == 0, result.output
    assert "kick-off" in result.output
    assert "bye" in result.output
    assert "plan.pdf" not in result.output


def test_thread_messages(runner, populated):
    result = runner.invoke(
        cli, ["messages", "C100", "--thread", "1700000000.000100", "--dir", str(populated.path)]
    )
    assert result.exit_code == 0, result.output
    assert "reply two" in result.output
    assert "hello" not in result.output


def test_inspect(runner, populated):
    result = runner.invoke(cli, ["inspect", "C100", "--dir", str(populated.path)])
    assert result.exit_code == 0, result.output
    assert "ciC100" in result.output
    assert "5 chunks" in result.output


def test_entities(runner):
    result = runner.invoke(cli, ["entities", "C1", "^C2", "C2"])
    assert result.exit_code == 0, result.output
    assert "+ C1" in result.output
    assert "- C2" in result.output


def test_entities_invalid(runner):
    result = runner.invoke(cli, ["entities", "not-an-id"])
    assert result.exit_code == 1
    assert "Invalid entity list" in result.output
