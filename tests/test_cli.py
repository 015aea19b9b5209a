"""Tests for the Command Line Interface (CLI) module."""

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from git_savesync import cli
from git_savesync.config import Config
from git_savesync.coordinator import SyncResult


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, mocker: MagicMock) -> Any:
    """Keeps the user's global config out of the tests."""
    mocker.patch.object(cli, "console", Console(width=200))
    mocker.patch("git_savesync.config.CONFIG_FILE", tmp_path / "missing.toml")
    Config._global_cache = None
    yield
    Config._global_cache = None


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    root = tmp_path / "memcards"
    (root / ".git").mkdir(parents=True)
    return root


def test_push_files_runs_single_attempt(repo_dir: Path, mocker: MagicMock) -> None:
    """Verifies that `push` queues matching files and runs one blocking attempt.

    Args:
        repo_dir (Path): A fake repository root.
        mocker (MagicMock): Pytest fixture for mocking.
    """
    mocker.patch("git_savesync.cli.daemon.setup_logging")
    mock_coord_cls = mocker.patch("git_savesync.cli.SyncCoordinator")
    mock_coord_cls.return_value.attempt_sync.return_value = SyncResult.SUCCESS

    cli.main(
        [
            "push",
            str(repo_dir / "a.ps2"),
            str(repo_dir / "notes.txt"),
            "--path",
            str(repo_dir),
        ]
    )

    queue = mock_coord_cls.call_args.args[1]
    assert "a.ps2" in queue
    assert len(queue) == 1
    mock_coord_cls.return_value.attempt_sync.assert_called_once_with(wait=True)


def test_push_files_exits_on_failure(repo_dir: Path, mocker: MagicMock) -> None:
    """Verifies that a failed push exits with status 1."""
    mocker.patch("git_savesync.cli.daemon.setup_logging")
    mock_coord_cls = mocker.patch("git_savesync.cli.SyncCoordinator")
    mock_coord_cls.return_value.attempt_sync.return_value = SyncResult.FAILED

    with pytest.raises(SystemExit) as excinfo:
        cli.push_files([str(repo_dir / "a.ps2")], str(repo_dir))

    assert excinfo.value.code == 1


def test_push_files_rejects_paths_outside_repo(
    repo_dir: Path, tmp_path: Path, mocker: MagicMock
) -> None:
    """Verifies that files outside the watch root are refused."""
    mocker.patch("git_savesync.cli.daemon.setup_logging")

    with pytest.raises(SystemExit):
        cli.push_files([str(tmp_path / "elsewhere.ps2")], str(repo_dir))


def test_status_reports_lock_and_changes(
    repo_dir: Path, capsys: pytest.CaptureFixture, mocker: MagicMock
) -> None:
    """Verifies that `status` shows the lock artifact and unsynced files."""
    (repo_dir / ".git" / "index.lock").touch()
    mocker.patch(
        "git_savesync.cli.GitRepo.status_porcelain", return_value=[" M save1.ps2"]
    )

    cli.main(["status", str(repo_dir)])

    out = capsys.readouterr().out
    assert "present" in out
    assert "save1.ps2" in out


def test_watch_command_dispatches(repo_dir: Path, mocker: MagicMock) -> None:
    """Verifies that `watch PATH` loads config for that path and exits with the run status."""
    mocker.patch("git_savesync.cli.daemon.setup_logging")
    mock_run = mocker.patch("git_savesync.cli.daemon.run", return_value=0)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["watch", str(repo_dir)])

    assert excinfo.value.code == 0
    config = mock_run.call_args.args[0]
    assert config.watch_root == repo_dir.resolve()
    assert mock_run.call_args.kwargs == {"interactive": True}


def test_config_list_prints_schema(capsys: pytest.CaptureFixture) -> None:
    """Verifies that `config --list` renders the option table."""
    cli.main(["config", "--list"])

    out = capsys.readouterr().out
    assert "stability_threshold" in out
    assert "remote_name" in out
