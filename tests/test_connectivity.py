"""Tests for the startup connectivity gate."""

from unittest.mock import MagicMock

import pytest

from git_savesync import connectivity


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("git@github.com:me/saves.git", "github.com"),
        ("https://github.com/me/saves.git", "github.com"),
        ("https://token@gitlab.example.org:8443/me/saves.git", "gitlab.example.org"),
        ("/srv/git/saves.git", None),
        (None, None),
    ],
)
def test_parse_remote_host(url: str | None, expected: str | None) -> None:
    """Verifies hostname extraction for SSH, HTTPS and local remotes."""
    assert connectivity.parse_remote_host(url) == expected


def test_resolve_probe_host_order() -> None:
    """Verifies configured host, then remote host, then the public fallback."""
    repo = MagicMock()
    repo.remote_url.return_value = "git@github.com:me/saves.git"

    assert connectivity.resolve_probe_host(repo, "origin", "example.net") == "example.net"
    assert connectivity.resolve_probe_host(repo, "origin") == "github.com"

    repo.remote_url.return_value = None
    assert connectivity.resolve_probe_host(repo, "origin") == "www.google.com"


def test_is_remote_reachable_tries_ssh_after_https(mocker: MagicMock) -> None:
    """Verifies that port 22 is tried when 443 refuses."""
    mock_conn = mocker.patch(
        "socket.create_connection", side_effect=[OSError("refused"), MagicMock()]
    )

    assert connectivity.is_remote_reachable("github.com", timeout=1) is True
    assert [c.args[0] for c in mock_conn.call_args_list] == [
        ("github.com", 443),
        ("github.com", 22),
    ]


def test_is_remote_reachable_false_when_offline(
    mocker: MagicMock, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that a failed probe reports False and logs the socket error."""
    mocker.patch("socket.create_connection", side_effect=OSError("no route"))

    assert connectivity.is_remote_reachable("github.com") is False
    assert "no route" in caplog.text


def test_gate_starts_watcher_when_online(mocker: MagicMock) -> None:
    """Verifies that a reachable remote starts the watcher exactly once."""
    mocker.patch("git_savesync.connectivity.is_remote_reachable", return_value=True)
    on_connected = MagicMock()

    connectivity.gate("github.com", on_connected)

    on_connected.assert_called_once_with()


def test_gate_exits_when_offline(mocker: MagicMock) -> None:
    """Verifies that an unreachable remote exits with status 1 before watching."""
    mocker.patch("git_savesync.connectivity.is_remote_reachable", return_value=False)
    on_connected = MagicMock()

    with pytest.raises(SystemExit) as excinfo:
        connectivity.gate("github.com", on_connected)

    assert excinfo.value.code == 1
    on_connected.assert_not_called()
