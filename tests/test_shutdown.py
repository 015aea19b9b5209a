"""Tests for the shutdown drain."""

import signal
from unittest.mock import MagicMock

import pytest

from git_savesync.changes import ChangeQueue
from git_savesync.coordinator import SyncResult
from git_savesync.shutdown import DrainState, ShutdownDrain


@pytest.fixture(autouse=True)
def no_grace_sleep(mocker: MagicMock) -> MagicMock:
    """Skips the real grace delay."""
    return mocker.patch("git_savesync.shutdown.time.sleep")


def test_drain_with_empty_queue_exits_immediately(no_grace_sleep: MagicMock) -> None:
    """Verifies that nothing pending means exit 0 with no sync attempt."""
    coordinator = MagicMock()
    on_stop = MagicMock()
    drain = ShutdownDrain(ChangeQueue(), coordinator, on_stop=on_stop)

    assert drain.drain() == 0

    on_stop.assert_called_once()
    coordinator.attempt_sync.assert_not_called()
    no_grace_sleep.assert_not_called()
    assert drain.state is DrainState.EXITING


def test_drain_pushes_pending_file_once(no_grace_sleep: MagicMock) -> None:
    """Verifies one final attempt, a grace pause, then exit 0 on success."""
    queue = ChangeQueue()
    queue.enqueue("save1.ps2")
    coordinator = MagicMock()
    coordinator.attempt_sync.return_value = SyncResult.SUCCESS
    drain = ShutdownDrain(queue, coordinator, grace=1.0)

    assert drain.drain() == 0

    coordinator.attempt_sync.assert_called_once_with(wait=True)
    no_grace_sleep.assert_called_once_with(1.0)
    assert drain.state is DrainState.EXITING


def test_drain_failure_exits_with_one() -> None:
    """Verifies that a failed final attempt yields status 1."""
    queue = ChangeQueue()
    queue.enqueue("save1.ps2")
    coordinator = MagicMock()
    coordinator.attempt_sync.return_value = SyncResult.FAILED

    assert ShutdownDrain(queue, coordinator).drain() == 1


def test_drain_reports_draining_state_during_attempt() -> None:
    """Verifies the state machine passes through DRAINING while pushing."""
    queue = ChangeQueue()
    queue.enqueue("save1.ps2")
    coordinator = MagicMock()
    drain = ShutdownDrain(queue, coordinator)
    seen: list[DrainState] = []

    def record(wait: bool) -> SyncResult:
        seen.append(drain.state)
        return SyncResult.SUCCESS

    coordinator.attempt_sync.side_effect = record

    drain.drain()

    assert seen == [DrainState.DRAINING]


def test_signal_handler_requests_shutdown(mocker: MagicMock) -> None:
    """Verifies that installed handlers only flag the request."""
    mock_signal = mocker.patch("git_savesync.shutdown.signal.signal")
    drain = ShutdownDrain(ChangeQueue(), MagicMock())

    drain.install()

    registered = {c.args[0] for c in mock_signal.call_args_list}
    assert registered == {signal.SIGINT, signal.SIGTERM}

    handler = mock_signal.call_args_list[0].args[1]
    handler(signal.SIGINT, None)
    assert drain.requested
    drain.wait(poll_interval=0.01)  # Returns immediately once requested.
    handler(signal.SIGINT, None)  # Second signal is harmless.
    assert drain.state is DrainState.RUNNING


def test_signal_stops_intake_before_drain(mocker: MagicMock) -> None:
    """Verifies that the first signal stops intake at once and only once."""
    mock_signal = mocker.patch("git_savesync.shutdown.signal.signal")
    on_signal = MagicMock()
    on_stop = MagicMock()
    drain = ShutdownDrain(
        ChangeQueue(), MagicMock(), on_stop=on_stop, on_signal=on_signal
    )
    drain.install()
    handler = mock_signal.call_args_list[0].args[1]

    handler(signal.SIGTERM, None)

    on_signal.assert_called_once()
    on_stop.assert_not_called()
    assert drain.requested

    handler(signal.SIGTERM, None)
    on_signal.assert_called_once()


def test_request_stops_intake() -> None:
    """Verifies that a programmatic request behaves like a signal."""
    on_signal = MagicMock()
    drain = ShutdownDrain(ChangeQueue(), MagicMock(), on_signal=on_signal)

    drain.request()

    on_signal.assert_called_once()
    assert drain.requested
