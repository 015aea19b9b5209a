import enum
import logging
import signal
import threading
import time
from collections.abc import Callable, Iterable
from types import FrameType

from .changes import ChangeQueue
from .constants import APP_NAME
from .coordinator import SyncCoordinator, SyncResult

logger = logging.getLogger(APP_NAME)


class DrainState(enum.Enum):
    RUNNING = "running"
    DRAINING = "draining"
    EXITING = "exiting"


class ShutdownDrain:
    """Flushes pending changes through one last sync before the process exits.

    A termination signal stops file intake at once (`on_signal`) and records
    the request; the main thread notices it in `wait()` and then calls
    `drain()` to compute the exit status.

    Attributes:
        queue (ChangeQueue): Checked for pending files at shutdown.
        coordinator (SyncCoordinator): Runs the final attempt.
        grace (float): Seconds to pause after a final attempt, letting logs flush.
        state (DrainState): Current lifecycle state.
    """

    def __init__(
        self,
        queue: ChangeQueue,
        coordinator: SyncCoordinator,
        grace: float = 1.0,
        on_stop: Callable[[], None] | None = None,
        on_signal: Callable[[], None] | None = None,
    ) -> None:
        self.queue = queue
        self.coordinator = coordinator
        self.grace = grace
        self.state = DrainState.RUNNING
        self._on_stop = on_stop
        self._on_signal = on_signal
        self._requested = threading.Event()

    def install(
        self, signals: Iterable[signal.Signals] = (signal.SIGINT, signal.SIGTERM)
    ) -> None:
        """Registers the shutdown handler. Must be called from the main thread."""
        for sig in signals:
            signal.signal(sig, self._handle_signal)

    def _handle_signal(self, signum: int, _frame: FrameType | None) -> None:
        if self._requested.is_set():
            logger.info("SHUTDOWN: Already shutting down, please wait...")
            return
        logger.info(f"SHUTDOWN: Received {signal.Signals(signum).name}.")
        self.request()

    def request(self) -> None:
        """Stops file intake and asks for shutdown."""
        if self._on_signal:
            self._on_signal()
        self._requested.set()

    @property
    def requested(self) -> bool:
        return self._requested.is_set()

    def wait(self, poll_interval: float = 0.5) -> None:
        """Blocks until shutdown is requested.

        Waits in short slices so signal handlers get a chance to run.
        """
        while not self._requested.wait(poll_interval):
            pass

    def drain(self) -> int:
        """Stops intake, pushes whatever is still pending, and picks an exit code.

        Returns:
            int: 0 if nothing was pending or the final push succeeded, 1 if it failed.
        """
        if self._on_stop:
            self._on_stop()

        if self.queue.is_empty():
            self.state = DrainState.EXITING
            logger.info("SHUTDOWN: No pending changes. Exiting.")
            return 0

        self.state = DrainState.DRAINING
        logger.info(
            f"SHUTDOWN: {len(self.queue)} pending change(s). "
            "Attempting final push before exiting..."
        )
        result = self.coordinator.attempt_sync(wait=True)
        exit_code = 1 if result is SyncResult.FAILED else 0

        time.sleep(self.grace)
        self.state = DrainState.EXITING
        return exit_code
