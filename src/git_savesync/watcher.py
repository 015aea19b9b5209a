"""File system watching for synchronized save files.

This module provides:
- WriteSettler: reports a path only once its size and mtime stop changing
- SaveFileHandler: watchdog handler forwarding add/modify events to the settler
- WatchAdapter: extension filter feeding the ChangeQueue and the coordinator
- SaveWatcher: owns the polling observer and the sync worker thread
"""

from __future__ import annotations

import fnmatch
import logging
import os
import threading
import time
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from .changes import ChangeQueue
from .config import WatchConfig
from .constants import APP_NAME, IGNORED_PATTERNS
from .coordinator import SyncCoordinator

logger = logging.getLogger(APP_NAME)


def _stat_signature(path: str) -> tuple[int, int] | None:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return st.st_size, st.st_mtime_ns


@dataclass
class _Settling:
    signature: tuple[int, int] | None
    last_change: float
    timer: threading.Timer | None = None


class WriteSettler:
    """Delays change notifications until writes to a path have settled.

    Each touched path is polled every `settle_interval` seconds. Once its
    size and mtime have been stable for `stability_threshold` seconds the
    callback fires once with the path. Paths that disappear are dropped.
    """

    def __init__(
        self,
        callback: Callable[[str], None],
        stability_threshold: float = 3.0,
        settle_interval: float = 0.1,
    ) -> None:
        self._callback = callback
        self._threshold = stability_threshold
        self._interval = settle_interval
        self._pending: dict[str, _Settling] = {}
        self._lock = threading.Lock()
        self._closed = False

    def touch(self, path: str) -> None:
        """Records write activity on a path, restarting its stability window."""
        signature = _stat_signature(path)
        with self._lock:
            if self._closed:
                return
            state = self._pending.get(path)
            if state is None:
                state = _Settling(signature, time.monotonic())
                self._pending[path] = state
                self._schedule(path, state)
            else:
                state.signature = signature
                state.last_change = time.monotonic()

    def pending(self) -> list[str]:
        with self._lock:
            return list(self._pending)

    def close(self) -> None:
        """Cancels every pending check. Unsettled paths are discarded."""
        with self._lock:
            self._closed = True
            for state in self._pending.values():
                if state.timer:
                    state.timer.cancel()
            self._pending.clear()

    def _schedule(self, path: str, state: _Settling) -> None:
        timer = threading.Timer(self._interval, self._check, args=(path,))
        timer.daemon = True
        state.timer = timer
        timer.start()

    def _check(self, path: str) -> None:
        signature = _stat_signature(path)
        now = time.monotonic()
        with self._lock:
            state = self._pending.get(path)
            if self._closed or state is None:
                return
            if signature is None:
                del self._pending[path]
                logger.debug(f"SETTLE: {path} vanished before settling.")
                return
            if signature != state.signature:
                state.signature = signature
                state.last_change = now
            if now - state.last_change < self._threshold:
                self._schedule(path, state)
                return
            del self._pending[path]

        self._callback(path)


class SaveFileHandler(FileSystemEventHandler):
    """Forwards file add/modify events to a WriteSettler.

    Deletions are ignored. A move counts as an add of its destination.
    Paths under the git metadata directory or hidden paths are dropped.
    """

    def __init__(self, root: Path, settler: WriteSettler) -> None:
        super().__init__()
        self._root = root
        self._settler = settler

    def is_ignored(self, path: str) -> bool:
        try:
            rel = Path(path).relative_to(self._root).as_posix()
        except ValueError:
            return True
        candidate = f"/{rel}"
        return any(fnmatch.fnmatch(candidate, pat) for pat in IGNORED_PATTERNS)

    def _forward(self, raw_path: str | bytes) -> None:
        path = os.fsdecode(raw_path)
        if self.is_ignored(path):
            return
        self._settler.touch(path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.dest_path)


class WatchAdapter:
    """Turns settled file notifications into queued changes and sync attempts.

    Attributes:
        root (Path): The watch root; queued names are relative to it.
        extension (str): Required filename suffix.
        queue (ChangeQueue): Destination of accepted filenames.
        coordinator (SyncCoordinator): Triggered after each accepted file.
    """

    def __init__(
        self,
        root: Path,
        extension: str,
        queue: ChangeQueue,
        coordinator: SyncCoordinator,
        executor: Executor,
    ) -> None:
        self.root = root
        self.extension = extension
        self.queue = queue
        self.coordinator = coordinator
        self._executor = executor
        self._accepting = True

    def stop(self) -> None:
        """Drops every notification received from now on."""
        self._accepting = False

    def on_file_ready(self, path: str) -> None:
        """Queues a settled file and triggers a sync without waiting for it.

        Args:
            path (str): Absolute path of the file that was added or modified.
        """
        if not self._accepting:
            return

        file_name = Path(path).name
        if not file_name.endswith(self.extension):
            logger.debug(f"IGNORED: {file_name} (not a {self.extension} file)")
            return

        try:
            rel = Path(path).relative_to(self.root).as_posix()
        except ValueError:
            logger.warning(f"IGNORED: {path} is outside {self.root}")
            return

        self.queue.enqueue(rel)
        logger.info(f"QUEUED: {rel}")
        self._executor.submit(self._run_sync)

    def _run_sync(self) -> None:
        try:
            self.coordinator.attempt_sync()
        except Exception:
            logger.exception("SYNC ERROR: Unexpected failure during sync attempt")


class SaveWatcher:
    """Polls the watch root and feeds settled changes to a WatchAdapter.

    Pre-existing files produce no events. Sync attempts run on a dedicated
    single worker thread so the observer never blocks on git.
    """

    def __init__(
        self,
        root: Path,
        settings: WatchConfig,
        queue: ChangeQueue,
        coordinator: SyncCoordinator,
    ) -> None:
        self.root = root
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="savesync-sync"
        )
        self.adapter = WatchAdapter(
            root, settings.extension, queue, coordinator, self._executor
        )
        self.settler = WriteSettler(
            self.adapter.on_file_ready,
            stability_threshold=settings.stability_threshold,
            settle_interval=settings.settle_interval,
        )
        self._observer = PollingObserver(timeout=settings.poll_interval)
        self._observer.schedule(
            SaveFileHandler(root, self.settler), str(root), recursive=True
        )

    def start(self) -> None:
        self._observer.start()
        logger.info(f"READY: Monitoring {self.root}")

    def stop(self) -> None:
        """Stops watching and waits for the running sync attempt.

        Attempts still queued on the worker are cancelled; their files stay
        pending for the shutdown drain.
        """
        self.adapter.stop()
        self.settler.close()
        self._observer.stop()
        self._observer.join()
        self._executor.shutdown(wait=True, cancel_futures=True)
