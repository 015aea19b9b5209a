"""Pending-change bookkeeping between the watcher and the sync coordinator."""

import threading


class ChangeQueue:
    """A thread-safe, deduplicating set of filenames awaiting synchronization.

    Filenames are relative to the watch root. Re-adding a pending name is a
    no-op, and a drain hands every pending name to exactly one caller.
    """

    def __init__(self) -> None:
        self._pending: set[str] = set()
        self._lock = threading.Lock()

    def enqueue(self, filename: str) -> bool:
        """Adds a filename to the pending set.

        Args:
            filename (str): The name relative to the watch root.

        Returns:
            bool: True if the name was not already pending.
        """
        with self._lock:
            if filename in self._pending:
                return False
            self._pending.add(filename)
            return True

    def drain_all(self) -> tuple[str, ...]:
        """Atomically removes and returns every pending filename.

        Names enqueued after the swap land in the next drain.

        Returns:
            tuple[str, ...]: The drained names, sorted, each exactly once.
        """
        with self._lock:
            drained, self._pending = self._pending, set()
        return tuple(sorted(drained))

    def is_empty(self) -> bool:
        with self._lock:
            return not self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, filename: object) -> bool:
        with self._lock:
            return filename in self._pending
