import enum
import logging
import threading
from collections.abc import Sequence

from .changes import ChangeQueue
from .config import CoreConfig
from .constants import APP_NAME
from .git_wrapper import GitCommandError, GitRepo

logger = logging.getLogger(APP_NAME)


class SyncResult(enum.Enum):
    """Outcome of a single synchronization attempt."""

    SKIPPED = "skipped"
    SUCCESS = "success"
    FAILED = "failed"


def build_commit_message(prefix: str, files: Sequence[str]) -> str:
    """Formats the commit message listing every file of an attempt.

    Args:
        prefix (str): Leading text (e.g., 'Force re-upload saves').
        files (Sequence[str]): The filenames in the attempt.

    Returns:
        str: The message, e.g. 'Force re-upload saves: a.ps2, b.ps2'.
    """
    return f"{prefix}: {', '.join(files)}"


class SyncCoordinator:
    """Serializes the synchronization of queued files with the remote.

    The coordinator owns the "sync in progress" guard. Only the caller that
    wins the guard drains the queue, so at most one sequence of git commands
    runs at a time. Files drained into an attempt are not re-queued if the
    attempt fails; new events for those files are the only recovery path.

    Attributes:
        repo (GitRepo): The repository being synchronized.
        queue (ChangeQueue): Source of pending filenames.
        core (CoreConfig): Remote, branch and commit message settings.
    """

    def __init__(self, repo: GitRepo, queue: ChangeQueue, core: CoreConfig):
        self.repo = repo
        self.queue = queue
        self.core = core
        self._guard = threading.Lock()

    @property
    def in_progress(self) -> bool:
        """True while an attempt holds the guard."""
        return self._guard.locked()

    def attempt_sync(self, wait: bool = False) -> SyncResult:
        """Runs one synchronization attempt over every pending file.

        Steps:
        1. Skip if another attempt is running or nothing is pending.
        2. Drain the queue and remove a leftover index lock.
        3. Untrack and re-add each file, commit once, push once.

        Any failing step aborts the rest of the attempt.

        Args:
            wait (bool, optional):  Block until a running attempt finishes
                                    instead of skipping. Defaults to False.

        Returns:
            SyncResult: SKIPPED, SUCCESS or FAILED.
        """
        if self.queue.is_empty() or not self._guard.acquire(blocking=wait):
            logger.info(
                "SKIPPED: No changes to commit or another push is in progress."
            )
            return SyncResult.SKIPPED

        try:
            files = self.queue.drain_all()
            if not files:
                # Drained by the previous holder while we waited.
                logger.info("SKIPPED: No changes to commit.")
                return SyncResult.SKIPPED

            logger.info(f"SYNC: Re-pushing {len(files)} file(s): {', '.join(files)}")

            if not self._clear_index_lock():
                return SyncResult.FAILED

            try:
                self._push_files(files)
            except GitCommandError as e:
                logger.error(f"PUSH ERROR: {e}")
                return SyncResult.FAILED

            logger.info(f"SUCCESS: Pushed {', '.join(files)}")
            return SyncResult.SUCCESS
        finally:
            self._guard.release()

    def _clear_index_lock(self) -> bool:
        """Deletes a stale index lock left behind by a crashed git process.

        Returns:
            bool: False if a lock exists and could not be removed.
        """
        lock_file = self.repo.index_lock
        if not lock_file.exists():
            return True
        try:
            lock_file.unlink()
        except FileNotFoundError:
            return True  # Released by its owner in the meantime.
        except OSError as e:
            logger.error(f"LOCK ERROR: Failed to remove {lock_file}: {e}")
            return False
        logger.info("LOCK: Stale git index lock removed.")
        return True

    def _push_files(self, files: Sequence[str]) -> None:
        """Re-stages, commits and pushes the given files.

        Raises:
            GitCommandError: On the first failing git command.
        """
        for file in files:
            logger.info(f"UNTRACK: {file}")
            self.repo.untrack(file)
            logger.info(f"ADD: {file}")
            self.repo.add(file)

        message = build_commit_message(self.core.commit_prefix, files)
        logger.info(f'COMMIT: "{message}"')
        self.repo.commit(message)

        logger.info(f"PUSH: {self.core.remote_name}/{self.core.branch}")
        self.repo.push(self.core.remote_name, self.core.branch)
