import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME, INDEX_LOCK, STDERR_WARNING_KEYWORDS

logger = logging.getLogger(APP_NAME)


class GitCommandError(RuntimeError):
    """Raised when a git invocation exits with a non-zero status.

    Attributes:
        command (list[str]): The full argv that was executed.
        returncode (int): The process exit status.
        stdout (str): Captured standard output.
        stderr (str): Captured standard error.
    """

    def __init__(
        self, command: list[str], returncode: int, stdout: str = "", stderr: str = ""
    ):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = stderr.strip() or stdout.strip() or f"exit status {returncode}"
        super().__init__(f"Git error: {detail}")


@dataclass
class CommandResult:
    """Captured output of a successful git command."""

    stdout: str
    stderr: str


def is_warning_text(text: str) -> bool:
    """Returns True if stderr output reads as a benign warning."""
    lowered = text.lower()
    return any(keyword in lowered for keyword in STDERR_WARNING_KEYWORDS)


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    Every command runs with the repository root as its working directory and
    its output captured. Failures surface as `GitCommandError`, after the
    command and its output have been logged.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the specified path does not contain a .git directory.
        """
        self.path = path
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    @property
    def index_lock(self) -> Path:
        """Path of the index lock file inside the metadata directory."""
        return self.path / ".git" / INDEX_LOCK

    def _run(self, args: list[str]) -> CommandResult:
        """Executes a Git command within the repository context.

        Non-empty stderr of a successful command is logged at INFO when it
        looks like a warning and at WARNING otherwise. It never changes the
        outcome.

        Args:
            args (list[str]): A list of arguments to pass to the git command.

        Returns:
            CommandResult: The captured stdout and stderr.

        Raises:
            GitCommandError: If the git command returns a non-zero exit code.
        """
        cmd = ["git", *args]
        logger.debug(f"EXEC: {' '.join(cmd)} (cwd={self.path})")
        try:
            res = subprocess.run(
                cmd,
                cwd=self.path,
                capture_output=True,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            err = GitCommandError(cmd, e.returncode, e.stdout or "", e.stderr or "")
            logger.error(f"COMMAND FAILED: {' '.join(cmd)}")
            logger.error(f"   {err}")
            if err.stdout:
                logger.error(f"   stdout: {err.stdout.strip()}")
            if err.stderr:
                logger.error(f"   stderr: {err.stderr.strip()}")
            raise err from e

        if res.stdout and res.stdout.strip():
            logger.debug(f"   stdout: {res.stdout.strip()}")
        if res.stderr and res.stderr.strip():
            if is_warning_text(res.stderr):
                logger.info(f"   stderr (warning): {res.stderr.strip()}")
            else:
                logger.warning(f"   stderr: {res.stderr.strip()}")
        return CommandResult(res.stdout or "", res.stderr or "")

    def untrack(self, file: str) -> None:
        """Removes a file from the index, leaving the working copy untouched.

        Fails for files git does not track yet.

        Args:
            file (str): Path relative to the repository root.
        """
        self._run(["rm", "--cached", "--", file])

    def add(self, file: str) -> None:
        """Stages a single file.

        Args:
            file (str): Path relative to the repository root.
        """
        self._run(["add", "--", file])

    def commit(self, message: str) -> None:
        """Creates a new commit with the provided message.

        Args:
            message (str): The commit message.
        """
        self._run(["commit", "-m", message])

    def push(self, remote: str, branch: str) -> None:
        """Pushes a branch to a remote.

        Args:
            remote (str): The remote name (e.g., 'origin').
            branch (str): The branch to push (e.g., 'main').
        """
        self._run(["push", remote, branch])

    def remote_url(self, remote: str) -> str | None:
        """Resolves the URL configured for a remote.

        Args:
            remote (str): The remote name.

        Returns:
            str | None: The URL, or None if the remote is not configured.
        """
        try:
            return self._run(["remote", "get-url", remote]).stdout.strip() or None
        except GitCommandError as e:
            logger.debug(f"remote get-url failed for '{remote}': {e}")
            return None

    def status_porcelain(self, pattern: str | None = None) -> list[str]:
        """Returns the porcelain (machine-readable) status of the repository.

        Args:
            pattern (str | None, optional): A pathspec to limit the output.

        Returns:
            list[str]: Status lines returned by `git status --porcelain`.
        """
        cmd = ["status", "--porcelain"]
        if pattern:
            cmd.extend(["--", pattern])
        output = self._run(cmd).stdout.rstrip()
        return output.splitlines() if output else []
