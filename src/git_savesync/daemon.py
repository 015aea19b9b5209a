import atexit
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from . import connectivity
from .changes import ChangeQueue
from .config import Config
from .constants import APP_NAME, LOG_FILE, PID_FILE
from .coordinator import SyncCoordinator
from .git_wrapper import GitRepo
from .shutdown import ShutdownDrain
from .watcher import SaveWatcher

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


def setup_logging(interactive: bool, config: Config | None = None) -> None:
    """Configures the logging subsystem.

    Args:
        interactive (bool): If True, logs to stdout. If False, logs to file/stderr
                            with rotation enabled.
        config (Config | None): Supplies the log rotation size.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    # Always log to a stream (stderr is captured by systemd/launchd).
    stream_handler = logging.StreamHandler(
        sys.stderr if not interactive else sys.stdout
    )
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if not interactive:
        max_bytes = (config or Config()).limits.max_log_size
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=max_bytes,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def _write_pid_file() -> None:
    try:
        with open(PID_FILE, "w") as f:
            f.write(str(os.getpid()))

        # Ensure cleanup on exit.
        atexit.register(lambda: PID_FILE.unlink(missing_ok=True))
    except OSError as e:
        logger.warning(f"Could not write PID file: {e}")


def run(config: Config, interactive: bool = True) -> int:
    """Watches the configured directory and syncs changes until signalled.

    Steps:
    1. Opens the repository at the watch root.
    2. Probes the remote once; exits with status 1 if it is unreachable.
    3. Watches for changes until SIGINT/SIGTERM, then drains pending changes.

    Args:
        config (Config): The loaded configuration.
        interactive (bool, optional):   Whether logs go to the terminal only.
                                        Defaults to True.

    Returns:
        int: The process exit status.
    """
    root = config.watch_root
    try:
        repo = GitRepo(root)
    except ValueError as e:
        logger.error(f"FATAL: {e}")
        return 1

    queue = ChangeQueue()
    coordinator = SyncCoordinator(repo, queue, config.core)
    watcher = SaveWatcher(root, config.watch, queue, coordinator)
    drain = ShutdownDrain(
        queue,
        coordinator,
        grace=config.daemon.shutdown_grace,
        on_stop=watcher.stop,
        on_signal=watcher.adapter.stop,
    )
    drain.install()

    if not interactive:
        _write_pid_file()

    logger.info(f"Starting {APP_NAME}: *{config.watch.extension} files in {root}")
    host = connectivity.resolve_probe_host(
        repo, config.core.remote_name, config.daemon.probe_host
    )
    connectivity.gate(host, watcher.start, timeout=config.daemon.probe_timeout)

    drain.wait()
    return drain.drain()


def main(interactive: bool = False) -> None:
    """Entry point for the background service (`git-savesync-daemon`)."""
    config = Config.load()
    setup_logging(interactive, config)
    sys.exit(run(config, interactive=interactive))


if __name__ == "__main__":
    main()
