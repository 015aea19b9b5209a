import logging
import socket
import sys
from collections.abc import Callable

from .constants import APP_NAME, FALLBACK_PROBE_HOST
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)


def parse_remote_host(url: str | None) -> str | None:
    """Extracts the hostname from a git remote URL.

    Supports both SSH (git@...) and HTTPS (https://...) formats.

    Args:
        url (str | None): The remote URL.

    Returns:
        str | None: The hostname (e.g., 'github.com') or None if parsing fails.
    """
    if not url:
        return None
    # Handle HTTPS: https://github.com/user/repo.git (credentials optional)
    if "://" in url:
        netloc = url.split("://", 1)[1].split("/")[0]
        return netloc.rsplit("@", 1)[-1].split(":")[0] or None
    # Handle SSH: git@github.com:user/repo.git
    if "@" in url:
        return url.split("@", 1)[1].split(":")[0] or None
    return None


def resolve_probe_host(repo: GitRepo, remote_name: str, configured: str = "") -> str:
    """Picks the host checked at startup.

    Order: the configured host, then the remote's host, then a public fallback.
    """
    if configured:
        return configured
    return parse_remote_host(repo.remote_url(remote_name)) or FALLBACK_PROBE_HOST


def is_remote_reachable(host: str, timeout: float = 10.0) -> bool:
    """Performs a quick TCP connectivity check on the remote host.

    Args:
        host (str): The hostname to check.
        timeout (float, optional): Socket timeout per port. Defaults to 10.0.

    Returns:
        bool: True if the host accepts connections on port 443 or 22, False otherwise.
    """
    if not host:
        return False  # Implicitly offline if host is unknown.

    last_error: OSError | None = None
    for port in [443, 22]:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError as e:
            last_error = e
            continue
    logger.error(f"Connectivity check to {host} failed: {last_error}")
    return False


def probe(host: str, callback: Callable[[bool], None], timeout: float = 10.0) -> None:
    """Runs the reachability probe and hands the verdict to `callback`."""
    callback(is_remote_reachable(host, timeout=timeout))


def gate(host: str, on_connected: Callable[[], None], timeout: float = 10.0) -> None:
    """Starts the watcher only if the remote is reachable.

    Args:
        host (str): The host to probe.
        on_connected (Callable[[], None]): Invoked once the probe succeeds.
        timeout (float, optional): Socket timeout per port.

    Raises:
        SystemExit: With status 1 if the host is unreachable.
    """

    def _verdict(connected: bool) -> None:
        if not connected:
            logger.error(
                f"OFFLINE: {host} is unreachable. Refusing to start; "
                "check your network."
            )
            sys.exit(1)
        logger.info(f"ONLINE: {host} reachable. Starting watcher.")
        on_connected()

    probe(host, _verdict, timeout=timeout)
