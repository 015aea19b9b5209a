"""Git Savesync: push save files to a git remote as soon as they change.

This package provides the command-line interface, the watcher daemon, and the
coordination logic that batches file events into serialized git pushes.
"""

from . import (
    changes,
    cli,
    config,
    connectivity,
    constants,
    coordinator,
    daemon,
    git_wrapper,
    shutdown,
    watcher,
)

__all__ = [
    "changes",
    "cli",
    "config",
    "connectivity",
    "constants",
    "coordinator",
    "daemon",
    "git_wrapper",
    "shutdown",
    "watcher",
]
