import os
from pathlib import Path

"""Global constants and path definitions for Git Savesync.

This module defines the filesystem layout (adhering to XDG standards where applicable),
application identifiers, and the git and watcher defaults shared across the
application.
"""

# --- Identity ---
APP_NAME = "git-savesync"
"""str: The human-readable application name."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "git-savesync"
"""Path: The directory for runtime state data (logs, pid file)."""

# Ensure state directory exists immediately upon module import.
STATE_DIR.mkdir(parents=True, exist_ok=True)

LOG_FILE = STATE_DIR / "daemon.log"
"""Path: The file path for the daemon process logs."""

PID_FILE = STATE_DIR / "daemon.pid"
"""Path: The file path storing the daemon's process ID."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/git-savesync"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

LOCAL_CONFIG_NAME = "savesync.toml"
"""str: Per-directory configuration file, read from the watch root."""

# --- Git / Watch Constants ---
INDEX_LOCK = "index.lock"
"""str: Lock file git leaves in its metadata directory if a command crashes."""

DEFAULT_EXTENSION = ".ps2"
"""str: The file suffix synchronized by default (PCSX2 memory cards)."""

IGNORED_PATTERNS = ["*/.git/*", "*/.*"]
"""list[str]: Paths the watcher never reports (git metadata, hidden files)."""

STDERR_WARNING_KEYWORDS = ("warning",)
"""tuple[str, ...]: Substrings marking git stderr output as benign."""

FALLBACK_PROBE_HOST = "www.google.com"
"""str: Host probed at startup when the remote URL yields no hostname."""
