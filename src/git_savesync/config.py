import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, ClassVar

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_EXTENSION,
    LOCAL_CONFIG_NAME,
)

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '5MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_duration(value: int | float | str) -> float:
    """Converts human-readable durations (e.g., '100ms', '2s', '1min') to seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration format '{value}'")
    if isinstance(value, (int, float)):
        return float(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(ms|s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid duration format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "ms": 0.001,
        "s": 1,
        "sec": 1,
        "m": 60,
        "min": 60,
        "h": 3600,
        "hr": 3600,
    }
    return num * multiplier[unit]


@dataclass
class CoreConfig:
    """Repository target settings.

    Attributes:
        remote_name (str): The git remote that receives pushes.
        branch (str): The branch pushed to the remote.
        commit_prefix (str): Leading text of generated commit messages.
    """

    remote_name: str = "origin"
    branch: str = "main"
    commit_prefix: str = "Force re-upload saves"


@dataclass
class WatchConfig:
    """File watcher settings.

    Attributes:
        path (str): The watched directory, which is also the repository root.
        extension (str): Only files ending with this suffix are synchronized.
        poll_interval (float): Seconds between directory polls.
        stability_threshold (float): Seconds a file must stay unchanged before
            its change is reported.
        settle_interval (float): Seconds between size checks while a write settles.
    """

    path: str = "."
    extension: str = DEFAULT_EXTENSION
    poll_interval: float = 2.0
    stability_threshold: float = 3.0
    settle_interval: float = 0.1


@dataclass
class DaemonConfig:
    """Daemon operational settings.

    Attributes:
        probe_host (str): Host probed at startup. Empty means derive it from
            the remote URL.
        probe_timeout (float): Socket timeout for the startup probe.
        shutdown_grace (float): Pause before exiting after the final drain.
    """

    probe_host: str = ""
    probe_timeout: float = 10.0
    shutdown_grace: float = 1.0


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


_DURATION_KEYS = {
    "poll_interval",
    "stability_threshold",
    "settle_interval",
    "probe_timeout",
    "shutdown_grace",
}


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Repository target settings.
        watch (WatchConfig): Watcher settings.
        daemon (DaemonConfig): Daemon behavior settings.
        limits (LimitsConfig): Resource limits.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    # Cache for the base global configuration
    _global_cache: ClassVar["Config | None"] = None

    @classmethod
    def load(cls, watch_path: Path | None = None) -> "Config":
        """Loads and merges configuration from defaults, global, and local sources.

        Args:
            watch_path (Path | None): Watched directory overriding `[watch].path`.
                Its `savesync.toml`, if present, is merged last.

        Returns:
            Config: The fully merged configuration object.
        """
        # 1. Load or Retrieve Global Config
        if cls._global_cache is None:
            instance = cls()
            if CONFIG_FILE.exists():
                instance._merge_from_file(CONFIG_FILE)
            cls._global_cache = instance

        # Copy each section so callers never mutate the cache.
        base = cls._global_cache
        instance = replace(
            base,
            core=replace(base.core),
            watch=replace(base.watch),
            daemon=replace(base.daemon),
            limits=replace(base.limits),
        )

        # 2. Load Local Config (if applicable)
        if watch_path is not None:
            instance.watch = replace(instance.watch, path=str(watch_path))

        local_toml = Path(instance.watch.path).expanduser() / LOCAL_CONFIG_NAME
        if local_toml.exists():
            instance._merge_from_file(local_toml)
            if watch_path is not None:
                instance.watch.path = str(watch_path)

        return instance

    @property
    def watch_root(self) -> Path:
        """The absolute watched directory (and repository root)."""
        return Path(self.watch.path).expanduser().resolve()

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if not data:
                return

            if "core" in data:
                self.core = self._update_dataclass("core", self.core, data["core"])
            if "watch" in data:
                self.watch = self._update_dataclass("watch", self.watch, data["watch"])
            if "daemon" in data:
                self.daemon = self._update_dataclass(
                    "daemon", self.daemon, data["daemon"]
                )
            if "limits" in data:
                self.limits = self._update_dataclass(
                    "limits", self.limits, data["limits"]
                )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k in _DURATION_KEYS:
                    filtered_updates[k] = parse_duration(v)
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
