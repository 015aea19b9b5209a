import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import daemon
from .changes import ChangeQueue
from .config import CONFIG_FILE, Config
from .constants import APP_NAME, LOG_FILE
from .coordinator import SyncCoordinator, SyncResult
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)
console = Console()


def _open_repo(config: Config) -> GitRepo:
    """Opens the repository at the watch root or exits with an error."""
    try:
        return GitRepo(config.watch_root)
    except ValueError as e:
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        sys.exit(1)


def run_watch(path: str | None, background: bool) -> None:
    """Runs the watcher in the foreground until interrupted."""
    config = Config.load(Path(path) if path else None)
    daemon.setup_logging(interactive=not background, config=config)
    sys.exit(daemon.run(config, interactive=not background))


def push_files(files: list[str], path: str | None = None) -> None:
    """Queues the given files and pushes them in a single attempt.

    Args:
        files (list[str]): File paths, absolute or relative to the current directory.
        path (str | None, optional): Watch root override.
    """
    config = Config.load(Path(path) if path else None)
    daemon.setup_logging(interactive=True, config=config)
    repo = _open_repo(config)

    queue = ChangeQueue()
    for name in files:
        candidate = Path(name).resolve()
        try:
            rel = candidate.relative_to(repo.path).as_posix()
        except ValueError:
            console.print(
                f"[bold red]ERROR:[/bold red] {name} is outside {repo.path}."
            )
            sys.exit(1)
        if not candidate.name.endswith(config.watch.extension):
            console.print(
                f"[yellow]Skipping {rel}: not a {config.watch.extension} file.[/yellow]"
            )
            continue
        queue.enqueue(rel)

    if queue.is_empty():
        console.print("[yellow]Nothing to push.[/yellow]")
        return

    coordinator = SyncCoordinator(repo, queue, config.core)
    with console.status("Pushing changes...", spinner="dots"):
        result = coordinator.attempt_sync(wait=True)

    if result is SyncResult.FAILED:
        console.print("[bold red]✘ Push failed. See the log output above.[/bold red]")
        sys.exit(1)
    console.print("[bold green]✔ Push complete.[/bold green]")


def show_status(path: str | None = None) -> None:
    """Displays the effective configuration and the repository state."""
    config = Config.load(Path(path) if path else None)
    repo = _open_repo(config)

    lines = [
        f"Watch Root:  [bold]{repo.path}[/bold]",
        f"Files:       *{config.watch.extension}",
        f"Remote:      {config.core.remote_name}/{config.core.branch}",
    ]
    if repo.index_lock.exists():
        lines.append("Index Lock:  [bold yellow]present (removed on next push)[/]")
    else:
        lines.append("Index Lock:  [green]none[/green]")

    try:
        changed = repo.status_porcelain(f"*{config.watch.extension}")
    except RuntimeError as e:
        changed = []
        lines.append(f"[red]git status failed: {e}[/red]")

    if changed:
        lines.append(f"Unsynced:    [yellow]{len(changed)} file(s)[/yellow]")
        lines.extend(f"   {line}" for line in changed)
    else:
        lines.append("Unsynced:    [green]clean[/green]")

    console.print(Panel("\n".join(lines), title=APP_NAME, expand=False))


def tail_log() -> None:
    """Follows the daemon log file in real-time."""
    if not LOG_FILE.exists():
        console.print(f"[red]No log file found yet at {LOG_FILE}.[/red]")
        return

    console.print(f"Tailing [bold cyan]{LOG_FILE}[/bold cyan] (Ctrl+C to stop)...")
    try:
        subprocess.run(["tail", "-n", "1000", "-f", str(LOG_FILE)])
    except KeyboardInterrupt:
        console.print("\nStopped.", style="dim")


def open_config() -> None:
    """Opens the global config file in the user's editor, creating it if needed."""
    if not CONFIG_FILE.exists():
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_FILE.write_text(
            "# git-savesync configuration. Run 'git-savesync config --list'.\n"
            '[watch]\npath = "."\nextension = ".ps2"\n'
        )
    editor = os.environ.get("EDITOR", "vi")
    subprocess.run([editor, str(CONFIG_FILE)])


def show_config_reference() -> None:
    """Displays a formatted table of all available configuration options."""
    table = Table(title="Git Savesync Configuration Schema", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Default", style="yellow")
    table.add_column("Description")

    table.add_row("core", "remote_name", "str", '"origin"', "Remote receiving pushes.")
    table.add_row("", "branch", "str", '"main"', "Branch pushed after each commit.")
    table.add_row(
        "",
        "commit_prefix",
        "str",
        '"Force re-upload saves"',
        "Commit message text placed before the file list.",
    )

    table.add_row(
        "watch", "path", "str", '"."', "Watched directory (also the repository root)."
    )
    table.add_row("", "extension", "str", '".ps2"', "Only files with this suffix sync.")
    table.add_row(
        "", "poll_interval", "float | str", '"2s"', "Time between directory polls."
    )
    table.add_row(
        "",
        "stability_threshold",
        "float | str",
        '"3s"',
        "How long a file must stay unchanged before it is queued.",
    )
    table.add_row(
        "",
        "settle_interval",
        "float | str",
        '"100ms"',
        "Time between size checks while a write settles.",
    )

    table.add_row(
        "daemon",
        "probe_host",
        "str",
        '""',
        "Host checked at startup. Empty uses the remote's host.",
    )
    table.add_row("", "probe_timeout", "float | str", '"10s"', "Startup probe timeout.")
    table.add_row(
        "",
        "shutdown_grace",
        "float | str",
        '"1s"',
        "Pause after the final push on shutdown.",
    )

    table.add_row(
        "limits",
        "max_log_size",
        "int | str",
        '"5mb"',
        "Max size for log files before rotation (e.g., '5mb', '1gb').",
    )

    console.print(table)


class SavesyncHelpFormatter(argparse.HelpFormatter):
    """Groups the subcommands under headers in the help output."""

    def _format_action(self, action: argparse.Action) -> str:
        if isinstance(action, argparse._SubParsersAction):
            parts = []

            groups = {
                "Sync": ["watch", "push"],
                "Inspection": ["status", "log", "config"],
                "General": ["help"],
            }

            subactions = list(self._iter_indented_subactions(action))

            for group_name, commands in groups.items():
                group_actions = [a for a in subactions if a.dest in commands]
                if not group_actions:
                    continue

                parts.append(f"\n  {group_name}:\n")

                self._indent()
                for subaction in group_actions:
                    parts.append(self._format_action(subaction))
                self._dedent()

            return self._join_parts(parts)

        return super()._format_action(action)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        usage=argparse.SUPPRESS,
        formatter_class=SavesyncHelpFormatter,
        add_help=False,
    )
    parser.add_argument(
        "-h",
        "--help",
        action="help",
        default=argparse.SUPPRESS,
        help=argparse.SUPPRESS,
    )

    subparsers = parser.add_subparsers(dest="command")

    watch_parser = subparsers.add_parser(
        "watch", help="Watch a directory and push changes (default)"
    )
    watch_parser.add_argument("path", nargs="?", help="Directory to watch")
    watch_parser.add_argument(
        "--background",
        action="store_true",
        help="Log to the rotating log file as well (service mode)",
    )

    push_parser = subparsers.add_parser("push", help="Push the given files now")
    push_parser.add_argument("files", nargs="+", help="Files to re-upload")
    push_parser.add_argument("--path", help="Watch root / repository root")

    status_parser = subparsers.add_parser("status", help="Show repository status")
    status_parser.add_argument("path", nargs="?", help="Watch root")

    subparsers.add_parser("log", help="Tail the daemon log file")

    config_parser = subparsers.add_parser(
        "config", help="Open global config file or view options"
    )
    config_parser.add_argument(
        "--list",
        "-l",
        action="store_true",
        help="List all available configuration options and their descriptions",
    )

    subparsers.add_parser("help", help="Show this help message")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Git Savesync CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "help":
        parser.print_help()
        return
    elif args.command == "push":
        push_files(args.files, args.path)
        return
    elif args.command == "status":
        show_status(args.path)
        return
    elif args.command == "log":
        tail_log()
        return
    elif args.command == "config":
        if getattr(args, "list", False):
            show_config_reference()
        else:
            open_config()
        return
    elif args.command == "watch":
        run_watch(args.path, args.background)
        return

    # Default Action (if no subcommand is run)
    run_watch(None, background=False)
