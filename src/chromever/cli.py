# src/chromever/cli.py

import argparse
import asyncio
import functools
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from chromever import config as chromever_config
from chromever import log_utils
from chromever.catalog import CatalogAggregator, fetch_live_versions
from chromever.constants import MILESTONES_PER_ROW
from chromever.exceptions import ChromeverError, VersionNotFoundError
from chromever.installer import Installer
from chromever.launcher import Launcher
from chromever.models import SourceKind
from chromever.storage import InstallationStore
from chromever.utils import chunk_rows, get_version

console = Console()


class InstallProgress:
    """
    Rich progress display for one install: a byte bar while downloading, then a
    file-count bar while extracting.
    """

    def __init__(self, progress_console: Optional[Console] = None) -> None:
        self.console = progress_console or console
        self._progress: Optional[Progress] = None
        self._task: Optional[Any] = None
        self._stage: Optional[str] = None

    def __enter__(self) -> "InstallProgress":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    def _start(self, stage: str, description: str, total: Optional[int], *columns) -> None:
        self.stop()
        self._progress = Progress(
            TextColumn("  [progress.description]{task.description}"),
            BarColumn(bar_width=40),
            *columns,
            console=self.console,
        )
        self._progress.start()
        self._task = self._progress.add_task(description, total=total)
        self._stage = stage

    def on_download(self, downloaded: int, total: Optional[int]) -> None:
        if self._stage != "download":
            self._start(
                "download",
                "Downloading",
                total,
                DownloadColumn(),
                TransferSpeedColumn(),
                TimeRemainingColumn(),
            )
        self._progress.update(self._task, completed=downloaded, total=total)

    def on_extract(self, done: int, total: int) -> None:
        if self._stage != "extract":
            self._start(
                "extract", "Extracting", total, MofNCompleteColumn(), TimeElapsedColumn()
            )
        self._progress.update(self._task, completed=done, total=total)

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task = None
        self._stage = None


def _milestone_arg(value: str) -> int:
    try:
        milestone = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid milestone: {value!r}") from None
    if milestone <= 0:
        raise argparse.ArgumentTypeError(f"milestone must be positive, got {value}")
    return milestone


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chromever",
        description="chromever - install, launch and switch between Chrome versions",
    )
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--root",
        metavar="DIR",
        help="Installation root (default: ~/.chromever)",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Configuration file to use instead of the default location",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser(
        "list-remote", help="List Chrome versions available for download"
    )
    subparsers.add_parser("list", help="List locally installed Chrome versions")

    install_parser = subparsers.add_parser(
        "install", help="Download and install a Chrome milestone"
    )
    install_parser.add_argument(
        "milestone",
        type=_milestone_arg,
        help="Chrome milestone (e.g. 80, 91, 120, 130)",
    )

    uninstall_parser = subparsers.add_parser(
        "uninstall", help="Remove an installed Chrome milestone"
    )
    uninstall_parser.add_argument("milestone", type=_milestone_arg)

    launch_parser = subparsers.add_parser(
        "launch", help="Start an installed Chrome milestone with its own profile"
    )
    launch_parser.add_argument("milestone", type=_milestone_arg)
    launch_parser.add_argument("--url", help="URL to open on startup")

    subparsers.add_parser("version", help="Display chromever version")

    return parser


def _build_aggregator(config: Dict[str, Any]) -> CatalogAggregator:
    fetcher = functools.partial(
        fetch_live_versions,
        url=config["CATALOG_URL"],
        timeout=chromever_config.get_request_timeout(config),
    )
    return CatalogAggregator(fetcher=fetcher)


def cmd_list_remote(aggregator: CatalogAggregator, store: InstallationStore) -> int:
    log_utils.logger.info("Fetching remote Chrome versions...")
    versions = aggregator.list_all()

    table = Table(box=None, header_style="bold", pad_edge=False)
    table.add_column("Milestone", style="bold white", min_width=10)
    table.add_column("Version", min_width=20)
    table.add_column("Source")
    table.add_column("")
    for v in versions:
        source_style = "green" if v.source is SourceKind.LIVE_CATALOG else "yellow"
        marker = "[green]✓[/green]" if store.is_installed(v.milestone) else ""
        table.add_row(
            str(v.milestone),
            v.version,
            f"[{source_style}]{v.source.label}[/{source_style}]",
            marker,
        )
    console.print(table)
    console.print(f"\n  {len(versions)} versions available\n")
    return 0


def cmd_list(store: InstallationStore) -> int:
    installed = store.list_installed()
    if not installed:
        console.print("  [dim]No versions installed[/dim]")
        console.print(
            "\n  Use [green]chromever install <milestone>[/green] to install one\n"
        )
        return 0

    table = Table(box=None, header_style="bold", pad_edge=False)
    table.add_column("Milestone", style="bold white", min_width=10)
    table.add_column("Chrome path", style="dim")
    for v in installed:
        table.add_row(str(v.milestone), str(v.executable_path))
    console.print(table)
    console.print(f"\n  {len(installed)} versions installed\n")
    return 0


def _print_available_milestones(milestones: List[int]) -> None:
    console.print("\n  Available milestones:")
    for row in chunk_rows(sorted(milestones), MILESTONES_PER_ROW):
        console.print(f"    {row}")
    console.print()


def cmd_install(
    milestone: int,
    aggregator: CatalogAggregator,
    installer: Installer,
    store: InstallationStore,
) -> int:
    log_utils.logger.info(f"Installing Chrome {milestone}...")

    existing = store.find_executable(milestone)
    if existing is not None:
        log_utils.logger.info(f"Chrome {milestone} is already installed")
        log_utils.logger.info(f"Path: {existing}")
        return 0

    descriptor = aggregator.find(milestone)
    if descriptor is None:
        _print_available_milestones(aggregator.milestones())
        raise VersionNotFoundError(milestone)

    log_utils.logger.info(f"Version: {descriptor.version} ({descriptor.source.label})")

    with InstallProgress() as progress:
        executable = asyncio.run(
            installer.install_and_commit(
                descriptor.download_url,
                milestone,
                progress_callback=progress.on_download,
                extract_callback=progress.on_extract,
            )
        )

    log_utils.logger.info(f"Chrome {milestone} installed: {executable}")
    return 0


def cmd_uninstall(milestone: int, store: InstallationStore) -> int:
    log_utils.logger.info(f"Uninstalling Chrome {milestone}...")
    if not store.has_version_dir(milestone):
        log_utils.logger.warning(f"Chrome {milestone} is not installed")
        return 0

    store.remove_version(milestone)
    log_utils.logger.info(f"Chrome {milestone} uninstalled")
    return 0


def cmd_launch(milestone: int, url: Optional[str], launcher: Launcher) -> int:
    launcher.launch(milestone, url)
    return 0


def _configure(args: argparse.Namespace) -> Dict[str, Any]:
    config = chromever_config.load_config(args.config)

    if chromever_config.config_exists(args.config):
        log_utils.logger.debug(
            f"Using configuration file {args.config or chromever_config.CONFIG_FILE}"
        )

    level = chromever_config.resolve_log_level(config, args.log_level)
    if level:
        log_utils.set_log_level(level)
    if config.get("LOG_TO_FILE"):
        log_utils.add_file_logging(
            chromever_config.LOG_DIR, level or config.get("LOG_LEVEL") or "INFO"
        )
    return config


def _dispatch(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    if args.command is None:
        parser.print_help()
        return 0
    if args.command == "version":
        log_utils.logger.info(f"chromever v{get_version()}")
        return 0

    config = _configure(args)
    store = InstallationStore(chromever_config.resolve_install_root(config, args.root))
    log_utils.logger.debug(f"Installation root: {store.root}")

    if args.command == "list-remote":
        return cmd_list_remote(_build_aggregator(config), store)
    if args.command == "list":
        return cmd_list(store)
    if args.command == "install":
        installer = Installer(store)
        return cmd_install(args.milestone, _build_aggregator(config), installer, store)
    if args.command == "uninstall":
        return cmd_uninstall(args.milestone, store)
    if args.command == "launch":
        return cmd_launch(args.milestone, args.url, Launcher(store))

    parser.print_help()
    return 1


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the chromever command-line interface.

    Parses arguments and dispatches one of the subcommands: list-remote, list,
    install, uninstall, launch or version. Any chromever error is logged with
    its cause and ends the process with exit status 1.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        exit_code = _dispatch(args, parser)
    except ChromeverError as e:
        log_utils.logger.error(str(e))
        exit_code = 1
    except KeyboardInterrupt:
        log_utils.logger.error("Interrupted")
        exit_code = 130

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
