"""Command-line interface for mdgrab."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# Verify core dependencies
try:
    import aiohttp  # noqa: F401
    import bs4  # noqa: F401
    import html2text  # noqa: F401
    import pydantic  # noqa: F401
    import rich  # noqa: F401
    import yaml  # noqa: F401
except ImportError as e:
    print(f"\nERROR: Missing required dependency: {e.name}", file=sys.stderr)
    print("\nmdgrab requires all core dependencies to be installed.", file=sys.stderr)
    print("\nRecommended fixes:", file=sys.stderr)
    print("  1. For pip users: pip install --upgrade --force-reinstall mdgrab", file=sys.stderr)
    print("  2. For development: pip install -e .[dev]", file=sys.stderr)
    sys.exit(1)

from rich.console import Console
from rich.status import Status

from . import __version__
from .core.handlers import download_url
from .errors import MdgrabError
from .logging_config import setup_logging
from .models.config import BlockPolicy, MdgrabConfig, TableHeaderPolicy
from .models.events import EventType, ProgressEvent


class StatusIndicator:
    """
    In-place progress line for the terminal.

    Each message replaces the previous one. A message shown with a
    timeout disappears once the timeout elapses unless a newer message
    replaced it first; timeout 0 keeps it until replaced.

    Example:
        with StatusIndicator(console) as indicator:
            indicator.show("Processing article...")
            indicator.show("Downloaded: note.md", timeout=3.0)
    """

    # Events that also leave a permanent line in the console
    PERSISTENT_EVENTS = frozenset({EventType.ITEM_SAVED, EventType.ITEM_SKIPPED, EventType.COMPLETED, EventType.FAILED})

    def __init__(self, console: Console, enabled: bool = True) -> None:
        self._console = console
        self._enabled = enabled
        self._status = Status("", console=console, spinner="dots")
        self._visible = False
        self._generation = 0

    def __enter__(self) -> StatusIndicator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.hide()

    @property
    def visible(self) -> bool:
        return self._visible

    def show(self, message: str, timeout: float = 0.0) -> None:
        """Show ``message``, hiding it after ``timeout`` seconds if positive."""
        self._generation += 1
        if not self._enabled:
            return

        self._status.update(message)
        if not self._visible:
            self._status.start()
            self._visible = True

        if timeout > 0:
            generation = self._generation
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
            loop.call_later(timeout, self._expire, generation)

    def _expire(self, generation: int) -> None:
        if generation == self._generation:
            self.hide()

    def hide(self) -> None:
        if self._visible:
            self._status.stop()
            self._visible = False

    def on_event(self, event: ProgressEvent) -> None:
        """EventEmitter callback: route progress events to the indicator."""
        if event.type in self.PERSISTENT_EVENTS and self._enabled:
            style = "red" if event.is_error else "green"
            self._console.print(f"[{style}]{event.message}[/{style}]")
        self.show(event.message, timeout=event.timeout)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="mdgrab",
        description="Download Zhihu, CSDN, WeChat and Juejin articles as Markdown with embedded images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Download one article into the current directory
  mdgrab https://zhuanlan.zhihu.com/p/123456789

  # Download every article on a profile page, signed in
  mdgrab https://www.zhihu.com/people/someone/posts --cookie '$ZHIHU_COOKIE' -o ./notes

  # Render with a headless browser and route blocked pages to the API
  mdgrab https://zhuanlan.zhihu.com/p/123456789 --js --block-policy fallback
        """,
    )

    parser.add_argument(
        "url",
        nargs="?",
        help="Page URL to download",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        metavar="FILE",
        help="YAML configuration file",
    )

    parser.add_argument(
        "--output-dir",
        "-o",
        type=Path,
        default=None,
        help="Output directory (default: current directory)",
    )

    # Network settings
    network_group = parser.add_argument_group("network settings")
    network_group.add_argument(
        "--cookie",
        type=str,
        default=None,
        help="Cookie header for the platform session ($VAR references are expanded)",
    )
    network_group.add_argument(
        "--js",
        "--javascript",
        action="store_true",
        dest="javascript",
        help="Render pages with a headless browser (requires Playwright)",
    )
    network_group.add_argument(
        "--block-policy",
        choices=[policy.value for policy in BlockPolicy],
        default=None,
        help="On security-check or login pages: log only, or go straight to the API fallback",
    )

    # Conversion settings
    conversion_group = parser.add_argument_group("conversion settings")
    conversion_group.add_argument(
        "--table-header",
        choices=[policy.value for policy in TableHeaderPolicy],
        default=None,
        help="Insert the table separator row always, or only after header cells",
    )
    conversion_group.add_argument(
        "--max-rounds",
        type=int,
        default=None,
        metavar="N",
        help="Maximum scroll rounds when collecting list pages (default: 80)",
    )

    # Output control
    output_group = parser.add_argument_group("output control")
    output_group.add_argument(
        "--dry-run",
        action="store_true",
        help="Convert without writing files",
    )
    output_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output",
    )
    output_group.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress output",
    )
    output_group.add_argument(
        "--log-file",
        type=Path,
        default=None,
        metavar="FILE",
        help="Also write logs to this file",
    )

    return parser


def _section(data: dict, name: str) -> dict:
    """Nested settings dict for ``name``, created if the file left it out or empty."""
    if data.get(name) is None:
        data[name] = {}
    return data[name]


def build_config(args: argparse.Namespace) -> MdgrabConfig:
    """
    Merge the optional YAML file with command-line overrides.

    Raises:
        pydantic.ValidationError: On invalid settings
        OSError: If the config file cannot be read
    """
    # Overrides go into the raw settings so validation (and env expansion) runs once
    data = MdgrabConfig.read_yaml_file(args.config) if args.config else {}

    if args.output_dir:
        _section(data, "output")["directory"] = args.output_dir
    if args.cookie:
        _section(data, "auth")["cookie"] = args.cookie
    if args.javascript:
        _section(data, "browser")["javascript"] = True
    if args.block_policy:
        _section(data, "network")["block_policy"] = args.block_policy
    if args.table_header:
        _section(data, "conversion")["table_header_policy"] = args.table_header
    if args.max_rounds is not None:
        _section(data, "harvest")["max_rounds"] = args.max_rounds
    if args.dry_run:
        data["dry_run"] = True
    if args.log_file:
        data["log_file"] = args.log_file

    if args.verbose:
        data["log_level"] = "DEBUG"
    elif args.quiet:
        data["log_level"] = "ERROR"

    return MdgrabConfig.model_validate(data)


def run_download(args: argparse.Namespace) -> int:
    """Run one download with given arguments."""
    console = Console(stderr=True)

    if not args.url:
        console.print("[red]Error:[/red] Please provide a URL to download")
        return 1

    try:
        config = build_config(args)
    except Exception as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1

    setup_logging(config.log_level, config.log_file)

    async def run() -> int:
        if not args.quiet:
            console.print(f"[bold blue]mdgrab[/bold blue] v{__version__}")
            console.print(f"Target: {args.url}")
            console.print()

        with StatusIndicator(console, enabled=not args.quiet) as indicator:
            try:
                result = await download_url(args.url, config, emit=indicator.on_event)
            except MdgrabError:
                # Already reported through the FAILED event
                return 1
            except Exception:
                if args.verbose:
                    import traceback

                    traceback.print_exc()
                return 1

        if not args.quiet:
            console.print()
            console.print("[bold]Results:[/bold]")
            for path in result.paths:
                console.print(f"  Saved: {path}")
            if result.stats is not None:
                stats = result.stats
                console.print(f"  Links collected: {stats.entries_collected}")
                console.print(f"  Articles saved: {stats.items_saved}")
                console.print(f"  Articles skipped: {stats.items_skipped}")

        if result.stats is not None and result.stats.items_saved == 0 and result.stats.items_skipped:
            return 1
        return 0

    return asyncio.run(run())


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    return run_download(args)


if __name__ == "__main__":
    sys.exit(main())
