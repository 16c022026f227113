"""Runtime configuration and logging setup for systop."""

import argparse
import logging
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version

from textual.logging import TextualHandler

from systop.history import HISTORY_CAPACITY
from systop.monitor import MIN_INTERVAL

MIN_INTERVAL_MS = round(MIN_INTERVAL * 1000)


@dataclass(frozen=True)
class Settings:
    """Settings consumed by the application."""

    refresh_interval: float = 1.0  # seconds between samples
    frame_interval: float = 0.05  # seconds between UI polls
    history_capacity: int = HISTORY_CAPACITY
    debug: bool = False


def _package_version() -> str:
    try:
        return version("systop")
    except PackageNotFoundError:
        return "0.0.0"


def _interval_ms(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < MIN_INTERVAL_MS:
        raise argparse.ArgumentTypeError(f"must be at least {MIN_INTERVAL_MS} ms, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="systop", description="Terminal system monitor")
    parser.add_argument(
        "-i",
        "--interval",
        type=_interval_ms,
        default=1000,
        help=f"update interval in milliseconds (default: 1000, minimum: {MIN_INTERVAL_MS})",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="enable debug mode")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")
    return parser


def parse_args(argv: list[str] | None = None) -> Settings:
    """Parse command-line arguments into Settings."""
    args = build_parser().parse_args(argv)
    return Settings(refresh_interval=args.interval / 1000, debug=args.debug)


def configure_logging(debug: bool = False) -> None:
    """
    Send log records to the Textual devtools console.

    The TUI owns the terminal, so nothing is written to stderr while it runs.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        handlers=[TextualHandler()],
        force=True,
    )
