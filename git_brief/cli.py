"""Command-line interface for git-brief."""
import argparse
import logging
import os
import sys
import unicodedata
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from colorama import Fore, Style, just_fix_windows_console

from . import __version__
from .diffstat import DEFAULT_DIFF_STRATEGY, DIFF_STRATEGIES
from .log import DEFAULT_NUM_COMMITS, DIFF_SYMBOLS, LogRow, condensed_log, diff_components
from .repository import GitCommandError

logger = logging.getLogger(__name__)

COLUMN_GAP = "  "
HASH_STYLE = Fore.YELLOW
TIME_STYLE = Fore.GREEN
AUTHOR_STYLE = Fore.BLUE + Style.BRIGHT
REF_STYLE = Fore.RED
DIFF_STYLES = dict(zip(DIFF_SYMBOLS, (Fore.YELLOW, Fore.GREEN, Fore.RED)))


@dataclass(frozen=True)
class LogConfig:
    """Options for one run of the tool.

    Attributes:
        repo_path: Directory of the repository to open
        base: Revision to diff against; empty picks "main" or "master"
        num_commits: Maximum number of commits to display
        exclude: Path patterns left out of the diff stats
        diff_strategy: How diff stats are computed ("tree" or "shortstat")
        color: Whether to emit ANSI colors
        verbose: Whether to log debug output
    """
    repo_path: str
    base: str = ""
    num_commits: int = DEFAULT_NUM_COMMITS
    exclude: Tuple[str, ...] = ()
    diff_strategy: str = DEFAULT_DIFF_STRATEGY
    color: bool = True
    verbose: bool = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-brief",
        description="Show a condensed, colorized log with diff stats against a base branch.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  git-brief
  git-brief --base develop -n 10
  git-brief -r ../other-repo --exclude "*.lock" --exclude vendor
  git-brief --diff-strategy shortstat --no-color""",
    )
    # Short and long forms get separate destinations so the long form can win.
    parser.add_argument("-r", dest="repo_path_short", metavar="PATH", help="Same as --repo-path")
    parser.add_argument(
        "--repo-path", dest="repo_path", metavar="PATH",
        help="Repository location (default: current directory)",
    )
    parser.add_argument("-b", dest="base_short", metavar="REV", help="Same as --base")
    parser.add_argument(
        "--base", dest="base", metavar="REV",
        help="The commit against which to compare (default: main, then master)",
    )
    parser.add_argument("-n", dest="num_commits_short", type=int, metavar="N", help="Same as --num-commits")
    parser.add_argument(
        "--num-commits", dest="num_commits", type=int, metavar="N",
        help=f"The number of commits to display (default: {DEFAULT_NUM_COMMITS}). "
             "Note that a large number will degrade performance",
    )
    parser.add_argument(
        "-e", dest="exclude_short", action="append", default=[], metavar="PATTERN",
        help="Same as --exclude",
    )
    parser.add_argument(
        "--exclude", dest="exclude", action="append", default=[], metavar="PATTERN",
        help="Path pattern to leave out of diff stats (repeatable)",
    )
    parser.add_argument(
        "--diff-strategy", choices=sorted(DIFF_STRATEGIES), default=DEFAULT_DIFF_STRATEGY,
        help=f"How diff stats are computed (default: {DEFAULT_DIFF_STRATEGY})",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _prefer_long(long_value, short_value, default):
    if long_value is not None:
        return long_value
    if short_value is not None:
        return short_value
    return default


def parse_args(argv: Optional[Sequence[str]] = None) -> LogConfig:
    """Parse command-line arguments into a LogConfig."""
    args = build_parser().parse_args(argv)
    return LogConfig(
        repo_path=_prefer_long(args.repo_path, args.repo_path_short, os.getcwd()),
        base=_prefer_long(args.base, args.base_short, ""),
        num_commits=_prefer_long(args.num_commits, args.num_commits_short, DEFAULT_NUM_COMMITS),
        exclude=tuple(args.exclude + args.exclude_short),
        diff_strategy=args.diff_strategy,
        color=not args.no_color and sys.stdout.isatty(),
        verbose=args.verbose,
    )


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(stream=sys.stderr, level=level, format="%(levelname)s: %(message)s")
    logging.getLogger("git_brief").setLevel(level)


def colorize(text: str, style: str, color: bool) -> str:
    if not color or not text:
        return text
    return f"{style}{text}{Style.RESET_ALL}"


def style_diff(row: LogRow, color: bool) -> str:
    if not color:
        return row.diff
    return ",".join(
        colorize(f"{value}({symbol})", DIFF_STYLES[symbol], color)
        for value, symbol in diff_components(row.diff_stat)
    )


def style_message(row: LogRow, color: bool) -> str:
    if not color or not row.ref_names:
        return row.message
    refs = "".join(colorize(f"({name})", REF_STYLE, color) for name in row.ref_names)
    return f"{refs} {row.subject}"


def style_row(row: LogRow, color: bool) -> List[str]:
    return [
        colorize(row.hash, HASH_STYLE, color),
        colorize(row.relative_time, TIME_STYLE, color),
        colorize(row.author, AUTHOR_STYLE, color),
        style_diff(row, color),
        style_message(row, color),
    ]


def display_width(text: str) -> int:
    """Terminal columns taken by ``text``: wide East Asian characters use two."""
    width = 0
    for char in text:
        if unicodedata.combining(char):
            continue
        width += 2 if unicodedata.east_asian_width(char) in ("W", "F") else 1
    return width


def render_table(rows: Sequence[LogRow], color: bool = False) -> List[str]:
    """Lay rows out in whitespace-padded columns, no header or borders.

    Widths are measured in display columns on the plain text so neither colors
    nor wide characters skew alignment.
    """
    if not rows:
        return []
    plain = [row.cells() for row in rows]
    widths = [max(display_width(cells[i]) for cells in plain) for i in range(len(plain[0]) - 1)]

    lines = []
    for row, cells in zip(rows, plain):
        styled = style_row(row, color)
        parts = [
            styled[i] + " " * (width - display_width(cells[i])) for i, width in enumerate(widths)
        ]
        parts.append(styled[-1])
        lines.append(COLUMN_GAP.join(parts).rstrip())
    return lines


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for the git-brief CLI.

    Exits with code 1 on error, 130 on keyboard interrupt.
    """
    config = parse_args(argv)
    configure_logging(config.verbose)
    logger.debug("Running with %s", config)
    if config.color:
        just_fix_windows_console()

    try:
        rows = condensed_log(
            repo_path=config.repo_path,
            base=config.base,
            num_commits=config.num_commits,
            exclude=config.exclude,
            diff_strategy=config.diff_strategy,
        )
    except GitCommandError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)

    for line in render_table(rows, color=config.color):
        print(line)


if __name__ == "__main__":
    main()
