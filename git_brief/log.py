"""Condensed commit log with diff stats against a base commit."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .diffstat import DEFAULT_DIFF_STRATEGY, DiffStat, DiffStatProvider, get_diff_stat_provider
from .repository import (
    Commit,
    get_ref_names,
    is_ancestor_of_head,
    iter_commits,
    open_repository,
    resolve_base,
)

logger = logging.getLogger(__name__)

DEFAULT_NUM_COMMITS = 30

DIFF_SYMBOLS = ("~", "+", "-")

_TIME_UNITS = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("week", 7 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
)


@dataclass
class TraversalState:
    """Whether the walk is still above the base commit.

    ``still_ahead`` only ever goes from True to False.
    """
    base_hash: str
    still_ahead: bool

    def visit(self, commit: Commit) -> bool:
        if commit.hash == self.base_hash:
            self.still_ahead = False
        return self.still_ahead


@dataclass(frozen=True)
class LogRow:
    """Display fields of one commit, plus the parts presentation may style."""
    hash: str
    relative_time: str
    author: str
    diff: str
    message: str
    ref_names: Tuple[str, ...] = ()
    subject: str = ""
    diff_stat: Optional[DiffStat] = None

    def cells(self) -> Tuple[str, str, str, str, str]:
        return (self.hash, self.relative_time, self.author, self.diff, self.message)


def relative_time(when: datetime, now: Optional[datetime] = None) -> str:
    """Human-readable distance between ``when`` and ``now``, e.g. "3 days ago"."""
    now = now or datetime.now(timezone.utc)
    seconds = int((now - when).total_seconds())
    future = seconds < 0
    seconds = abs(seconds)
    unit, size = next(((u, s) for u, s in _TIME_UNITS if seconds >= s), (None, 0))
    if unit is None:
        return "just now"
    count = seconds // size
    label = f"{count} {unit}{'s' if count != 1 else ''}"
    return f"in {label}" if future else f"{label} ago"


def diff_components(stat: Optional[DiffStat]) -> List[Tuple[int, str]]:
    """Non-zero ``(count, symbol)`` pairs in display order."""
    if stat is None:
        return []
    values = (stat.files_changed, stat.insertions, stat.deletions)
    return [(value, symbol) for value, symbol in zip(values, DIFF_SYMBOLS) if value > 0]


def format_diff_stat(stat: Optional[DiffStat]) -> str:
    """Render non-zero components as ``N(~),N(+),N(-)``."""
    return ",".join(f"{value}({symbol})" for value, symbol in diff_components(stat))


def format_message(subject: str, ref_names: Sequence[str] = ()) -> str:
    if not ref_names:
        return subject
    prefix = "".join(f"({name})" for name in ref_names)
    return f"{prefix} {subject}"


def format_row(
    commit: Commit,
    diff_stat: Optional[DiffStat] = None,
    ref_names: Sequence[str] = (),
    now: Optional[datetime] = None,
) -> LogRow:
    """Build the display row for a single commit."""
    return LogRow(
        hash=commit.short_hash,
        relative_time=relative_time(commit.authored_at, now),
        author=commit.author_name,
        diff=format_diff_stat(diff_stat),
        message=format_message(commit.subject, ref_names),
        ref_names=tuple(ref_names),
        subject=commit.subject,
        diff_stat=diff_stat,
    )


def build_rows(
    commits: Iterable[Commit],
    base: Commit,
    base_is_ancestor: bool,
    provider: DiffStatProvider,
    ref_names: Optional[Dict[str, List[str]]] = None,
    now: Optional[datetime] = None,
) -> Iterator[LogRow]:
    """Format each commit, attaching a diff stat while the walk is above the base.

    Args:
        commits: Commits in traversal order, newest first
        base: The fixed base commit every stat is computed against
        base_is_ancestor: Whether the base is an ancestor of HEAD
        provider: Strategy used for the diff stats
        ref_names: Commit hash to reference names mapping
        now: Reference time for relative timestamps (defaults to the current time)
    """
    ref_names = ref_names or {}
    state = TraversalState(base_hash=base.hash, still_ahead=base_is_ancestor)
    for commit in commits:
        stat = provider.diff_stat(base, commit) if state.visit(commit) else None
        yield format_row(commit, stat, ref_names.get(commit.hash, ()), now)


def condensed_log(
    repo_path: Optional[str] = None,
    base: str = "",
    num_commits: int = DEFAULT_NUM_COMMITS,
    exclude: Sequence[str] = (),
    diff_strategy: str = DEFAULT_DIFF_STRATEGY,
    now: Optional[datetime] = None,
) -> List[LogRow]:
    """Produce the rows of the condensed log for a repository.

    Args:
        repo_path: Directory inside the repository (defaults to the cwd)
        base: Revision to diff against; empty picks "main" or "master"
        num_commits: Maximum number of commits to show
        exclude: Path patterns left out of the diff stats
        diff_strategy: Name of the DiffStatProvider to use
        now: Reference time for relative timestamps

    Returns:
        Rows in traversal order, most recent commit first

    Raises:
        GitCommandError: If the repository, the base, HEAD or the
            references cannot be read
        ValueError: If ``diff_strategy`` is unknown
    """
    repo_root = open_repository(repo_path)
    base_commit = resolve_base(repo_root, base)
    refs = get_ref_names(repo_root)
    ahead = is_ancestor_of_head(repo_root, base_commit)
    logger.debug(
        "Base %s is %san ancestor of HEAD", base_commit.short_hash, "" if ahead else "not "
    )
    provider = get_diff_stat_provider(diff_strategy, repo_root, exclude)
    commits = iter_commits(repo_root, num_commits)
    return list(build_rows(commits, base_commit, ahead, provider, refs, now))
