"""git-brief: a condensed, colorized commit log.

Each commit is shown with its short hash, relative time, author and subject,
annotated with the branches and tags pointing at it. Commits above a base
branch (``main`` or ``master`` by default) also carry a diff stat against
that base.

Example:
    >>> from git_brief import condensed_log
    >>> for row in condensed_log(base="main", num_commits=10):
    ...     print(row.hash, row.diff, row.message)

Or using the CLI:
    $ git-brief --base main -n 10 --exclude "*.lock"
"""
__version__ = "0.1.0"
__all__ = [
    "condensed_log",
    "build_rows",
    "format_row",
    "LogRow",
    "TraversalState",
    "DiffStat",
    "DiffStatProvider",
    "get_diff_stat_provider",
    "Commit",
    "GitCommandError",
    "NotAGitRepositoryError",
    "BaseNotFoundError",
    "InvalidRevisionError",
    "RefEnumerationError",
]

from .diffstat import DiffStat, DiffStatProvider, get_diff_stat_provider
from .log import LogRow, TraversalState, build_rows, condensed_log, format_row
from .repository import (
    BaseNotFoundError,
    Commit,
    GitCommandError,
    InvalidRevisionError,
    NotAGitRepositoryError,
    RefEnumerationError,
)
