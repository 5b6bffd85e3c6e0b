"""Diff statistics between a base commit and a later commit."""
import fnmatch
import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Type

from .repository import Commit, GitCommandError, run_git_command

logger = logging.getLogger(__name__)

_SHORTSTAT_RE = re.compile(
    r"^\s*(?:(?P<files>\d+) files? changed)?"
    r"(?:,\s*)?(?:(?P<insertions>\d+) insertions?\(\+\))?"
    r"(?:,\s*)?(?:(?P<deletions>\d+) deletions?\(-\))?"
)


@dataclass(frozen=True)
class DiffStat:
    """Aggregate change counts for a commit pair."""
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0

    def __post_init__(self):
        if min(self.files_changed, self.insertions, self.deletions) < 0:
            raise ValueError(f"DiffStat fields must be non-negative: {self}")

    @property
    def is_zero(self) -> bool:
        return not (self.files_changed or self.insertions or self.deletions)


@dataclass(frozen=True)
class FileChange:
    """One entry of a numstat listing. Renames carry two paths."""
    paths: Tuple[str, ...]
    insertions: int
    deletions: int


class PathExclusionSet:
    """Ordered path patterns whose changes are ignored."""

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns = tuple(p for p in (p.strip() for p in patterns) if p)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def __repr__(self) -> str:
        return f"PathExclusionSet({list(self.patterns)!r})"

    def matches(self, path: str) -> bool:
        """True when a pattern matches the path, its basename, or a parent directory."""
        basename = os.path.basename(path)
        for pattern in self.patterns:
            if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(basename, pattern):
                return True
            prefix = pattern.rstrip("/")
            if prefix and path.startswith(prefix + "/"):
                return True
        return False

    def excludes(self, change: FileChange) -> bool:
        return all(self.matches(path) for path in change.paths)

    def pathspecs(self, changes: Iterable[FileChange]) -> List[str]:
        """Negated literal pathspecs for the changes this set excludes.

        Patterns are matched here rather than by git so both strategies agree.
        A rename is only dropped when both of its paths are excluded, otherwise
        both paths stay visible so git still pairs them up.
        """
        specs: List[str] = []
        for change in changes:
            if self.excludes(change):
                specs.extend(f":(exclude,literal){path}" for path in change.paths)
        return specs


def parse_shortstat(output: str) -> DiffStat:
    """Parse the summary line of ``git diff --shortstat``.

    Empty output means nothing changed. Missing components count as 0.

    Raises:
        ValueError: If the text is not a shortstat summary
    """
    text = output.strip()
    if not text:
        return DiffStat()
    match = _SHORTSTAT_RE.match(text)
    groups = match.groupdict() if match else {}
    if not any(groups.values()):
        raise ValueError(f"Unrecognized shortstat summary: {text!r}")
    return DiffStat(
        files_changed=int(groups["files"] or 0),
        insertions=int(groups["insertions"] or 0),
        deletions=int(groups["deletions"] or 0),
    )


def _count(value: str) -> int:
    # binary files report "-"
    return 0 if value == "-" else int(value)


def parse_numstat(output: str) -> Iterator[FileChange]:
    """Parse NUL-terminated ``--numstat -z`` output.

    Raises:
        ValueError: If an entry is truncated or malformed
    """
    tokens = output.split("\0")
    i = 0
    while i < len(tokens):
        token = tokens[i].lstrip("\n")
        i += 1
        if not token:
            continue
        parts = token.split("\t", 2)
        if len(parts) != 3:
            raise ValueError(f"Malformed numstat entry: {token!r}")
        added, deleted, path = parts
        if path:
            paths: Tuple[str, ...] = (path,)
        else:
            if i + 1 >= len(tokens):
                raise ValueError("Truncated rename entry in numstat output")
            paths = (tokens[i], tokens[i + 1])
            i += 2
        yield FileChange(paths=paths, insertions=_count(added), deletions=_count(deleted))


def aggregate(changes: Iterable[FileChange], exclude: PathExclusionSet) -> DiffStat:
    files = insertions = deletions = 0
    for change in changes:
        if exclude.excludes(change):
            continue
        files += 1
        insertions += change.insertions
        deletions += change.deletions
    return DiffStat(files_changed=files, insertions=insertions, deletions=deletions)


class DiffStatProvider(ABC):
    """Computes the DiffStat between two commits, ignoring excluded paths."""

    name = ""

    def __init__(self, repo_root: str, exclude: Optional[PathExclusionSet] = None):
        self.repo_root = repo_root
        self.exclude = exclude or PathExclusionSet()

    @abstractmethod
    def compute(self, base: Commit, commit: Commit) -> DiffStat:
        """Compute the stat, raising on failure."""
        raise NotImplementedError

    def diff_stat(self, base: Commit, commit: Commit) -> Optional[DiffStat]:
        """Compute the stat, or None if it could not be computed for this commit."""
        try:
            return self.compute(base, commit)
        except (GitCommandError, ValueError) as e:
            logger.warning(
                "Could not compute diff of %s against %s: %s",
                commit.short_hash, base.short_hash, e,
            )
            return None


def list_changes(repo_root: str, base: Commit, commit: Commit) -> List[FileChange]:
    """Per-file changes between two trees, with rename detection."""
    output = run_git_command(
        ["git", "diff-tree", "-r", "-M", "--numstat", "-z", base.hash, commit.hash],
        cwd=repo_root,
    )
    return list(parse_numstat(output))


class TreeDiffProvider(DiffStatProvider):
    """Diffs the two trees directly and sums per-file counts."""

    name = "tree"

    def compute(self, base: Commit, commit: Commit) -> DiffStat:
        return aggregate(list_changes(self.repo_root, base, commit), self.exclude)


class ShortstatDiffProvider(DiffStatProvider):
    """Asks git for a condensed summary with the exclusions as pathspecs.

    Excluded files are resolved against the change list first and handed to
    git literally, so renames and nested matches count as in the tree strategy.
    """

    name = "shortstat"

    def compute(self, base: Commit, commit: Commit) -> DiffStat:
        cmd = ["git", "diff", "--shortstat", "-M", base.hash, commit.hash, "--", "."]
        if self.exclude:
            cmd.extend(self.exclude.pathspecs(list_changes(self.repo_root, base, commit)))
        return parse_shortstat(run_git_command(cmd, cwd=self.repo_root))


DIFF_STRATEGIES: Dict[str, Type[DiffStatProvider]] = {
    TreeDiffProvider.name: TreeDiffProvider,
    ShortstatDiffProvider.name: ShortstatDiffProvider,
}
DEFAULT_DIFF_STRATEGY = TreeDiffProvider.name


def get_diff_stat_provider(
    name: str, repo_root: str, exclude: Iterable[str] = ()
) -> DiffStatProvider:
    """Build the provider registered under ``name``.

    Raises:
        ValueError: If no strategy has that name
    """
    try:
        provider_cls = DIFF_STRATEGIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown diff strategy {name!r}; choose from {', '.join(sorted(DIFF_STRATEGIES))}"
        ) from None
    return provider_cls(repo_root, PathExclusionSet(exclude))
