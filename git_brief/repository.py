"""Repository access through the git executable."""
import logging
import os
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT = 30
DEFAULT_BASE_REFS = ("refs/heads/main", "refs/heads/master")

# hash, tree, parents, author name, author epoch, raw body
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
COMMIT_FORMAT = "%H%x1f%T%x1f%P%x1f%an%x1f%at%x1f%B%x1e"
REF_FORMAT = "%(objectname)%09%(*objectname)%09%(refname:short)"


class GitCommandError(Exception):
    """Raised when a git command fails."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class NotAGitRepositoryError(GitCommandError):
    """Raised when the requested path is not inside a git repository."""
    pass


class ResolutionError(GitCommandError):
    """Raised when the base commit cannot be determined."""
    pass


class BaseNotFoundError(ResolutionError):
    """Raised when neither default base branch exists."""
    pass


class InvalidRevisionError(ResolutionError):
    """Raised when an explicit revision does not name a commit."""
    pass


class RefEnumerationError(GitCommandError):
    """Raised when the repository references cannot be listed."""
    pass


@dataclass(frozen=True)
class Commit:
    """A commit record as read from the object store."""
    hash: str
    tree: str
    parents: Tuple[str, ...]
    author_name: str
    authored_at: datetime
    message: str

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    @property
    def subject(self) -> str:
        """First line of the message, trimmed."""
        lines = self.message.lstrip().splitlines()
        return lines[0].strip() if lines else ""


def run_git_command(
    cmd: List[str],
    cwd: Optional[str] = None,
    timeout: Optional[float] = DEFAULT_GIT_TIMEOUT,
) -> str:
    """Execute a git command and return its output.

    Args:
        cmd: List of command arguments, starting with "git"
        cwd: Working directory for the command (optional)
        timeout: Seconds before the process is killed (optional)

    Returns:
        Standard output from the git command

    Raises:
        GitCommandError: If the git command fails, times out, or git is missing
    """
    logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, cwd=cwd, check=True, timeout=timeout
        )
        return result.stdout
    except subprocess.CalledProcessError as e:
        error_msg = e.stderr.strip() if e.stderr else str(e)
        raise GitCommandError(
            f"Git command failed: {' '.join(cmd)}\n{error_msg}",
            returncode=e.returncode,
            stderr=e.stderr or "",
        ) from e
    except subprocess.TimeoutExpired as e:
        raise GitCommandError(f"Git command timed out after {timeout}s: {' '.join(cmd)}") from e
    except FileNotFoundError:
        raise GitCommandError("Git is not installed or not found in PATH") from None


def open_repository(path: Optional[str] = None) -> str:
    """Locate the work-tree root of the repository containing ``path``.

    Args:
        path: Directory inside the repository (defaults to the cwd)

    Returns:
        Absolute path to the repository root

    Raises:
        NotAGitRepositoryError: If the path is missing or not in a repository
    """
    path = os.path.abspath(path or os.getcwd())
    if not os.path.isdir(path):
        raise NotAGitRepositoryError(f"Repository path does not exist: {path}")
    try:
        return run_git_command(["git", "rev-parse", "--show-toplevel"], cwd=path).strip()
    except GitCommandError as e:
        if "not a git repository" in str(e).lower():
            raise NotAGitRepositoryError(
                f"{path} is not a git repository. "
                "Are you sure you're in a repository?"
            ) from e
        raise


def parse_commit_records(output: str) -> Iterator[Commit]:
    """Parse ``git log`` output produced with COMMIT_FORMAT."""
    for record in output.split(_RECORD_SEP):
        record = record.lstrip("\n")
        if not record:
            continue
        fields = record.split(_FIELD_SEP, 5)
        if len(fields) != 6:
            raise GitCommandError(f"Malformed commit record: {record[:80]!r}")
        commit_hash, tree, parents, author, timestamp, message = fields
        yield Commit(
            hash=commit_hash,
            tree=tree,
            parents=tuple(parents.split()),
            author_name=author,
            authored_at=datetime.fromtimestamp(int(timestamp), tz=timezone.utc),
            message=message,
        )


def read_commit(repo_root: str, commit_hash: str) -> Commit:
    """Read a single commit record by hash."""
    output = run_git_command(
        ["git", "log", "-1", f"--format={COMMIT_FORMAT}", commit_hash, "--"], cwd=repo_root
    )
    for commit in parse_commit_records(output):
        return commit
    raise GitCommandError(f"Commit not found: {commit_hash}")


def _rev_parse_commit(repo_root: str, revision: str) -> str:
    return run_git_command(
        ["git", "rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"], cwd=repo_root
    ).strip()


def resolve_base(repo_root: str, revision: str = "") -> Commit:
    """Resolve the base revision to a commit.

    An empty revision searches DEFAULT_BASE_REFS in order. Anything else is
    resolved with full git revision syntax.

    Raises:
        BaseNotFoundError: If no default base branch exists
        InvalidRevisionError: If the explicit revision is not a commit
    """
    if not revision:
        for ref in DEFAULT_BASE_REFS:
            try:
                commit_hash = _rev_parse_commit(repo_root, ref)
            except GitCommandError:
                logger.debug("Base candidate %s does not exist", ref)
                continue
            logger.debug("Using %s (%s) as base", ref, commit_hash)
            return read_commit(repo_root, commit_hash)
        raise BaseNotFoundError('Unable to find base branch among "main" or "master"')

    if revision.startswith("-"):
        raise InvalidRevisionError(f"The provided base {revision!r} is invalid")
    try:
        commit_hash = _rev_parse_commit(repo_root, revision)
    except GitCommandError as e:
        raise InvalidRevisionError(f"The provided base {revision!r} is invalid") from e
    if not commit_hash:
        raise InvalidRevisionError(f"The provided base {revision!r} is invalid")
    return read_commit(repo_root, commit_hash)


def is_ancestor_of_head(repo_root: str, base: Commit) -> bool:
    """Check whether ``base`` is reachable from HEAD.

    Looks for the base among the merge bases of HEAD and the base. Disjoint
    history yields False; any other failure is logged and also yields False.
    """
    try:
        output = run_git_command(["git", "merge-base", "--all", "HEAD", base.hash], cwd=repo_root)
    except GitCommandError as e:
        if e.returncode == 1 and not e.stderr.strip():
            logger.debug("HEAD and %s share no history", base.short_hash)
        else:
            logger.warning("Could not determine ancestry of %s: %s", base.short_hash, e)
        return False
    return base.hash in output.split()


def iter_commits(repo_root: str, max_count: int, start: str = "HEAD") -> Iterator[Commit]:
    """Yield at most ``max_count`` commits from ``start``, newest first.

    History running out before ``max_count`` simply ends the sequence.

    Raises:
        GitCommandError: If ``start`` cannot be read
    """
    if max_count <= 0:
        return
    output = run_git_command(
        ["git", "log", f"--max-count={max_count}", f"--format={COMMIT_FORMAT}", start, "--"],
        cwd=repo_root,
    )
    yield from parse_commit_records(output)


def get_ref_names(repo_root: str) -> Dict[str, List[str]]:
    """Map commit hashes to the short names of references pointing at them.

    Annotated tags are peeled to their commit. Names keep git's enumeration
    order.

    Raises:
        RefEnumerationError: If the references cannot be listed
    """
    try:
        output = run_git_command(["git", "for-each-ref", f"--format={REF_FORMAT}"], cwd=repo_root)
    except GitCommandError as e:
        raise RefEnumerationError(f"Error getting repo references: {e}") from e

    ref_names: Dict[str, List[str]] = {}
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) != 3 or not parts[0] or not parts[2]:
            logger.warning("Skipping unparsable reference line: %r", line)
            continue
        object_hash, peeled_hash, name = parts
        ref_names.setdefault(peeled_hash or object_hash, []).append(name)
    return ref_names
