from __future__ import annotations

import mimetypes
import stat
import subprocess  # noqa: S404
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from rank_repo.config import BINARY_MIME_TYPES, BINARY_SUFFIXES, MAX_TEXT_FILE_SIZE, SOURCE_SUFFIXES
from rank_repo.exceptions import GitCommandError, GitNotInstalledError, NotAGitRepositoryError
from rank_repo.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

NOT_A_REPO_MARKER = "not a git repository"


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.stat()
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode)


def sniff_text_utf8(path: Path, nbytes: int = 4096) -> bool:
    """Check if path point to a utf-8 encoded text file.

    A multi-byte character cut at the end of the sample does not count as an error.

    Args:
        path (Path): path to test.
        nbytes (int, optional): number of bytes to read for testing. Defaults to 4096.

    Returns:
        bool: True if the file is utf-8 encoded text, False otherwise.
    """
    try:
        with path.open("rb") as f:
            chunk = f.read(nbytes)
    except OSError:
        return False
    if b"\x00" in chunk:
        return False
    try:
        chunk.decode("utf-8")
    except UnicodeDecodeError as e:
        return len(chunk) == nbytes and e.start >= nbytes - 3
    return True


def is_text_file(path: Path, max_size: int = MAX_TEXT_FILE_SIZE) -> bool:
    """Decide whether a file's content may be emitted.

    Images, video and audio are binary by MIME type, known binary suffixes are
    binary, and anything larger than ``max_size`` bytes is treated as binary
    regardless of type. Files whose type is unknown are sniffed as UTF-8.

    Args:
        path (Path): the file to test
        max_size (int): size ceiling in bytes

    Returns:
        bool: True if the file should be emitted as text
    """
    mime, _ = mimetypes.guess_type(path.name, strict=False)
    if path.suffix.lower() in SOURCE_SUFFIXES:
        mime = "text/plain"
    if mime and mime.split("/", 1)[0] in BINARY_MIME_TYPES:
        return False
    if path.suffix.lower() in BINARY_SUFFIXES:
        return False
    try:
        if path.stat().st_size > max_size:
            return False
    except OSError:
        return False
    if mime is None or mime == "application/octet-stream":
        return sniff_text_utf8(path)
    return True


def count_lines(text: str) -> int:
    """Count lines the way an editor does: a trailing newline does not open a new line."""
    if not text:
        return 0
    return text.count("\n") + (0 if text.endswith("\n") else 1)


# ------------------------------ Git ----------------------------------------


def run_git(args: Sequence[str], cwd: Path) -> str:
    """Run a git command and return its standard output.

    Args:
        args (Sequence[str]): arguments after ``git``
        cwd (Path): working directory for the command

    Raises:
        GitNotInstalledError: if the git executable cannot be started
        NotAGitRepositoryError: if ``cwd`` is not inside a repository
        GitCommandError: if git exits with a non-zero status for another reason

    Returns:
        str: the decoded standard output
    """
    if not cwd.is_dir():
        raise NotAGitRepositoryError(folder=cwd)
    command = ["git", *args]
    try:
        out = subprocess.run(  # noqa: S603
            command,
            cwd=str(cwd),
            capture_output=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise GitNotInstalledError from e

    stdout = out.stdout.decode("utf-8", errors="replace")
    if out.returncode != 0:
        stderr = out.stderr.decode("utf-8", errors="replace")
        if NOT_A_REPO_MARKER in stderr.lower():
            raise NotAGitRepositoryError(folder=cwd)
        raise GitCommandError(
            command=" ".join(command),
            returncode=out.returncode,
            stdout=stdout,
            stderr=stderr,
        )
    return stdout


def repo_root(path: Path) -> Path:
    """Return the top-level directory of the repository containing ``path``."""
    start = path if path.is_dir() else path.parent
    return Path(run_git(["rev-parse", "--show-toplevel"], cwd=start).strip())


def ls_files(root: Path) -> list[str]:
    """List tracked and untracked-but-not-ignored files, relative to ``root``.

    Args:
        root (Path): the repository root

    Returns:
        list[str]: POSIX paths in the order git reports them
    """
    out = run_git(["ls-files", "--cached", "--others", "--exclude-standard", "-z"], cwd=root)
    return [p for p in out.split("\0") if p]


@dataclass
class GitStatus:
    """Working tree state, as sets of repository-relative paths."""

    staged: set[str] = field(default_factory=set)
    unstaged: set[str] = field(default_factory=set)
    dirty: set[str] = field(default_factory=set)


def parse_porcelain(out: str) -> GitStatus:
    """Parse ``git status --porcelain=v1 -z`` output.

    Renamed and copied entries carry their original path in the next field; the
    new path is the one reported.
    """
    status = GitStatus()
    entries = out.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:  # noqa: PLR2004
            continue
        x, y, path = entry[0], entry[1], entry[3:]
        if x in "RC":
            i += 1

        is_staged = x not in " ?"
        is_unstaged = y not in " ?"
        is_untracked = x == "?" and y == "?"
        if is_staged:
            status.staged.add(path)
        if is_unstaged:
            status.unstaged.add(path)
        if is_staged or is_unstaged or is_untracked:
            status.dirty.add(path)
    return status


def git_status(root: Path) -> GitStatus:
    """Collect staged, unstaged and dirty path sets for the repository at ``root``."""
    return parse_porcelain(run_git(["status", "--porcelain=v1", "--untracked-files=all", "-z"], cwd=root))


def read_file_bytes(path: Path) -> bytes | None:
    """Read a whole file, or return None (and log) if it cannot be read."""
    try:
        with path.open("rb") as f:
            return f.read()
    except OSError as e:
        logger.warning("file_unreadable", path=str(path), error=str(e))
        return None
