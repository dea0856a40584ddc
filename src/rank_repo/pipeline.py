"""Glue between repository listing, scoring, rendering and content emission."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from rank_repo.config import EXPLICIT_SCORE, ScoredPath
from rank_repo.file_manipulation import (
    count_lines,
    git_status,
    is_regular_file,
    is_text_file,
    ls_files,
    read_file_bytes,
    relpath,
    repo_root,
)
from rank_repo.ignore import IgnoreRules
from rank_repo.logging import logger
from rank_repo.scorer import classify_many, resolve_jobs
from rank_repo.session import compute_hash
from rank_repo.tokens import count_tokens
from rank_repo.tree import filter_scored

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from rank_repo.file_manipulation import GitStatus
    from rank_repo.session import SessionTracker
    from rank_repo.settings import Settings


@dataclass(frozen=True)
class Repository:
    """Where a run operates: the repository root and the optional sub-path filter."""

    root: Path
    prefix: str | None = None

    @property
    def name(self) -> str:
        return self.root.name or "project"


def open_repository(path: Path, *, git_root: bool) -> Repository:
    """Locate the repository containing ``path``.

    Unless ``git_root`` is set, pointing at a sub-directory restricts the run to
    files beneath it.
    """
    root = repo_root(path).resolve()
    if git_root:
        return Repository(root=root)
    rel = relpath(path.resolve(), root)
    prefix = None if rel in {".", ""} or Path(rel).is_absolute() else rel
    return Repository(root=root, prefix=prefix)


def under_prefix(rel: str, prefix: str | None) -> bool:
    if not prefix:
        return True
    return rel == prefix or rel.startswith(prefix.rstrip("/") + "/")


def status_filter(paths: Iterable[str], status: GitStatus, *, staged: bool, unstaged: bool, dirty: bool) -> list[str]:
    """Keep paths belonging to any of the requested status sets."""
    wanted: set[str] = set()
    if staged:
        wanted |= status.staged
    if unstaged:
        wanted |= status.unstaged
    if dirty:
        wanted |= status.dirty
    return [p for p in paths if p in wanted]


def collect_candidates(repo: Repository, settings: Settings, ignore: IgnoreRules) -> list[str]:
    """List repository files and apply the ignore, prefix and git-status filters."""
    paths = ignore.filter(ls_files(repo.root))
    paths = [p for p in paths if under_prefix(p, repo.prefix)]
    if settings.wants_status:
        paths = status_filter(
            paths,
            git_status(repo.root),
            staged=settings.staged,
            unstaged=settings.unstaged,
            dirty=settings.dirty,
        )
    logger.debug("candidates_collected", root=str(repo.root), count=len(paths))
    return paths


def rank_repository(
    repo: Repository,
    settings: Settings,
    *,
    min_score: int,
    max_depth: int | None = None,
) -> list[ScoredPath]:
    """Score every candidate file and keep those meeting the thresholds.

    Args:
        repo (Repository): the repository to rank
        settings (Settings): filters, job count and ignore file locations
        min_score (int): lowest score kept
        max_depth (int | None): deepest nesting kept, None for no limit

    Returns:
        list[ScoredPath]: kept entries, sorted by score descending then path
    """
    ignore = IgnoreRules.load(repo.root, settings.global_ignore_file)
    candidates = collect_candidates(repo, settings, ignore)
    scored = classify_many(candidates, jobs=settings.jobs)
    return filter_scored(scored, min_score=min_score, max_depth=max_depth)


def explicit_files(repo: Repository, files: Sequence[str]) -> list[ScoredPath]:
    """Turn a user-supplied file list into maximum-score entries, in the given order."""
    out: list[ScoredPath] = []
    seen: set[str] = set()
    for f in files:
        p = Path(f)
        rel = relpath(p.resolve(), repo.root) if p.is_absolute() else p.as_posix()
        if rel in seen:
            continue
        seen.add(rel)
        out.append(ScoredPath(path=rel, score=EXPLICIT_SCORE, reasons=("explicit",)))
    return out


def read_token_count(root: Path, rel: str) -> int | None:
    """Token count of a file's text, or None when it cannot be read as text."""
    data = read_file_bytes(root / rel)
    if data is None:
        return None
    return count_tokens(data.decode("utf-8", errors="replace"))


def token_counts(root: Path, rels: Sequence[str], jobs: int = 0) -> dict[str, int | None]:
    """Count tokens for many files on a bounded pool; results keyed by path."""
    workers = resolve_jobs(jobs)
    if workers <= 1 or len(rels) <= 1:
        return {r: read_token_count(root, r) for r in rels}
    with ThreadPoolExecutor(max_workers=workers) as pool:
        counts = list(pool.map(lambda r: read_token_count(root, r), rels))
    return dict(zip(rels, counts, strict=True))


@dataclass
class EmittedFile:
    """A file whose content is part of the output."""

    path: str
    score: int
    content: str
    digest: str
    lines: int
    tokens: int | None = None


@dataclass
class EmissionResult:
    """Files to print plus the aggregate counts of everything skipped."""

    files: list[EmittedFile] = field(default_factory=list)
    skipped_binary: int = 0
    skipped_session: int = 0

    @property
    def total_lines(self) -> int:
        return sum(f.lines for f in self.files)


def emit_contents(
    root: Path,
    scored: Sequence[ScoredPath],
    *,
    tracker: SessionTracker | None = None,
    with_tokens: bool = False,
) -> EmissionResult:
    """Read the files to emit, skipping binaries and content the session already saw.

    Missing, unreadable and binary files are counted in ``skipped_binary``.
    Emitted files are marked read on ``tracker``; saving it is up to the caller.

    Args:
        root (Path): the repository root
        scored (Sequence[ScoredPath]): files in output order
        tracker (SessionTracker | None): session consulted for unchanged content
        with_tokens (bool): also count tokens for each emitted file

    Returns:
        EmissionResult: emitted files and skip counts
    """
    result = EmissionResult()
    for s in scored:
        full = root / s.path
        if not is_regular_file(full) or not is_text_file(full):
            logger.debug("file_skipped_binary", path=s.path)
            result.skipped_binary += 1
            continue
        data = read_file_bytes(full)
        if data is None:
            result.skipped_binary += 1
            continue
        digest = compute_hash(data)
        if tracker is not None and tracker.was_read(s.path, digest):
            logger.debug("file_skipped_unchanged", path=s.path, session=tracker.name)
            result.skipped_session += 1
            continue

        text = data.decode("utf-8", errors="replace")
        result.files.append(
            EmittedFile(
                path=s.path,
                score=s.score,
                content=text,
                digest=digest,
                lines=count_lines(text),
                tokens=count_tokens(text) if with_tokens else None,
            ),
        )
        if tracker is not None:
            tracker.mark_read(s.path, digest)
    return result
