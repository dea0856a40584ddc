"""Heuristic relevance scoring of repository paths.

Scores are derived from the path alone: the file name, the directories it sits
in, how deep it is nested and its extension. File contents are never read, so
scoring is cheap, deterministic and safe to run in parallel.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from rank_repo.config import (
    BASE_SCORE,
    CONFIG_PREFIXES,
    DOC_EXTENSIONS,
    DOMAIN_DIRS,
    ENTRY_POINT_NAMES,
    ENTRY_POINT_PREFIXES,
    GENERATED_INFIXES,
    GENERATED_SUFFIXES,
    IMPORTANT_DIRS,
    INIT_FILE_NAME,
    LOW_PRIORITY_DIRS,
    MAX_SCORE,
    MIN_SCORE,
    PROJECT_FILES,
    README_NAMES,
    SCHEMA_EXTENSIONS,
    TEST_DIRS,
    TEST_FILE_INFIXES,
    TEST_FILE_PREFIXES,
    ScoredPath,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

# (directory set, adjustment, tag), applied in this order
DIRECTORY_RULES: tuple[tuple[frozenset[str], int, str], ...] = (
    (IMPORTANT_DIRS, 2, "important dir"),
    (DOMAIN_DIRS, 1, "domain dir"),
    (TEST_DIRS, -2, "test dir"),
    (LOW_PRIORITY_DIRS, -3, "low priority dir"),
)


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def _extension(name: str) -> str:
    return PurePosixPath(name).suffix.removeprefix(".")


def is_entry_point(name: str) -> bool:
    return name in ENTRY_POINT_NAMES or name.startswith(ENTRY_POINT_PREFIXES)


def is_generated(name: str) -> bool:
    """Lock files, minified bundles, source maps, compiled and temporary files."""
    return name.endswith(GENERATED_SUFFIXES) or any(infix in name for infix in GENERATED_INFIXES)


def is_test_file(name: str) -> bool:
    return name.startswith(TEST_FILE_PREFIXES) or any(infix in name for infix in TEST_FILE_INFIXES)


def _fixed_rule(name: str, segments: Sequence[str]) -> tuple[int, str] | None:
    """Return the (score, tag) of the first fixed rule matching the file name, if any."""
    if is_entry_point(name):
        return MAX_SCORE, "entry point"
    if name in README_NAMES:
        demoted = any(seg in LOW_PRIORITY_DIRS or seg in TEST_DIRS for seg in segments)
        return (5 if demoted else MAX_SCORE), "readme"
    if name.startswith(CONFIG_PREFIXES):
        return 9, "config"
    if is_generated(name):
        return 2, "generated or insignificant"
    if name in PROJECT_FILES:
        return PROJECT_FILES[name], "project file"
    if is_test_file(name):
        return 5, "test file"
    if name == INIT_FILE_NAME:
        return 3, "init file"
    return None


def classify(path: str) -> ScoredPath:
    """Score a repository-relative path between 1 and 10.

    Named files (entry points, READMEs, config, generated artifacts, project
    manifests, tests, package markers) get a fixed score, first match wins.
    Everything else starts from a base of 7 and is adjusted by the directories
    it lives in, its nesting depth and its extension, then clamped to [1, 10].

    Args:
        path (str): path relative to the repository root, POSIX separators

    Returns:
        ScoredPath: the score and the tags of every rule that contributed
    """
    name = _basename(path)
    segments = path.split("/")

    fixed = _fixed_rule(name, segments)
    if fixed is not None:
        score, tag = fixed
        return ScoredPath(path=path, score=score, reasons=(tag,))

    score = BASE_SCORE
    reasons: list[str] = []
    ancestors = segments[:-1]

    for dirs, delta, tag in DIRECTORY_RULES:
        if any(seg in dirs for seg in ancestors):
            score += delta
            reasons.append(tag)

    depth = len(ancestors)
    if depth == 0:
        score += 1
        reasons.append("root level")
    elif depth > 4:  # noqa: PLR2004
        score -= 2
        reasons.append("deep nesting")
    elif depth > 2:  # noqa: PLR2004
        score -= 1
        reasons.append("nested")

    ext = _extension(name)
    if ext in SCHEMA_EXTENSIONS:
        score += 1
        reasons.append("schema file")
    if ext in DOC_EXTENSIONS:
        score -= 1
        reasons.append("doc file")

    return ScoredPath(path=path, score=max(MIN_SCORE, min(MAX_SCORE, score)), reasons=tuple(reasons))


def sort_scored(scored: Iterable[ScoredPath]) -> list[ScoredPath]:
    """Order by score descending, then by path ascending."""
    return sorted(scored, key=lambda s: (-s.score, s.path))


def resolve_jobs(jobs: int) -> int:
    """Translate a ``--jobs`` value into a worker count; 0 means one per CPU."""
    if jobs > 0:
        return jobs
    return os.cpu_count() or 1


def classify_many(paths: Iterable[str], jobs: int = 1) -> list[ScoredPath]:
    """Classify many paths, optionally on a bounded thread pool.

    Each path is classified independently, so workers share nothing but the
    read-only rule tables. Results are re-sorted once every worker has finished.

    Args:
        paths (Iterable[str]): repository-relative paths; duplicates are dropped
        jobs (int): number of workers; 1 classifies inline, 0 uses one per CPU

    Returns:
        list[ScoredPath]: one entry per distinct path, sorted by score then path
    """
    unique = list(dict.fromkeys(paths))
    workers = resolve_jobs(jobs)
    if workers <= 1 or len(unique) <= 1:
        return sort_scored(classify(p) for p in unique)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        scored = list(pool.map(classify, unique, chunksize=64))
    return sort_scored(scored)
