from __future__ import annotations

from typing import TYPE_CHECKING

import pathspec

from rank_repo.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

IGNORE_FILE_NAME = ".rank_repo_ignore"

DEFAULT_IGNORE = """\
# Lock files
*.lock
package-lock.json
Cargo.lock
yarn.lock
Gemfile.lock
poetry.lock

# Generated files
*.min.js
*.min.css
*.map
*.d.ts
*.pyc
*.generated.*

# Build output
dist/
build/
out/
target/
.next/
.nuxt/
.vuepress/dist/

# Changelogs and history
CHANGELOG.md
HISTORY.md
NEWS.md

# Editor and IDE
.vscode/
.idea/
*.swp
*.swo
*~

# Vendor and dependencies
vendor/
node_modules/
"""


def parse_ignore_lines(lines: Iterable[str]) -> list[str]:
    """Keep the meaningful lines of an ignore file: no blanks, no ``#`` comments."""
    out: list[str] = []
    for ln in lines:
        s = ln.strip()
        if not s or s.startswith("#"):
            continue
        out.append(s.replace("\\", "/"))
    return out


def read_ignore_file(path: Path) -> list[str]:
    """Read patterns from ``path``; a missing or unreadable file yields none."""
    try:
        text = path.read_text(encoding="utf-8", errors="ignore")
    except OSError:
        return []
    return parse_ignore_lines(text.splitlines())


class IgnoreRules:
    """Gitignore-style exclusion rules, global patterns first.

    A trailing ``/`` excludes everything beneath that directory, and patterns
    without a slash match at any depth, so ``*.lock`` also hides ``a/b/x.lock``.
    """

    def __init__(self, patterns: Sequence[str] = ()) -> None:
        self.patterns = list(patterns)
        self._spec = pathspec.GitIgnoreSpec.from_lines(self.patterns)

    @classmethod
    def from_files(cls, *files: Path) -> IgnoreRules:
        patterns: list[str] = []
        for f in files:
            found = read_ignore_file(f)
            if found:
                logger.debug("ignore_file_loaded", file=str(f), patterns=len(found))
            patterns.extend(found)
        return cls(patterns)

    @classmethod
    def load(cls, repo_root: Path, global_file: Path | None = None) -> IgnoreRules:
        """Load the global ignore file (if any), then the one at the repository root."""
        files = [repo_root / IGNORE_FILE_NAME]
        if global_file is not None:
            files.insert(0, global_file)
        return cls.from_files(*files)

    def is_ignored(self, rel_path: str) -> bool:
        return bool(self.patterns) and self._spec.match_file(rel_path)

    def filter(self, rel_paths: Iterable[str]) -> list[str]:
        return [p for p in rel_paths if not self.is_ignored(p)]
