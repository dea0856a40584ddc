"""
rank_repo: show what matters in a repository, then feed it to an LLM.

Overview
--------
Every file git knows about (tracked, or untracked but not ignored) gets a
relevance score from 1 to 10 derived from its path alone: entry points,
READMEs and config score high; lock files, generated artifacts and vendored
code score low.

1) **tree**: print the scored files as a tree (ordered by the best score in
   each directory) or as a flat list, optionally with token counts.

2) **cat**: print the contents of every file at or above a score level (or of
   an explicit file list), with a header per file. With a session, files whose
   bytes were already printed in that session are skipped.

3) **session**: create a session id for the current shell, or clear one.

4) **init**: write a default ignore file.

Usage
-----
Run `python -m rank_repo.cli --help` for full options. Common examples:
    - Ranked tree of the current project:
        rank-repo tree
    - Only the important files, flat, with token counts:
        rank-repo tree --min-score 8 --flat --tokens
    - Dump files scoring 7+ as JSON:
        rank-repo cat --level 7 --format json
    - Avoid re-sending unchanged files in a conversation:
        eval "$(rank-repo session)"; rank-repo cat
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError

from rank_repo import __version__
from rank_repo.config import OutputFormat
from rank_repo.exceptions import IgnoreFileExistsError, InvalidOptionError, LogFileError, RankRepoError
from rank_repo.file_manipulation import repo_root
from rank_repo.ignore import DEFAULT_IGNORE, IGNORE_FILE_NAME
from rank_repo.logging import logger, setup_logging
from rank_repo.output_construction import (
    build_cat_output,
    build_cat_text,
    build_tree_output,
    print_lines,
    render_json,
    render_xml,
    token_note,
)
from rank_repo.pipeline import (
    emit_contents,
    explicit_files,
    open_repository,
    rank_repository,
    token_counts,
)
from rank_repo.session import SessionTracker, generate_session_id, validate_session_store
from rank_repo.settings import (
    CONFIG_FILE_NAME,
    GLOBAL_IGNORE_FILE_NAME,
    REPO_CONFIG_FILE_NAME,
    SESSION_ENV,
    SESSIONS_DIR_NAME,
    CatSettings,
    FileConfig,
    Settings,
    TreeSettings,
    active_session_name,
    default_home,
    load_file_config,
)
from rank_repo.tree import build_tree, render_flat, render_nested

if TYPE_CHECKING:
    from collections.abc import Sequence

SettingsT = TypeVar("SettingsT", bound=Settings)

OPTION_NAMES = {
    "min_score": "--min-score",
    "depth": "--depth",
    "jobs": "--jobs",
    "level": "--level",
    "session": "--session",
}


def _add_filter_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--git-root",
        action="store_true",
        default=None,
        help="Show entire git repository (ignore path filtering).",
    )
    p.add_argument(
        "--dirty",
        action="store_true",
        help="Show only dirty files (modified, added, deleted, untracked).",
    )
    p.add_argument("--staged", action="store_true", help="Show only staged files.")
    p.add_argument("--unstaged", action="store_true", help="Show only unstaged files.")
    p.add_argument(
        "--format",
        type=str,
        default=None,
        help="Output format: text, json, xml (default: text).",
    )
    p.add_argument("-t", "--tokens", action="store_true", help="Show token counts.")
    p.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Number of parallel jobs (0 = auto).",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="rank-repo",
        description="LLM context tool that scores project files by importance.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Log level (DEBUG, INFO, WARNING, ERROR).",
    )
    sub = p.add_subparsers(dest="command", required=True)

    tree = sub.add_parser("tree", help="Show project structure with scores.")
    tree.add_argument("path", nargs="?", default=None, help="Project path (default: current directory).")
    tree.add_argument("-s", "--min-score", type=int, default=None, help="Minimum score (1-10).")
    tree.add_argument("-d", "--depth", type=int, default=None, help="Maximum depth.")
    tree.add_argument(
        "-f",
        "--flat",
        action="store_true",
        default=None,
        help="Flat output instead of tree.",
    )
    tree.add_argument("--no-color", action="store_true", default=None, help="Disable colors.")
    _add_filter_flags(tree)
    tree.set_defaults(handler=run_tree)

    cat = sub.add_parser("cat", help="Output file contents.")
    cat.add_argument("files", nargs="*", help="Specific files to cat.")
    cat.add_argument(
        "-l",
        "--level",
        type=int,
        default=None,
        help="Minimum score level (1-10, default: 5).",
    )
    cat.add_argument("-p", "--path", type=str, default=None, help="Project path (default: current directory).")
    cat.add_argument("--no-headers", action="store_true", default=None, help="Disable headers.")
    cat.add_argument(
        "-S",
        "--session",
        type=str,
        default=None,
        help=f"Session name (overrides {SESSION_ENV}).",
    )
    cat.add_argument("--no-session", action="store_true", help="Ignore any active session.")
    _add_filter_flags(cat)
    cat.set_defaults(handler=run_cat)

    session = sub.add_parser("session", help="Manage sessions.")
    session_sub = session.add_subparsers(dest="session_command")
    clear = session_sub.add_parser("clear", help="Clear session.")
    clear.add_argument("name", help="Session name.")
    session.set_defaults(handler=run_session)

    init = sub.add_parser("init", help="Create a default ignore file.")
    init.add_argument("--global", dest="global_", action="store_true", help="Write the global ignore file.")
    init.add_argument("--force", action="store_true", help="Overwrite an existing file.")
    init.set_defaults(handler=run_init)
    return p


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def load_config(path: Path, home: Path) -> FileConfig:
    """Merge the global config file with the one at the repository root.

    Outside a repository, the project directory itself is searched instead.
    """
    try:
        project_dir = repo_root(path)
    except RankRepoError:
        project_dir = path
    return load_file_config([home / CONFIG_FILE_NAME, project_dir / REPO_CONFIG_FILE_NAME])


def _pick(cli_value: Any, config_value: Any) -> Any:  # noqa: ANN401
    return cli_value if cli_value is not None else config_value


def _without_none(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _validated(model: type[SettingsT], values: dict[str, Any]) -> SettingsT:
    """Build a settings model, reporting the first invalid option as a configuration error."""
    try:
        return model(**_without_none(values))
    except ValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first["loc"] else model.__name__
        option = OPTION_NAMES.get(field, field)
        raise InvalidOptionError(option=option, reason=first["msg"]) from e


def _common_options(args: argparse.Namespace, cfg: FileConfig, path: Path, home: Path) -> dict[str, Any]:
    return {
        "path": path,
        "home": home,
        "format": args.format,
        "tokens": args.tokens,
        "git_root": _pick(args.git_root, cfg.git_root),
        "dirty": args.dirty,
        "staged": args.staged,
        "unstaged": args.unstaged,
        "jobs": _pick(args.jobs, cfg.jobs),
    }


def tree_settings(args: argparse.Namespace) -> TreeSettings:
    """Build tree settings from CLI arguments layered over config files."""
    path = Path(args.path or ".")
    home = default_home()
    cfg = load_config(path, home)
    values = _common_options(args, cfg, path, home)
    values.update(
        min_score=_pick(args.min_score, cfg.min_score),
        depth=_pick(args.depth, cfg.depth),
        flat=_pick(args.flat, cfg.flat),
        no_color=_pick(args.no_color, cfg.no_color),
    )
    return _validated(TreeSettings, values)


def cat_settings(args: argparse.Namespace) -> CatSettings:
    """Build cat settings from CLI arguments layered over config files and the environment."""
    path = Path(args.path or ".")
    home = default_home()
    cfg = load_config(path, home)
    values = _common_options(args, cfg, path, home)
    values.update(
        files=list(args.files),
        level=_pick(args.level, cfg.level),
        no_headers=_pick(args.no_headers, cfg.no_headers),
        session=None if args.no_session else (args.session or active_session_name()),
    )
    return _validated(CatSettings, values)


def run_tree(args: argparse.Namespace) -> int:
    settings = tree_settings(args)
    repo = open_repository(settings.path, git_root=settings.git_root)
    scored = rank_repository(repo, settings, min_score=settings.min_score, max_depth=settings.depth)
    tokens = token_counts(repo.root, [s.path for s in scored], jobs=settings.jobs) if settings.tokens else None

    if settings.format is OutputFormat.TEXT:
        annotate = (lambda rel: token_note(tokens.get(rel))) if tokens is not None else None
        lines = render_flat(scored, annotate) if settings.flat else render_nested(build_tree(scored), annotate)
        print_lines(lines, color=not settings.no_color)
        return 0

    output = build_tree_output(repo.name, scored, tokens)
    print(render_json(output) if settings.format is OutputFormat.JSON else render_xml(output))
    return 0


def run_cat(args: argparse.Namespace) -> int:
    settings = cat_settings(args)
    repo = open_repository(settings.path, git_root=settings.git_root)
    tracker = SessionTracker.load(settings.session, settings.session_dir) if settings.session else None

    if settings.files:
        scored = explicit_files(repo, settings.files)
    else:
        scored = rank_repository(repo, settings, min_score=settings.level)

    result = emit_contents(repo.root, scored, tracker=tracker, with_tokens=settings.tokens)
    session_name = tracker.name if tracker else None
    if settings.format is OutputFormat.TEXT:
        sys.stdout.write(build_cat_text(repo.name, result, session=session_name, headers=not settings.no_headers))
    else:
        output = build_cat_output(repo.name, result, session=session_name)
        print(render_json(output) if settings.format is OutputFormat.JSON else render_xml(output))

    if tracker is not None:
        tracker.save()
    logger.info(
        "cat_done",
        shown=len(result.files),
        skipped_binary=result.skipped_binary,
        skipped_session=result.skipped_session,
    )
    return 0


def run_session(args: argparse.Namespace) -> int:
    store = validate_session_store(default_home() / SESSIONS_DIR_NAME)
    active = os.environ.get(SESSION_ENV)

    if args.session_command == "clear":
        SessionTracker.clear(args.name, store)
        print(f"Cleared session '{args.name}'")
        if active == args.name:
            print(f"Note: This was your active session. Run 'unset {SESSION_ENV}' to clear the environment variable.")
        return 0

    if active:
        print(f"echo 'Session already active: {active}'")
        return 0
    session_id = generate_session_id()
    SessionTracker.load(session_id, store).save()
    print(f"export {SESSION_ENV}={session_id}; echo 'Session created: {session_id}'")
    return 0


def run_init(args: argparse.Namespace) -> int:
    target = default_home() / GLOBAL_IGNORE_FILE_NAME if args.global_ else Path.cwd() / IGNORE_FILE_NAME
    if target.exists() and not args.force:
        raise IgnoreFileExistsError(file=target)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(DEFAULT_IGNORE, encoding="utf-8")
    location = "global" if args.global_ else "local"
    print(f"Created {location} ignore file at {target}")
    return 0


def configure_logging(log_file: str, level: str) -> None:
    """Apply the global logging options; an unwritable log file is a configuration error."""
    try:
        setup_logging(log_file or None, level, force=True)
    except OSError as e:
        raise LogFileError(file=log_file, reason=e.strerror or str(e)) from e


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        configure_logging(args.log_file, args.log_level)
        return args.handler(args)
    except RankRepoError as e:
        logger.debug("fatal_error", error=str(e), kind=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
