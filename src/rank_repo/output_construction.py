from __future__ import annotations

import io
from typing import TYPE_CHECKING
from xml.sax.saxutils import escape, quoteattr

from rich.console import Console
from rich.text import Text

from rank_repo.config import CatOutput, FileOutput, TreeOutput

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from pydantic import BaseModel

    from rank_repo.config import ScoredPath
    from rank_repo.pipeline import EmissionResult
    from rank_repo.tree import RenderedLine

RULE = "=" * 80
HASH_PREFIX_LEN = 12
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


# ------------------------------ Text: tree ----------------------------------


def score_style(score: int) -> str:
    if score >= 8:  # noqa: PLR2004
        return "bold green"
    if score >= 5:  # noqa: PLR2004
        return "yellow"
    return "dim"


def style_line(line: RenderedLine) -> Text:
    """Colour a rendered tree line: scores by band, directories in bold blue."""
    text = Text(line.prefix + line.connector)
    if line.score is None:
        text.append(line.label, style="bold blue")
    else:
        text.append(f"{line.score:2d}", style=score_style(line.score))
        text.append(f" {line.label}")
    if line.note:
        text.append(f" {line.note}")
    return text


def print_lines(lines: Sequence[RenderedLine], *, color: bool, console: Console | None = None) -> None:
    """Print rendered lines, styled when ``color`` is set and the terminal supports it."""
    if not color:
        for line in lines:
            print(line)
        return
    console = console or Console(highlight=False, soft_wrap=True)
    for line in lines:
        console.print(style_line(line))


def token_note(tokens: int | None) -> str | None:
    return None if tokens is None else f"({tokens} tokens)"


# ------------------------------ Text: cat -----------------------------------


def build_cat_text(
    project: str,
    result: EmissionResult,
    *,
    session: str | None = None,
    headers: bool = True,
) -> str:
    """Build the plain-text dump of emitted files.

    Each file is framed by 80-character rules with a FILE / LINES / [TOKENS] /
    HASH header; summary lines about the project, session and skipped files
    are written unless ``headers`` is False.

    Args:
        project (str): repository name
        result (EmissionResult): files to print and skip counts
        session (str | None): active session name, if any
        headers (bool): include the summary lines

    Returns:
        str: the text to print
    """
    out = io.StringIO()
    if headers:
        out.write(f"# Project: {project}\n")
        if session is not None:
            out.write(f"# Session: {session}\n")
        out.write(f"# Files: {len(result.files)} shown\n")
        if result.skipped_binary:
            out.write(f"# Skipped: {result.skipped_binary} binary/unreadable\n")
        if result.skipped_session:
            out.write(f"# Skipped: {result.skipped_session} unchanged (session)\n")

    for f in result.files:
        out.write(f"\n{RULE}\n")
        out.write(f"FILE: {f.path}\nLINES: {f.lines}\n")
        if f.tokens is not None:
            out.write(f"TOKENS: {f.tokens}\n")
        out.write(f"HASH: {f.digest[:HASH_PREFIX_LEN]}\n")
        out.write(f"{RULE}\n")
        out.write(f"{f.content}\n")

    if headers and result.files:
        out.write(f"\n# Total lines: {result.total_lines}\n")
    return out.getvalue()


# ------------------------------ Structured ----------------------------------


def build_tree_output(
    project: str,
    scored: Sequence[ScoredPath],
    tokens: Mapping[str, int | None] | None = None,
) -> TreeOutput:
    return TreeOutput(
        project=project,
        files=[
            FileOutput(path=s.path, score=s.score, tokens=tokens.get(s.path) if tokens else None)
            for s in scored
        ],
    )


def build_cat_output(project: str, result: EmissionResult, *, session: str | None = None) -> CatOutput:
    return CatOutput(
        project=project,
        session=session,
        files_shown=len(result.files),
        skipped_binary=result.skipped_binary,
        skipped_session=result.skipped_session,
        total_lines=result.total_lines,
        files=[
            FileOutput(
                path=f.path,
                score=f.score,
                tokens=f.tokens,
                lines=f.lines,
                content=f.content,
                hash=f.digest,
            )
            for f in result.files
        ],
    )


def render_json(data: BaseModel) -> str:
    """Pretty JSON, leaving out fields that were not computed."""
    return data.model_dump_json(indent=2, exclude_none=True)


def cdata(text: str) -> str:
    """Wrap text in CDATA sections, splitting any ``]]>`` it contains."""
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _xml_file(f: FileOutput, indent: str) -> list[str]:
    attrs = f"path={quoteattr(f.path)} score=\"{f.score}\" lines=\"{f.lines}\""
    if f.tokens is not None:
        attrs += f' tokens="{f.tokens}"'
    if f.hash is not None:
        attrs += f" hash={quoteattr(f.hash)}"
    if f.content is None:
        return [f"{indent}<file {attrs}/>"]
    return [
        f"{indent}<file {attrs}>",
        f"{indent}  <content>{cdata(f.content)}</content>",
        f"{indent}</file>",
    ]


def _xml_document(fields: Sequence[tuple[str, object]], files: Sequence[FileOutput]) -> str:
    lines = [XML_DECLARATION, "<codebase>"]
    lines.extend(f"  <{name}>{escape(str(value))}</{name}>" for name, value in fields)
    lines.append("  <files>")
    for f in files:
        lines.extend(_xml_file(f, "    "))
    lines.append("  </files>")
    lines.append("</codebase>")
    return "\n".join(lines)


def render_xml(data: TreeOutput | CatOutput) -> str:
    """Render a tree or cat result as a ``<codebase>`` XML document."""
    fields: list[tuple[str, object]] = [("project", data.project)]
    if isinstance(data, CatOutput):
        if data.session is not None:
            fields.append(("session", data.session))
        fields.extend(
            [
                ("files_shown", data.files_shown),
                ("skipped_binary", data.skipped_binary),
                ("skipped_session", data.skipped_session),
                ("total_lines", data.total_lines),
            ],
        )
    return _xml_document(fields, data.files)
