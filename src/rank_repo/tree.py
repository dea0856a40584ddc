from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rank_repo.scorer import sort_scored

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Sequence

    from rank_repo.config import ScoredPath

    Annotator = Callable[[str], str | None]

ROOT_NAME = "."
BRANCH = "├── "
ELBOW = "└── "
PIPE = "│   "
BLANK = "    "


@dataclass
class TreeNode:
    """A directory or file in the score tree.

    Only file nodes carry a score; directory scores are computed on demand by
    :func:`rollup`. Each node owns its children, keyed by segment name.
    """

    name: str
    path: str
    score: int | None = None
    children: dict[str, TreeNode] = field(default_factory=dict)

    @property
    def is_leaf(self) -> bool:
        return not self.children


@dataclass(frozen=True)
class RenderedLine:
    """One line of tree output, kept in parts so callers can style the score.

    Attributes:
        prefix: Indentation inherited from the ancestors.
        connector: Branch or elbow drawn before the entry (empty in flat views).
        label: File name, directory name with a trailing slash, or full path.
        score: Score of a file entry; None for directories.
        note: Optional annotation appended after the label, e.g. a token count.
    """

    prefix: str
    connector: str
    label: str
    score: int | None = None
    note: str | None = None

    @property
    def is_directory(self) -> bool:
        return self.score is None

    def __str__(self) -> str:
        body = self.label if self.score is None else f"{self.score:2d} {self.label}"
        if self.note:
            body = f"{body} {self.note}"
        return f"{self.prefix}{self.connector}{body}"


def filter_scored(
    scored: Iterable[ScoredPath],
    *,
    min_score: int = 1,
    max_depth: int | None = None,
) -> list[ScoredPath]:
    """Drop entries below ``min_score`` or nested deeper than ``max_depth``.

    This runs before :func:`build_tree`, so a directory whose files are all
    filtered out never appears in the tree.
    """
    return [
        s
        for s in scored
        if s.score >= min_score and (max_depth is None or s.depth <= max_depth)
    ]


def build_tree(scored: Iterable[ScoredPath]) -> TreeNode:
    """Build a directory tree from scored paths.

    Args:
        scored (Iterable[ScoredPath]): paths with POSIX separators

    Returns:
        TreeNode: a synthetic root named "." whose descendants mirror the paths;
            each path's last segment holds its score
    """
    root = TreeNode(name=ROOT_NAME, path=ROOT_NAME)
    for item in scored:
        cur = root
        parts = item.path.split("/")
        for i, part in enumerate(parts):
            child = cur.children.get(part)
            if child is None:
                child = TreeNode(name=part, path="/".join(parts[: i + 1]))
                cur.children[part] = child
            cur = child
        cur.score = item.score
    return root


def rollup(node: TreeNode) -> int:
    """Highest score found in the subtree rooted at ``node``; 0 if it holds none."""
    best = node.score or 0
    for child in node.children.values():
        best = max(best, rollup(child))
    return best


def iter_leaves(node: TreeNode) -> Iterator[tuple[str, int]]:
    """Yield ``(path, score)`` for every scored node below ``node``."""
    for child in node.children.values():
        if child.score is not None:
            yield child.path, child.score
        yield from iter_leaves(child)


def _ordered_children(node: TreeNode) -> list[TreeNode]:
    rolled = {name: rollup(child) for name, child in node.children.items()}
    return sorted(node.children.values(), key=lambda c: (-rolled[c.name], c.name))


def render_flat(
    scored: Sequence[ScoredPath],
    annotate: Annotator | None = None,
) -> list[RenderedLine]:
    """Render one ``"<score> <path>"`` line per file, best first.

    Args:
        scored (Sequence[ScoredPath]): the entries to render
        annotate (Annotator | None): optional callback returning a note for a path

    Returns:
        list[RenderedLine]: lines ordered by score descending, then path
    """
    return [
        RenderedLine(
            prefix="",
            connector="",
            label=s.path,
            score=s.score,
            note=annotate(s.path) if annotate else None,
        )
        for s in sort_scored(scored)
    ]


def render_nested(root: TreeNode, annotate: Annotator | None = None) -> list[RenderedLine]:
    """Render the tree with box-drawing connectors.

    Siblings are ordered by rollup score descending, then by name. The root
    itself is not printed; its children start at column zero.

    Args:
        root (TreeNode): the tree returned by :func:`build_tree`
        annotate (Annotator | None): optional callback returning a note for a file path

    Returns:
        list[RenderedLine]: lines in display order
    """
    lines: list[RenderedLine] = []

    def walk(node: TreeNode, prefix: str) -> None:
        children = _ordered_children(node)
        for idx, child in enumerate(children):
            last = idx == len(children) - 1
            connector = ELBOW if last else BRANCH
            if child.is_leaf:
                lines.append(
                    RenderedLine(
                        prefix=prefix,
                        connector=connector,
                        label=child.name,
                        score=child.score or 0,
                        note=annotate(child.path) if annotate else None,
                    ),
                )
            else:
                lines.append(RenderedLine(prefix=prefix, connector=connector, label=child.name + "/"))
                walk(child, prefix + (BLANK if last else PIPE))

    walk(root, "")
    return lines
