"""rank_repo: score repository files by relevance and feed the important ones to an LLM."""

from rank_repo.config import ScoredPath
from rank_repo.scorer import classify, classify_many
from rank_repo.session import SessionRecord, SessionTracker
from rank_repo.tree import TreeNode, build_tree, render_flat, render_nested, rollup

__version__ = "0.3.0"

__all__ = [
    "ScoredPath",
    "SessionRecord",
    "SessionTracker",
    "TreeNode",
    "__version__",
    "build_tree",
    "classify",
    "classify_many",
    "render_flat",
    "render_nested",
    "rollup",
]
