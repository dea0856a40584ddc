from __future__ import annotations

from enum import StrEnum, auto
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, computed_field

from rank_repo.exceptions import InvalidOutputFormatError


class OutputFormat(StrEnum):
    """Presentation formats supported by the ``tree`` and ``cat`` commands."""

    TEXT = auto()
    JSON = auto()
    XML = auto()

    @classmethod
    def parse(cls, value: str | None) -> OutputFormat:
        """Parse a user supplied format name, case-insensitively.

        Args:
            value (str | None): the format name; None or empty means text

        Raises:
            InvalidOutputFormatError: if the name is not a known format

        Returns:
            OutputFormat: the matching format
        """
        if not value:
            return cls.TEXT
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise InvalidOutputFormatError(value=value) from None


# ------------------------------ Scoring tables ------------------------------

MIN_SCORE = 1
MAX_SCORE = 10
BASE_SCORE = 7
EXPLICIT_SCORE = MAX_SCORE

ENTRY_POINT_NAMES = frozenset({"main.rs", "lib.rs", "mod.rs", "__main__.py"})
ENTRY_POINT_PREFIXES = ("main.", "index.", "app.", "server.", "cli.")

README_NAMES = frozenset({"README.md", "README", "README.rst"})

CONFIG_PREFIXES = ("config.", "settings.")

GENERATED_SUFFIXES = (
    ".lock",
    ".min.js",
    ".min.css",
    ".map",
    ".d.ts",
    ".pyc",
    ".backup",
    ".bak",
    ".tmp",
    ".sql",
)
GENERATED_INFIXES = ("-lock.", ".lock.", ".generated.")

PROJECT_FILES: MappingProxyType[str, int] = MappingProxyType(
    {
        "Cargo.toml": 8,
        "package.json": 8,
        "go.mod": 8,
        "pom.xml": 8,
        "build.gradle": 8,
        "build.gradle.kts": 8,
        "Dockerfile": 8,
        "docker-compose.yml": 8,
        "docker-compose.yaml": 8,
        "Makefile": 8,
        "CMakeLists.txt": 8,
        "tsconfig.json": 8,
        "setup.py": 8,
        "setup.cfg": 8,
        "pyproject.toml": 8,
        "requirements.txt": 8,
        "Pipfile": 8,
        "Gemfile": 8,
        "composer.json": 8,
    },
)

TEST_FILE_PREFIXES = ("test_",)
TEST_FILE_INFIXES = ("_test.", ".test.", ".spec.")

INIT_FILE_NAME = "__init__.py"

IMPORTANT_DIRS = frozenset({"src", "core", "lib", "app", "pkg", "internal", "cmd"})
DOMAIN_DIRS = frozenset(
    {
        "api",
        "server",
        "client",
        "models",
        "services",
        "handlers",
        "controllers",
        "routes",
        "middleware",
        "database",
        "db",
        "auth",
        "components",
        "views",
        "utils",
    },
)
TEST_DIRS = frozenset({"test", "tests", "spec", "__tests__"})
LOW_PRIORITY_DIRS = frozenset(
    {
        "vendor",
        "third_party",
        "fixtures",
        "mocks",
        "docs",
        "examples",
        "scripts",
        "tools",
        "dist",
        "build",
        "out",
        "target",
        "node_modules",
        "archived",
        "legacy",
        "debug",
        "research",
        "tmp",
        "temp",
        "backup",
        "artifacts",
        ".artifacts",
        "drizzle",
        "migrations",
    },
)

SCHEMA_EXTENSIONS = frozenset({"proto", "graphql", "gql", "thrift"})
DOC_EXTENSIONS = frozenset({"md", "rst"})

# ------------------------------ Content sniffing ----------------------------

MAX_TEXT_FILE_SIZE = 200_000
BINARY_MIME_TYPES = frozenset({"image", "video", "audio"})
# source extensions that mimetypes maps to media types
SOURCE_SUFFIXES = frozenset({".ts", ".mts", ".cts", ".tsx"})
BINARY_SUFFIXES = frozenset(
    {
        ".7z",
        ".a",
        ".bin",
        ".class",
        ".dll",
        ".dylib",
        ".exe",
        ".gz",
        ".jar",
        ".o",
        ".pyc",
        ".pyo",
        ".so",
        ".tar",
        ".ttf",
        ".woff",
        ".woff2",
        ".zip",
    },
)

DEFAULT_ENCODING = "o200k_base"
CHARS_PER_TOKEN = 4

# ------------------------------ Models (Pydantic) ----------------------------


class ScoredPath(BaseModel):
    """A repository-relative path with its relevance score.

    Attributes:
        path: Path relative to the repository root, with POSIX separators.
        score: Relevance rank between 1 (least relevant) and 10 (must include).
        reasons: Ordered tags naming the rules that produced the score.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Repository-relative path")
    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE, description="Relevance score")
    reasons: tuple[str, ...] = Field(default=(), description="Triggered rule tags, in order")

    @computed_field
    @property
    def reason(self) -> str:
        """Human readable reason, the tags joined with commas."""
        return ", ".join(self.reasons) if self.reasons else "base score"

    @property
    def depth(self) -> int:
        """Number of directories between the repository root and the file."""
        return self.path.count("/")


class FileOutput(BaseModel):
    """One file entry in a structured tree or cat result."""

    path: str
    score: int
    tokens: int | None = None
    lines: int = 0
    content: str | None = None
    hash: str | None = None


class TreeOutput(BaseModel):
    """Structured result of the ``tree`` command."""

    project: str
    files: list[FileOutput] = Field(default_factory=list)


class CatOutput(BaseModel):
    """Structured result of the ``cat`` command, with aggregate skip counts."""

    project: str
    session: str | None = None
    files_shown: int = 0
    skipped_binary: int = 0
    skipped_session: int = 0
    total_lines: int = 0
    files: list[FileOutput] = Field(default_factory=list)
