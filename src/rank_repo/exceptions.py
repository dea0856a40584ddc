from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RankRepoError(Exception):
    """Base exception for errors in the rank_repo package."""

    def __str__(self) -> str:
        return getattr(self, "message", self.__class__.__name__)


@dataclass(frozen=True)
class ConfigurationError(RankRepoError):
    """Raised when user-supplied configuration is invalid, before any work starts."""


@dataclass(frozen=True)
class InvalidOutputFormatError(ConfigurationError):
    """Raised when an output format name is not one of text, json or xml."""

    value: str

    @property
    def message(self) -> str:
        return f"Invalid format: {self.value}. Use text, json, or xml"


@dataclass(frozen=True)
class InvalidSessionNameError(ConfigurationError):
    """Raised when a session name cannot be used as a record file name."""

    name: str

    @property
    def message(self) -> str:
        return f"Invalid session name: {self.name!r}"


@dataclass(frozen=True)
class InvalidSessionStoreError(ConfigurationError):
    """Raised when the session storage location exists but is not a directory."""

    folder: Path

    @property
    def message(self) -> str:
        return f"Session storage location is not a directory: {self.folder}"


@dataclass(frozen=True)
class ConfigFileError(ConfigurationError):
    """Raised when a YAML configuration file cannot be parsed."""

    file: Path
    reason: str

    @property
    def message(self) -> str:
        return f"Invalid config file {self.file}: {self.reason}"


@dataclass(frozen=True)
class InvalidOptionError(ConfigurationError):
    """Raised when an option value is out of range or of the wrong type."""

    option: str
    reason: str

    @property
    def message(self) -> str:
        return f"Invalid value for {self.option}: {self.reason}"


@dataclass(frozen=True)
class LogFileError(ConfigurationError):
    """Raised when the ``--log-file`` destination cannot be opened."""

    file: str
    reason: str

    @property
    def message(self) -> str:
        return f"Cannot open log file {self.file}: {self.reason}"


@dataclass(frozen=True)
class IgnoreFileExistsError(RankRepoError):
    """Raised when ``init`` would overwrite an existing ignore file without ``--force``."""

    file: Path

    @property
    def message(self) -> str:
        return f"{self.file} already exists. Use --force to overwrite."


@dataclass(frozen=True)
class GitNotInstalledError(RankRepoError):
    """Raised when the git executable cannot be found."""

    message: str = "git is not installed"


@dataclass(frozen=True)
class NotAGitRepositoryError(RankRepoError):
    """Raised when the specified directory is not inside a Git repository."""

    folder: Path
    message: str = "not a git repository"


@dataclass(frozen=True)
class GitCommandError(RankRepoError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def message(self) -> str:
        return f"git command failed: {self.stderr.strip()}"


@dataclass(frozen=True)
class SessionStoreError(RankRepoError):
    """Raised when a persisted session record cannot be read or written."""

    file: Path
    reason: str

    @property
    def message(self) -> str:
        return f"Cannot use session record {self.file}: {self.reason}"
