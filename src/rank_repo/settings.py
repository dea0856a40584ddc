from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from rank_repo.config import OutputFormat
from rank_repo.exceptions import ConfigFileError
from rank_repo.session import validate_session_name, validate_session_store

if TYPE_CHECKING:
    from collections.abc import Iterable

HOME_ENV = "RANK_REPO_HOME"
SESSION_ENV = "RANK_REPO_SESSION"
CONFIG_FILE_NAME = "config.yaml"
REPO_CONFIG_FILE_NAME = ".rank_repo.yaml"
GLOBAL_IGNORE_FILE_NAME = "ignore"
SESSIONS_DIR_NAME = "sessions"


def default_home() -> Path:
    """Directory holding the global config, ignore file and sessions."""
    env = os.environ.get(HOME_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".rank_repo"


def active_session_name() -> str | None:
    """Session named by ``RANK_REPO_SESSION``, from the environment or a ``.env`` file."""
    name = os.environ.get(SESSION_ENV)
    if name:
        return name
    env_file = find_dotenv(usecwd=True)
    if not env_file:
        return None
    return dotenv_values(env_file).get(SESSION_ENV) or None


class FileConfig(BaseModel):
    """Defaults read from YAML config files; unset keys leave CLI defaults alone."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    min_score: int | None = Field(default=None, ge=1, le=10)
    depth: int | None = Field(default=None, ge=0)
    flat: bool | None = None
    no_color: bool | None = None
    git_root: bool | None = None
    level: int | None = Field(default=None, ge=1, le=10)
    no_headers: bool | None = None
    jobs: int | None = Field(default=None, ge=0)

    def merge(self, other: FileConfig) -> FileConfig:
        """Return a copy where every key set in ``other`` overrides this one."""
        return self.model_copy(update=other.model_dump(exclude_none=True))


def read_config_file(path: Path) -> FileConfig:
    """Parse one YAML config file; a missing file yields an empty config.

    Raises:
        ConfigFileError: if the file is not valid YAML, not a mapping, or has bad values

    Returns:
        FileConfig: the parsed settings
    """
    if not path.is_file():
        return FileConfig()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigFileError(file=path, reason=str(e)) from e
    if not isinstance(data, dict):
        raise ConfigFileError(file=path, reason="expected a mapping at top level")
    try:
        return FileConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigFileError(file=path, reason=str(e)) from e


def load_file_config(paths: Iterable[Path]) -> FileConfig:
    """Merge config files in order, later files winning."""
    merged = FileConfig()
    for p in paths:
        merged = merged.merge(read_config_file(p))
    return merged


class Settings(BaseModel):
    """Options shared by the ``tree`` and ``cat`` commands."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: Path = Field(default_factory=Path.cwd, description="Project path.")
    home: Path = Field(default_factory=default_home, description="Global config directory.")
    format: OutputFormat = Field(default=OutputFormat.TEXT, description="Output format.")
    tokens: bool = Field(default=False, description="Show token counts.")
    git_root: bool = Field(default=False, description="Ignore path filtering.")
    dirty: bool = Field(default=False, description="Only dirty files.")
    staged: bool = Field(default=False, description="Only staged files.")
    unstaged: bool = Field(default=False, description="Only unstaged files.")
    jobs: int = Field(default=0, ge=0, description="Parallel jobs (0 = auto).")

    @field_validator("format", mode="before")
    @classmethod
    def _parse_format(cls, value: Any) -> OutputFormat:  # noqa: ANN401
        if isinstance(value, OutputFormat):
            return value
        return OutputFormat.parse(value)

    @property
    def wants_status(self) -> bool:
        return self.dirty or self.staged or self.unstaged

    @property
    def global_ignore_file(self) -> Path:
        return self.home / GLOBAL_IGNORE_FILE_NAME

    @property
    def session_dir(self) -> Path:
        return self.home / SESSIONS_DIR_NAME


class TreeSettings(Settings):
    """Configuration for the ``tree`` command."""

    min_score: int = Field(default=1, ge=1, le=10, description="Minimum score.")
    depth: int | None = Field(default=None, ge=0, description="Maximum depth.")
    flat: bool = Field(default=False, description="Flat output instead of tree.")
    no_color: bool = Field(default=False, description="Disable colors.")


class CatSettings(Settings):
    """Configuration for the ``cat`` command."""

    files: list[str] = Field(default_factory=list, description="Specific files to cat.")
    level: int = Field(default=5, ge=1, le=10, description="Minimum score level.")
    no_headers: bool = Field(default=False, description="Disable headers.")
    session: str | None = Field(default=None, description="Session name.")

    @field_validator("session")
    @classmethod
    def _check_session(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return validate_session_name(value)

    @model_validator(mode="after")
    def _check_session_store(self) -> CatSettings:
        if self.session is not None:
            validate_session_store(self.session_dir)
        return self
