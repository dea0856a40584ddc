"""Per-session memory of which file contents were already emitted.

A session is a small JSON document mapping repository-relative paths to the
SHA-256 digest of the bytes last emitted for that path. Keys are paths, not
digests: a byte-identical file under a new name is still emitted.
"""

from __future__ import annotations

import hashlib
import time
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from rank_repo.exceptions import InvalidSessionNameError, InvalidSessionStoreError, SessionStoreError
from rank_repo.logging import logger

SESSION_ID_PREFIX = "sess-"
RECORD_SUFFIX = ".json"


def compute_hash(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw file bytes."""
    return hashlib.sha256(data).hexdigest()


def generate_session_id() -> str:
    """Build a ``sess-<unix-seconds>`` id.

    Two ids generated within the same second are identical.
    """
    return f"{SESSION_ID_PREFIX}{int(time.time())}"


def validate_session_name(name: str) -> str:
    """Check that ``name`` can be used as a record file name.

    Raises:
        InvalidSessionNameError: if the name is empty, a dot entry, or contains a separator

    Returns:
        str: the name, unchanged
    """
    if not name or name in {".", ".."} or "/" in name or "\\" in name or "\0" in name:
        raise InvalidSessionNameError(name=name)
    return name


def validate_session_store(store_dir: Path) -> Path:
    """Check that the session store is a directory or does not exist yet.

    Raises:
        InvalidSessionStoreError: if the location exists and is not a directory

    Returns:
        Path: the store directory
    """
    if store_dir.exists() and not store_dir.is_dir():
        raise InvalidSessionStoreError(folder=store_dir)
    return store_dir


def record_path(name: str, store_dir: Path) -> Path:
    return store_dir / f"{validate_session_name(name)}{RECORD_SUFFIX}"


class SessionRecord(BaseModel):
    """Persisted state of one session."""

    name: str
    files: dict[str, str] = Field(default_factory=dict, description="path -> sha256 hex digest")


class SessionTracker:
    """Owns one :class:`SessionRecord` and the location it is saved to."""

    def __init__(self, record: SessionRecord, store_dir: Path) -> None:
        self.record = record
        self.store_dir = store_dir

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def path(self) -> Path:
        return record_path(self.record.name, self.store_dir)

    @classmethod
    def load(cls, name: str, store_dir: Path) -> SessionTracker:
        """Load the named session, or start an empty one if nothing is stored yet.

        Args:
            name (str): session name, used as the record file name
            store_dir (Path): directory holding ``<name>.json`` records

        Raises:
            SessionStoreError: if a stored record exists but cannot be read or parsed

        Returns:
            SessionTracker: a tracker over the loaded or fresh record
        """
        validate_session_store(store_dir)
        path = record_path(name, store_dir)
        if not path.exists():
            logger.debug("session_created", session=name)
            return cls(SessionRecord(name=name), store_dir)
        try:
            record = SessionRecord.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            raise SessionStoreError(file=path, reason=str(e)) from e
        logger.debug("session_loaded", session=name, files=len(record.files))
        return cls(SessionRecord(name=name, files=record.files), store_dir)

    def was_read(self, path: str, digest: str) -> bool:
        """True iff ``path`` was emitted before with exactly this content digest."""
        return self.record.files.get(path) == digest

    def mark_read(self, path: str, digest: str) -> None:
        self.record.files[path] = digest

    def save(self) -> Path:
        """Write the record to ``<store_dir>/<name>.json``, creating the directory if needed.

        Raises:
            SessionStoreError: if the record cannot be written

        Returns:
            Path: the record file
        """
        path = self.path
        try:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(self.record.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise SessionStoreError(file=path, reason=str(e)) from e
        logger.debug("session_saved", session=self.name, files=len(self.record.files))
        return path

    @staticmethod
    def clear(name: str, store_dir: Path) -> bool:
        """Delete the named session record.

        Returns:
            bool: True if a record was removed, False if there was none
        """
        path = record_path(name, store_dir)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise SessionStoreError(file=path, reason=str(e)) from e
        logger.debug("session_cleared", session=name)
        return True
