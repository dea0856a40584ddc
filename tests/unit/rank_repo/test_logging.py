from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from rank_repo.logging import resolve_level, setup_logging

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    yield
    setup_logging(force=True)


@pytest.mark.unit
def test_resolve_level() -> None:
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(" INFO ") == logging.INFO
    assert resolve_level("chatty") == logging.WARNING
    assert resolve_level(logging.ERROR) == logging.ERROR


@pytest.mark.unit
def test_log_file_receives_json_events(tmp_path: Path) -> None:
    log_file = tmp_path / "run.log"
    log = setup_logging(log_file, "INFO", force=True)

    log.info("hello", answer=42)
    log.debug("hidden")
    for handler in logging.getLogger().handlers:
        handler.flush()

    events = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert [e["event"] for e in events] == ["hello"]
    assert events[0]["answer"] == 42
    assert events[0]["level"] == "info"
