from __future__ import annotations

import math
from functools import cache

import tiktoken

from rank_repo.config import CHARS_PER_TOKEN, DEFAULT_ENCODING
from rank_repo.logging import logger

SUPPORTED_ENCODINGS = frozenset({"o200k_base", "cl100k_base"})


def fallback_tokens(text: str) -> int:
    """Approximate a token count as one token per four bytes, rounded up."""
    return math.ceil(len(text.encode("utf-8", errors="replace")) / CHARS_PER_TOKEN)


@cache
def _get_encoding(name: str) -> tiktoken.Encoding | None:
    try:
        return tiktoken.get_encoding(name)
    except Exception as e:  # noqa: BLE001
        logger.warning("token_encoding_unavailable", encoding=name, error=str(e))
        return None


def count_tokens(text: str, encoding: str = DEFAULT_ENCODING) -> int:
    """Count subword tokens in ``text`` for a tiktoken encoding.

    Unknown encodings, or an encoding whose data cannot be loaded (e.g. offline),
    fall back to :func:`fallback_tokens`. This function never raises.

    Args:
        text (str): the text to measure
        encoding (str): "o200k_base" or "cl100k_base"

    Returns:
        int: the token count or its estimate
    """
    if not text:
        return 0
    enc = _get_encoding(encoding) if encoding in SUPPORTED_ENCODINGS else None
    if enc is None:
        return fallback_tokens(text)
    try:
        return len(enc.encode_ordinary(text))
    except Exception as e:  # noqa: BLE001
        logger.warning("token_count_failed", encoding=encoding, error=str(e))
        return fallback_tokens(text)
