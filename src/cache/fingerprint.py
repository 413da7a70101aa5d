# src/cache/fingerprint.py — v2
"""Stable cache keys: operation prefix + SHA-256 of the canonical input."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonicalize(value: Any) -> str:
    """Deterministic text form of a cache input.

    Strings are used as-is; anything else is dumped as JSON with sorted
    keys so that dict ordering never changes the key.
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


def make_cache_key(prefix: str, value: Any) -> str:
    """Return ``"<prefix>:<sha256 hex>"`` for an operation input."""
    digest = hashlib.sha256(canonicalize(value).encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"
