"""Canonical serialization and hashing helpers.

Every JSON column and every derived identifier (notification ids, grouping
keys) goes through these helpers so values are stable across processes and
restarts.  Python's built-in ``hash()`` is salted per process and must not be
used for anything that is persisted or shown to a presentation layer.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def stable_int_hash(obj: Any) -> int:
    """Return a non-negative 31-bit integer derived from *obj*'s canonical JSON.

    Fits in a signed 32-bit int, which is what most notification
    presentation layers accept as an id.
    """
    digest = hashlib.sha256(canonical_json_bytes(obj)).digest()
    return int.from_bytes(digest[:4], "big") & 0x7FFFFFFF
