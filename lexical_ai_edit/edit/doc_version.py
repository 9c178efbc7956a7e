# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Document versions: "<base36 timestamp ms>-<base36 content hash>".

A version is taken when an instruction is sent; comparing hashes (not
timestamps) tells whether the document changed before the edits came back.
"""

import hashlib
import json
import logging
import time
from typing import Optional

from ..model.document import LexicalDocument

logger = logging.getLogger(__name__)

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("Only non-negative integers can be encoded")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_DIGITS[remainder])
    return "".join(reversed(digits))


def content_hash(document: LexicalDocument) -> str:
    serialized = json.dumps(document.to_lexical(), sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(serialized.encode("utf-8")).digest()
    return to_base36(int.from_bytes(digest[:8], "big"))


def generate_doc_version(document: LexicalDocument, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{to_base36(timestamp_ms)}-{content_hash(document)}"


def _split_version(version: str) -> Optional[tuple]:
    parts = version.split("-")
    return tuple(parts) if len(parts) == 2 and all(parts) else None


def validate_doc_version(expected: str, current: str) -> bool:
    """
    True when both versions carry the same content hash.

    Timestamps are ignored; a malformed version never validates.
    """
    if expected == current:
        return True

    expected_parts = _split_version(expected)
    current_parts = _split_version(current)
    if expected_parts is None or current_parts is None:
        logger.warning(f"Invalid document version format: expected={expected!r} current={current!r}")
        return False

    if expected_parts[1] != current_parts[1]:
        logger.warning(f"Document changed since version {expected} (now {current})")
        return False
    return True


def get_version_timestamp(version: str) -> Optional[int]:
    """Millisecond timestamp encoded in version, or None"""
    parts = _split_version(version)
    if parts is None:
        return None
    try:
        return int(parts[0], 36)
    except ValueError:
        return None
