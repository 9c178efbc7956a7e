# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Tolerant parser for a streamed edit response.

The model streams one JSON object, {"edits": [...], "message": ..., "options": [...]},
that is only valid once the very last byte arrives. Every chunk triggers a
re-parse of the whole accumulated buffer:

1. Fast path: the buffer parses as JSON and holds an "edits" array. The
   result is authoritative and happens once, at the end of the stream.
2. Degraded path: each edit starts at a {"target": {...}} anchor and its
   scope runs to the next anchor (or the end of the buffer). Inside a scope
   the operation fields are extracted independently, tolerating an open
   string or an unterminated array. Fragments that cannot be recovered are
   left out, never invented.

The parser never raises and is a pure function of its input.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Pattern

logger = logging.getLogger(__name__)

_TARGET_ANCHOR = re.compile(r'\{\s*"target"\s*:\s*(\{[^{}]*\})')

_ESCAPES = {
    '"': '"',
    '\\': '\\',
    '/': '/',
    'b': '\b',
    'f': '\f',
    'n': '\n',
    'r': '\r',
    't': '\t',
}

_MISSING = object()


@dataclass
class ParsedEdit:
    """
    One edit as seen in the current buffer.

    ``closed`` is True once the edit object itself is complete in the
    stream (its braces balance), which is when single-shot operations with
    a payload may be applied.
    """

    target: Dict[str, Any]
    operation: Dict[str, Any]
    closed: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"target": self.target, "operation": self.operation}


@dataclass
class ParsedResponse:
    edits: Optional[List[ParsedEdit]] = None
    message: Optional[str] = None
    options: Optional[List[Dict[str, str]]] = None
    complete: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.edits is not None:
            result["edits"] = [edit.to_dict() for edit in self.edits]
        if self.message is not None:
            result["message"] = self.message
        if self.options is not None:
            result["options"] = self.options
        return result


class _StringToken(NamedTuple):
    value: str
    closed: bool
    end: int


def _key_pattern(key: str, suffix: str) -> Pattern:
    # A key preceded by a backslash lives inside another string value
    return re.compile(r'(?<!\\)"%s"\s*:\s*%s' % (re.escape(key), suffix), re.S)


def _decode_string(text: str, start: int) -> _StringToken:
    """
    Decode a JSON string body starting just after its opening quote.

    A truncated escape sequence at the end of the buffer is dropped rather
    than emitted half-decoded.
    """
    chars: List[str] = []
    i = start
    length = len(text)
    while i < length:
        char = text[i]
        if char == '"':
            return _StringToken("".join(chars), True, i + 1)
        if char != '\\':
            chars.append(char)
            i += 1
            continue

        if i + 1 >= length:
            break
        escape = text[i + 1]
        if escape != 'u':
            chars.append(_ESCAPES.get(escape, escape))
            i += 2
            continue

        digits = text[i + 2:i + 6]
        if len(digits) < 4:
            break
        try:
            code_point = int(digits, 16)
        except ValueError:
            i += 2
            continue
        i += 6
        if 0xD800 <= code_point <= 0xDBFF:
            low = text[i:i + 6]
            if len(low) < 6:
                i -= 6
                break
            if low.startswith('\\u'):
                try:
                    low_point = int(low[2:], 16)
                except ValueError:
                    low_point = 0
                if 0xDC00 <= low_point <= 0xDFFF:
                    code_point = 0x10000 + ((code_point - 0xD800) << 10) + (low_point - 0xDC00)
                    i += 6
        chars.append(chr(code_point))
    return _StringToken("".join(chars), False, length)


def extract_string_field(text: str, key: str, allow_partial: bool = False) -> Optional[str]:
    """
    Extract the first string value for key.

    Args:
        text: Buffer or scoped fragment to search
        key: JSON key
        allow_partial: Also return a string whose closing quote has not arrived

    Returns:
        The decoded string or None
    """
    match = _key_pattern(key, '"').search(text)
    if not match:
        return None
    token = _decode_string(text, match.end())
    if token.closed or allow_partial:
        return token.value
    return None


def extract_number_or_null_field(text: str, key: str) -> Any:
    """Return an int, None for JSON null, or _MISSING when absent or still streaming"""
    match = _key_pattern(key, r'(null|-?\d+)(?=\s*[,}\]])').search(text)
    if not match:
        return _MISSING
    if match.group(1) == "null":
        return None
    return int(match.group(1))


def extract_string_array_field(text: str, key: str) -> Optional[List[str]]:
    """
    Scan a string array, keeping an unterminated final string.

    Non-string elements are skipped; scanning stops at the closing bracket
    or the end of the buffer.
    """
    match = _key_pattern(key, r'\[').search(text)
    if not match:
        return None

    items: List[str] = []
    i = match.end()
    length = len(text)
    while i < length:
        char = text[i]
        if char == ']':
            break
        if char == '"':
            token = _decode_string(text, i + 1)
            items.append(token.value)
            if not token.closed:
                break
            i = token.end
            continue
        i += 1
    return items


def _object_closed(text: str, start: int) -> bool:
    """True when the object opening at text[start] closes within text"""
    depth = 0
    in_string = False
    escaped = False
    for char in text[start:]:
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in '{[':
            depth += 1
        elif char in '}]':
            depth -= 1
            if depth == 0:
                return True
    return False


def _split_array_objects(text: str, start: int) -> List[str]:
    """Top-level object fragments of the array starting after index start; the last may be open"""
    fragments: List[str] = []
    depth = 0
    in_string = False
    escaped = False
    object_start = None
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in '{[':
            if depth == 0 and char == '{':
                object_start = index
            depth += 1
        elif char in '}]':
            if depth == 0:
                break
            depth -= 1
            if depth == 0 and object_start is not None:
                fragments.append(text[object_start:index + 1])
                object_start = None
    if object_start is not None:
        fragments.append(text[object_start:])
    return fragments


def extract_options(text: str) -> Optional[List[Dict[str, str]]]:
    match = _key_pattern("options", r'\[').search(text)
    if not match:
        return None
    options: List[Dict[str, str]] = []
    for fragment in _split_array_objects(text, match.end()):
        title = extract_string_field(fragment, "title", allow_partial=True)
        if title is None:
            continue
        content = extract_string_field(fragment, "content", allow_partial=True)
        options.append({"title": title, "content": content or ""})
    return options


def _try_parse_complete(text: str) -> Optional[ParsedResponse]:
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    if not isinstance(parsed, dict) or not isinstance(parsed.get("edits"), list):
        return None

    edits = []
    for edit in parsed["edits"]:
        if not isinstance(edit, dict):
            continue
        target = edit.get("target") if isinstance(edit.get("target"), dict) else {}
        operation = edit.get("operation") if isinstance(edit.get("operation"), dict) else {}
        edits.append(ParsedEdit(target=target, operation=operation, closed=True))

    message = parsed.get("message")
    options = parsed.get("options")
    return ParsedResponse(
        edits=edits,
        message=message if isinstance(message, str) else None,
        options=[option for option in options if isinstance(option, dict)] if isinstance(options, list) else None,
        complete=True,
    )


def _infer_type(replacement: Optional[str], items: Optional[List[str]], position: Optional[str],
                block_type: Optional[str]) -> Optional[str]:
    if replacement is not None:
        return "replace"
    if items is not None and position:
        return "insert-block" if block_type else "insert-item"
    return None


def _parse_scope(scope: str) -> Optional[Dict[str, Any]]:
    replacement = extract_string_field(scope, "replacement", allow_partial=True)
    items = extract_string_array_field(scope, "items")
    position = extract_string_field(scope, "position")
    block_type = extract_string_field(scope, "blockType")
    heading_level = extract_number_or_null_field(scope, "headingLevel")

    op_type = extract_string_field(scope, "type") or _infer_type(replacement, items, position, block_type)
    if not op_type:
        return None

    operation: Dict[str, Any] = {"type": op_type}
    if op_type == "replace":
        if replacement is not None:
            operation["replacement"] = replacement
        return operation

    if items is not None:
        operation["items"] = items
    if position:
        operation["position"] = position
    if block_type:
        operation["blockType"] = block_type
    if heading_level is not _MISSING:
        operation["headingLevel"] = heading_level
    return operation


def parse_partial_edits(text: str) -> Optional[ParsedResponse]:
    """
    Best-effort parse of the accumulated response buffer.

    Args:
        text: Everything received so far

    Returns:
        ParsedResponse, or None when nothing usable is present yet
    """
    if not text:
        return None

    complete = _try_parse_complete(text)
    if complete is not None:
        return complete

    edits: List[ParsedEdit] = []
    anchors = list(_TARGET_ANCHOR.finditer(text))
    for index, anchor in enumerate(anchors):
        try:
            target = json.loads(anchor.group(1))
        except ValueError:
            logger.debug(f"Skipping edit with malformed target: {anchor.group(1)!r}")
            continue
        if not isinstance(target, dict):
            continue

        scope_end = anchors[index + 1].start() if index + 1 < len(anchors) else len(text)
        scope = text[anchor.start():scope_end]
        operation = _parse_scope(scope)
        if operation is None:
            continue
        edits.append(ParsedEdit(target=target, operation=operation, closed=_object_closed(scope, 0)))

    message = extract_string_field(text, "message", allow_partial=True)
    options = extract_options(text)

    if not edits and message is None and not options:
        return None

    return ParsedResponse(
        edits=edits or None,
        message=message,
        options=options or None,
    )
