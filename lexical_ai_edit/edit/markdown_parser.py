# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Inline markdown to Lexical text runs.

Supports **bold**, *italic*, ~~strike~~ and `code`. Block syntax is not
parsed: block structure comes from the edit operation, only a leading
heading marker (#, ##, ###) is recognised and stripped for heading blocks.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, NamedTuple, Optional, Tuple

from ..constants import FORMAT_BOLD, FORMAT_CODE, FORMAT_ITALIC, FORMAT_STRIKETHROUGH
from ..model.document import LexicalNode
from .schemas import BlockType

logger = logging.getLogger(__name__)


class Mark(str, Enum):
    BOLD = "bold"
    ITALIC = "italic"
    STRIKE = "strike"
    CODE = "code"

    @property
    def format_bit(self) -> int:
        return _FORMAT_BITS[self]


_FORMAT_BITS = {
    Mark.BOLD: FORMAT_BOLD,
    Mark.ITALIC: FORMAT_ITALIC,
    Mark.STRIKE: FORMAT_STRIKETHROUGH,
    Mark.CODE: FORMAT_CODE,
}

MARK_PATTERNS = [
    (re.compile(r"\*\*(.+?)\*\*", re.S), Mark.BOLD),
    # Lone asterisks only, so "**bold** and *it*" cannot pair across the bold span
    (re.compile(r"(?<!\*)\*(?!\*)(.+?)(?<!\*)\*(?!\*)", re.S), Mark.ITALIC),
    (re.compile(r"~~(.+?)~~", re.S), Mark.STRIKE),
    (re.compile(r"`(.+?)`", re.S), Mark.CODE),
]

HEADING_MARKER = re.compile(r"^(#{1,3})\s+")
HEADING_LINE = re.compile(r"^(#{1,3})\s+(.+)$", re.S)

_BOLD_DELIMITER = re.compile(r"\*\*")
_ITALIC_DELIMITER = re.compile(r"(?<!\*)\*(?!\*)")
_STRIKE_DELIMITER = re.compile(r"~~")
_CODE_DELIMITER = re.compile(r"`")


@dataclass(frozen=True)
class TextRun:
    text: str
    marks: Tuple[Mark, ...] = ()

    @property
    def format(self) -> int:
        bits = 0
        for mark in self.marks:
            bits |= mark.format_bit
        return bits


class _MarkMatch(NamedTuple):
    start: int
    end: int
    mark: Mark
    text: str


def parse_inline_markdown(text: str) -> List[TextRun]:
    """
    Parse inline marks into text runs covering the whole input.

    All delimiter matches are collected, sorted by start then by length
    (longest first, so ** wins over *), and any match overlapping an already
    accepted one is discarded.
    """
    if not text.strip():
        return [TextRun(text)]

    matches: List[_MarkMatch] = []
    for pattern, mark in MARK_PATTERNS:
        for match in pattern.finditer(text):
            matches.append(_MarkMatch(match.start(), match.end(), mark, match.group(1)))

    matches.sort(key=lambda m: (m.start, -(m.end - m.start)))

    accepted: List[_MarkMatch] = []
    for match in matches:
        if any(match.start < existing.end and match.end > existing.start for existing in accepted):
            continue
        accepted.append(match)
    accepted.sort(key=lambda m: m.start)

    runs: List[TextRun] = []
    cursor = 0
    for match in accepted:
        if cursor < match.start:
            runs.append(TextRun(text[cursor:match.start]))
        runs.append(TextRun(match.text, (match.mark,)))
        cursor = match.end
    if cursor < len(text):
        runs.append(TextRun(text[cursor:]))

    return runs or [TextRun(text)]


def parse_markdown_for_block(text: str, block_type: Optional[BlockType]) -> List[TextRun]:
    """Parse inline markdown, stripping a leading heading marker for heading blocks"""
    if not text.strip():
        return [TextRun(text)]

    if block_type == BlockType.HEADING:
        heading = HEADING_LINE.match(text)
        if heading:
            return parse_inline_markdown(heading.group(2))
        logger.debug("Heading replacement without # marker")

    return parse_inline_markdown(text)


def is_markdown_complete(text: str) -> bool:
    """
    True when every inline delimiter is balanced.

    Streaming text such as "**bol" must not be applied yet, otherwise the
    literal asterisks would land in the document.
    """
    for pattern in (_BOLD_DELIMITER, _ITALIC_DELIMITER, _STRIKE_DELIMITER, _CODE_DELIMITER):
        if len(pattern.findall(text)) % 2 != 0:
            return False
    return True


def get_requested_heading_level(text: str) -> Optional[int]:
    match = HEADING_MARKER.match(text)
    return len(match.group(1)) if match else None


def strip_heading_marker(text: str) -> str:
    return HEADING_MARKER.sub("", text, count=1)


def runs_to_text_nodes(runs: List[TextRun]) -> List[LexicalNode]:
    """Lexical text nodes for the runs; empty runs are dropped"""
    return [LexicalNode.text_node(run.text, run.format) for run in runs if run.text]


def runs_length(runs: List[TextRun]) -> int:
    return sum(len(run.text) for run in runs)
