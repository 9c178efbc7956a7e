# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Block map: stable, addressable items derived from a document snapshot.

Blocks are numbered in document order, skipping empty ones. Paragraphs and
headings are split into sentences; lists yield one item per entry. Item ids
("block-{blockNum}.{itemNum}") are stable for the snapshot, only the ranges
move as the document is edited.
"""

import logging
from typing import List, NamedTuple, Optional

from ..constants import BLOCK_ITEM_PREFIX
from ..model.document import LexicalDocument, LexicalNode, NodeType, Range
from .schemas import BlockItem, BlockType

logger = logging.getLogger(__name__)

WHITESPACE = " \n\t\r"
SENTENCE_TERMINATORS = ".!?"


class SentenceRange(NamedTuple):
    text: str
    start: int
    end: int


def make_item_id(block_num: int, item_num: int) -> str:
    return f"{BLOCK_ITEM_PREFIX}{block_num}.{item_num}"


def _trimmed_end(text: str, start: int, end: int) -> int:
    while end > start and text[end - 1] in WHITESPACE:
        end -= 1
    return end


def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in WHITESPACE:
        pos += 1
    return pos


def split_sentences(text: str) -> List[SentenceRange]:
    """
    Split text into sentence ranges.

    A sentence ends at '.', '!' or '?' followed by whitespace or the end of
    the text; a run of dots ("...") counts as one terminator. Trailing text
    without a terminator forms the last sentence.
    """
    ranges: List[SentenceRange] = []
    length = len(text)
    start = _skip_whitespace(text, 0)
    i = start

    while i < length:
        char = text[i]
        if char in SENTENCE_TERMINATORS:
            end = i + 1
            if char == ".":
                while end < length and text[end] == ".":
                    end += 1
                i = end - 1

            if end == length or text[end] in WHITESPACE:
                trimmed = _trimmed_end(text, start, end)
                if trimmed > start:
                    ranges.append(SentenceRange(text[start:trimmed], start, trimmed))
                start = _skip_whitespace(text, end)
                i = start
                continue
        i += 1

    if start < length:
        trimmed = _trimmed_end(text, start, length)
        if trimmed > start:
            ranges.append(SentenceRange(text[start:trimmed], start, trimmed))

    return ranges


def _list_item_text_range(list_item: LexicalNode, list_item_pos: int) -> Range:
    """Range of the entry's own inline text (a nested list is not part of it)"""
    content_start = list_item_pos + 1
    inline_size = 0
    for child in list_item.children:
        if not child.is_inline:
            break
        inline_size += child.size
    if inline_size == 0 and list_item.children:
        return Range(content_start, list_item_pos + list_item.size - 1)
    return Range(content_start, content_start + inline_size)


def build_block_map(document: LexicalDocument) -> List[BlockItem]:
    """
    Build the ordered block item list for the current document.

    Args:
        document: Document snapshot to address

    Returns:
        Ordered list of BlockItem
    """
    items: List[BlockItem] = []
    block_num = 0

    for block, pos in document.blocks():
        if block.type in (NodeType.PARAGRAPH, NodeType.HEADING):
            block_text = block.text_content
            if not block_text.strip():
                continue

            block_num += 1
            block_type = BlockType.HEADING if block.type == NodeType.HEADING else BlockType.PARAGRAPH
            heading_level = block.heading_level
            content_start = pos + 1
            sentences = split_sentences(block_text)

            if not sentences:
                items.append(BlockItem(
                    id=make_item_id(block_num, 1),
                    block_num=block_num,
                    item_num=1,
                    block_type=block_type,
                    heading_level=heading_level,
                    start=content_start,
                    end=pos + block.size - 1,
                    text=block_text,
                ))
                continue

            for item_num, sentence in enumerate(sentences, start=1):
                items.append(BlockItem(
                    id=make_item_id(block_num, item_num),
                    block_num=block_num,
                    item_num=item_num,
                    block_type=block_type,
                    heading_level=heading_level,
                    start=content_start + sentence.start,
                    end=content_start + sentence.end,
                    text=sentence.text,
                ))

        elif block.type == NodeType.LIST:
            if not block.text_content.strip():
                continue

            block_num += 1
            block_type = BlockType.ORDERED_LIST if block.list_type == "number" else BlockType.BULLET_LIST
            item_num = 0
            for child, child_pos in document.children_with_positions(block, pos + 1):
                if child.type != NodeType.LIST_ITEM:
                    continue
                item_num += 1
                text_range = _list_item_text_range(child, child_pos)
                items.append(BlockItem(
                    id=make_item_id(block_num, item_num),
                    block_num=block_num,
                    item_num=item_num,
                    block_type=block_type,
                    start=text_range.start,
                    end=text_range.end,
                    text=child.inline_text,
                ))

    if not items:
        # An empty document still exposes its first textblock as block-1.1
        for block, pos in document.blocks():
            if block.type in (NodeType.PARAGRAPH, NodeType.HEADING):
                items.append(BlockItem(
                    id=make_item_id(1, 1),
                    block_num=1,
                    item_num=1,
                    block_type=BlockType.HEADING if block.type == NodeType.HEADING else BlockType.PARAGRAPH,
                    heading_level=block.heading_level,
                    start=pos + 1,
                    end=pos + block.size - 1,
                    text=block.text_content,
                ))
                break

    logger.debug(f"Built block map with {len(items)} items across {block_num} blocks")
    return items


def build_block_map_from_text(text: str) -> List[BlockItem]:
    """
    Build a block map from plain text when no live document exists yet.

    Each non-empty line is a paragraph block split into sentences; positions
    are character offsets into text. An empty text yields a single empty
    item so the model can still target something.
    """
    items: List[BlockItem] = []
    block_num = 0
    line_start = 0

    for line in text.split("\n"):
        if line.strip():
            block_num += 1
            sentences = split_sentences(line) or [SentenceRange(line, 0, len(line))]
            for item_num, sentence in enumerate(sentences, start=1):
                items.append(BlockItem(
                    id=make_item_id(block_num, item_num),
                    block_num=block_num,
                    item_num=item_num,
                    block_type=BlockType.PARAGRAPH,
                    start=line_start + sentence.start,
                    end=line_start + sentence.end,
                    text=sentence.text,
                ))
        line_start += len(line) + 1

    if not items:
        items.append(BlockItem(
            id=make_item_id(1, 1),
            block_num=1,
            item_num=1,
            block_type=BlockType.PARAGRAPH,
            start=0,
            end=0,
            text="",
        ))

    return items


def find_item(block_map: List[BlockItem], item_id: str) -> Optional[BlockItem]:
    for item in block_map:
        if item.id == item_id:
            return item
    return None
