# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Mutation handlers, one per operation type.

OPERATION SEMANTICS:
===================

- replace: rewrite the target item text. Re-applied while the replacement
  grows; each application deletes exactly what the previous one inserted.
  Blank-line paragraph breaks in a paragraph/heading replacement become extra
  paragraphs after the enclosing block.
- insert-item: new list entries next to the target entry, or inline text at
  the target sentence boundary.
- insert-block: a new block before/after the target's enclosing block.
- delete-item: remove the list entry, or exactly the sentence span.
- delete-block: remove the enclosing block.
- transform-block: rebuild the enclosing block from items; re-applied while
  the items grow, replacing only the span inserted last time.

Every handler measures the actual document size change and hands it to the
range-shift propagator. When the structural node an edit anchors to can no
longer be found, the edit is marked applied (and failed) without mutating.

Handlers return True when the document was mutated.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..constants import MIN_HEADING_LEVEL
from ..model.document import DocumentRangeError, LexicalDocument, LexicalNode, NodeType, Range
from .markdown_parser import (
    get_requested_heading_level,
    is_markdown_complete,
    parse_inline_markdown,
    parse_markdown_for_block,
    runs_length,
    runs_to_text_nodes,
    strip_heading_marker,
)
from .propagation import shift_ranges_after_edit
from .schemas import (
    BlockItem,
    BlockType,
    DeleteBlockOperation,
    DeleteItemOperation,
    EditKey,
    EditState,
    InsertBlockOperation,
    InsertItemOperation,
    InsertPosition,
    ReplaceOperation,
    TransformBlockOperation,
)

logger = logging.getLogger(__name__)

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_NEWLINE_RUN = re.compile(r"[ \t]*\n\s*")
WHITESPACE = " \n\t\r"


@dataclass
class EditContext:
    """What a handler may touch during one synchronous pass"""

    document: LexicalDocument
    block_map: List[BlockItem]
    states: Dict[EditKey, EditState]
    rebuilt_blocks: Set[int] = field(default_factory=set)

    def shift(self, start: int, end: int, delta: int, next_length: int = 0,
              item_id: Optional[str] = None, skip_states: Sequence[EditState] = ()) -> None:
        shift_ranges_after_edit(
            start, end, delta, next_length, self.block_map, self.states.values(),
            item_id=item_id, skip_states=skip_states,
        )


# ----------------------------------------------------------------------
# Payload helpers

def normalize_items(items: List[str]) -> List[str]:
    return [item.strip() for item in items if item.strip()]


def has_paragraph_break(text: str) -> bool:
    return PARAGRAPH_BREAK.search(text) is not None


def split_paragraphs(text: str) -> List[str]:
    return [part.strip() for part in PARAGRAPH_BREAK.split(text) if part.strip()]


def sanitize_inline_text(text: str) -> str:
    """Collapse single line breaks into spaces so the text fits one textblock"""
    return _NEWLINE_RUN.sub(" ", text)


def build_inline_insert_nodes(document: LexicalDocument, pos: int, text: str) -> List[LexicalNode]:
    """
    Text nodes for an inline insertion at pos.

    A separating space is added on either side only where the neighbouring
    document character and the inserted text would otherwise run together.
    """
    previous_char = document.char_at(pos - 1) if pos > 0 else ""
    next_char = document.char_at(pos)

    if previous_char and previous_char not in WHITESPACE and text[:1] not in WHITESPACE:
        text = " " + text
    if next_char and next_char not in WHITESPACE and text[-1:] not in WHITESPACE:
        text = text + " "
    return runs_to_text_nodes(parse_inline_markdown(text))


def build_list_item_nodes(items: List[str]) -> List[LexicalNode]:
    return [
        LexicalNode.list_item(runs_to_text_nodes(parse_inline_markdown(item)), value=index)
        for index, item in enumerate(items, start=1)
    ]


def build_block_node(block_type: BlockType, heading_level: Optional[int], items: List[str]) -> Optional[LexicalNode]:
    """Build one block from items; None when there is nothing to put in it"""
    cleaned = normalize_items(items)
    if not cleaned:
        return None

    if block_type.is_list:
        return LexicalNode.list(block_type.lexical_list_type, build_list_item_nodes(cleaned))

    combined = " ".join(cleaned)
    children = runs_to_text_nodes(parse_markdown_for_block(combined, block_type))
    if block_type == BlockType.HEADING:
        level = heading_level or get_requested_heading_level(combined) or MIN_HEADING_LEVEL
        return LexicalNode.heading(level, children)
    return LexicalNode.paragraph(children)


def build_block_nodes(block_type: BlockType, heading_level: Optional[int], items: List[str],
                      split_into_blocks: bool) -> List[LexicalNode]:
    """
    Blocks for insert-block/transform-block.

    When the items were split on paragraph breaks, the first paragraph gets
    the requested type and the rest follow as paragraphs (headings) or as
    blocks of the same type.
    """
    if split_into_blocks and len(items) > 1:
        rest_type = BlockType.PARAGRAPH if block_type == BlockType.HEADING else block_type
        nodes = [build_block_node(block_type, heading_level, [items[0]])]
        nodes.extend(build_block_node(rest_type, None, [item]) for item in items[1:])
    else:
        nodes = [build_block_node(block_type, heading_level, items)]
    return [node for node in nodes if node is not None]


def _payload_items(block_type: BlockType, items: List[str]) -> Tuple[List[str], bool]:
    combined = " ".join(items)
    if block_type.is_textblock and has_paragraph_break(combined):
        return split_paragraphs(combined), True
    return normalize_items(items), False


# ----------------------------------------------------------------------
# Structural lookups

def find_block_range(document: LexicalDocument, pos: int) -> Optional[Tuple[LexicalNode, Range]]:
    """The top-level block containing pos and its full range"""
    try:
        resolved = document.resolve(pos)
    except DocumentRangeError:
        return None
    if resolved.depth < 1:
        return None
    return resolved.node(1), Range(resolved.before(1), resolved.after(1))


def find_list_item_range(document: LexicalDocument, pos: int) -> Optional[Range]:
    found = document.find_ancestor(pos, [NodeType.LIST_ITEM])
    return found[1] if found else None


def _mark_unlocatable(state: EditState, what: str) -> bool:
    logger.warning(f"Cannot locate {what} for {state.item_id}; edit skipped")
    state.operation_applied = True
    state.failed = True
    return False


def _after_previous_inserts(ctx: EditContext, state: EditState, pos: int) -> int:
    """Move an 'after' insertion point past earlier 'after' insertions made at the same spot"""
    moved = True
    while moved:
        moved = False
        for other in ctx.states.values():
            if other is state or other.position != InsertPosition.AFTER or other.inserted_range is None:
                continue
            if other.inserted_range.start == pos and other.inserted_range.end > pos:
                pos = other.inserted_range.end
                moved = True
    return pos


def _remove_block_items(block_map: List[BlockItem], item_id: Optional[str] = None,
                        block_num: Optional[int] = None) -> List[BlockItem]:
    """Remove matching items in place and return them"""
    removed: List[BlockItem] = []
    kept: List[BlockItem] = []
    for item in block_map:
        if (item_id is not None and item.id == item_id) or (block_num is not None and item.block_num == block_num):
            removed.append(item)
        else:
            kept.append(item)
    block_map[:] = kept
    return removed


def _restore_block_items(block_map: List[BlockItem], items: List[BlockItem]) -> None:
    """Put items back, keeping the block map in document order"""
    for item in items:
        index = next((i for i, other in enumerate(block_map) if other.start > item.start), len(block_map))
        block_map.insert(index, item)


def _pending_states(ctx: EditContext, state: EditState, item_id: Optional[str] = None,
                    block_num: Optional[int] = None) -> List[EditState]:
    """Unapplied states, other than state, that target the given item or block"""
    return [
        other for other in ctx.states.values()
        if other is not state
        and not other.operation_applied
        and ((item_id is not None and other.item_id == item_id)
             or (block_num is not None and other.block_num == block_num))
    ]


def _retire_states(states: List[EditState], reason: str) -> None:
    for other in states:
        logger.info(f"Skipping pending edit on {other.item_id}: {reason}")
        other.operation_applied = True
        other.failed = True


# ----------------------------------------------------------------------
# Handlers

def handle_replace(ctx: EditContext, state: EditState, operation: ReplaceOperation) -> bool:
    raw = operation.replacement or ""
    paragraphs = split_paragraphs(raw) if state.block_type.is_textblock and has_paragraph_break(raw) else []
    new_text = sanitize_inline_text(paragraphs[0] if paragraphs else raw)

    applied = False
    if new_text != state.replacement_seen and is_markdown_complete(new_text):
        _replace_item_text(ctx, state, new_text)
        applied = True

    extras = paragraphs[1:]
    if (
        state.range_deleted
        and (extras or state.inserted_range is not None)
        and extras != state.items_seen
        and all(is_markdown_complete(paragraph) for paragraph in extras)
    ):
        applied = _replace_extra_paragraphs(ctx, state, extras) or applied

    return applied


def _replace_item_text(ctx: EditContext, state: EditState, new_text: str) -> None:
    document = ctx.document
    runs = parse_markdown_for_block(new_text, state.block_type)
    next_length = runs_length(runs)

    start = state.target_range.start
    end = start + state.replacement_length if state.range_deleted else state.target_range.end

    if state.block_type == BlockType.HEADING:
        level = get_requested_heading_level(new_text)
        if level and document.set_heading_level(start, level):
            state.heading_level = level

    size_before = document.content_size
    document.delete(start, end)
    nodes = runs_to_text_nodes(runs)
    if nodes:
        document.insert_at(start, nodes)
    delta = document.content_size - size_before

    state.range_deleted = True
    state.replacement_seen = new_text
    state.replacement_length = next_length
    state.operation_applied = True
    ctx.shift(start, end, delta, next_length, item_id=state.item_id)


def _replace_extra_paragraphs(ctx: EditContext, state: EditState, paragraphs: List[str]) -> bool:
    document = ctx.document
    if state.inserted_range is not None:
        insert_pos = state.inserted_range.start
        delete_range = document.clamp_range(*state.inserted_range)
    else:
        found = find_block_range(document, state.target_range.start)
        insert_pos = found[1].end if found else state.target_range.end
        delete_range = document.clamp_range(insert_pos, insert_pos)
    if delete_range is None:
        return False
    insert_pos = document.clamp_pos(insert_pos)

    blocks = [block for block in (build_block_node(BlockType.PARAGRAPH, None, [p]) for p in paragraphs) if block]

    size_before = document.content_size
    document.delete(*delete_range)
    inserted = document.insert_at(insert_pos, blocks) if blocks else None
    delta = document.content_size - size_before

    state.items_seen = list(paragraphs)
    state.inserted_range = inserted
    ctx.shift(delete_range.start, delete_range.end, delta, skip_states=(state,))
    return True


def handle_insert_item(ctx: EditContext, state: EditState, operation: InsertItemOperation) -> bool:
    if operation.position is None or operation.items is None:
        return False

    items = normalize_items(operation.items)
    if state.block_type == BlockType.HEADING:
        items = [item for item in (strip_heading_marker(item) for item in items) if item]
    if not items:
        return False

    document = ctx.document
    if state.block_type.is_list:
        anchor = find_list_item_range(document, state.target_range.start)
        if anchor is None:
            return _mark_unlocatable(state, "list entry")
    else:
        anchor = state.target_range

    if operation.position == InsertPosition.BEFORE:
        insert_pos = anchor.start
    else:
        insert_pos = _after_previous_inserts(ctx, state, anchor.end)
    insert_pos = document.clamp_pos(insert_pos)

    if state.block_type.is_list:
        nodes = build_list_item_nodes(items)
    else:
        nodes = build_inline_insert_nodes(document, insert_pos, " ".join(items))

    size_before = document.content_size
    inserted = document.insert_at(insert_pos, nodes)
    delta = document.content_size - size_before
    if state.block_type.is_list:
        document.renumber_list(inserted.start)

    state.items_seen = items
    state.insert_pos = insert_pos
    state.inserted_range = inserted
    state.operation_applied = True
    ctx.shift(insert_pos, insert_pos, delta, skip_states=(state,))
    return True


def handle_insert_block(ctx: EditContext, state: EditState, operation: InsertBlockOperation) -> bool:
    if operation.position is None or operation.block_type is None or operation.items is None:
        return False

    items, split_into_blocks = _payload_items(operation.block_type, operation.items)
    if not items:
        return False
    nodes = build_block_nodes(operation.block_type, operation.heading_level, items, split_into_blocks)
    if not nodes:
        return False

    document = ctx.document
    found = find_block_range(document, state.target_range.start)
    if found is None:
        return _mark_unlocatable(state, "enclosing block")
    _, block_range = found

    if operation.position == InsertPosition.BEFORE:
        insert_pos = block_range.start
    else:
        insert_pos = _after_previous_inserts(ctx, state, block_range.end)

    size_before = document.content_size
    inserted = document.insert_at(insert_pos, nodes)
    delta = document.content_size - size_before

    state.items_seen = items
    state.insert_pos = insert_pos
    state.inserted_range = inserted
    state.operation_applied = True
    ctx.shift(insert_pos, insert_pos, delta, skip_states=(state,))
    return True


def handle_delete_item(ctx: EditContext, state: EditState, operation: DeleteItemOperation) -> bool:
    document = ctx.document
    if state.block_type.is_list:
        delete_range = find_list_item_range(document, state.target_range.start)
        if delete_range is None:
            return _mark_unlocatable(state, "list entry")
    else:
        delete_range = state.target_range

    _remove_block_items(ctx.block_map, item_id=state.item_id)
    orphans = _pending_states(ctx, state, item_id=state.item_id)
    _retire_states(orphans, f"{state.item_id} was deleted")

    size_before = document.content_size
    document.delete(*delete_range)
    delta = document.content_size - size_before
    if state.block_type.is_list:
        document.renumber_list(delete_range.start)

    state.operation_applied = True
    ctx.shift(delete_range.start, delete_range.end, delta, item_id=state.item_id, skip_states=orphans)
    return True


def handle_delete_block(ctx: EditContext, state: EditState, operation: DeleteBlockOperation) -> bool:
    document = ctx.document
    found = find_block_range(document, state.target_range.start)
    if found is None:
        return _mark_unlocatable(state, "enclosing block")
    _, block_range = found

    _remove_block_items(ctx.block_map, block_num=state.block_num)
    orphans = _pending_states(ctx, state, block_num=state.block_num)
    _retire_states(orphans, f"block {state.block_num} was deleted")

    size_before = document.content_size
    document.delete(*block_range)
    delta = document.content_size - size_before

    state.operation_applied = True
    ctx.shift(block_range.start, block_range.end, delta, item_id=state.item_id, skip_states=orphans)
    return True


def _block_followers(ctx: EditContext, state: EditState) -> Tuple[List[EditState], List[EditState], List[EditState]]:
    """
    Other live edits on state's block, split for a block rebuild.

    Returns (pending block-level edits to re-point, pending item-level edits
    to retire, applied item-level edits to supersede).
    """
    repoint: List[EditState] = []
    retire: List[EditState] = []
    supersede: List[EditState] = []
    for other in ctx.states.values():
        if other is state or other.failed or other.superseded or other.block_num != state.block_num:
            continue
        item_level = other.op_type is None or other.op_type.item_level
        if not item_level:
            if not other.operation_applied:
                repoint.append(other)
        elif other.operation_applied:
            supersede.append(other)
        else:
            retire.append(other)
    return repoint, retire, supersede


def handle_transform_block(ctx: EditContext, state: EditState, operation: TransformBlockOperation) -> bool:
    """
    Rebuild the enclosing block.

    Items of the old block, and pending block-level edits aimed at it, are
    re-pointed at the start of the new content. Edits aimed at the old
    sentences or entries no longer have a target and are dropped.
    """
    if operation.block_type is None or operation.items is None:
        return False

    items, split_into_blocks = _payload_items(operation.block_type, operation.items)
    if not items or items == state.items_seen:
        return False
    if not all(is_markdown_complete(item) for item in items):
        return False
    nodes = build_block_nodes(operation.block_type, operation.heading_level, items, split_into_blocks)
    if not nodes:
        return False

    document = ctx.document
    if not state.range_deleted:
        found = find_block_range(document, state.target_range.start)
        if found is None:
            return _mark_unlocatable(state, "enclosing block")
        delete_range = found[1]
        insert_pos = delete_range.start
    else:
        if state.insert_pos is None:
            return False
        insert_pos = document.clamp_pos(state.insert_pos)
        delete_range = document.clamp_range(*(state.inserted_range or Range(insert_pos, insert_pos)))
        if delete_range is None:
            return False

    block_items = _remove_block_items(ctx.block_map, block_num=state.block_num)
    followers, orphans, superseded = _block_followers(ctx, state)
    _retire_states(orphans, f"block {state.block_num} was rebuilt")
    for other in superseded:
        logger.info(f"Edit on {other.item_id} superseded: block {state.block_num} was rebuilt")
        other.superseded = True

    size_before = document.content_size
    document.delete(*delete_range)
    inserted = document.insert_at(insert_pos, nodes)
    delta = document.content_size - size_before

    state.range_deleted = True
    state.items_seen = items
    state.insert_pos = insert_pos
    state.inserted_range = inserted
    state.target_range = Range(insert_pos, insert_pos)
    if state.block_num is not None:
        ctx.rebuilt_blocks.add(state.block_num)
    state.operation_applied = True
    ctx.shift(delete_range.start, delete_range.end, delta, skip_states=[state] + followers + orphans + superseded)

    anchor = inserted.start + 1
    for item in block_items:
        item.start = item.end = anchor
    _restore_block_items(ctx.block_map, block_items)
    for other in followers:
        other.target_range = Range(anchor, anchor)
    return True
