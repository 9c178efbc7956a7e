# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Range-shift propagation.

Every mutation replaces the span [start, end) with content of a different
length. Instead of re-walking the tree on each streamed token, the ranges
kept in the block map and in the edit states are shifted by the signed delta:

- ranges entirely after the mutation (range.start >= end) move by delta
- ranges entirely before it (range.end <= start) stay put
- the range of the item being rewritten (item_id) becomes
  [start, start + next_length)
- anything else overlaps the mutation; it is logged and left stale
"""

import logging
from typing import Iterable, List, Optional, Sequence

from ..model.document import Range
from .schemas import BlockItem, EditState

logger = logging.getLogger(__name__)


def _shift_range(range_: Range, start: int, end: int, delta: int) -> Optional[Range]:
    """Shifted range, the same range when untouched, or None on overlap"""
    if range_.start >= end:
        return range_.shifted(delta)
    if range_.end <= start:
        return range_
    return None


def shift_ranges_after_edit(
    start: int,
    end: int,
    delta: int,
    next_length: int,
    block_map: List[BlockItem],
    states: Iterable[EditState],
    item_id: Optional[str] = None,
    skip_states: Sequence[EditState] = (),
) -> None:
    """
    Update block map items and edit states after a mutation of [start, end).

    Args:
        start: Start of the replaced span (pre-mutation positions)
        end: End of the replaced span (pre-mutation positions)
        delta: Signed document size change caused by the mutation
        next_length: Length of the content now covering the rewritten item
        block_map: Block map to update in place
        states: Edit states to update in place
        item_id: Item whose text was rewritten, if any
        skip_states: States whose ranges the caller sets itself after this mutation
    """
    for item in block_map:
        if item_id and item.id == item_id:
            item.start, item.end = start, start + next_length
            continue
        shifted = _shift_range(item.range, start, end, delta)
        if shifted is None:
            logger.warning(f"Overlapping block item range {item.id} [{item.start}, {item.end}) "
                           f"with edit [{start}, {end})")
            continue
        item.start, item.end = shifted

    for state in states:
        if any(state is skipped for skipped in skip_states):
            continue

        if item_id and state.item_id == item_id:
            state.target_range = Range(start, start + next_length)
        else:
            shifted = _shift_range(state.target_range, start, end, delta)
            if shifted is None:
                logger.warning(f"Overlapping edit range for {state.item_id} {tuple(state.target_range)} "
                               f"with edit [{start}, {end})")
            else:
                state.target_range = shifted

        if state.inserted_range is not None:
            shifted = _shift_range(state.inserted_range, start, end, delta)
            if shifted is None:
                logger.warning(f"Overlapping inserted range for {state.item_id} {tuple(state.inserted_range)}")
            else:
                state.inserted_range = shifted

        if state.insert_pos is not None and state.insert_pos >= end:
            state.insert_pos += delta
