# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Edit state registry and target resolver.

The same logical edit is observed again on every chunk with more of its
fields filled in. The registry keeps exactly one EditState per EditKey and
creates it the first time the edit's target resolves against the block map.
"""

import logging
from typing import Dict, Iterator, List, Optional, Set

from .block_map import find_item
from .schemas import BlockItem, Edit, EditKey, EditState

logger = logging.getLogger(__name__)


class EditStateRegistry:
    """Per-instruction EditState store keyed by EditKey"""

    def __init__(self):
        self.states: Dict[EditKey, EditState] = {}
        self._unresolved: Set[EditKey] = set()

    def clear(self) -> None:
        self.states.clear()
        self._unresolved.clear()

    def get(self, key: EditKey) -> Optional[EditState]:
        return self.states.get(key)

    def resolve(self, key: EditKey, edit: Edit, block_map: List[BlockItem]) -> Optional[EditState]:
        """
        Return the state for key, resolving the target on first sight.

        An unknown item id is logged once and retried on the next call; the
        state is only created once the item is found in the block map.
        """
        state = self.states.get(key)
        if state is not None:
            return state

        item = find_item(block_map, edit.target.item_id)
        if item is None:
            if key not in self._unresolved:
                self._unresolved.add(key)
                logger.info(f"Skipping edit #{key.index}: unknown target {edit.target.item_id}")
            return None

        state = EditState(
            item_id=item.id,
            target_range=item.range,
            block_type=item.block_type,
            heading_level=item.heading_level,
            block_num=item.block_num,
            position=key.position,
            op_type=key.op_type,
        )
        self.states[key] = state
        self._unresolved.discard(key)
        logger.debug(f"Resolved edit #{key.index} ({key.op_type.value}) to {item.id} {tuple(item.range)}")
        return state

    @property
    def applied_count(self) -> int:
        return sum(1 for state in self.states.values() if state.operation_applied and not state.failed)

    def __len__(self) -> int:
        return len(self.states)

    def __iter__(self) -> Iterator[EditState]:
        return iter(self.states.values())
