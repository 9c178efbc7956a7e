# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Operation dispatcher.

Per-edit state machine:

    target-unresolved -> target-resolved -> applied            (insert-*, delete-*)
    target-unresolved -> target-resolved -> applied(revisable)  (replace, transform-block)

Revisable operations are re-entered while their payload keeps changing;
everything else mutates at most once. Insert operations additionally wait
until their edit object is closed in the stream, so a half-streamed item
list is never materialized. Sentence and entry edits on a block rebuilt by
transform-block are dropped, since their target text is gone.
"""

import logging
from typing import Callable, Dict

from ..model.document import DocumentRangeError
from .handlers import (
    EditContext,
    handle_delete_block,
    handle_delete_item,
    handle_insert_block,
    handle_insert_item,
    handle_replace,
    handle_transform_block,
)
from .schemas import EditOperation, EditState, OperationType

logger = logging.getLogger(__name__)

Handler = Callable[[EditContext, EditState, EditOperation], bool]


class EditDispatcher:
    """
    Routes operations to their handlers for one instruction

    Args:
        context: Document, block map and edit states shared by all handlers
    """

    def __init__(self, context: EditContext):
        self.context = context
        self._handlers: Dict[OperationType, Handler] = {
            OperationType.REPLACE: handle_replace,
            OperationType.INSERT_ITEM: handle_insert_item,
            OperationType.INSERT_BLOCK: handle_insert_block,
            OperationType.DELETE_ITEM: handle_delete_item,
            OperationType.DELETE_BLOCK: handle_delete_block,
            OperationType.TRANSFORM_BLOCK: handle_transform_block,
        }
        assert set(self._handlers) == set(OperationType), "Every operation type needs a handler"

    def dispatch(self, state: EditState, operation: EditOperation, settled: bool = True) -> bool:
        """
        Apply operation for state if its state machine allows it.

        Args:
            state: Resolved edit state
            operation: Operation as currently parsed (may be partial)
            settled: Whether the edit object is complete in the stream

        Returns:
            True when the document was mutated
        """
        op_type = operation.type
        if state.failed or state.superseded:
            return False
        if state.operation_applied and not op_type.revisable:
            return False
        if op_type.needs_settled_payload and not settled:
            return False
        if op_type.item_level and not state.operation_applied and state.block_num in self.context.rebuilt_blocks:
            logger.info(f"Skipping {op_type.value} on {state.item_id}: block {state.block_num} was rebuilt")
            state.operation_applied = True
            state.failed = True
            return False

        try:
            return self._handlers[op_type](self.context, state, operation)
        except DocumentRangeError as e:
            logger.warning(f"Structural failure applying {op_type.value} to {state.item_id}: {e}")
            state.operation_applied = True
            state.failed = True
            return False
