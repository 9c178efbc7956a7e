# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Unit tests for range-shift propagation and the edit state registry
"""

import unittest

from lexical_ai_edit.edit.propagation import shift_ranges_after_edit
from lexical_ai_edit.edit.registry import EditStateRegistry
from lexical_ai_edit.edit.schemas import (
    BlockItem,
    BlockType,
    DeleteItemOperation,
    Edit,
    EditKey,
    EditState,
    EditTarget,
    InsertItemOperation,
    InsertPosition,
    OperationType,
)
from lexical_ai_edit.model.document import Range


def _item(item_id: str, start: int, end: int, block_num: int = 1) -> BlockItem:
    return BlockItem(
        id=item_id,
        block_num=block_num,
        item_num=int(item_id.rsplit(".", 1)[1]),
        block_type=BlockType.PARAGRAPH,
        start=start,
        end=end,
        text="x" * (end - start),
    )


class TestShiftRanges(unittest.TestCase):
    """Items after a mutation move, items before stay, the rewritten item is resized"""

    def setUp(self):
        self.block_map = [_item("block-1.1", 1, 5), _item("block-1.2", 6, 10), _item("block-1.3", 11, 15)]

    def test_rewrite_of_middle_item(self):
        shift_ranges_after_edit(6, 10, 3, 7, self.block_map, [], item_id="block-1.2")
        self.assertEqual([item.range for item in self.block_map], [Range(1, 5), Range(6, 13), Range(14, 18)])

    def test_pure_insertion(self):
        shift_ranges_after_edit(5, 5, 4, 0, self.block_map, [])
        self.assertEqual([item.range for item in self.block_map], [Range(1, 5), Range(10, 14), Range(15, 19)])

    def test_deletion(self):
        shift_ranges_after_edit(5, 11, -6, 0, self.block_map, [])
        self.assertEqual(self.block_map[0].range, Range(1, 5))
        self.assertEqual(self.block_map[2].range, Range(5, 9))

    def test_overlap_is_left_stale_and_logged(self):
        block_map = [_item("block-1.1", 4, 8)]
        with self.assertLogs("lexical_ai_edit.edit.propagation", level="WARNING") as logs:
            shift_ranges_after_edit(6, 10, 2, 0, block_map, [])
        self.assertEqual(block_map[0].range, Range(4, 8))
        self.assertEqual(len(logs.output), 1)

    def test_states_are_shifted(self):
        state = EditState(item_id="block-1.3", target_range=Range(11, 15), block_type=BlockType.PARAGRAPH)
        state.inserted_range = Range(16, 20)
        state.insert_pos = 16
        shift_ranges_after_edit(6, 10, 3, 7, self.block_map, [state], item_id="block-1.2")
        self.assertEqual(state.target_range, Range(14, 18))
        self.assertEqual(state.inserted_range, Range(19, 23))
        self.assertEqual(state.insert_pos, 19)

    def test_rewritten_item_state_follows_item(self):
        state = EditState(item_id="block-1.2", target_range=Range(6, 10), block_type=BlockType.PARAGRAPH)
        shift_ranges_after_edit(6, 10, -2, 2, self.block_map, [state], item_id="block-1.2")
        self.assertEqual(state.target_range, Range(6, 8))

    def test_skipped_states_are_untouched(self):
        state = EditState(item_id="block-1.3", target_range=Range(11, 15), block_type=BlockType.PARAGRAPH)
        shift_ranges_after_edit(5, 5, 4, 0, self.block_map, [state], skip_states=[state])
        self.assertEqual(state.target_range, Range(11, 15))

    def test_ranges_stay_ordered_over_a_sequence(self):
        mutations = [(6, 10, 3, 7, "block-1.2"), (1, 1, 5, 0, None), (20, 23, -3, 0, None)]
        for start, end, delta, next_length, item_id in mutations:
            shift_ranges_after_edit(start, end, delta, next_length, self.block_map, [], item_id=item_id)
        ranges = [item.range for item in self.block_map]
        for previous, current in zip(ranges, ranges[1:]):
            self.assertLessEqual(previous.end, current.start)


class TestEditStateRegistry(unittest.TestCase):

    def setUp(self):
        self.block_map = [_item("block-1.1", 1, 5), _item("block-2.1", 8, 12, block_num=2)]
        self.registry = EditStateRegistry()

    def _edit(self, item_id, operation):
        return Edit(target=EditTarget(item_id=item_id), operation=operation)

    def test_state_created_once_per_key(self):
        edit = self._edit("block-2.1", InsertItemOperation(position=InsertPosition.AFTER))
        key = EditKey.for_edit(0, edit)
        state = self.registry.resolve(key, edit, self.block_map)
        self.assertIs(self.registry.resolve(key, edit, self.block_map), state)
        self.assertEqual(state.target_range, Range(8, 12))
        self.assertEqual(state.block_num, 2)
        self.assertEqual(state.position, InsertPosition.AFTER)
        self.assertEqual(state.op_type, OperationType.INSERT_ITEM)
        self.assertEqual(len(self.registry), 1)

    def test_key_distinguishes_position(self):
        before = self._edit("block-1.1", InsertItemOperation(position=InsertPosition.BEFORE))
        after = self._edit("block-1.1", InsertItemOperation(position=InsertPosition.AFTER))
        self.assertNotEqual(EditKey.for_edit(0, before), EditKey.for_edit(0, after))

    def test_unknown_target_logged_once(self):
        edit = self._edit("block-9.9", DeleteItemOperation())
        key = EditKey.for_edit(0, edit)
        with self.assertLogs("lexical_ai_edit.edit.registry", level="INFO") as logs:
            self.assertIsNone(self.registry.resolve(key, edit, self.block_map))
            self.assertIsNone(self.registry.resolve(key, edit, self.block_map))
        self.assertEqual(len(logs.output), 1)
        self.assertEqual(len(self.registry), 0)

    def test_applied_count_ignores_failed(self):
        first = self.registry.resolve(EditKey(0, "block-1.1", DeleteItemOperation().type, None),
                                      self._edit("block-1.1", DeleteItemOperation()), self.block_map)
        second = self.registry.resolve(EditKey(1, "block-2.1", DeleteItemOperation().type, None),
                                       self._edit("block-2.1", DeleteItemOperation()), self.block_map)
        first.operation_applied = True
        second.operation_applied = True
        second.failed = True
        self.assertEqual(self.registry.applied_count, 1)

        self.registry.clear()
        self.assertEqual(len(self.registry), 0)


if __name__ == '__main__':
    unittest.main()
