# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Types shared by the streaming edit core.

Wire shape produced by the model:

    {"edits": [{"target": {"kind": "block-item", "itemId": "block-2.1"},
                "operation": {"type": "replace", "replacement": "..."}}],
     "message": "...",
     "options": [{"title": "...", "content": "..."}]}

Operations arrive partially filled while the response streams, so every
payload field of an operation is optional here; handlers validate what they
need before mutating.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Union

from ..constants import MAX_HEADING_LEVEL, MIN_HEADING_LEVEL, TARGET_KIND_BLOCK_ITEM
from ..model.document import Range


class BlockType(str, Enum):
    """Top-level block kinds addressable by the model"""
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    BULLET_LIST = "bulletList"
    ORDERED_LIST = "orderedList"

    @property
    def is_list(self) -> bool:
        return self in (BlockType.BULLET_LIST, BlockType.ORDERED_LIST)

    @property
    def is_textblock(self) -> bool:
        return self in (BlockType.PARAGRAPH, BlockType.HEADING)

    @property
    def lexical_list_type(self) -> Optional[str]:
        return {BlockType.BULLET_LIST: "bullet", BlockType.ORDERED_LIST: "number"}.get(self)

    @classmethod
    def parse(cls, value: Any) -> Optional["BlockType"]:
        try:
            return cls(value)
        except ValueError:
            return None


class OperationType(str, Enum):
    """Edit operation kinds"""
    REPLACE = "replace"
    INSERT_ITEM = "insert-item"
    INSERT_BLOCK = "insert-block"
    DELETE_ITEM = "delete-item"
    DELETE_BLOCK = "delete-block"
    TRANSFORM_BLOCK = "transform-block"

    @property
    def revisable(self) -> bool:
        """Revisable operations re-apply while their payload keeps growing"""
        return self in (OperationType.REPLACE, OperationType.TRANSFORM_BLOCK)

    @property
    def needs_settled_payload(self) -> bool:
        """Single-shot operations with a payload wait for the edit to close in the stream"""
        return self in (OperationType.INSERT_ITEM, OperationType.INSERT_BLOCK)

    @property
    def item_level(self) -> bool:
        """Operations aimed at one sentence or list entry rather than a whole block"""
        return self in (OperationType.REPLACE, OperationType.INSERT_ITEM, OperationType.DELETE_ITEM)


class InsertPosition(str, Enum):
    BEFORE = "before"
    AFTER = "after"


@dataclass
class BlockItem:
    """
    Smallest addressable unit: a sentence of a paragraph/heading or a list entry.

    ``start``/``end`` are absolute document positions of the item text and are
    kept current by the range-shift propagator; the id never changes.
    """

    id: str
    block_num: int
    item_num: int
    block_type: BlockType
    start: int
    end: int
    text: str
    heading_level: Optional[int] = None

    @property
    def range(self) -> Range:
        return Range(self.start, self.end)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "blockNum": self.block_num,
            "itemNum": self.item_num,
            "blockType": self.block_type.value,
            "from": self.start,
            "to": self.end,
            "text": self.text,
        }
        if self.heading_level is not None:
            data["headingLevel"] = self.heading_level
        return data


@dataclass(frozen=True)
class EditTarget:
    item_id: str
    kind: str = TARGET_KIND_BLOCK_ITEM

    @classmethod
    def from_dict(cls, data: Any) -> Optional["EditTarget"]:
        if not isinstance(data, dict):
            return None
        item_id = data.get("itemId")
        kind = data.get("kind", TARGET_KIND_BLOCK_ITEM)
        if kind != TARGET_KIND_BLOCK_ITEM or not isinstance(item_id, str) or not item_id:
            return None
        return cls(item_id=item_id, kind=kind)


@dataclass
class ReplaceOperation:
    replacement: Optional[str] = None
    type: OperationType = OperationType.REPLACE


@dataclass
class InsertItemOperation:
    position: Optional[InsertPosition] = None
    items: Optional[List[str]] = None
    type: OperationType = OperationType.INSERT_ITEM


@dataclass
class InsertBlockOperation:
    position: Optional[InsertPosition] = None
    block_type: Optional[BlockType] = None
    heading_level: Optional[int] = None
    items: Optional[List[str]] = None
    type: OperationType = OperationType.INSERT_BLOCK


@dataclass
class DeleteItemOperation:
    type: OperationType = OperationType.DELETE_ITEM


@dataclass
class DeleteBlockOperation:
    type: OperationType = OperationType.DELETE_BLOCK


@dataclass
class TransformBlockOperation:
    block_type: Optional[BlockType] = None
    heading_level: Optional[int] = None
    items: Optional[List[str]] = None
    type: OperationType = OperationType.TRANSFORM_BLOCK


EditOperation = Union[
    ReplaceOperation,
    InsertItemOperation,
    InsertBlockOperation,
    DeleteItemOperation,
    DeleteBlockOperation,
    TransformBlockOperation,
]


def _string_list(value: Any) -> Optional[List[str]]:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return list(value)
    return None


def _position(value: Any) -> Optional[InsertPosition]:
    try:
        return InsertPosition(value)
    except ValueError:
        return None


def _heading_level(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return max(MIN_HEADING_LEVEL, min(MAX_HEADING_LEVEL, value))


def parse_operation(data: Any) -> Optional[EditOperation]:
    """
    Build a typed operation from its (possibly partial) wire dict.

    Returns:
        The operation, or None when the type is missing or unknown
    """
    if not isinstance(data, dict):
        return None
    try:
        op_type = OperationType(data.get("type"))
    except ValueError:
        return None

    if op_type == OperationType.REPLACE:
        replacement = data.get("replacement")
        return ReplaceOperation(replacement=replacement if isinstance(replacement, str) else None)
    if op_type == OperationType.INSERT_ITEM:
        return InsertItemOperation(
            position=_position(data.get("position")),
            items=_string_list(data.get("items")),
        )
    if op_type == OperationType.INSERT_BLOCK:
        return InsertBlockOperation(
            position=_position(data.get("position")),
            block_type=BlockType.parse(data.get("blockType")),
            heading_level=_heading_level(data.get("headingLevel")),
            items=_string_list(data.get("items")),
        )
    if op_type == OperationType.DELETE_ITEM:
        return DeleteItemOperation()
    if op_type == OperationType.DELETE_BLOCK:
        return DeleteBlockOperation()
    if op_type == OperationType.TRANSFORM_BLOCK:
        return TransformBlockOperation(
            block_type=BlockType.parse(data.get("blockType")),
            heading_level=_heading_level(data.get("headingLevel")),
            items=_string_list(data.get("items")),
        )
    raise AssertionError(f"Unhandled operation type {op_type}")


@dataclass
class Edit:
    target: EditTarget
    operation: EditOperation


class EditKey(NamedTuple):
    """Identity of one logical edit across repeated observations of the stream"""
    index: int
    item_id: str
    op_type: OperationType
    position: Optional[InsertPosition]

    @classmethod
    def for_edit(cls, index: int, edit: Edit) -> "EditKey":
        return cls(index, edit.target.item_id, edit.operation.type, getattr(edit.operation, "position", None))


@dataclass
class EditState:
    """
    Application history of one logical edit.

    ``target_range`` is the live absolute range of the target item;
    ``inserted_range`` is the span this edit inserted last time it applied,
    which is what a revision replaces.
    A superseded edit already applied to a block that was rebuilt since;
    it keeps its applied status but is never revised again.
    """

    item_id: str
    target_range: Range
    block_type: BlockType
    heading_level: Optional[int] = None
    block_num: Optional[int] = None
    position: Optional[InsertPosition] = None
    op_type: Optional[OperationType] = None
    range_deleted: bool = False
    replacement_seen: str = ""
    replacement_length: int = 0
    items_seen: List[str] = field(default_factory=list)
    insert_pos: Optional[int] = None
    inserted_range: Optional[Range] = None
    operation_applied: bool = False
    failed: bool = False
    superseded: bool = False
