# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
LexicalDocument: linearized Lexical document tree

This module provides the document handle mutated by the streaming AI edit
core. The tree follows the Lexical JSON shape (root, paragraph, heading,
list, listitem, text, linebreak) and exposes a single integer position
space over it.

POSITION SPACE:
==============

Every node occupies a contiguous range:

- text node:      len(text)
- linebreak:      1
- element node:   2 + size of its children (one opening and one closing token)
- root:           no tokens, its content starts at position 0

Example document: paragraph "Hi." followed by a bullet list with "One"

    0   1 2 3 4   5  6   7 8 9 10  11  12
    <p> H i . </p> <ul> <li> O n e </li> </ul>

The paragraph covers [0, 5), its text covers [1, 4). The list covers
[5, 12) and the entry text covers [7, 10).

MUTATION PRIMITIVES:
===================

- delete(start, end): removes inline text inside one textblock, or whole
  sibling nodes inside one container. A list left without entries is removed.
- insert_at(pos, nodes): inserts inline nodes, blocks, or list entries and
  returns the range actually occupied by the inserted nodes.

Anything else raises DocumentRangeError. Callers in the edit core treat that
as a structural-location failure rather than a crash.
"""

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence, Set, Tuple, Union

from ..constants import MAX_HEADING_LEVEL, MIN_HEADING_LEVEL

logger = logging.getLogger(__name__)


class DocumentRangeError(ValueError):
    """Raised when a position or range cannot be applied to the document."""


class Range(NamedTuple):
    """Half-open absolute range [start, end) in the document position space."""

    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start

    def shifted(self, delta: int) -> "Range":
        return Range(self.start + delta, self.end + delta)


class NodeType(str, Enum):
    """Lexical node types understood by the document model"""
    ROOT = "root"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    LIST = "list"
    LIST_ITEM = "listitem"
    TEXT = "text"
    LINEBREAK = "linebreak"


INLINE_TYPES: Set[NodeType] = {NodeType.TEXT, NodeType.LINEBREAK}
BLOCK_TYPES: Set[NodeType] = {NodeType.PARAGRAPH, NodeType.HEADING, NodeType.LIST}
TEXTBLOCK_TYPES: Set[NodeType] = {NodeType.PARAGRAPH, NodeType.HEADING, NodeType.LIST_ITEM}

ALLOWED_CHILDREN: Dict[NodeType, Set[NodeType]] = {
    NodeType.ROOT: BLOCK_TYPES,
    NodeType.PARAGRAPH: INLINE_TYPES,
    NodeType.HEADING: INLINE_TYPES,
    NodeType.LIST: {NodeType.LIST_ITEM},
    NodeType.LIST_ITEM: INLINE_TYPES | {NodeType.LIST},
    NodeType.TEXT: set(),
    NodeType.LINEBREAK: set(),
}

TEXT_DEFAULTS: Dict[str, Any] = {"detail": 0, "mode": "normal", "style": "", "version": 1}
ELEMENT_DEFAULTS: Dict[str, Any] = {"direction": None, "format": "", "indent": 0, "version": 1}


@dataclass
class LexicalNode:
    """
    One node of the document tree.

    Text nodes carry their Lexical format bitmask in ``format``. All other
    Lexical properties (tag, listType, style, direction, ...) are kept in
    ``props`` so that export reproduces them.
    """

    type: NodeType
    children: List["LexicalNode"] = field(default_factory=list)
    text: str = ""
    format: int = 0
    props: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_inline(self) -> bool:
        return self.type in INLINE_TYPES

    @property
    def is_block(self) -> bool:
        return self.type in BLOCK_TYPES

    @property
    def is_textblock(self) -> bool:
        return self.type in TEXTBLOCK_TYPES

    @property
    def content_size(self) -> int:
        return sum(child.size for child in self.children)

    @property
    def size(self) -> int:
        if self.type == NodeType.TEXT:
            return len(self.text)
        if self.type == NodeType.LINEBREAK:
            return 1
        return self.content_size + 2

    @property
    def text_content(self) -> str:
        if self.type == NodeType.TEXT:
            return self.text
        if self.type == NodeType.LINEBREAK:
            return "\n"
        if self.type == NodeType.LIST:
            return "\n".join(child.text_content for child in self.children)
        return "".join(child.text_content for child in self.children)

    @property
    def inline_text(self) -> str:
        """Text of the inline children only (skips nested lists)"""
        return "".join(child.text_content for child in self.children if child.is_inline)

    @property
    def heading_level(self) -> Optional[int]:
        if self.type != NodeType.HEADING:
            return None
        tag = str(self.props.get("tag", "h1"))
        try:
            return int(tag[1:])
        except ValueError:
            return MIN_HEADING_LEVEL

    @property
    def list_type(self) -> Optional[str]:
        if self.type != NodeType.LIST:
            return None
        return self.props.get("listType", "bullet")

    def clone(self) -> "LexicalNode":
        return copy.deepcopy(self)

    # Node builders

    @classmethod
    def text_node(cls, text: str, format: int = 0) -> "LexicalNode":
        return cls(NodeType.TEXT, text=text, format=format, props=dict(TEXT_DEFAULTS))

    @classmethod
    def paragraph(cls, children: Iterable["LexicalNode"] = ()) -> "LexicalNode":
        props = dict(ELEMENT_DEFAULTS, textFormat=0, textStyle="")
        return cls(NodeType.PARAGRAPH, children=list(children), props=props)

    @classmethod
    def heading(cls, level: int, children: Iterable["LexicalNode"] = ()) -> "LexicalNode":
        level = max(MIN_HEADING_LEVEL, min(MAX_HEADING_LEVEL, int(level)))
        props = dict(ELEMENT_DEFAULTS, tag=f"h{level}")
        return cls(NodeType.HEADING, children=list(children), props=props)

    @classmethod
    def list_item(cls, children: Iterable["LexicalNode"] = (), value: int = 1) -> "LexicalNode":
        props = dict(ELEMENT_DEFAULTS, value=value)
        return cls(NodeType.LIST_ITEM, children=list(children), props=props)

    @classmethod
    def list(cls, list_type: str, items: Iterable["LexicalNode"] = ()) -> "LexicalNode":
        tag = "ol" if list_type == "number" else "ul"
        props = dict(ELEMENT_DEFAULTS, listType=list_type, start=1, tag=tag)
        return cls(NodeType.LIST, children=list(items), props=props)


class ResolvedPos:
    """
    A position resolved against the tree, in the manner of ProseMirror.

    Depth 0 is the root. A position strictly inside an element descends into
    it; a position on a boundary between children stays at the parent level.
    """

    def __init__(self, pos: int, path: List[Tuple[LexicalNode, int]]):
        self.pos = pos
        self._path = path

    @property
    def depth(self) -> int:
        return len(self._path) - 1

    @property
    def parent(self) -> LexicalNode:
        return self._path[-1][0]

    @property
    def parent_offset(self) -> int:
        return self.pos - self.start()

    def _depth(self, depth: Optional[int]) -> int:
        return self.depth if depth is None else depth

    def node(self, depth: Optional[int] = None) -> LexicalNode:
        return self._path[self._depth(depth)][0]

    def before(self, depth: Optional[int] = None) -> int:
        depth = self._depth(depth)
        if depth == 0:
            raise DocumentRangeError("There is no position before the root node")
        return self._path[depth][1]

    def after(self, depth: Optional[int] = None) -> int:
        depth = self._depth(depth)
        return self.before(depth) + self.node(depth).size

    def start(self, depth: Optional[int] = None) -> int:
        depth = self._depth(depth)
        return 0 if depth == 0 else self._path[depth][1] + 1

    def end(self, depth: Optional[int] = None) -> int:
        depth = self._depth(depth)
        return self.start(depth) + self.node(depth).content_size

    def __repr__(self) -> str:
        return f"ResolvedPos(pos={self.pos}, depth={self.depth}, parent={self.parent.type.value})"


NodeSequence = Union[LexicalNode, Sequence[LexicalNode]]


class LexicalDocument:
    """
    Mutable Lexical document with linearized positions.

    Args:
        root: Root node; an empty root is created when omitted
    """

    def __init__(self, root: Optional[LexicalNode] = None):
        if root is None:
            root = LexicalNode(NodeType.ROOT, props=dict(ELEMENT_DEFAULTS))
        if root.type != NodeType.ROOT:
            raise ValueError(f"Document root must be a root node, got {root.type.value}")
        self.root = root

    # ------------------------------------------------------------------
    # Import / export

    @classmethod
    def from_lexical(cls, lexical_state: Union[str, Dict[str, Any]]) -> "LexicalDocument":
        from .lexical_converter import lexical_state_to_root

        return cls(lexical_state_to_root(lexical_state))

    def to_lexical(self) -> Dict[str, Any]:
        from .lexical_converter import node_to_lexical

        return {"root": node_to_lexical(self.root)}

    def snapshot(self) -> Dict[str, Any]:
        """Capture the current state as Lexical JSON (used for external undo)"""
        return self.to_lexical()

    def restore(self, snapshot: Dict[str, Any]) -> None:
        """Replace the whole tree with a previously captured snapshot"""
        from .lexical_converter import lexical_state_to_root

        self.root = lexical_state_to_root(snapshot)
        logger.info("Document restored from snapshot")

    # ------------------------------------------------------------------
    # Structural reads

    @property
    def content_size(self) -> int:
        return self.root.content_size

    @property
    def text_content(self) -> str:
        return "\n".join(block.text_content for block in self.root.children)

    def blocks(self) -> Iterator[Tuple[LexicalNode, int]]:
        """Yield (block, position before block) for every top-level block"""
        return self.children_with_positions(self.root, 0)

    @staticmethod
    def children_with_positions(node: LexicalNode, content_start: int) -> Iterator[Tuple[LexicalNode, int]]:
        pos = content_start
        for child in node.children:
            yield child, pos
            pos += child.size

    def resolve(self, pos: int) -> ResolvedPos:
        if pos < 0 or pos > self.content_size:
            raise DocumentRangeError(f"Position {pos} outside document (size {self.content_size})")

        path: List[Tuple[LexicalNode, int]] = [(self.root, -1)]
        node = self.root
        content_start = 0
        while True:
            descended = False
            for child, child_pos in self.children_with_positions(node, content_start):
                child_end = child_pos + child.size
                if child_pos >= pos:
                    break
                if not child.is_inline and child_pos < pos < child_end:
                    path.append((child, child_pos))
                    node = child
                    content_start = child_pos + 1
                    descended = True
                    break
            if not descended:
                break
        return ResolvedPos(pos, path)

    def clamp_pos(self, pos: int) -> int:
        return max(0, min(pos, self.content_size))

    def clamp_range(self, start: int, end: int) -> Optional[Range]:
        start, end = self.clamp_pos(start), self.clamp_pos(end)
        if start > end:
            return None
        return Range(start, end)

    def char_at(self, pos: int) -> str:
        """Return the character occupying [pos, pos + 1) inside a textblock, else ''"""
        try:
            resolved = self.resolve(pos)
        except DocumentRangeError:
            return ""
        parent = resolved.parent
        if not parent.is_textblock:
            return ""
        offset = resolved.parent_offset
        running = 0
        for child in parent.children:
            end = running + child.size
            if running <= offset < end:
                if child.type == NodeType.TEXT:
                    return child.text[offset - running]
                if child.type == NodeType.LINEBREAK:
                    return "\n"
                return ""
            running = end
        return ""

    def text_between(self, start: int, end: int) -> str:
        """Inline text inside [start, end); element tokens contribute nothing"""
        parts: List[str] = []
        self._collect_text(self.root, 0, start, end, parts)
        return "".join(parts)

    def _collect_text(self, node: LexicalNode, content_start: int, start: int, end: int, parts: List[str]) -> None:
        for child, pos in self.children_with_positions(node, content_start):
            child_end = pos + child.size
            if child_end <= start or pos >= end:
                continue
            if child.type == NodeType.TEXT:
                parts.append(child.text[max(start, pos) - pos:min(end, child_end) - pos])
            elif child.type == NodeType.LINEBREAK:
                parts.append("\n")
            else:
                self._collect_text(child, pos + 1, start, end, parts)

    def find_ancestor(self, pos: int, types: Iterable[NodeType]) -> Optional[Tuple[LexicalNode, Range]]:
        """
        Find the innermost ancestor of pos whose type is in types.

        Returns:
            (node, range covering the whole node) or None
        """
        wanted = set(types)
        try:
            resolved = self.resolve(pos)
        except DocumentRangeError:
            logger.debug(f"Cannot resolve position {pos} for ancestor lookup")
            return None
        for depth in range(resolved.depth, 0, -1):
            node = resolved.node(depth)
            if node.type in wanted:
                return node, Range(resolved.before(depth), resolved.after(depth))
        return None

    # ------------------------------------------------------------------
    # Mutations

    def delete(self, start: int, end: int) -> None:
        """
        Delete the content between start and end.

        Raises:
            DocumentRangeError: If the range is not inside a single parent
        """
        if start > end:
            raise DocumentRangeError(f"Invalid range [{start}, {end})")
        if start == end:
            return

        resolved_start = self.resolve(start)
        resolved_end = self.resolve(end)
        parent = resolved_start.parent
        if resolved_end.parent is not parent:
            raise DocumentRangeError(
                f"Range [{start}, {end}) spans different parents "
                f"({parent.type.value} / {resolved_end.parent.type.value})"
            )

        first = _split_children_at(parent, resolved_start.parent_offset)
        last = _split_children_at(parent, resolved_end.parent_offset)
        del parent.children[first:last]
        _normalize_inline(parent)

        if parent.type == NodeType.LIST and not parent.children:
            depth = resolved_start.depth
            container = resolved_start.node(depth - 1)
            container.children = [child for child in container.children if child is not parent]
            logger.debug(f"Removed list left empty at {resolved_start.before(depth)}")

    def insert_at(self, pos: int, nodes: NodeSequence) -> Range:
        """
        Insert nodes at pos.

        Args:
            pos: Absolute insertion position
            nodes: Inline nodes, block nodes, or list entries (not mixed)

        Returns:
            Range occupied by the inserted nodes after insertion

        Raises:
            DocumentRangeError: If the nodes cannot be placed at pos
        """
        if isinstance(nodes, LexicalNode):
            nodes = [nodes]
        nodes = list(nodes)
        if not nodes:
            return Range(pos, pos)

        resolved = self.resolve(pos)
        parent = resolved.parent
        size = sum(node.size for node in nodes)

        if all(node.is_inline for node in nodes):
            if parent.is_textblock:
                _insert_children(parent, resolved.parent_offset, nodes)
                return Range(pos, pos + size)
            if parent.type == NodeType.ROOT:
                return self.insert_at(pos, [LexicalNode.paragraph(nodes)])
            if parent.type == NodeType.LIST:
                return self.insert_at(pos, [LexicalNode.list_item(nodes)])
            raise DocumentRangeError(f"Cannot insert inline content into {parent.type.value}")

        if all(node.is_block for node in nodes):
            if parent.type == NodeType.ROOT:
                _insert_children(parent, resolved.parent_offset, nodes)
                return Range(pos, pos + size)
            if parent.is_textblock and resolved.depth == 1:
                return self._insert_blocks_in_textblock(resolved, nodes, size)
            raise DocumentRangeError(f"Cannot insert blocks into {parent.type.value} at {pos}")

        if all(node.type == NodeType.LIST_ITEM for node in nodes):
            if parent.type == NodeType.LIST:
                _insert_children(parent, resolved.parent_offset, nodes)
                return Range(pos, pos + size)
            if parent.type == NodeType.LIST_ITEM:
                if resolved.parent_offset == 0:
                    return self.insert_at(resolved.before(), nodes)
                if resolved.parent_offset == parent.content_size:
                    return self.insert_at(resolved.after(), nodes)
            raise DocumentRangeError(f"Cannot insert list entries into {parent.type.value} at {pos}")

        raise DocumentRangeError("Cannot insert a mix of inline, block and list entry nodes")

    def _insert_blocks_in_textblock(self, resolved: ResolvedPos, nodes: List[LexicalNode], size: int) -> Range:
        textblock = resolved.parent
        offset = resolved.parent_offset
        if offset == 0:
            return self.insert_at(resolved.before(), nodes)
        if offset == textblock.content_size:
            return self.insert_at(resolved.after(), nodes)

        # Split the textblock in two and place the blocks in between
        split_index = _split_children_at(textblock, offset)
        tail = LexicalNode(
            textblock.type,
            children=textblock.children[split_index:],
            props=copy.deepcopy(textblock.props),
        )
        textblock.children = textblock.children[:split_index]
        container = resolved.node(resolved.depth - 1)
        index = next(i for i, child in enumerate(container.children) if child is textblock)
        container.children[index + 1:index + 1] = list(nodes) + [tail]
        start = resolved.pos + 1
        return Range(start, start + size)

    def set_heading_level(self, pos: int, level: int) -> bool:
        """Change the level of the heading containing pos; returns False if there is none"""
        found = self.find_ancestor(pos, [NodeType.HEADING])
        if found is None:
            return False
        heading, _ = found
        level = max(MIN_HEADING_LEVEL, min(MAX_HEADING_LEVEL, int(level)))
        heading.props["tag"] = f"h{level}"
        return True

    def renumber_list(self, pos: int) -> bool:
        """Number the entries of the list containing pos from the list's start value"""
        found = self.find_ancestor(pos, [NodeType.LIST])
        if found is None:
            return False
        list_node, _ = found
        entries = [child for child in list_node.children if child.type == NodeType.LIST_ITEM]
        for value, entry in enumerate(entries, start=int(list_node.props.get("start", 1))):
            entry.props["value"] = value
        return True

    def __repr__(self) -> str:
        return f"LexicalDocument(blocks={len(self.root.children)}, size={self.content_size})"


def _split_children_at(node: LexicalNode, offset: int) -> int:
    """Make offset fall on a child boundary (splitting a text child) and return the child index there."""
    running = 0
    for index, child in enumerate(node.children):
        if running == offset:
            return index
        end = running + child.size
        if offset < end:
            if child.type != NodeType.TEXT:
                raise DocumentRangeError(f"Offset {offset} falls inside a {child.type.value} node")
            cut = offset - running
            head = LexicalNode(NodeType.TEXT, text=child.text[:cut], format=child.format, props=dict(child.props))
            tail = LexicalNode(NodeType.TEXT, text=child.text[cut:], format=child.format, props=dict(child.props))
            node.children[index:index + 1] = [head, tail]
            return index + 1
        running = end
    if running == offset:
        return len(node.children)
    raise DocumentRangeError(f"Offset {offset} beyond content of {node.type.value}")


def _insert_children(parent: LexicalNode, offset: int, nodes: List[LexicalNode]) -> None:
    allowed = ALLOWED_CHILDREN[parent.type]
    for node in nodes:
        if node.type not in allowed:
            raise DocumentRangeError(f"{node.type.value} is not allowed inside {parent.type.value}")
    index = _split_children_at(parent, offset)
    parent.children[index:index] = nodes
    _normalize_inline(parent)


def _normalize_inline(node: LexicalNode) -> None:
    """Drop empty text nodes and merge adjacent text nodes with identical formatting"""
    merged: List[LexicalNode] = []
    for child in node.children:
        if child.type == NodeType.TEXT:
            if not child.text:
                continue
            previous = merged[-1] if merged else None
            if (
                previous is not None
                and previous.type == NodeType.TEXT
                and previous.format == child.format
                and previous.props == child.props
            ):
                previous.text += child.text
                continue
        merged.append(child)
    node.children = merged
