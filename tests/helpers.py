# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""Document and response builders shared by the tests"""

import json
from typing import Any, Dict, List, Optional

from lexical_ai_edit.model.document import LexicalDocument, LexicalNode, NodeType


def text(value: str, format: int = 0) -> LexicalNode:
    return LexicalNode.text_node(value, format)


def paragraph(value: str = "") -> LexicalNode:
    return LexicalNode.paragraph([text(value)] if value else [])


def heading(value: str, level: int = 1) -> LexicalNode:
    return LexicalNode.heading(level, [text(value)])


def bullet_list(*entries: str) -> LexicalNode:
    return LexicalNode.list("bullet", [LexicalNode.list_item([text(entry)], index) for index, entry in enumerate(entries, 1)])


def ordered_list(*entries: str) -> LexicalNode:
    return LexicalNode.list("number", [LexicalNode.list_item([text(entry)], index) for index, entry in enumerate(entries, 1)])


def make_document(*blocks: LexicalNode) -> LexicalDocument:
    document = LexicalDocument()
    document.root.children = list(blocks)
    return document


def block_texts(document: LexicalDocument) -> List[str]:
    return [block.text_content for block in document.root.children]


def block_types(document: LexicalDocument) -> List[NodeType]:
    return [block.type for block in document.root.children]


def edit(item_id: str, operation: Dict[str, Any]) -> Dict[str, Any]:
    return {"target": {"kind": "block-item", "itemId": item_id}, "operation": operation}


def response(*edits: Dict[str, Any], message: str = "", options: Optional[List[Dict[str, str]]] = None) -> str:
    return json.dumps({"edits": list(edits), "message": message, "options": options or []})


def feed_in_chunks(orchestrator, payload: str, size: int) -> None:
    for start in range(0, len(payload), size):
        orchestrator.feed(payload[start:start + size])
