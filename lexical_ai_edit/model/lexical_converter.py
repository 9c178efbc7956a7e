# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Lexical JSON <-> LexicalNode conversion

Lexical JSON Structure:
{
  "root": {
    "type": "root",
    "children": [
      {
        "type": "paragraph",
        "children": [
          {"type": "text", "text": "Hello", "format": 0}
        ]
      }
    ]
  }
}

Key-related fields (__key, key, lexicalKey) are stripped on import; every
other property is kept on the node and written back on export.
"""

import json
import logging
from typing import Any, Dict, List, Union

from .document import ELEMENT_DEFAULTS, LexicalNode, NodeType

logger = logging.getLogger(__name__)

KEYS_TO_REMOVE = {"__key", "key", "lexicalKey", "children", "type", "text"}

# Flattened into their parent: the document model has no inline elements
INLINE_WRAPPER_TYPES = {"link", "autolink"}

INITIAL_LEXICAL_JSON = {
    "root": {
        "children": [
            {
                "children": [
                    {
                        "detail": 0,
                        "format": 0,
                        "mode": "normal",
                        "style": "",
                        "text": "Untitled",
                        "type": "text",
                        "version": 1
                    }
                ],
                "direction": None,
                "format": "",
                "indent": 0,
                "type": "heading",
                "version": 1,
                "tag": "h1"
            },
            {
                "children": [
                    {
                        "detail": 0,
                        "format": 0,
                        "mode": "normal",
                        "style": "",
                        "text": "Type something...",
                        "type": "text",
                        "version": 1
                    }
                ],
                "direction": None,
                "format": "",
                "indent": 0,
                "type": "paragraph",
                "version": 1,
                "textFormat": 0,
                "textStyle": ""
            }
        ],
        "direction": None,
        "format": "",
        "indent": 0,
        "type": "root",
        "version": 1
    }
}


def lexical_state_to_root(lexical_state: Union[str, Dict[str, Any]]) -> LexicalNode:
    """
    Convert a Lexical editor state into a root LexicalNode

    Args:
        lexical_state: Lexical state as JSON string or dict, either
            {"root": {...}} or wrapped as {"editorState": {"root": {...}}}

    Returns:
        Root node

    Raises:
        ValueError: If the state is invalid or contains unsupported nodes
    """
    if isinstance(lexical_state, str):
        try:
            lexical_state = json.loads(lexical_state)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON format: {e}")

    if isinstance(lexical_state, dict) and "editorState" in lexical_state:
        lexical_state = lexical_state["editorState"]

    if not isinstance(lexical_state, dict) or "root" not in lexical_state:
        raise ValueError("Lexical state must contain 'root' property")

    root_data = lexical_state["root"]
    if not isinstance(root_data, dict) or root_data.get("type", "root") != "root":
        raise ValueError("Root node must be an object with type 'root'")

    root = lexical_node_to_node(dict(root_data, type="root"))
    logger.debug(f"Imported Lexical state with {len(root.children)} top-level blocks")
    return root


def lexical_node_to_node(lexical_node: Dict[str, Any]) -> LexicalNode:
    """Recursively convert one Lexical JSON node"""
    raw_type = lexical_node.get("type")
    try:
        node_type = NodeType(raw_type)
    except ValueError:
        raise ValueError(f"Unsupported Lexical node type: {raw_type!r}")

    props = _clean_lexical_data(lexical_node)

    if node_type == NodeType.TEXT:
        text_format = props.pop("format", 0)
        return LexicalNode(
            NodeType.TEXT,
            text=str(lexical_node.get("text", "")),
            format=int(text_format or 0),
            props=props,
        )

    if node_type == NodeType.LINEBREAK:
        return LexicalNode(NodeType.LINEBREAK, props=props)

    children: List[LexicalNode] = []
    for child_data in lexical_node.get("children") or []:
        if not isinstance(child_data, dict) or "type" not in child_data:
            continue
        if child_data["type"] in INLINE_WRAPPER_TYPES:
            children.extend(lexical_node_to_node(grandchild) for grandchild in child_data.get("children") or [])
            continue
        children.append(lexical_node_to_node(child_data))

    return LexicalNode(node_type, children=children, props=props)


def node_to_lexical(node: LexicalNode) -> Dict[str, Any]:
    """Recursively export a LexicalNode to Lexical JSON"""
    result: Dict[str, Any] = {"type": node.type.value, **node.props}

    if node.type == NodeType.TEXT:
        result["text"] = node.text
        result["format"] = node.format
        return result

    if node.type == NodeType.LINEBREAK:
        return result

    for key, value in ELEMENT_DEFAULTS.items():
        result.setdefault(key, value)
    result["children"] = [node_to_lexical(child) for child in node.children]
    return result


def _clean_lexical_data(lexical_node: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove key-related and structural fields from lexical node data

    Args:
        lexical_node: Original lexical node data

    Returns:
        Remaining node properties
    """
    return {key: value for key, value in lexical_node.items() if key not in KEYS_TO_REMOVE}
