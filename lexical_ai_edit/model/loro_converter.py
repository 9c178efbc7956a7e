# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Lexical document <-> Loro tree conversion

Document snapshots are stored in a Loro CRDT document so that the state
captured before an AI instruction can be persisted and restored later
(an explicit, external undo).

Loro Tree Structure:
- TreeNode meta {"elementType": "root", "lexical": {...}}
- Child TreeNodes meta {"elementType": "paragraph", "lexical": {...}}
- Leaf TreeNodes meta {"elementType": "text", "lexical": {...}}

Uses Loro API:
- tree.create() returns TreeID
- tree.get_meta(tree_id) returns LoroMap for metadata storage
- tree.create_at(index, parent_id) creates child nodes
"""

import json
import logging
from typing import Any, Dict

from loro import ExportMode, LoroDoc, LoroTree

from ..constants import DEFAULT_TREE_NAME
from .document import LexicalDocument
from .lexical_converter import INITIAL_LEXICAL_JSON

logger = logging.getLogger(__name__)

LEXICAL_PROPERTY_KEYS = [
    'text', 'format', 'style', 'mode', 'detail', 'indent', 'direction',
    'tag', 'textFormat', 'textStyle', 'listType', 'start', 'value', 'version',
]


def lexical_to_loro_tree(lexical_json: Dict[str, Any], tree: LoroTree) -> str:
    """
    Convert a Lexical JSON structure to a Loro tree

    Args:
        lexical_json: Lexical state with a "root" node
        tree: Target LoroTree (expected to be empty)

    Returns:
        Root TreeID as string
    """
    root_tree_id = tree.create()
    _process_lexical_node(lexical_json["root"], tree, root_tree_id)
    logger.debug(f"Converted Lexical JSON to Loro tree with root {root_tree_id}")
    return str(root_tree_id)


def _process_lexical_node(lexical_node: Dict[str, Any], tree: LoroTree, tree_id) -> None:
    meta_map = tree.get_meta(tree_id)
    meta_map.insert('elementType', lexical_node.get('type', ''))
    cleaned_data = {k: v for k, v in lexical_node.items()
                    if k not in ['__key', 'key', 'lexicalKey', 'children']}
    meta_map.insert('lexical', cleaned_data)

    for child_index, child in enumerate(lexical_node.get('children') or []):
        child_tree_id = tree.create_at(child_index, tree_id)
        _process_lexical_node(child, tree, child_tree_id)


def loro_tree_to_lexical_json(doc: LoroDoc, tree_name: str = DEFAULT_TREE_NAME) -> Dict[str, Any]:
    """
    Convert a Loro tree document back to Lexical JSON

    Returns:
        Lexical state dict; the initial document when the tree is empty
    """
    tree = doc.get_tree(tree_name)
    roots = tree.roots
    if not roots:
        logger.debug("Empty Loro tree, returning initial Lexical JSON")
        return json.loads(json.dumps(INITIAL_LEXICAL_JSON))
    return {"root": _convert_loro_node(tree, roots[0])}


def _convert_loro_node(tree: LoroTree, tree_id) -> Dict[str, Any]:
    meta_map = tree.get_meta(tree_id)
    keys = list(meta_map.keys())

    element_type = 'paragraph'
    if 'elementType' in keys:
        element_type = _meta_value(meta_map.get('elementType'))

    lexical_data = {}
    if 'lexical' in keys:
        lexical_data = _meta_value(meta_map.get('lexical'))
        if isinstance(lexical_data, str):
            lexical_data = json.loads(lexical_data)
        if not isinstance(lexical_data, dict):
            lexical_data = {}

    node_data: Dict[str, Any] = {'type': element_type}
    for key in LEXICAL_PROPERTY_KEYS:
        if key in lexical_data:
            node_data[key] = lexical_data[key]

    child_ids = tree.children(tree_id) or []
    if element_type not in ('text', 'linebreak'):
        node_data['children'] = [_convert_loro_node(tree, child_id) for child_id in child_ids]
    return node_data


def _meta_value(value: Any) -> Any:
    # LoroMap.get returns a ValueOrContainer wrapper on recent loro releases
    return value.value if hasattr(value, 'value') else value


def document_to_loro_doc(document: LexicalDocument, tree_name: str = DEFAULT_TREE_NAME) -> LoroDoc:
    """Build a fresh LoroDoc holding the document tree"""
    doc = LoroDoc()
    tree = doc.get_tree(tree_name)
    tree.enable_fractional_index(1)
    lexical_to_loro_tree(document.to_lexical(), tree)
    doc.commit()
    return doc


def export_loro_snapshot(document: LexicalDocument, tree_name: str = DEFAULT_TREE_NAME) -> bytes:
    """Export the document as a Loro snapshot"""
    doc = document_to_loro_doc(document, tree_name)
    snapshot = doc.export(ExportMode.Snapshot())
    logger.info(f"Exported Loro snapshot ({len(snapshot)} bytes)")
    return snapshot


def import_loro_snapshot(snapshot: bytes, tree_name: str = DEFAULT_TREE_NAME) -> LexicalDocument:
    """Rebuild a LexicalDocument from a Loro snapshot"""
    doc = LoroDoc()
    doc.import_(snapshot)
    return LexicalDocument.from_lexical(loro_tree_to_lexical_json(doc, tree_name))
