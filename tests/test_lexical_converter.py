# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Unit tests for lexical_converter.py and loro_converter.py

Tests the conversion between Lexical JSON, the document model and Loro
tree snapshots.
"""

import json
import unittest

import loro

from lexical_ai_edit.model.document import LexicalDocument, NodeType
from lexical_ai_edit.model.lexical_converter import INITIAL_LEXICAL_JSON, lexical_state_to_root
from lexical_ai_edit.model.loro_converter import (
    export_loro_snapshot,
    import_loro_snapshot,
    lexical_to_loro_tree,
    loro_tree_to_lexical_json,
)


class TestLexicalConverter(unittest.TestCase):
    """Test cases for Lexical JSON import and export"""

    def setUp(self):
        """Set up test fixtures before each test method"""
        self.lexical = {
            "root": {
                "type": "root",
                "children": [
                    {
                        "type": "heading",
                        "tag": "h2",
                        "__key": "3",
                        "children": [{"type": "text", "text": "Title", "format": 0, "__key": "4"}],
                    },
                    {
                        "type": "paragraph",
                        "children": [
                            {"type": "text", "text": "Hello ", "format": 0},
                            {"type": "text", "text": "World", "format": 1},
                            {"type": "linebreak"},
                            {"type": "link", "url": "https://example.com",
                             "children": [{"type": "text", "text": "link", "format": 0}]},
                        ],
                        "direction": "ltr",
                        "format": "",
                        "indent": 0,
                        "version": 1,
                    },
                    {
                        "type": "list",
                        "listType": "number",
                        "tag": "ol",
                        "start": 1,
                        "children": [
                            {"type": "listitem", "value": 1, "children": [{"type": "text", "text": "One"}]},
                        ],
                    },
                ],
            }
        }

    def test_import_structure(self):
        """Test block types, heading level and list type survive import"""
        document = LexicalDocument.from_lexical(self.lexical)
        blocks = document.root.children
        self.assertEqual([block.type for block in blocks], [NodeType.HEADING, NodeType.PARAGRAPH, NodeType.LIST])
        self.assertEqual(blocks[0].heading_level, 2)
        self.assertEqual(blocks[2].list_type, "number")

    def test_links_are_flattened(self):
        """Test link children become plain inline content of the paragraph"""
        document = LexicalDocument.from_lexical(self.lexical)
        self.assertEqual(document.root.children[1].text_content, "Hello World\nlink")

    def test_keys_are_stripped(self):
        """Test key-related fields do not survive the round trip"""
        exported = LexicalDocument.from_lexical(self.lexical).to_lexical()
        self.assertNotIn("__key", json.dumps(exported))

    def test_round_trip_keeps_properties(self):
        """Test node properties are written back on export"""
        exported = LexicalDocument.from_lexical(self.lexical).to_lexical()
        paragraph = exported["root"]["children"][1]
        self.assertEqual(paragraph["direction"], "ltr")
        self.assertEqual(paragraph["children"][1]["format"], 1)
        self.assertEqual(exported["root"]["children"][2]["listType"], "number")

    def test_editor_state_wrapper_and_string_input(self):
        """Test {"editorState": ...} wrappers and JSON strings are accepted"""
        wrapped = json.dumps({"editorState": INITIAL_LEXICAL_JSON})
        document = LexicalDocument.from_lexical(wrapped)
        self.assertEqual(document.text_content, "Untitled\nType something...")

    def test_invalid_input(self):
        """Test malformed states raise ValueError"""
        with self.assertRaises(ValueError):
            lexical_state_to_root("{not json")
        with self.assertRaises(ValueError):
            lexical_state_to_root({"nothing": True})
        with self.assertRaises(ValueError):
            lexical_state_to_root({"root": {"type": "root", "children": [{"type": "table", "children": []}]}})


class TestLoroConverter(unittest.TestCase):
    """Test cases for Loro tree snapshots"""

    def setUp(self):
        """Set up test fixtures before each test method"""
        self.doc = loro.LoroDoc()
        self.tree = self.doc.get_tree('tree')
        self.tree.enable_fractional_index(1)

    def test_initial_json_conversion(self):
        """Test conversion of the initial document to a Loro tree"""
        root_id = lexical_to_loro_tree(INITIAL_LEXICAL_JSON, self.tree)
        self.assertIsNotNone(root_id)
        # root, heading, paragraph and their two text nodes
        self.assertEqual(len(self.tree.nodes()), 5)

    def test_tree_back_to_lexical(self):
        """Test a converted tree reads back as the same text"""
        lexical_to_loro_tree(INITIAL_LEXICAL_JSON, self.tree)
        self.doc.commit()
        restored = loro_tree_to_lexical_json(self.doc, 'tree')
        document = LexicalDocument.from_lexical(restored)
        self.assertEqual(document.text_content, "Untitled\nType something...")
        self.assertEqual(document.root.children[0].heading_level, 1)

    def test_empty_tree_gives_initial_document(self):
        """Test an empty tree falls back to the initial document"""
        restored = loro_tree_to_lexical_json(self.doc, 'tree')
        self.assertEqual(LexicalDocument.from_lexical(restored).text_content, "Untitled\nType something...")

    def test_snapshot_round_trip(self):
        """Test export_loro_snapshot / import_loro_snapshot restore the document"""
        document = LexicalDocument.from_lexical(INITIAL_LEXICAL_JSON)
        snapshot = export_loro_snapshot(document)
        self.assertIsInstance(snapshot, bytes)

        restored = import_loro_snapshot(snapshot)
        self.assertEqual(restored.text_content, document.text_content)
        self.assertEqual(restored.content_size, document.content_size)


if __name__ == '__main__':
    unittest.main()
