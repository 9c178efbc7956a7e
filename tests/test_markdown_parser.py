# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Unit tests for inline markdown parsing
"""

import unittest

from lexical_ai_edit.constants import FORMAT_BOLD, FORMAT_CODE, FORMAT_ITALIC, FORMAT_STRIKETHROUGH
from lexical_ai_edit.edit.markdown_parser import (
    Mark,
    TextRun,
    get_requested_heading_level,
    is_markdown_complete,
    parse_inline_markdown,
    parse_markdown_for_block,
    runs_length,
    runs_to_text_nodes,
    strip_heading_marker,
)
from lexical_ai_edit.edit.schemas import BlockType


class TestParseInlineMarkdown(unittest.TestCase):

    def test_plain_text(self):
        self.assertEqual(parse_inline_markdown("Just words."), [TextRun("Just words.")])

    def test_all_marks(self):
        runs = parse_inline_markdown("Hello **bold** and *it* ~~s~~ `c`")
        self.assertEqual(runs, [
            TextRun("Hello "),
            TextRun("bold", (Mark.BOLD,)),
            TextRun(" and "),
            TextRun("it", (Mark.ITALIC,)),
            TextRun(" "),
            TextRun("s", (Mark.STRIKE,)),
            TextRun(" "),
            TextRun("c", (Mark.CODE,)),
        ])

    def test_format_bits(self):
        runs = parse_inline_markdown("**b** *i* ~~s~~ `c`")
        formats = [run.format for run in runs if run.marks]
        self.assertEqual(formats, [FORMAT_BOLD, FORMAT_ITALIC, FORMAT_STRIKETHROUGH, FORMAT_CODE])

    def test_bold_wins_over_italic(self):
        self.assertEqual(parse_inline_markdown("**strong**"), [TextRun("strong", (Mark.BOLD,))])

    def test_unmatched_delimiter_stays_literal(self):
        self.assertEqual(parse_inline_markdown("2 * 3"), [TextRun("2 * 3")])

    def test_runs_cover_text(self):
        source = "A **b** c *d* e"
        runs = parse_inline_markdown(source)
        self.assertEqual("".join(run.text for run in runs), "A b c d e")
        self.assertEqual(runs_length(runs), len("A b c d e"))

    def test_text_nodes_drop_empty_runs(self):
        nodes = runs_to_text_nodes([TextRun(""), TextRun("x", (Mark.BOLD,))])
        self.assertEqual(len(nodes), 1)
        self.assertEqual(nodes[0].format, FORMAT_BOLD)


class TestHeadingMarkers(unittest.TestCase):

    def test_heading_marker_is_stripped_for_headings(self):
        runs = parse_markdown_for_block("## Section", BlockType.HEADING)
        self.assertEqual(runs, [TextRun("Section")])

    def test_heading_marker_kept_for_paragraphs(self):
        runs = parse_markdown_for_block("## Section", BlockType.PARAGRAPH)
        self.assertEqual(runs, [TextRun("## Section")])

    def test_requested_level(self):
        self.assertEqual(get_requested_heading_level("### Deep"), 3)
        self.assertEqual(get_requested_heading_level("# Top"), 1)
        self.assertIsNone(get_requested_heading_level("No marker"))
        self.assertIsNone(get_requested_heading_level("#hashtag"))

    def test_strip_heading_marker(self):
        self.assertEqual(strip_heading_marker("# Title"), "Title")
        self.assertEqual(strip_heading_marker("Title"), "Title")


class TestCompleteness(unittest.TestCase):
    """Unbalanced delimiters must hold back a streaming replacement"""

    def test_open_bold(self):
        self.assertFalse(is_markdown_complete("Some **bol"))

    def test_closed_bold(self):
        self.assertTrue(is_markdown_complete("Some **bold**"))

    def test_open_italic_after_bold(self):
        self.assertFalse(is_markdown_complete("**bold** and *it"))
        self.assertTrue(is_markdown_complete("**bold** and *it*"))

    def test_open_code_and_strike(self):
        self.assertFalse(is_markdown_complete("run `ls"))
        self.assertFalse(is_markdown_complete("~~gone"))

    def test_plain(self):
        self.assertTrue(is_markdown_complete("Nothing special."))


if __name__ == '__main__':
    unittest.main()
