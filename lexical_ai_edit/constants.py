# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""Shared constants for Lexical AI edit."""

# Loro tree container used for document snapshots
DEFAULT_TREE_NAME = "lexical-tree"

# Lexical text format bits
FORMAT_BOLD = 1
FORMAT_ITALIC = 1 << 1
FORMAT_STRIKETHROUGH = 1 << 2
FORMAT_CODE = 1 << 4

# Block item ids look like "block-3.2"
BLOCK_ITEM_PREFIX = "block-"
TARGET_KIND_BLOCK_ITEM = "block-item"

MIN_HEADING_LEVEL = 1
MAX_HEADING_LEVEL = 3
