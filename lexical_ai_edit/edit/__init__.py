# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

from .block_map import build_block_map, build_block_map_from_text, find_item, split_sentences
from .dispatcher import EditDispatcher
from .doc_version import generate_doc_version, get_version_timestamp, validate_doc_version
from .markdown_parser import is_markdown_complete, parse_inline_markdown, parse_markdown_for_block
from .orchestrator import EditEventType, EditOrchestrator, EditResult, EditStreamError
from .prompts import EDIT_SYSTEM_PROMPT, build_edit_messages
from .propagation import shift_ranges_after_edit
from .registry import EditStateRegistry
from .schemas import BlockItem, BlockType, Edit, EditKey, EditState, EditTarget, OperationType, parse_operation
from .stream_parser import ParsedEdit, ParsedResponse, parse_partial_edits

__all__ = [
    'build_block_map',
    'build_block_map_from_text',
    'find_item',
    'split_sentences',
    'EditDispatcher',
    'generate_doc_version',
    'get_version_timestamp',
    'validate_doc_version',
    'is_markdown_complete',
    'parse_inline_markdown',
    'parse_markdown_for_block',
    'EditEventType',
    'EditOrchestrator',
    'EditResult',
    'EditStreamError',
    'EDIT_SYSTEM_PROMPT',
    'build_edit_messages',
    'shift_ranges_after_edit',
    'EditStateRegistry',
    'BlockItem',
    'BlockType',
    'Edit',
    'EditKey',
    'EditState',
    'EditTarget',
    'OperationType',
    'parse_operation',
    'ParsedEdit',
    'ParsedResponse',
    'parse_partial_edits',
]
