# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

from .document import DocumentRangeError, LexicalDocument, LexicalNode, NodeType, Range, ResolvedPos
from .lexical_converter import INITIAL_LEXICAL_JSON, lexical_state_to_root, node_to_lexical

__all__ = [
    'DocumentRangeError',
    'LexicalDocument',
    'LexicalNode',
    'NodeType',
    'Range',
    'ResolvedPos',
    'INITIAL_LEXICAL_JSON',
    'lexical_state_to_root',
    'node_to_lexical',
]
