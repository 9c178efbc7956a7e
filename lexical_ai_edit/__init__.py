# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Lexical AI Edit - apply streamed language model edits to Lexical documents
"""

from .edit.orchestrator import EditEventType, EditOrchestrator, EditResult, EditStreamError
from .model.document import DocumentRangeError, LexicalDocument

__all__ = [
    "DocumentRangeError",
    "EditEventType",
    "EditOrchestrator",
    "EditResult",
    "EditStreamError",
    "LexicalDocument",
]
