# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Edit orchestrator: one streamed response applied to one document.

STREAM LIFECYCLE:
================

    begin()            rebuild the block map, clear edit states and buffer
    feed(chunk) ...    append, re-parse the whole buffer, resolve, dispatch,
                       propagate, notify
    finish()           emit COMPLETED with the final message/options

Each feed() is one synchronous pass, so the document is consistent between
chunks. run() drives the same loop from an async chunk source and honours an
abort event; mutations already applied stay applied (reverting is done from
a snapshot taken before the instruction).

Notifications go to ``event_handler(event_type, data)``.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, Callable, Dict, List, Optional

from ..model.document import LexicalDocument
from .block_map import build_block_map
from .dispatcher import EditDispatcher
from .handlers import EditContext
from .registry import EditStateRegistry
from .schemas import BlockItem, Edit, EditKey, EditTarget, parse_operation
from .stream_parser import ParsedResponse, parse_partial_edits

logger = logging.getLogger(__name__)

_BLOCK_MAP_PREAMBLE = re.compile(r'^\s*\{\s*"blockMap"')


class EditEventType(Enum):
    """Notifications emitted while a response streams"""
    MESSAGE_UPDATED = "message_updated"
    OPTIONS_UPDATED = "options_updated"
    EDIT_APPLIED = "edit_applied"
    COMPLETED = "completed"


class EditStreamError(RuntimeError):
    """The chunk source failed before the response completed"""


@dataclass
class EditResult:
    message: Optional[str] = None
    options: Optional[List[Dict[str, str]]] = None
    applied: int = 0
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "options": self.options,
            "applied": self.applied,
            "cancelled": self.cancelled,
        }


def strip_block_map_preamble(buffer: str) -> str:
    """Drop a leading {"blockMap": ...} line; nothing is parseable until it is complete"""
    if not _BLOCK_MAP_PREAMBLE.match(buffer):
        return buffer
    newline = buffer.find("\n")
    return "" if newline == -1 else buffer[newline + 1:]


class EditOrchestrator:
    """
    Applies one streamed edit response to a document

    Args:
        document: Document mutated in place
        event_handler: Optional callback receiving (EditEventType, data)
    """

    def __init__(self, document: LexicalDocument, event_handler: Optional[Callable] = None):
        self.document = document
        self._event_handler = event_handler
        self.block_map: List[BlockItem] = []
        self.registry = EditStateRegistry()
        self._dispatcher: Optional[EditDispatcher] = None
        self._buffer = ""
        self._last_message: Optional[str] = None
        self._last_options: Optional[List[Dict[str, str]]] = None
        self._warned_mixed = False

    @property
    def buffer(self) -> str:
        return self._buffer

    def begin(self) -> List[BlockItem]:
        """Start a new instruction: fresh block map, no edit states, empty buffer"""
        self.block_map = build_block_map(self.document)
        self.registry.clear()
        self._dispatcher = EditDispatcher(EditContext(self.document, self.block_map, self.registry.states))
        self._buffer = ""
        self._last_message = None
        self._last_options = None
        self._warned_mixed = False
        logger.info(f"Edit stream started with {len(self.block_map)} addressable items")
        return self.block_map

    def feed(self, chunk: str) -> Optional[ParsedResponse]:
        """
        Consume one chunk and apply whatever the buffer now allows.

        Returns:
            The parse of the accumulated buffer, or None when nothing is usable yet
        """
        if self._dispatcher is None:
            self.begin()

        self._buffer += chunk
        parsed = parse_partial_edits(strip_block_map_preamble(self._buffer))
        if parsed is None:
            return None

        if parsed.message is not None and parsed.message != self._last_message:
            self._last_message = parsed.message
            self._emit_event(EditEventType.MESSAGE_UPDATED, {"message": parsed.message})

        if parsed.options and parsed.options != self._last_options:
            self._last_options = parsed.options
            self._emit_event(EditEventType.OPTIONS_UPDATED, {"options": parsed.options})

        if parsed.edits and parsed.options and not self._warned_mixed:
            self._warned_mixed = True
            logger.warning("Response carries both edits and options; applying the edits")

        if parsed.edits:
            self._process_edits(parsed)
        return parsed

    def _process_edits(self, parsed: ParsedResponse) -> None:
        for index, parsed_edit in enumerate(parsed.edits):
            target = EditTarget.from_dict(parsed_edit.target)
            operation = parse_operation(parsed_edit.operation)
            if target is None or operation is None:
                continue

            edit = Edit(target=target, operation=operation)
            key = EditKey.for_edit(index, edit)
            state = self.registry.resolve(key, edit, self.block_map)
            if state is None:
                continue

            settled = parsed_edit.closed or parsed.complete
            if self._dispatcher.dispatch(state, operation, settled):
                self._emit_event(EditEventType.EDIT_APPLIED, {
                    "index": index,
                    "item_id": state.item_id,
                    "type": operation.type.value,
                    "document_size": self.document.content_size,
                })

    def finish(self, cancelled: bool = False) -> EditResult:
        """Close the instruction and emit COMPLETED"""
        result = EditResult(
            message=self._last_message,
            options=self._last_options,
            applied=self.registry.applied_count,
            cancelled=cancelled,
        )
        logger.info(f"Edit stream {'cancelled' if cancelled else 'completed'}: {result.applied} edits applied")
        self._emit_event(EditEventType.COMPLETED, result.to_dict())
        return result

    async def run(self, chunks: AsyncIterable[str], abort: Optional[asyncio.Event] = None) -> EditResult:
        """
        Apply a whole streamed response.

        Args:
            chunks: Async source of response text chunks
            abort: Optional event; once set, no further chunk is processed

        Returns:
            EditResult, flagged cancelled when aborted

        Raises:
            EditStreamError: If the chunk source fails
        """
        self.begin()
        iterator = chunks.__aiter__()
        try:
            while True:
                if abort is not None and abort.is_set():
                    logger.info("Edit stream aborted")
                    return self.finish(cancelled=True)
                try:
                    chunk = await iterator.__anext__()
                except StopAsyncIteration:
                    break
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Edit stream failed: {e}")
                    raise EditStreamError(f"Edit stream failed: {e}") from e

                if abort is not None and abort.is_set():
                    logger.info("Edit stream aborted")
                    return self.finish(cancelled=True)
                self.feed(chunk)
        finally:
            # Closing the source ends an in-flight request (and its connection)
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

        return self.finish()

    def _emit_event(self, event_type: EditEventType, data: Dict[str, Any]) -> None:
        """
        Emit event to registered handler

        Args:
            event_type: Type of event
            data: Event data
        """
        if self._event_handler:
            try:
                self._event_handler(event_type, data)
            except Exception as e:
                logger.error(f"Event handler error: {e}")
