# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Tests for the edit orchestrator: stream lifecycle, events, abort and errors
"""

import asyncio

import pytest

from helpers import block_texts, edit, make_document, paragraph, response

from lexical_ai_edit import EditEventType, EditOrchestrator, EditStreamError
from lexical_ai_edit.edit.orchestrator import strip_block_map_preamble
from lexical_ai_edit.transport import text_chunks


class TestOrchestratorFeed:

    @pytest.fixture
    def events(self):
        return []

    @pytest.fixture
    def orchestrator(self, events):
        document = make_document(paragraph("The fox runs."), paragraph("Second block."))
        return EditOrchestrator(document, event_handler=lambda event_type, data: events.append((event_type, data)))

    def test_begin_returns_block_map(self, orchestrator):
        block_map = orchestrator.begin()
        assert [item.id for item in block_map] == ["block-1.1", "block-2.1"]
        assert orchestrator.buffer == ""

    def test_feed_before_begin_starts_instruction(self, orchestrator):
        orchestrator.feed(response(edit("block-2.1", {"type": "delete-block"})))
        assert block_texts(orchestrator.document) == ["The fox runs."]

    def test_unusable_buffer_returns_none(self, orchestrator):
        orchestrator.begin()
        assert orchestrator.feed('{"ed') is None
        assert orchestrator.buffer == '{"ed'

    def test_events(self, orchestrator, events):
        orchestrator.begin()
        orchestrator.feed(response(edit("block-1.1", {"type": "replace", "replacement": "The fox jumps."}),
                                   message="Updated"))
        result = orchestrator.finish()

        types = [event_type for event_type, _ in events]
        assert types == [EditEventType.MESSAGE_UPDATED, EditEventType.EDIT_APPLIED, EditEventType.COMPLETED]
        applied = events[1][1]
        assert applied["item_id"] == "block-1.1"
        assert applied["type"] == "replace"
        assert applied["document_size"] == orchestrator.document.content_size
        assert result.applied == 1
        assert result.message == "Updated"
        assert events[2][1] == result.to_dict()

    def test_message_event_only_on_change(self, orchestrator, events):
        orchestrator.begin()
        orchestrator.feed('{"edits": [], "message": "Wor')
        orchestrator.feed('')
        orchestrator.feed('king"')
        messages = [data["message"] for event_type, data in events if event_type == EditEventType.MESSAGE_UPDATED]
        assert messages == ["Wor", "Working"]

    def test_options(self, orchestrator, events):
        orchestrator.begin()
        options = [{"title": "Short", "content": "Brief."}, {"title": "Long", "content": "Longer."}]
        orchestrator.feed(response(message="Which one?", options=options))
        result = orchestrator.finish()

        assert result.options == options
        assert (EditEventType.OPTIONS_UPDATED, {"options": options}) in events
        assert block_texts(orchestrator.document) == ["The fox runs.", "Second block."]

    def test_edits_win_over_options(self, orchestrator, caplog):
        orchestrator.begin()
        payload = response(edit("block-2.1", {"type": "delete-block"}), options=[{"title": "A", "content": "a"}])
        orchestrator.feed(payload)
        assert block_texts(orchestrator.document) == ["The fox runs."]
        assert "both edits and options" in caplog.text

    def test_unknown_target_is_skipped(self, orchestrator):
        orchestrator.begin()
        orchestrator.feed(response(
            edit("block-9.9", {"type": "delete-block"}),
            edit("block-2.1", {"type": "replace", "replacement": "Changed."}),
        ))
        assert block_texts(orchestrator.document) == ["The fox runs.", "Changed."]
        assert orchestrator.finish().applied == 1

    def test_block_map_preamble(self, orchestrator):
        orchestrator.begin()
        orchestrator.feed('{"blockMap": [{"id": "block-1.1"}]')
        assert orchestrator.feed('}\n') is None
        orchestrator.feed(response(edit("block-1.1", {"type": "replace", "replacement": "Quick."})))
        assert block_texts(orchestrator.document)[0] == "Quick."

    def test_event_handler_errors_are_contained(self):
        def failing_handler(event_type, data):
            raise RuntimeError("boom")

        orchestrator = EditOrchestrator(make_document(paragraph("Hi.")), event_handler=failing_handler)
        orchestrator.begin()
        orchestrator.feed(response(edit("block-1.1", {"type": "replace", "replacement": "Bye."})))
        assert block_texts(orchestrator.document) == ["Bye."]


def test_strip_block_map_preamble():
    assert strip_block_map_preamble('{"blockMap": []}\n{"edits"') == '{"edits"'
    assert strip_block_map_preamble('{"blockMap": [') == ""
    assert strip_block_map_preamble('{"edits": []}') == '{"edits": []}'


class TestOrchestratorRun:

    @pytest.mark.asyncio
    async def test_run_applies_chunked_stream(self):
        document = make_document(paragraph("The fox runs. It rests."))
        orchestrator = EditOrchestrator(document)
        payload = response(
            edit("block-1.1", {"type": "replace", "replacement": "The fox **jumps**."}),
            edit("block-1.2", {"type": "delete-item"}),
            message="Done",
        )
        result = await orchestrator.run(text_chunks(payload, 3))

        assert block_texts(document) == ["The fox jumps. "]
        assert result.applied == 2
        assert result.message == "Done"
        assert not result.cancelled

    @pytest.mark.asyncio
    async def test_abort_before_start(self):
        document = make_document(paragraph("Untouched."))
        orchestrator = EditOrchestrator(document)
        abort = asyncio.Event()
        abort.set()
        payload = response(edit("block-1.1", {"type": "replace", "replacement": "Touched."}))

        result = await orchestrator.run(text_chunks(payload), abort=abort)
        assert result.cancelled
        assert block_texts(document) == ["Untouched."]

    @pytest.mark.asyncio
    async def test_abort_mid_stream_keeps_applied_edits(self):
        document = make_document(paragraph("Old."), paragraph("Other."))
        orchestrator = EditOrchestrator(document)
        abort = asyncio.Event()
        first = response(edit("block-1.1", {"type": "replace", "replacement": "New."}))

        async def chunks():
            yield first
            abort.set()
            yield "ignored"

        result = await orchestrator.run(chunks(), abort=abort)
        assert result.cancelled
        assert result.applied == 1
        assert block_texts(document) == ["New.", "Other."]
        assert orchestrator.buffer == first

    @pytest.mark.asyncio
    async def test_abort_closes_chunk_source(self):
        orchestrator = EditOrchestrator(make_document(paragraph("Hi.")))
        abort = asyncio.Event()
        closed = []

        async def chunks():
            try:
                yield '{"edits": ['
                abort.set()
                yield '{"target": '
            finally:
                closed.append(True)

        result = await orchestrator.run(chunks(), abort=abort)
        assert result.cancelled
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_source_failure_raises_stream_error(self):
        orchestrator = EditOrchestrator(make_document(paragraph("Hi.")))

        async def chunks():
            yield '{"edits": ['
            raise ConnectionError("socket closed")

        with pytest.raises(EditStreamError, match="socket closed"):
            await orchestrator.run(chunks())

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        orchestrator = EditOrchestrator(make_document(paragraph("Hi.")))

        async def chunks():
            yield '{"edits": ['
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await orchestrator.run(chunks())

    @pytest.mark.asyncio
    async def test_text_chunks_rejects_bad_size(self):
        with pytest.raises(ValueError):
            async for _ in text_chunks("abc", 0):
                pass
