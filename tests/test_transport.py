# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Chunk source tests against a local websocket server
"""

import asyncio
import json

import pytest
import websockets

from helpers import block_texts, edit, make_document, paragraph, response

from lexical_ai_edit import EditOrchestrator
from lexical_ai_edit.transport import file_chunks, text_chunks, websocket_chunks


class TestWebsocketChunks:

    @pytest.mark.asyncio
    async def test_request_and_frames(self):
        received = []
        frames = ['{"edits": [], ', b'"message": "caf\xc3', b'\xa9"}']

        async def handler(websocket):
            received.append(json.loads(await websocket.recv()))
            for frame in frames:
                await websocket.send(frame)

        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            chunks = [chunk async for chunk in websocket_chunks(f"ws://127.0.0.1:{port}", {"docVersion": "1-a"})]

        assert received == [{"docVersion": "1-a"}]
        assert "".join(chunks) == '{"edits": [], "message": "café"}'
        assert all(chunks)

    @pytest.mark.asyncio
    async def test_orchestrator_over_websocket(self):
        payload = response(edit("block-1.1", {"type": "replace", "replacement": "Streamed."}), message="ok")

        async def handler(websocket):
            await websocket.recv()
            for start in range(0, len(payload), 10):
                await websocket.send(payload[start:start + 10])

        document = make_document(paragraph("Local."))
        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            result = await EditOrchestrator(document).run(websocket_chunks(f"ws://127.0.0.1:{port}", {}))

        assert block_texts(document) == ["Streamed."]
        assert result.message == "ok"

    @pytest.mark.asyncio
    async def test_abort_closes_connection(self):
        disconnected = asyncio.Event()
        abort = asyncio.Event()

        async def handler(websocket):
            await websocket.recv()
            await websocket.send('{"edits": [], "message": "Wor')
            try:
                await websocket.wait_closed()
            finally:
                disconnected.set()

        orchestrator = EditOrchestrator(make_document(paragraph("Hi.")), event_handler=lambda *_: abort.set())
        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            result = await orchestrator.run(websocket_chunks(f"ws://127.0.0.1:{port}", {}), abort=abort)
            await asyncio.wait_for(disconnected.wait(), timeout=5)

        assert result.cancelled
        assert result.message == "Wor"


class TestReplaySources:

    @pytest.mark.asyncio
    async def test_text_chunks(self):
        chunks = [chunk async for chunk in text_chunks("abcdefg", 3)]
        assert chunks == ["abc", "def", "g"]

    @pytest.mark.asyncio
    async def test_file_chunks(self, tmp_path):
        path = tmp_path / "response.json"
        path.write_text("0123456789", encoding="utf-8")
        chunks = [chunk async for chunk in file_chunks(path, 4)]
        assert chunks == ["0123", "4567", "89"]
