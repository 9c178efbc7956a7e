# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Chunk sources for EditOrchestrator.run()

- websocket_chunks: send one JSON request, yield text frames until the
  server closes the connection
- file_chunks / text_chunks: replay a recorded response in fixed-size chunks
"""

import asyncio
import codecs
import json
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Union

import websockets

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64


async def websocket_chunks(uri: str, request: Dict[str, Any]) -> AsyncIterator[str]:
    """
    Stream a model response over a websocket

    Args:
        uri: Edit stream endpoint (ws:// or wss://)
        request: JSON request sent once the connection is open

    Yields:
        Response text chunks in arrival order

    Raises:
        websockets.exceptions.ConnectionClosedError: If the connection drops
    """
    decoder = codecs.getincrementaldecoder("utf-8")()
    logger.info(f"🔌 Connecting to edit stream {uri}")
    async with websockets.connect(uri) as websocket:
        await websocket.send(json.dumps(request))
        logger.debug("Edit request sent")
        async for message in websocket:
            if isinstance(message, bytes):
                message = decoder.decode(message)
            if message:
                yield message
        tail = decoder.decode(b"", final=True)
        if tail:
            yield tail
    logger.info("✅ Edit stream closed by server")


async def text_chunks(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[str]:
    """Yield text in chunk_size pieces, giving the event loop a turn between them"""
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    for start in range(0, len(text), chunk_size):
        yield text[start:start + chunk_size]
        await asyncio.sleep(0)


async def file_chunks(path: Union[str, Path], chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[str]:
    """Replay a recorded response file"""
    text = Path(path).read_text(encoding="utf-8")
    logger.debug(f"Replaying {len(text)} characters from {path}")
    async for chunk in text_chunks(text, chunk_size):
        yield chunk
