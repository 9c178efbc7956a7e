# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Command line for the streaming edit core

    lexical-ai-edit blockmap doc.json
    lexical-ai-edit prompt doc.json "Make the intro shorter"
    lexical-ai-edit apply doc.json response.json --snapshot before.loro --output after.json
    lexical-ai-edit stream doc.json "Fix the typos" --uri ws://localhost:3003/edit
    lexical-ai-edit revert before.loro --output doc.json
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import click

from .edit.block_map import build_block_map, build_block_map_from_text
from .edit.doc_version import generate_doc_version
from .edit.orchestrator import EditEventType, EditOrchestrator, EditStreamError
from .edit.prompts import EDIT_MODES, build_edit_messages
from .model.document import LexicalDocument
from .model.loro_converter import export_loro_snapshot, import_loro_snapshot
from .transport import DEFAULT_CHUNK_SIZE, file_chunks, websocket_chunks

logger = logging.getLogger(__name__)


def _load_document(path: str) -> LexicalDocument:
    try:
        return LexicalDocument.from_lexical(Path(path).read_text(encoding="utf-8"))
    except ValueError as e:
        raise click.ClickException(f"Cannot read Lexical document {path}: {e}")


def _write_json(data: Any, output: Optional[str]) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        logger.info(f"Wrote {output}")
    else:
        click.echo(text)


def _save_snapshot(document: LexicalDocument, snapshot: Optional[str]) -> None:
    if snapshot:
        Path(snapshot).write_bytes(export_loro_snapshot(document))
        logger.info(f"💾 Saved pre-edit snapshot to {snapshot}")


def _echo_event(event_type: EditEventType, data: dict) -> None:
    if event_type == EditEventType.MESSAGE_UPDATED:
        logger.debug(f"Message: {data['message']}")
    elif event_type == EditEventType.EDIT_APPLIED:
        logger.info(f"Applied {data['type']} on {data['item_id']}")
    elif event_type == EditEventType.COMPLETED:
        if data.get("message"):
            click.echo(data["message"], err=True)
        for option in data.get("options") or []:
            click.echo(f"- {option.get('title', '')}: {option.get('content', '')}", err=True)


@click.group()
@click.option("--log-level", default="INFO", help="Logging level")
def main(log_level: str):
    """Apply streamed AI edits to Lexical documents"""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@main.command()
@click.argument("document_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--text", "as_text", is_flag=True, help="Treat the input as plain text instead of Lexical JSON")
def blockmap(document_path: str, as_text: bool):
    """Print the addressable items of a document"""
    if as_text:
        items = build_block_map_from_text(Path(document_path).read_text(encoding="utf-8"))
    else:
        items = build_block_map(_load_document(document_path))
    _write_json([item.to_dict() for item in items], None)


@main.command()
@click.argument("document_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("instruction")
@click.option("--mode", type=click.Choice(EDIT_MODES), default="inline", help="Edit mode")
@click.option("--selection", default=None, help="Currently selected text")
def prompt(document_path: str, instruction: str, mode: str, selection: Optional[str]):
    """Print the model messages for an instruction"""
    document = _load_document(document_path)
    messages = build_edit_messages(instruction, build_block_map(document), mode=mode, selection=selection)
    _write_json(messages, None)


@main.command()
@click.argument("document_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("response_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--chunk-size", default=DEFAULT_CHUNK_SIZE, show_default=True, help="Replay chunk size")
@click.option("--output", default=None, help="Where to write the edited Lexical JSON (stdout if omitted)")
@click.option("--snapshot", default=None, help="Save a Loro snapshot of the document before editing")
def apply(document_path: str, response_path: str, chunk_size: int, output: Optional[str], snapshot: Optional[str]):
    """Replay a recorded model response against a document"""
    if chunk_size < 1:
        raise click.BadParameter("must be positive", param_hint="--chunk-size")
    document = _load_document(document_path)
    _save_snapshot(document, snapshot)

    orchestrator = EditOrchestrator(document, event_handler=_echo_event)
    result = asyncio.run(orchestrator.run(file_chunks(response_path, chunk_size)))
    logger.info(f"{result.applied} edits applied")
    _write_json(document.to_lexical(), output)


@main.command()
@click.argument("document_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("instruction")
@click.option("--uri", required=True, help="Edit stream websocket endpoint")
@click.option("--mode", type=click.Choice(EDIT_MODES), default="inline", help="Edit mode")
@click.option("--output", default=None, help="Where to write the edited Lexical JSON (stdout if omitted)")
@click.option("--snapshot", default=None, help="Save a Loro snapshot of the document before editing")
def stream(document_path: str, instruction: str, uri: str, mode: str, output: Optional[str], snapshot: Optional[str]):
    """Send an instruction to a model endpoint and apply the streamed edits"""
    document = _load_document(document_path)
    _save_snapshot(document, snapshot)

    orchestrator = EditOrchestrator(document, event_handler=_echo_event)
    request = {
        "docVersion": generate_doc_version(document),
        "messages": build_edit_messages(instruction, build_block_map(document), mode=mode),
    }
    try:
        result = asyncio.run(orchestrator.run(websocket_chunks(uri, request)))
    except EditStreamError as e:
        raise click.ClickException(str(e))
    logger.info(f"{result.applied} edits applied")
    _write_json(document.to_lexical(), output)


@main.command()
@click.argument("snapshot_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", default=None, help="Where to write the restored Lexical JSON (stdout if omitted)")
def revert(snapshot_path: str, output: Optional[str]):
    """Restore a document from a Loro snapshot taken before an instruction"""
    document = import_loro_snapshot(Path(snapshot_path).read_bytes())
    _write_json(document.to_lexical(), output)


if __name__ == "__main__":
    main()
